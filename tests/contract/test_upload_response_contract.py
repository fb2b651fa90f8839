from __future__ import annotations

import json
import re

from quiz_ingest.models import UploadOptions
from quiz_ingest.services.orchestrator import orchestrate_upload
from quiz_ingest.services.summary import render_summary_line

"""Contract: shape of the upload response, the SUMMARY line and the error log."""

SUMMARY_RE = re.compile(
    r"^SUMMARY upload=\S+ files=\d+ processed=\d+ added=\d+ updated=\d+ skipped=\d+ errors=\d+ elapsed_sec=[0-9.]+$"
)


def _run(upload_context, make_file):
    files = [
        make_file("good.csv", "question,option_a,option_b,correct_answer\nQ1,a,b,A\n"),
        make_file("bad.csv", "question,option_a\n,a\n"),
        make_file("empty.csv", ""),
    ]
    return orchestrate_upload(files, UploadOptions.from_payload('{"mergeStrategy": "skip"}'), upload_context)


def test_response_keys_and_types(upload_context, make_file):
    response = _run(upload_context, make_file).to_response()
    assert set(response) == {"uploadId", "summary", "detailsPerFile", "questionBankStats"}
    assert set(response["summary"]) == {"processed", "added", "updated", "skipped", "errors"}
    assert response["questionBankStats"] == {"totalQuestions": 1, "totalUploads": 1}
    for detail in response["detailsPerFile"]:
        assert set(detail) == {"filename", "size", "processed", "added", "updated", "skipped", "errors"}
    json.dumps(response)


def test_summary_errors_carry_file_and_row_context(upload_context, make_file):
    errors = _run(upload_context, make_file).to_response()["summary"]["errors"]
    assert errors == [
        {"file": "bad.csv", "row": 1, "message": "Row 1: Empty question text"},
        {"file": "empty.csv", "message": "no data rows"},
    ]


def test_summary_is_sum_of_file_details(upload_context, make_file):
    response = _run(upload_context, make_file).to_response()
    details = response["detailsPerFile"]
    for key in ("processed", "added", "updated", "skipped"):
        assert response["summary"][key] == sum(d[key] for d in details)
    assert len(response["summary"]["errors"]) == sum(len(d["errors"]) for d in details)
    assert [d["filename"] for d in details] == ["good.csv", "bad.csv", "empty.csv"]


def test_summary_line_format(upload_context, make_file):
    line = render_summary_line(_run(upload_context, make_file))
    assert SUMMARY_RE.match(line), line
    assert "files=3 processed=2 added=1 updated=0 skipped=0 errors=2" in line


def test_error_log_schema(upload_context, make_file, temp_workdir):
    _run(upload_context, make_file)
    (log_file,) = (temp_workdir / "logs").glob("errors-*.log")
    for line in log_file.read_text(encoding="utf-8").splitlines():
        record = json.loads(line)
        assert set(record) == {"timestamp", "file", "row", "error_type", "message"}
        assert re.fullmatch(r"[A-Z_]+", record["error_type"])
        assert record["timestamp"].endswith("Z")
