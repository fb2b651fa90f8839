from __future__ import annotations

import json
from pathlib import Path

import pytest

from quiz_ingest.cli import main as cli_main

CSV = "question,option_a,option_b,correct_answer\nWhat is 2+2?,3,4,B\nCapital of France?,Paris,Rome,A\n"


def _write(temp_workdir: Path, name: str, text: str) -> Path:
    p = temp_workdir / "data" / name
    p.write_text(text, encoding="utf-8")
    return p


def test_upload_success_prints_summary(temp_workdir: Path, capsys):
    path = _write(temp_workdir, "a.csv", CSV)
    code = cli_main(["upload", str(path)])
    out = capsys.readouterr().out
    assert code == 0
    assert "SUMMARY upload=" in out
    assert "files=1 processed=2 added=2 updated=0 skipped=0 errors=0" in out
    assert (temp_workdir / "data" / "question_bank.json").exists()


def test_upload_with_row_errors_exits_2(temp_workdir: Path, capsys):
    path = _write(temp_workdir, "a.csv", CSV + ",x,y,A\n")
    code = cli_main(["upload", str(path)])
    out = capsys.readouterr().out
    assert code == 2
    assert "WARN a.csv row 3: Row 3: Empty question text" in out
    assert "errors=1" in out


def test_upload_options_and_headers_map(temp_workdir: Path, capsys):
    path = _write(temp_workdir, "a.csv", "Prompt,Answer\nWhat?,42\n")
    code = cli_main(
        [
            "upload",
            str(path),
            "--options",
            '{"strictness": "strict", "owner": "cli-user"}',
            "--headers-map",
            '{"prompt": "question", "answer": "correct_answer"}',
        ]
    )
    assert code == 0
    bank = json.loads((temp_workdir / "data" / "question_bank.json").read_text(encoding="utf-8"))
    assert bank["questions"][0]["question"] == "What?"
    assert bank["questions"][0]["correct_answer"] == "42"
    assert bank["uploads"][0]["userId"] == "cli-user"


def test_invalid_options_is_fatal(temp_workdir: Path, capsys):
    path = _write(temp_workdir, "a.csv", CSV)
    code = cli_main(["upload", str(path), "--options", '{"mergeStrategy": "replace"}'])
    assert code == 1
    assert "ERROR options:" in capsys.readouterr().out


def test_missing_upload_file_is_fatal(temp_workdir: Path, capsys):
    code = cli_main(["upload", str(temp_workdir / "data" / "nope.csv")])
    assert code == 1
    assert "ERROR cannot read upload file" in capsys.readouterr().out


def test_bad_config_is_fatal(temp_workdir: Path, capsys):
    (temp_workdir / "config" / "quiz_ingest.yml").write_text("duplicate_policy: fuzzy\n", encoding="utf-8")
    code = cli_main(["stats"])
    assert code == 1
    assert "ERROR config:" in capsys.readouterr().out


def test_persistence_failure_is_fatal(temp_workdir: Path, capsys):
    path = _write(temp_workdir, "a.csv", CSV)
    # a directory in place of the bank file cannot be loaded
    (temp_workdir / "data" / "question_bank.json").mkdir()
    code = cli_main(["upload", str(path)])
    assert code == 1
    assert "ERROR" in capsys.readouterr().out


def test_stats_and_export(temp_workdir: Path, capsys):
    cli_main(["upload", str(_write(temp_workdir, "a.csv", CSV))])
    capsys.readouterr()

    assert cli_main(["stats"]) == 0
    stats = json.loads(capsys.readouterr().out)
    assert stats["totalQuestions"] == 2
    assert stats["totalUploads"] == 1

    assert cli_main(["export", "--format", "csv"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[0].startswith("id,category,difficulty,type,question,option_a")
    assert len(lines) == 3

    out_file = temp_workdir / "exports" / "bank.json"
    assert cli_main(["export", "--output", str(out_file)]) == 0
    assert len(json.loads(out_file.read_text(encoding="utf-8"))["questions"]) == 2


def test_backups_lists_snapshots(temp_workdir: Path, capsys):
    path = _write(temp_workdir, "a.csv", CSV)
    cli_main(["upload", str(path)])
    cli_main(["upload", str(path), "--options", '{"mergeStrategy": "overwrite"}'])
    capsys.readouterr()
    assert cli_main(["backups"]) == 0
    listed = capsys.readouterr().out.splitlines()
    assert len(listed) == 1
    assert "question_bank_" in listed[0]


def test_debug_flag(temp_workdir: Path, capsys):
    cli_main(["--debug", "upload", str(_write(temp_workdir, "a.csv", CSV))])
    assert "DEBUG debug mode enabled" in capsys.readouterr().out


def test_subcommand_required(temp_workdir: Path):
    with pytest.raises(SystemExit):
        cli_main([])
