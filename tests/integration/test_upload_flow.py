from __future__ import annotations

import json
from pathlib import Path

from quiz_ingest.cli import main as cli_main
from quiz_ingest.config.loader import load_config
from quiz_ingest.logging.error_log import ErrorLogBuffer
from quiz_ingest.models import UploadFile, UploadOptions
from quiz_ingest.services.merge import get_duplicate_resolver
from quiz_ingest.services.orchestrator import UploadContext, orchestrate_upload
from quiz_ingest.services.views import collection_stats
from quiz_ingest.storage.backup import BackupManager
from quiz_ingest.storage.repository import JsonQuestionBankRepository

"""End-to-end: config -> repository -> orchestrator -> persisted bank, across restarts."""

BANK_V1 = (
    "ID,Question Text,Option A,Option B,Option C,Answer,Category,Difficulty,Tags\n"
    "1,What is 2+2?,three,four,five,Four,Math,beginner,\"arith, basics\"\n"
    "2,\"Largest planet, by mass?\",Mars,Jupiter,Venus,B,Science,3,planets\n"
)
BANK_V2 = (
    "ID,Question Text,Option A,Option B,Option C,Answer,Category,Difficulty,Tags\n"
    "1,What is 2+2?,4,22,8,A,Math,easy,arith\n"
    "3,Chemical symbol for gold?,Ag,Au,Gd,Au,Science,medium,\n"
)
HEADERS_MAP = {
    "question text": "question",
    "option a": "option_a",
    "option b": "option_b",
    "option c": "option_c",
    "answer": "correct_answer",
}


def _context(cfg, repo: JsonQuestionBankRepository) -> UploadContext:
    return UploadContext(
        collection=repo.load(),
        repository=repo,
        backup_manager=BackupManager(cfg.backups_directory),
        duplicate_resolver=get_duplicate_resolver(cfg.duplicate_policy),
        error_log=ErrorLogBuffer(cfg.logs_directory),
        header_failure_scope=cfg.header_failure_scope,
        presets=cfg.presets,
    )


def test_two_uploads_across_restarts_with_overwrite(write_config: Path, temp_workdir: Path):
    cfg = load_config()
    repo = JsonQuestionBankRepository(cfg.question_bank_path)
    opts = UploadOptions.from_payload(
        {"preset": "multiple_choice", "strictness": "strict", "owner": "t1"},
        headers_map=HEADERS_MAP,
        defaults=cfg.defaults,
    )

    first = orchestrate_upload([UploadFile("v1.csv", BANK_V1.encode())], opts, _context(cfg, repo))
    assert first.summary.errors == ()
    assert first.summary.added == 2

    stored = repo.load()
    q1, q2 = stored.questions
    assert q1.correct_answer == "B"  # "Four" matched option text
    assert q1.difficulty == "Easy"
    assert q1.tags == ["arith", "basics"]
    assert q1.source.original_id == "1"
    assert q2.question == "Largest planet, by mass?"
    assert q2.difficulty == "Hard"

    overwrite = UploadOptions.from_payload(
        {"mergeStrategy": "overwrite", "preset": "multiple_choice"}, headers_map=HEADERS_MAP, defaults=cfg.defaults
    )
    second = orchestrate_upload([UploadFile("v2.csv", BANK_V2.encode())], overwrite, _context(cfg, repo))
    assert (second.summary.added, second.summary.updated) == (1, 1)

    final = repo.load()
    assert [q.id for q in final] == [1, 2, 3]
    assert final.get(1).options == ["4", "22", "8"]
    assert final.get(1).correct_answer == "A"
    assert final.get(3).correct_answer == "B"
    assert [u.upload_id for u in final.uploads] == [first.upload_id, second.upload_id]
    assert final.metadata["totalQuestions"] == 3

    # the backup holds the bank as it was before the overwrite
    (backup,) = BackupManager(cfg.backups_directory).list_backups()
    restored = BackupManager(cfg.backups_directory).load_backup(backup)
    assert restored.get(1).options == ["three", "four", "five"]
    assert len(restored.uploads) == 1

    stats = collection_stats(final)
    assert stats["categories"] == ["Math", "Science"]
    assert stats["totalUploads"] == 2


def test_config_headers_map_and_bom_through_cli(write_config: Path, temp_workdir: Path, capsys):
    path = temp_workdir / "data" / "excel_export.csv"
    path.write_bytes("\ufeffQuestion Text,option_a,option_b,correct_answer\r\nQ1,a,b,2\r\n".encode())
    assert cli_main(["upload", str(path)]) == 0
    bank = json.loads((temp_workdir / "data" / "question_bank.json").read_text(encoding="utf-8"))
    assert bank["questions"][0]["question"] == "Q1"
    assert bank["questions"][0]["correct_answer"] == "B"


def test_id_or_text_policy_from_config(temp_workdir: Path, capsys):
    (temp_workdir / "config" / "quiz_ingest.yml").write_text(
        "duplicate_policy: id_or_text\ndefaults:\n  merge_strategy: merge\n", encoding="utf-8"
    )
    first = temp_workdir / "data" / "first.csv"
    first.write_text("question,explanation,category\nOld wording,keep me,History\n", encoding="utf-8")
    second = temp_workdir / "data" / "second.csv"
    second.write_text("id,question,category\n1,New wording,World History\n", encoding="utf-8")

    assert cli_main(["upload", str(first)]) == 0
    assert cli_main(["upload", str(second)]) == 0

    bank = json.loads((temp_workdir / "data" / "question_bank.json").read_text(encoding="utf-8"))
    assert len(bank["questions"]) == 1
    q = bank["questions"][0]
    assert q["question"] == "New wording"
    assert q["category"] == "World History"
    assert q["explanation"] == "keep me"
    assert len(list((temp_workdir / "data" / "backups").glob("question_bank_*.json"))) == 2
