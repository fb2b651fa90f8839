from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from quiz_ingest.errors import BackupError, FatalUploadError, PersistenceError
from quiz_ingest.models import QuestionCandidate, QuestionCollection, SourceInfo
from quiz_ingest.storage.backup import BackupManager
from quiz_ingest.storage.repository import JsonQuestionBankRepository


def _collection(*texts: str) -> QuestionCollection:
    c = QuestionCollection()
    for t in texts:
        c.add_candidate(QuestionCandidate(question=t, source=SourceInfo("u-1", "a.csv", 1)))
    return c


def test_load_missing_file_gives_empty_collection(tmp_path: Path):
    repo = JsonQuestionBankRepository(tmp_path / "nope" / "bank.json")
    c = repo.load()
    assert len(c) == 0
    assert c.metadata == {"version": "1.0"}


def test_save_then_load_round_trip_updates_metadata(tmp_path: Path):
    path = tmp_path / "data" / "bank.json"
    repo = JsonQuestionBankRepository(path)
    repo.save(_collection("Q1", "Q2"))

    raw = json.loads(path.read_text(encoding="utf-8"))
    assert set(raw) == {"questions", "uploads", "metadata"}
    assert raw["metadata"]["totalQuestions"] == 2
    assert raw["metadata"]["lastUpdated"].endswith("Z")

    loaded = repo.load()
    assert [q.question for q in loaded] == ["Q1", "Q2"]
    assert [q.id for q in loaded] == [1, 2]
    assert not list(path.parent.glob("*.tmp"))


def test_load_corrupt_file_raises_persistence_error(tmp_path: Path):
    path = tmp_path / "bank.json"
    path.write_text("{broken", encoding="utf-8")
    with pytest.raises(PersistenceError):
        JsonQuestionBankRepository(path).load()
    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(PersistenceError, match="not a JSON object"):
        JsonQuestionBankRepository(path).load()


def test_failed_save_keeps_previous_file(tmp_path: Path):
    path = tmp_path / "bank.json"
    repo = JsonQuestionBankRepository(path)
    repo.save(_collection("Q1"))
    before = path.read_text(encoding="utf-8")

    with patch("quiz_ingest.storage.repository.os.replace", side_effect=OSError("disk full")):
        with pytest.raises(PersistenceError, match="disk full"):
            repo.save(_collection("Q1", "Q2"))

    assert path.read_text(encoding="utf-8") == before
    assert not list(tmp_path.glob("*.tmp"))


def test_persistence_error_is_fatal():
    assert issubclass(PersistenceError, FatalUploadError)
    assert issubclass(BackupError, FatalUploadError)


def test_create_backup_writes_snapshot(tmp_path: Path):
    manager = BackupManager(tmp_path / "backups")
    c = _collection("Q1")
    path = manager.create_backup(c, "upload-1")

    assert path.parent == tmp_path / "backups"
    assert path.name.startswith("question_bank_")
    assert path.name.endswith("_upload-1.json")
    assert manager.has_backup_for("upload-1")
    assert not manager.has_backup_for("upload-2")
    assert manager.backup_path_for("upload-1") == path
    assert [q.question for q in manager.load_backup(path)] == ["Q1"]


def test_list_backups_newest_first_and_ignores_other_files(tmp_path: Path):
    d = tmp_path / "backups"
    d.mkdir()
    (d / "question_bank_20240101-000000-000000_a.json").write_text("{}", encoding="utf-8")
    (d / "question_bank_20240301-000000-000000_c.json").write_text("{}", encoding="utf-8")
    (d / "question_bank_20240201-000000-000000_b.json").write_text("{}", encoding="utf-8")
    (d / "notes.txt").write_text("x", encoding="utf-8")

    names = [p.name for p in BackupManager(d).list_backups()]
    assert names == [
        "question_bank_20240301-000000-000000_c.json",
        "question_bank_20240201-000000-000000_b.json",
        "question_bank_20240101-000000-000000_a.json",
    ]
    assert BackupManager(tmp_path / "missing").list_backups() == []


def test_backup_write_failure_raises_backup_error(tmp_path: Path):
    manager = BackupManager(tmp_path / "backups")
    with patch("quiz_ingest.storage.backup.write_json_atomic", side_effect=OSError("read-only")):
        with pytest.raises(BackupError, match="read-only"):
            manager.create_backup(_collection("Q1"), "upload-1")
    assert not manager.has_backup_for("upload-1")


def test_load_backup_unreadable(tmp_path: Path):
    with pytest.raises(BackupError):
        BackupManager(tmp_path).load_backup(tmp_path / "missing.json")
