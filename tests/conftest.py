# Shared pytest fixtures
from __future__ import annotations

import tempfile
from pathlib import Path

import pytest

from quiz_ingest.logging.error_log import ErrorLogBuffer
from quiz_ingest.logging.init import reset_logging
from quiz_ingest.models import QuestionCollection, UploadFile, UploadOptions
from quiz_ingest.services.orchestrator import UploadContext
from quiz_ingest.storage.backup import BackupManager
from quiz_ingest.storage.repository import JsonQuestionBankRepository


@pytest.fixture(autouse=True)
def _clean_logging():
    # handlers bind sys.stdout at setup time; capsys swaps it per test
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        monkeypatch.delenv("QUIZ_INGEST_CONFIG", raising=False)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """question_bank_path: data/question_bank.json
backups_directory: data/backups
logs_directory: logs
duplicate_policy: text
header_failure_scope: file
defaults:
  merge_strategy: skip
  strictness: lenient
headers_map:
  Question Text: question
presets:
  multiple_choice: [option_a, option_b, correct_answer]
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "quiz_ingest.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def csv_text() -> str:
    return (
        "question,option_a,option_b,option_c,option_d,correct_answer,category,difficulty\n"
        "What is 2+2?,3,4,5,6,B,Math,easy\n"
        "Capital of France?,Berlin,Paris,Rome,Madrid,B,Geography,Medium\n"
    )


@pytest.fixture()
def make_file():
    def _make(name: str, text: str) -> UploadFile:
        return UploadFile(name=name, content=text.encode("utf-8"))
    return _make


@pytest.fixture()
def upload_ids():
    counter = iter(range(1, 1000))
    return lambda: f"upload-{next(counter)}"


@pytest.fixture()
def upload_context(temp_workdir: Path, upload_ids) -> UploadContext:
    return UploadContext(
        collection=QuestionCollection(),
        repository=JsonQuestionBankRepository(temp_workdir / "data" / "question_bank.json"),
        backup_manager=BackupManager(temp_workdir / "data" / "backups"),
        error_log=ErrorLogBuffer(temp_workdir / "logs"),
        upload_id_factory=upload_ids,
    )


@pytest.fixture()
def lenient_skip() -> UploadOptions:
    return UploadOptions.from_payload({"mergeStrategy": "skip", "strictness": "lenient"})
