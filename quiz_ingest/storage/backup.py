from __future__ import annotations

import json
import logging
import re
from datetime import UTC, datetime
from pathlib import Path

from ..errors import BackupError
from ..models.collection import QuestionCollection
from .repository import write_json_atomic

"""Backup manager: pre-mutation snapshots of the question bank.

A snapshot is written before an upload rewrites existing records (overwrite /
merge strategies), so every such upload can be undone by restoring the file.

File naming: ``question_bank_<YYYYMMDD-HHMMSS-ffffff>_<upload id>.json`` (UTC).
"""

logger = logging.getLogger(__name__)

__all__ = [
    "BackupManager",
]

TIMESTAMP_FMT = "%Y%m%d-%H%M%S-%f"
_NAME_RE = re.compile(r"^question_bank_(?P<stamp>\d{8}-\d{6}-\d{6})_(?P<upload>[A-Za-z0-9-]+)\.json$")


class BackupManager:
    def __init__(self, backups_directory: Path) -> None:
        self.directory = Path(backups_directory)
        self._by_upload: dict[str, Path] = {}

    def create_backup(self, collection: QuestionCollection, upload_id: str) -> Path:
        """Write a snapshot of ``collection`` for ``upload_id``.

        Raises:
            BackupError: the snapshot could not be written
        """
        stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
        safe_id = re.sub(r"[^A-Za-z0-9-]", "-", upload_id)
        path = self.directory / f"question_bank_{stamp}_{safe_id}.json"
        try:
            write_json_atomic(path, collection.snapshot())
        except (OSError, TypeError, ValueError) as e:
            raise BackupError(f"failed to create backup {path}: {e}") from e
        self._by_upload[upload_id] = path
        logger.info("backup created: %s (%d questions)", path, len(collection))
        return path

    def has_backup_for(self, upload_id: str) -> bool:
        path = self._by_upload.get(upload_id)
        return path is not None and path.exists()

    def backup_path_for(self, upload_id: str) -> Path | None:
        return self._by_upload.get(upload_id)

    def list_backups(self) -> list[Path]:
        """Snapshot files, newest first."""
        if not self.directory.is_dir():
            return []
        found = [p for p in self.directory.iterdir() if p.is_file() and _NAME_RE.match(p.name)]
        return sorted(found, key=lambda p: _NAME_RE.match(p.name).group("stamp"), reverse=True)  # type: ignore[union-attr]

    def load_backup(self, path: Path) -> QuestionCollection:
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise BackupError(f"failed to read backup {path}: {e}") from e
        return QuestionCollection.from_dict(data)
