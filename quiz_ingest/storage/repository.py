from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from ..errors import PersistenceError
from ..models.collection import QuestionCollection
from ..models.question import utc_now_iso

"""JSON file persistence for the question bank.

Layout (one document): ``{"questions": [...], "uploads": [...], "metadata": {...}}``.
Saves go through a temporary file in the same directory followed by
``os.replace`` so a failed write never leaves a truncated bank behind.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "write_json_atomic",
    "JsonQuestionBankRepository",
]


def write_json_atomic(path: Path, data: dict[str, Any]) -> None:
    """Write ``data`` to ``path`` atomically (same-directory temp file + rename)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class JsonQuestionBankRepository:
    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> QuestionCollection:
        """Load the bank; a missing file yields an empty collection.

        Raises:
            PersistenceError: the file exists but is unreadable or not a JSON object
        """
        if not self.path.exists():
            logger.info("question bank %s not found; starting empty", self.path)
            return QuestionCollection()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"failed to read question bank {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise PersistenceError(f"question bank {self.path} is not a JSON object")
        try:
            collection = QuestionCollection.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceError(f"question bank {self.path} has invalid records: {e}") from e
        logger.debug("loaded %d questions from %s", len(collection), self.path)
        return collection

    def save(self, collection: QuestionCollection) -> Path:
        """Persist the collection, refreshing lastUpdated / totalQuestions metadata.

        Raises:
            PersistenceError: the write failed
        """
        collection.metadata["lastUpdated"] = utc_now_iso()
        collection.metadata["totalQuestions"] = len(collection)
        try:
            write_json_atomic(self.path, collection.to_dict())
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"failed to save question bank {self.path}: {e}") from e
        logger.info("question bank saved: %d questions -> %s", len(collection), self.path)
        return self.path
