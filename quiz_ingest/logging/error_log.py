from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import ErrorRecord

"""Per-upload error log.

Row and file errors collected while an upload runs are written once, when the
upload finishes, as JSON Lines with the fixed ErrorRecord key set:

    {"timestamp": "...Z", "file": "a.csv", "row": 3, "error_type": "ROW_VALIDATION_ERROR", "message": "..."}

The target is ``<logs>/errors-YYYYMMDD-HHMMSS.log`` (UTC, fixed on the first
write). An upload without errors leaves no file behind.
"""

__all__ = [
    "ErrorLogBuffer",
]

DEFAULT_LOGS_DIRECTORY = Path("./logs")
STAMP_FORMAT = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    """Collects an upload's ErrorRecords until ``flush()`` writes them out."""

    def __init__(self, logs_directory: Path | str | None = None) -> None:
        self.logs_directory = Path(logs_directory) if logs_directory is not None else DEFAULT_LOGS_DIRECTORY
        self._pending: list[ErrorRecord] = []
        self._target: Path | None = None

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def file_path(self) -> Path:
        if self._target is None:
            stamp = datetime.now(UTC).strftime(STAMP_FORMAT)
            self._target = self.logs_directory / f"errors-{stamp}.log"
        return self._target

    def append(self, record: ErrorRecord) -> None:
        self._pending.append(record)

    def extend(self, records: Iterable[ErrorRecord]) -> None:
        self._pending.extend(records)

    def counts_by_type(self) -> dict[str, int]:
        """Pending records per error type, e.g. ``{"MALFORMED_ROW": 2}``."""
        return dict(Counter(r.error_type for r in self._pending))

    def flush(self) -> Path | None:
        """Append pending records to the log file.

        Returns:
            Path written to, or None when nothing was pending

        Raises:
            OSError: the log directory or file could not be written
        """
        if not self._pending:
            return None
        target = self.file_path
        target.parent.mkdir(parents=True, exist_ok=True)
        batch = "".join(f"{r.to_json_line()}\n" for r in self._pending)
        with target.open("a", encoding="utf-8") as fh:
            fh.write(batch)
        self._pending.clear()
        return target
