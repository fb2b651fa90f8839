from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import Any

"""ErrorRecord model for row- and file-level diagnostics.

Row and file problems are captured as data so a caller always receives a
complete summary for a batch. ``row`` is the 1-based data row number; ``None``
marks a file-level error where no single row is responsible.

The same record feeds two outputs:
- the upload response (``to_summary_dict``: ``{file, row?, message}``)
- the JSON Lines error log (``to_json_line``)
"""

__all__ = [
    "ErrorRecord",
    "MALFORMED_ROW",
    "ROW_VALIDATION_ERROR",
    "EMPTY_FILE",
    "UNREADABLE_FILE",
    "MISSING_HEADERS",
    "STRICT_MODE_HALT",
    "UPLOAD_HALTED",
    "PROCESSING_ERROR",
]

MALFORMED_ROW = "MALFORMED_ROW"
ROW_VALIDATION_ERROR = "ROW_VALIDATION_ERROR"
EMPTY_FILE = "EMPTY_FILE"
UNREADABLE_FILE = "UNREADABLE_FILE"
MISSING_HEADERS = "MISSING_HEADERS"
STRICT_MODE_HALT = "STRICT_MODE_HALT"
UPLOAD_HALTED = "UPLOAD_HALTED"
PROCESSING_ERROR = "PROCESSING_ERROR"


@dataclass(frozen=True)
class ErrorRecord:
    """Structured diagnostic for one row or one whole file.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: Original name of the uploaded file
        row: Data row number (1-based), or None for file-level errors
        error_type: Classification in UPPER_SNAKE_CASE format
        message: Human readable description
    """
    timestamp: str  # ISO8601 UTC
    file: str
    row: int | None
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(file: str, row: int | None, error_type: str, message: str) -> ErrorRecord:
        """Create a new ErrorRecord stamped with the current UTC time."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            row=row,
            error_type=error_type,
            message=message,
        )

    @property
    def is_file_level(self) -> bool:
        return self.row is None

    def to_summary_dict(self) -> dict[str, Any]:
        """Response shape: ``{file, row?, message}`` (row omitted for file-level errors)."""
        out: dict[str, Any] = {"file": self.file}
        if self.row is not None:
            out["row"] = self.row
        out["message"] = self.message
        return out

    def to_json_line(self) -> str:
        """Serialize to a single JSON Lines entry (fixed key set)."""
        return json.dumps(asdict(self), ensure_ascii=False)

    @staticmethod
    def from_dict(data: dict[str, Any]) -> ErrorRecord:
        return ErrorRecord(
            timestamp=str(data.get("timestamp", "")),
            file=str(data.get("file", "")),
            row=data.get("row"),
            error_type=str(data.get("error_type", PROCESSING_ERROR)),
            message=str(data.get("message", "")),
        )
