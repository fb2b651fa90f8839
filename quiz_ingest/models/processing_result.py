from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .error_record import ErrorRecord

"""Processing result models for question uploads.

FileDetail is the immutable per-file outcome; UploadSummary is the elementwise
sum (counts) and concatenation (errors) of every FileDetail of one upload;
UploadRecord is the append-only history entry stored in the collection;
UploadResult is what orchestrate_upload returns to its caller.
"""

__all__ = [
    "FileDetail",
    "UploadSummary",
    "UploadRecord",
    "UploadResult",
]


@dataclass(frozen=True)
class FileDetail:
    """Per-file outcome, created once by the file processor / orchestrator."""
    file_name: str
    size: int = 0  # bytes received
    processed: int = 0  # data rows attempted
    added: int = 0
    updated: int = 0
    skipped: int = 0
    errors: tuple[ErrorRecord, ...] = ()

    @property
    def status(self) -> str:
        """success / partial / failed."""
        if not self.errors:
            return "success"
        if self.added or self.updated or self.skipped:
            return "partial"
        return "failed"

    def to_dict(self) -> dict[str, Any]:
        return {
            "filename": self.file_name,
            "size": self.size,
            "processed": self.processed,
            "added": self.added,
            "updated": self.updated,
            "skipped": self.skipped,
            "errors": [e.to_summary_dict() for e in self.errors],
        }


@dataclass(frozen=True)
class UploadSummary:
    processed: int = 0
    added: int = 0
    updated: int = 0
    skipped: int = 0
    errors: tuple[ErrorRecord, ...] = ()

    @classmethod
    def from_details(cls, details: list[FileDetail]) -> UploadSummary:
        errors: list[ErrorRecord] = []
        for d in details:
            errors.extend(d.errors)
        return cls(
            processed=sum(d.processed for d in details),
            added=sum(d.added for d in details),
            updated=sum(d.updated for d in details),
            skipped=sum(d.skipped for d in details),
            errors=tuple(errors),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "added": self.added,
            "updated": self.updated,
            "skipped": self.skipped,
            "errors": [e.to_summary_dict() for e in self.errors],
        }


@dataclass(frozen=True)
class UploadRecord:
    """History entry appended to the collection once per completed upload."""
    upload_id: str
    timestamp: str  # ISO8601 UTC
    owner: str
    files_count: int
    options: dict[str, Any]
    summary: dict[str, Any]
    details_per_file: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "uploadId": self.upload_id,
            "timestamp": self.timestamp,
            "userId": self.owner,
            "filesCount": self.files_count,
            "options": self.options,
            "summary": self.summary,
            "detailsPerFile": self.details_per_file,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> UploadRecord:
        return UploadRecord(
            upload_id=str(data.get("uploadId", "")),
            timestamp=str(data.get("timestamp", "")),
            owner=str(data.get("userId", "anonymous")),
            files_count=int(data.get("filesCount", 0) or 0),
            options=dict(data.get("options") or {}),
            summary=dict(data.get("summary") or {}),
            details_per_file=list(data.get("detailsPerFile") or []),
        )


@dataclass(frozen=True)
class UploadResult:
    """Aggregate returned by orchestrate_upload."""
    upload_id: str
    summary: UploadSummary
    details_per_file: list[FileDetail]
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    total_questions: int = 0
    total_uploads: int = 0

    @property
    def has_errors(self) -> bool:
        return bool(self.summary.errors)

    def to_response(self) -> dict[str, Any]:
        """JSON-ready success response."""
        return {
            "uploadId": self.upload_id,
            "summary": self.summary.to_dict(),
            "detailsPerFile": [d.to_dict() for d in self.details_per_file],
            "questionBankStats": {
                "totalQuestions": self.total_questions,
                "totalUploads": self.total_uploads,
            },
        }
