from __future__ import annotations

"""Exception hierarchy shared across the ingestion pipeline.

Row- and file-level problems are never raised out of the orchestrator; they are
captured as ErrorRecord data. Only FatalUploadError (and its subclasses) ends an
upload as a failure.
"""

__all__ = [
    "QuizIngestError",
    "OptionsError",
    "ConcurrentUploadError",
    "FatalUploadError",
    "PersistenceError",
    "BackupError",
    "BackupRequiredError",
]


class QuizIngestError(Exception):
    """Base exception for the package."""


class OptionsError(QuizIngestError, ValueError):
    """Raised when an upload options payload cannot be interpreted."""


class ConcurrentUploadError(QuizIngestError):
    """Raised when a second upload tries to write a collection already owned by another."""


class FatalUploadError(QuizIngestError):
    """Unrecoverable upload failure; no partial success is reported."""


class PersistenceError(FatalUploadError):
    """Saving the merged question collection failed."""


class BackupError(FatalUploadError):
    """Writing a pre-mutation snapshot failed."""


class BackupRequiredError(FatalUploadError):
    """A mutating merge was attempted before the upload's snapshot existed."""
