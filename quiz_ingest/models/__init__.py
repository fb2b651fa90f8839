"""Domain models for the quiz question ingestion pipeline."""

from .collection import QuestionCollection
from .error_record import ErrorRecord
from .options import MergeStrategy, Strictness, UploadOptions
from .processing_result import FileDetail, UploadRecord, UploadResult, UploadSummary
from .question import Question, QuestionCandidate, SourceInfo
from .row_data import RowData
from .upload_file import UploadFile

__all__ = [
    # Request configuration
    "MergeStrategy",
    "Strictness",
    "UploadOptions",
    # Pipeline data
    "UploadFile",
    "RowData",
    "QuestionCandidate",
    "Question",
    "SourceInfo",
    "QuestionCollection",
    # Results
    "ErrorRecord",
    "FileDetail",
    "UploadRecord",
    "UploadResult",
    "UploadSummary",
]
