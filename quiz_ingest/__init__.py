"""CSV question-bank ingestion: header normalization, conflict resolution and
backup-before-mutate persistence for quiz question collections."""

__version__ = "0.3.0"
