from __future__ import annotations

from ..models.processing_result import UploadResult

"""SUMMARY line rendering for completed uploads.

Format::

    SUMMARY upload=<id> files=<n> processed=<n> added=<n> updated=<n> skipped=<n> errors=<n> elapsed_sec=<s>
"""

__all__ = [
    "render_summary_line",
    "format_elapsed",
]


def format_elapsed(seconds: float) -> str:
    """Render elapsed seconds without scientific notation; whole numbers drop the fraction."""
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    return f"{seconds:.3f}".rstrip("0").rstrip(".") or "0"


def render_summary_line(result: UploadResult) -> str:
    """Render the SUMMARY line for an UploadResult.

    Examples:
        >>> from datetime import datetime, timezone
        >>> from quiz_ingest.models import UploadSummary
        >>> t = datetime(2024, 1, 1, tzinfo=timezone.utc)
        >>> r = UploadResult("u1", UploadSummary(processed=3, added=2, skipped=1), [], t, t, 0.0)
        >>> render_summary_line(r)
        'SUMMARY upload=u1 files=0 processed=3 added=2 updated=0 skipped=1 errors=0 elapsed_sec=0'
    """
    s = result.summary
    return (
        f"SUMMARY upload={result.upload_id} "
        f"files={len(result.details_per_file)} "
        f"processed={s.processed} "
        f"added={s.added} "
        f"updated={s.updated} "
        f"skipped={s.skipped} "
        f"errors={len(s.errors)} "
        f"elapsed_sec={format_elapsed(result.elapsed_seconds)}"
    )
