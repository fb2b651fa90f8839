from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

from ..errors import FatalUploadError
from ..logging.error_log import ErrorLogBuffer
from ..models.collection import QuestionCollection
from ..models.error_record import PROCESSING_ERROR, UPLOAD_HALTED, ErrorRecord
from ..models.options import UploadOptions
from ..models.processing_result import FileDetail, UploadRecord, UploadResult, UploadSummary
from ..models.question import utc_now_iso
from ..models.upload_file import UploadFile
from ..storage.backup import BackupManager
from ..storage.repository import JsonQuestionBankRepository
from .file_processor import FileOutcome, process_file
from .merge import ADDED, SKIPPED, UPDATED, DuplicateResolver, QuestionTextResolver, apply_merge_strategy
from .progress import ProgressTracker

"""Upload orchestration.

orchestrate_upload is the single entry point for one upload:

1. claim the collection (single writer) and take a rollback snapshot
2. write a backup first when the merge strategy rewrites existing records
3. run every file through process_file, in input order, and merge its
   candidates row by row so later rows and files see earlier additions
4. aggregate per-file details, append the UploadRecord and persist

Row and file problems end up as ErrorRecords in the result. A FatalUploadError
(backup or persistence failure) restores the in-memory collection to its
pre-upload state and propagates to the caller. Any other exception rolls back
the same way before propagating.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "HEADER_SCOPE_FILE",
    "HEADER_SCOPE_UPLOAD",
    "UploadContext",
    "orchestrate_upload",
    "error_response",
]

HEADER_SCOPE_FILE = "file"
HEADER_SCOPE_UPLOAD = "upload"


@dataclass
class UploadContext:
    """Resources one upload works against. The caller owns and serializes access to them."""
    collection: QuestionCollection
    repository: JsonQuestionBankRepository
    backup_manager: BackupManager
    duplicate_resolver: DuplicateResolver = field(default_factory=QuestionTextResolver)
    error_log: ErrorLogBuffer = field(default_factory=ErrorLogBuffer)
    upload_id_factory: Callable[[], Any] = uuid.uuid4
    header_failure_scope: str = HEADER_SCOPE_FILE  # strict header failure halts the file or the upload
    presets: Mapping[str, Sequence[str]] | None = None  # preset -> required headers overrides


def _halted_detail(upload_file: UploadFile, halted_by: str) -> FileDetail:
    record = ErrorRecord.create(
        upload_file.name,
        None,
        UPLOAD_HALTED,
        f"Not processed: upload halted after missing required headers in {halted_by}",
    )
    return FileDetail(file_name=upload_file.name, size=upload_file.size, errors=(record,))


def _merge_file(
    outcome: FileOutcome,
    options: UploadOptions,
    context: UploadContext,
    upload_id: str,
    backup_ready: bool,
) -> FileDetail:
    """Apply a file's candidates to the collection in row order and fill in the counts."""
    counts = {ADDED: 0, UPDATED: 0, SKIPPED: 0}
    for candidate in outcome.parsed_questions:
        existing = context.duplicate_resolver.find_duplicate(candidate, context.collection)
        merged = apply_merge_strategy(
            candidate,
            existing,
            options.merge_strategy,
            context.collection,
            upload_id=upload_id,
            backup_ready=backup_ready,
        )
        counts[merged.action] += 1
    return replace(
        outcome.file_detail,
        added=counts[ADDED],
        updated=counts[UPDATED],
        skipped=counts[SKIPPED],
    )


def _run_files(
    files: Sequence[UploadFile],
    options: UploadOptions,
    context: UploadContext,
    upload_id: str,
    backup_ready: bool,
) -> list[FileDetail]:
    details: list[FileDetail] = []
    halted_by: str | None = None
    with ProgressTracker(len(files)) as progress:
        for upload_file in files:
            progress.start_file(upload_file.name)
            if halted_by is not None:
                detail = _halted_detail(upload_file, halted_by)
            else:
                try:
                    outcome = process_file(
                        upload_file,
                        options,
                        upload_id,
                        preset_overrides=context.presets,
                    )
                except (ValueError, TypeError, LookupError) as e:
                    logger.exception("file=%s processing failed", upload_file.name)
                    record = ErrorRecord.create(upload_file.name, None, PROCESSING_ERROR, str(e))
                    outcome = FileOutcome(
                        file_detail=FileDetail(upload_file.name, upload_file.size, errors=(record,))
                    )
                detail = _merge_file(outcome, options, context, upload_id, backup_ready)
                if (
                    outcome.header_failure
                    and options.is_strict
                    and context.header_failure_scope == HEADER_SCOPE_UPLOAD
                ):
                    halted_by = upload_file.name
                    logger.warning("upload=%s halted by %s (missing required headers)", upload_id, upload_file.name)

            context.error_log.extend(detail.errors)
            details.append(detail)
            logger.info(
                "file=%s status=%s processed=%d added=%d updated=%d skipped=%d errors=%d",
                detail.file_name,
                detail.status,
                detail.processed,
                detail.added,
                detail.updated,
                detail.skipped,
                len(detail.errors),
            )
            progress.set_postfix(added=detail.added, errors=len(detail.errors))
            progress.finish_file()
    return details


def orchestrate_upload(
    files: Sequence[UploadFile],
    options: UploadOptions,
    context: UploadContext,
) -> UploadResult:
    """Process one upload batch against the context's collection.

    Any exception raised while the collection is claimed restores it to its
    pre-upload state before propagating.

    Args:
        files: Uploaded files, processed in this order
        options: Parsed request options
        context: Collection, storage and policy objects for this upload

    Returns:
        UploadResult with the aggregate summary and per-file details

    Raises:
        ConcurrentUploadError: another upload currently owns the collection
        FatalUploadError: backup or persistence failed
    """
    upload_id = str(context.upload_id_factory())
    start_time = datetime.now(UTC)
    collection = context.collection
    logger.info(
        "upload=%s files=%d strategy=%s strictness=%s",
        upload_id,
        len(files),
        options.merge_strategy.value,
        options.strictness.value,
    )

    with collection.exclusive(upload_id):
        snapshot = collection.snapshot()
        try:
            backup_ready = False
            if options.merge_strategy.mutates_existing:
                context.backup_manager.create_backup(collection, upload_id)
                backup_ready = True

            details = _run_files(files, options, context, upload_id, backup_ready)
            summary = UploadSummary.from_details(details)

            collection.append_upload(
                UploadRecord(
                    upload_id=upload_id,
                    timestamp=utc_now_iso(),
                    owner=options.owner or "anonymous",
                    files_count=len(files),
                    options=options.to_dict(),
                    summary=summary.to_dict(),
                    details_per_file=[d.to_dict() for d in details],
                )
            )
            context.repository.save(collection)
        except FatalUploadError as e:
            collection.restore(snapshot)
            logger.error("upload=%s failed, collection rolled back: %s", upload_id, e)
            raise
        except BaseException:
            collection.restore(snapshot)
            logger.exception("upload=%s aborted, collection rolled back", upload_id)
            raise
        finally:
            error_counts = context.error_log.counts_by_type()
            if error_counts:
                logger.info(
                    "upload=%s errors by type: %s",
                    upload_id,
                    " ".join(f"{kind}={n}" for kind, n in sorted(error_counts.items())),
                )
            try:
                log_path = context.error_log.flush()
            except OSError as e:
                logger.warning("upload=%s error log could not be written: %s", upload_id, e)
            else:
                if log_path is not None:
                    logger.info("error log written: %s", log_path)

    end_time = datetime.now(UTC)
    return UploadResult(
        upload_id=upload_id,
        summary=summary,
        details_per_file=details,
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=(end_time - start_time).total_seconds(),
        total_questions=len(collection),
        total_uploads=len(collection.uploads),
    )


def error_response(exc: BaseException) -> dict[str, str]:
    """Failure response body for an upload that raised."""
    return {
        "error": "Upload processing failed",
        "message": str(exc),
    }
