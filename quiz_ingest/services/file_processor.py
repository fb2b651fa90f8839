from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from ..models.error_record import (
    EMPTY_FILE,
    MALFORMED_ROW,
    MISSING_HEADERS,
    ROW_VALIDATION_ERROR,
    STRICT_MODE_HALT,
    UNREADABLE_FILE,
    ErrorRecord,
)
from ..models.options import UploadOptions
from ..models.processing_result import FileDetail
from ..models.question import QuestionCandidate
from ..models.upload_file import UploadFile
from ..tabular.reader import EmptyFileError, UnreadableFileError, parse_csv_content
from .converter import RowError, convert_and_validate_row
from .headers import apply_headers_map_to_rows, compute_preset_required_headers, validate_headers

"""Per-file pipeline: parse -> map headers -> validate headers -> convert rows.

process_file never touches the question collection. It returns the converted
candidates and a FileDetail whose added/updated/skipped counts are still zero;
the orchestrator merges the candidates row by row and fills those counts in.

Strictness:
- lenient: every row is attempted; each problem becomes one ErrorRecord
- strict: the first header or row problem halts the file, every candidate of
  the file is discarded and the FileDetail carries that single error
"""

logger = logging.getLogger(__name__)

__all__ = [
    "BASE_REQUIRED_HEADERS",
    "FileOutcome",
    "process_file",
]

BASE_REQUIRED_HEADERS = ("question",)


@dataclass(frozen=True)
class FileOutcome:
    file_detail: FileDetail
    parsed_questions: list[QuestionCandidate] = field(default_factory=list)
    header_failure: bool = False  # required headers missing (halted when strict)


def _file_error(upload_file: UploadFile, error_type: str, message: str) -> FileOutcome:
    record = ErrorRecord.create(upload_file.name, None, error_type, message)
    logger.warning("file=%s %s: %s", upload_file.name, error_type, message)
    return FileOutcome(
        file_detail=FileDetail(file_name=upload_file.name, size=upload_file.size, errors=(record,)),
        header_failure=error_type == MISSING_HEADERS,
    )


def process_file(
    upload_file: UploadFile,
    options: UploadOptions,
    upload_id: str,
    *,
    preset_overrides: Mapping[str, Sequence[str]] | None = None,
) -> FileOutcome:
    """Run one uploaded file through the row pipeline.

    Args:
        upload_file: File name and raw content
        options: Request options (strictness, headers map, preset, owner)
        upload_id: Identifier recorded on every candidate's provenance
        preset_overrides: Configured preset -> required headers table

    Returns:
        FileOutcome with the candidates to merge and the (pre-merge) FileDetail
    """
    name = upload_file.name
    try:
        table = parse_csv_content(upload_file.content)
    except EmptyFileError as e:
        return _file_error(upload_file, EMPTY_FILE, str(e))
    except UnreadableFileError as e:
        return _file_error(upload_file, UNREADABLE_FILE, str(e))

    for warning in table.warnings:
        logger.warning("file=%s %s", name, warning)

    mapped = apply_headers_map_to_rows(table.rows, options.headers_map, table.headers)
    preset = (options.preset or "").strip().lower() or None
    required = [*BASE_REQUIRED_HEADERS, *compute_preset_required_headers(preset, preset_overrides)]
    check = validate_headers(mapped.headers, required)

    errors: list[ErrorRecord] = []
    header_failure = not check.ok
    if header_failure:
        message = f"Missing required headers: {', '.join(check.missing)}"
        if options.is_strict:
            return _file_error(upload_file, MISSING_HEADERS, message)
        logger.warning("file=%s %s", name, message)
        errors.append(ErrorRecord.create(name, None, MISSING_HEADERS, message))

    # Malformed rows never reach the mapper; merge them back in row order.
    issues = {issue.row_number: issue.message for issue in table.errors}
    rows = {row.row_number: row for row in mapped.rows}

    candidates: list[QuestionCandidate] = []
    processed = 0
    for row_number in sorted(issues.keys() | rows.keys()):
        processed += 1
        if row_number in issues:
            error_type, message = MALFORMED_ROW, issues[row_number]
        else:
            result = convert_and_validate_row(
                rows[row_number],
                upload_id=upload_id,
                file_name=name,
                owner=options.owner,
                default_type=preset,
            )
            if not isinstance(result, RowError):
                candidates.append(result)
                continue
            error_type, message = ROW_VALIDATION_ERROR, result.message

        if options.is_strict:
            halt = ErrorRecord.create(name, row_number, STRICT_MODE_HALT, f"Strict mode: Row {row_number}: {message}")
            logger.warning("file=%s halted at row %d (%s): %s", name, row_number, error_type, message)
            return FileOutcome(
                file_detail=FileDetail(
                    file_name=name, size=upload_file.size, processed=processed, errors=(halt,)
                ),
            )
        errors.append(ErrorRecord.create(name, row_number, error_type, f"Row {row_number}: {message}"))

    logger.info(
        "file=%s rows=%d candidates=%d errors=%d",
        name,
        processed,
        len(candidates),
        len(errors),
    )
    return FileOutcome(
        file_detail=FileDetail(file_name=name, size=upload_file.size, processed=processed, errors=tuple(errors)),
        parsed_questions=candidates,
        header_failure=header_failure,
    )
