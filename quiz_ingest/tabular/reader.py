from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field

from ..models.row_data import RowData

"""CSV reader for uploaded question files.

- First non-blank line is the header row; following non-blank lines are data rows.
- Header and cell text is whitespace-trimmed; quoted fields (including embedded
  commas, doubled quotes and line breaks) are handled by the csv module.
- A data line whose field count differs from the header is a row-level issue.
  Lenient parsing records it and moves on; strict parsing stops at the first one.
- Empty input (or a header with no data lines) is a file-level error.
"""

__all__ = [
    "EmptyFileError",
    "UnreadableFileError",
    "MalformedRowError",
    "RowIssue",
    "ParsedTable",
    "decode_content",
    "parse_csv_content",
]


class EmptyFileError(Exception):
    """Raised when the file has no header or no data rows."""


class UnreadableFileError(Exception):
    """Raised when the content cannot be decoded or tokenized as CSV."""


class MalformedRowError(Exception):
    """Raised (strict mode only) at the first row whose column count mismatches the header."""

    def __init__(self, row_number: int, message: str) -> None:
        super().__init__(f"Row {row_number}: {message}")
        self.row_number = row_number
        self.detail = message


@dataclass(frozen=True)
class RowIssue:
    row_number: int
    message: str


@dataclass
class ParsedTable:
    headers: list[str]
    rows: list[RowData]
    errors: list[RowIssue] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def decode_content(content: bytes | str) -> str:
    """Decode raw upload bytes as UTF-8 (a leading BOM is dropped)."""
    if isinstance(content, str):
        return content.lstrip("\ufeff")
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise UnreadableFileError(f"file is not valid UTF-8 text: {e}") from e


def _is_blank(record: list[str]) -> bool:
    return all(cell.strip() == "" for cell in record)


def _build_header(raw_header: list[str], warnings: list[str]) -> tuple[list[str], list[int]]:
    """Return (unique header names, indexes of the columns that carry them).

    Blank header cells are named ``column_<n>``. When a name repeats
    (case-insensitive) the first column keeps it and later columns are dropped.
    """
    headers: list[str] = []
    keep: list[int] = []
    seen: set[str] = set()
    for idx, cell in enumerate(raw_header):
        name = cell.strip() or f"column_{idx + 1}"
        key = name.lower()
        if key in seen:
            warnings.append(f"Duplicate header '{name}' ignored (column {idx + 1})")
            continue
        seen.add(key)
        headers.append(name)
        keep.append(idx)
    return headers, keep


def parse_csv_content(content: bytes | str, *, strict: bool = False) -> ParsedTable:
    """Parse CSV text into a header list and ordered rows.

    Parameters
    ----------
    content: raw upload buffer (bytes are decoded as UTF-8)
    strict: stop with MalformedRowError at the first column-count mismatch

    Raises
    ------
    UnreadableFileError: content is not decodable / not tokenizable
    EmptyFileError: no header row, or no data rows
    MalformedRowError: strict mode and a malformed row was met
    """
    text = decode_content(content)
    if text.strip() == "":
        raise EmptyFileError("no data rows")

    reader = csv.reader(io.StringIO(text, newline=""), skipinitialspace=False)
    warnings: list[str] = []
    errors: list[RowIssue] = []
    rows: list[RowData] = []

    try:
        raw_header: list[str] | None = None
        for record in reader:
            if not _is_blank(record):
                raw_header = record
                break
        if raw_header is None:
            raise EmptyFileError("no data rows")

        headers, keep = _build_header(raw_header, warnings)
        width = len(raw_header)

        row_number = 0
        for record in reader:
            if _is_blank(record):
                continue
            row_number += 1
            if len(record) != width:
                message = f"expected {width} columns, found {len(record)}"
                if strict:
                    raise MalformedRowError(row_number, message)
                errors.append(RowIssue(row_number, message))
                continue
            values = {headers[pos]: record[col].strip() for pos, col in enumerate(keep)}
            rows.append(RowData(row_number=row_number, values=values))
    except csv.Error as e:
        raise UnreadableFileError(f"CSV tokenization failed: {e}") from e

    if row_number == 0:
        raise EmptyFileError("no data rows")

    return ParsedTable(headers=headers, rows=rows, errors=errors, warnings=warnings)
