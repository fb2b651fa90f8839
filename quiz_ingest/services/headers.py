from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from ..models.row_data import RowData

"""Header normalization and required-header validation.

Both functions are pure: they read their arguments and return new values, so
they can be unit tested without any collection, config or file state.
"""

__all__ = [
    "MappedRows",
    "HeaderCheck",
    "PRESET_REQUIRED_HEADERS",
    "normalize_header_key",
    "apply_headers_map_to_rows",
    "compute_preset_required_headers",
    "validate_headers",
]

PRESET_REQUIRED_HEADERS: dict[str, tuple[str, ...]] = {
    "multiple_choice": ("option_a", "option_b", "option_c", "option_d", "correct_answer"),
    "true_false": ("correct_answer",),
    "short_answer": ("correct_answer",),
    "numeric": ("correct_answer",),
}


@dataclass(frozen=True)
class MappedRows:
    headers: list[str]
    rows: list[RowData]


@dataclass(frozen=True)
class HeaderCheck:
    ok: bool
    missing: list[str]


def normalize_header_key(name: str) -> str:
    """Comparison key for header names: trimmed and lower-cased."""
    return str(name).strip().lower()


def _dedupe(names: Iterable[str]) -> list[str]:
    out: list[str] = []
    seen: set[str] = set()
    for name in names:
        key = normalize_header_key(name)
        if key in seen:
            continue
        seen.add(key)
        out.append(name)
    return out


def apply_headers_map_to_rows(
    rows: Sequence[RowData],
    headers_map: Mapping[str, str] | None,
    headers: Sequence[str] | None = None,
) -> MappedRows:
    """Rewrite row keys to canonical field names.

    Args:
        rows: Parsed rows (keys are source header spellings)
        headers_map: source header -> canonical name; keys match case- and
            whitespace-insensitively. ``None``/empty leaves names unchanged.
        headers: Source header order. Defaults to the key order of the first row.

    Returns:
        MappedRows with the de-duplicated resulting header list (first
        occurrence order) and new RowData objects. When two source columns end
        up with the same canonical name the first one wins and later values are
        ignored.
    """
    lookup = {normalize_header_key(k): str(v).strip() for k, v in (headers_map or {}).items()}

    def target(name: str) -> str:
        return lookup.get(normalize_header_key(name), name)

    source_headers = list(headers) if headers is not None else (rows[0].keys() if rows else [])
    mapped_headers = _dedupe(target(h) for h in source_headers)

    mapped_rows: list[RowData] = []
    for row in rows:
        values: dict[str, str] = {}
        taken: set[str] = set()
        for key, value in row.values.items():
            new_key = target(key)
            norm = normalize_header_key(new_key)
            if norm in taken:
                continue
            taken.add(norm)
            values[new_key] = value
        mapped_rows.append(RowData(row_number=row.row_number, values=values))

    return MappedRows(headers=mapped_headers, rows=mapped_rows)


def compute_preset_required_headers(
    preset: str | None,
    overrides: Mapping[str, Sequence[str]] | None = None,
) -> list[str]:
    """Required canonical headers for a question-type preset.

    Unknown or missing presets require nothing. ``overrides`` (from config)
    replaces or extends the built-in table.
    """
    key = (preset or "").strip().lower()
    if not key:
        return []
    if overrides:
        for name, required in overrides.items():
            if name.strip().lower() == key:
                return list(required)
    return list(PRESET_REQUIRED_HEADERS.get(key, ()))


def validate_headers(headers: Iterable[str], required_headers: Iterable[str] | None) -> HeaderCheck:
    """Report which required headers are absent (case-insensitive). Never raises."""
    present = {normalize_header_key(h) for h in headers}
    missing = [h for h in (required_headers or []) if normalize_header_key(h) not in present]
    return HeaderCheck(ok=not missing, missing=missing)
