from __future__ import annotations

from dataclasses import dataclass, field

"""RowData model: one parsed data line of an uploaded CSV file.

The same type carries both the raw Row (keys are source header spellings) and
the CanonicalRow produced by the header mapper (keys rewritten to canonical
field names). Rows never travel past the row converter; from there on the
pipeline works with QuestionCandidate records.
"""

__all__ = [
    "RowData",
]


@dataclass(frozen=True)
class RowData:
    """Logical representation of a single CSV data row.

    ``row_number`` is the 1-based index among data rows (header excluded), the
    numbering reported back to users as "Row N".
    """
    row_number: int
    values: dict[str, str] = field(default_factory=dict)  # header -> trimmed cell text

    def get(self, name: str, default: str | None = None) -> str | None:
        """Case-insensitive lookup; the first matching key in column order wins."""
        wanted = name.strip().lower()
        for key, value in self.values.items():
            if key.strip().lower() == wanted:
                return value
        return default

    def keys(self) -> list[str]:
        return list(self.values.keys())
