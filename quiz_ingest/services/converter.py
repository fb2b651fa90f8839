from __future__ import annotations

import logging
from dataclasses import dataclass

from ..models.question import OPTION_LETTERS, QuestionCandidate, SourceInfo
from ..models.row_data import RowData

"""Row converter: one canonical row -> QuestionCandidate or RowError.

Only two problems reject a row:
- empty question text (always, regardless of strictness)
- a correct answer that names no existing option

Every other missing or odd value degrades to a default so partial data does
not block an otherwise usable question.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "RowError",
    "DEFAULT_CATEGORY",
    "DEFAULT_DIFFICULTY",
    "DEFAULT_TYPE",
    "DEFAULT_POINTS",
    "DEFAULT_TIME_LIMIT",
    "normalize_difficulty",
    "resolve_correct_answer",
    "convert_and_validate_row",
]

DEFAULT_CATEGORY = "General"
DEFAULT_DIFFICULTY = "Medium"
DEFAULT_TYPE = "multiple_choice"
DEFAULT_POINTS = 1
DEFAULT_TIME_LIMIT = 30

OPTION_FIELDS = tuple(f"option_{letter.lower()}" for letter in OPTION_LETTERS)
CORE_FIELDS = {
    "id",
    "question",
    "type",
    "category",
    "difficulty",
    "explanation",
    "points",
    "time_limit",
    "tags",
    "correct_answer",
    *OPTION_FIELDS,
}

# Scalar content fields whose presence is tracked for field-level merges
_PROVIDED_SOURCES = (
    "type",
    "category",
    "difficulty",
    "explanation",
    "points",
    "time_limit",
    "tags",
    "correct_answer",
)

_DIFFICULTY_SYNONYMS = {
    "easy": "Easy",
    "1": "Easy",
    "beginner": "Easy",
    "basic": "Easy",
    "simple": "Easy",
    "medium": "Medium",
    "2": "Medium",
    "intermediate": "Medium",
    "normal": "Medium",
    "average": "Medium",
    "hard": "Hard",
    "3": "Hard",
    "advanced": "Hard",
    "difficult": "Hard",
    "challenging": "Hard",
    "expert": "Expert",
    "4": "Expert",
    "5": "Expert",
    "master": "Expert",
    "professional": "Expert",
}


@dataclass(frozen=True)
class RowError:
    row_number: int
    message: str


def _text(row: RowData, name: str) -> str:
    return (row.get(name) or "").strip()


def _positive_int(raw: str, default: int) -> int:
    if not raw:
        return default
    try:
        value = int(float(raw))
    except (ValueError, OverflowError):
        return default
    return value if value > 0 else default


def normalize_difficulty(raw: str) -> str:
    if not raw:
        return DEFAULT_DIFFICULTY
    return _DIFFICULTY_SYNONYMS.get(raw.strip().lower(), raw.strip())


def _split_tags(raw: str) -> tuple[str, ...]:
    tags: list[str] = []
    for part in raw.split(","):
        tag = part.strip().lower()
        if tag and tag not in tags:
            tags.append(tag)
    return tuple(tags)


def resolve_correct_answer(raw: str, present: list[tuple[str, str]]) -> str | None:
    """Resolve an answer reference to the letter of the (compacted) option list.

    Args:
        raw: Answer cell: column letter (A-F), 1-based option number or option text
        present: (column letter, option text) for each non-empty option, in order

    Returns:
        Letter into the compacted option list, the raw text when the question
        has no options, or None when no answer was given.

    Raises:
        ValueError: the answer names an option that does not exist
    """
    answer = raw.strip()
    if not answer:
        return None
    if not present:
        return answer

    upper = answer.upper()
    if len(upper) == 1 and upper in OPTION_LETTERS:
        for pos, (column_letter, _) in enumerate(present):
            if column_letter == upper:
                return OPTION_LETTERS[pos]
        raise ValueError(f"correct answer '{answer}' refers to an empty option")

    if answer.isdecimal():
        idx = int(answer) - 1
        if 0 <= idx < len(present):
            return OPTION_LETTERS[idx]

    # numbers outside the option range may still be option text ("10" of 5/10/15)
    for pos, (_, text) in enumerate(present):
        if text.strip().lower() == answer.lower():
            return OPTION_LETTERS[pos]
    if answer.isdecimal():
        raise ValueError(f"correct answer '{answer}' is out of range (1-{len(present)})")
    raise ValueError(f"correct answer '{answer}' does not match any option")


def convert_and_validate_row(
    row: RowData,
    *,
    upload_id: str,
    file_name: str,
    owner: str | None = None,
    default_type: str | None = None,
) -> QuestionCandidate | RowError:
    """Convert a canonical row. Problems come back as RowError, never as exceptions."""
    question_text = _text(row, "question")
    if not question_text:
        return RowError(row.row_number, "Empty question text")

    present: list[tuple[str, str]] = []
    for letter, field_name in zip(OPTION_LETTERS, OPTION_FIELDS, strict=True):
        text = _text(row, field_name)
        if text:
            present.append((letter, text))

    try:
        correct = resolve_correct_answer(_text(row, "correct_answer"), present)
    except ValueError as e:
        return RowError(row.row_number, str(e))

    custom_fields = {
        key.strip().lower(): value
        for key, value in row.values.items()
        if value and key.strip().lower() not in CORE_FIELDS
    }
    original_id = _text(row, "id") or None

    provided = {name for name in _PROVIDED_SOURCES if _text(row, name)}
    if present:
        provided.add("options")
    if custom_fields:
        provided.add("custom_fields")
    provided.add("question")

    candidate = QuestionCandidate(
        question=question_text,
        source=SourceInfo(
            upload_id=upload_id,
            file_name=file_name,
            row_index=row.row_number,
            original_id=original_id,
            owner=owner,
        ),
        type=_text(row, "type") or default_type or DEFAULT_TYPE,
        options=tuple(text for _, text in present),
        correct_answer=correct,
        category=_text(row, "category") or DEFAULT_CATEGORY,
        difficulty=normalize_difficulty(_text(row, "difficulty")),
        explanation=_text(row, "explanation"),
        points=_positive_int(_text(row, "points"), DEFAULT_POINTS),
        time_limit=_positive_int(_text(row, "time_limit"), DEFAULT_TIME_LIMIT),
        tags=_split_tags(_text(row, "tags")),
        custom_fields=custom_fields,
        provided=frozenset(provided),
    )
    logger.debug(
        "file=%s row=%d converted options=%d correct=%s",
        file_name,
        row.row_number,
        len(candidate.options),
        correct,
    )
    return candidate
