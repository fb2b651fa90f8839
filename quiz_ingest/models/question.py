from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields, replace
from datetime import UTC, datetime
from typing import Any

"""Question domain models.

QuestionCandidate is the fixed-shape result of converting one canonical CSV row;
Question is the persisted entity (candidate shape plus a stable identifier).
Identifiers are assigned by the QuestionCollection on first persistence and
never reassigned afterwards.
"""

__all__ = [
    "OPTION_LETTERS",
    "SourceInfo",
    "QuestionCandidate",
    "Question",
    "utc_now_iso",
]

OPTION_LETTERS = ("A", "B", "C", "D", "E", "F")

# Content fields copied by overwrite/merge. id, source and timestamps are not content.
CONTENT_FIELDS = (
    "question",
    "type",
    "options",
    "correct_answer",
    "category",
    "difficulty",
    "explanation",
    "points",
    "time_limit",
    "tags",
    "custom_fields",
)


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class SourceInfo:
    """Provenance of a question: which upload, file and row it came from."""
    upload_id: str
    file_name: str
    row_index: int  # 1-based data row number
    original_id: str | None = None  # value of the CSV "id" column, if any
    owner: str | None = None
    uploaded_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @staticmethod
    def from_dict(data: dict[str, Any] | None) -> SourceInfo:
        data = data or {}
        original = data.get("original_id")
        return SourceInfo(
            upload_id=str(data.get("upload_id", "")),
            file_name=str(data.get("file_name", "")),
            row_index=int(data.get("row_index", 0) or 0),
            original_id=None if original is None else str(original),
            owner=data.get("owner"),
            uploaded_at=str(data.get("uploaded_at", "")),
        )


@dataclass(frozen=True)
class QuestionCandidate:
    """Structured, validated form of one CSV row (not yet persisted)."""
    question: str
    source: SourceInfo
    type: str = "multiple_choice"
    options: tuple[str, ...] = ()
    correct_answer: str | None = None  # option letter when options exist, raw text otherwise
    category: str = "General"
    difficulty: str = "Medium"
    explanation: str = ""
    points: int = 1
    time_limit: int = 30  # seconds
    tags: tuple[str, ...] = ()
    custom_fields: dict[str, str] = field(default_factory=dict)
    provided: frozenset[str] = frozenset()  # content fields present in the source row

    @property
    def normalized_text(self) -> str:
        return self.question.strip().lower()


@dataclass
class Question:
    """A persisted question. Owned by QuestionCollection."""
    id: int
    question: str
    source: SourceInfo
    type: str = "multiple_choice"
    options: list[str] = field(default_factory=list)
    correct_answer: str | None = None
    category: str = "General"
    difficulty: str = "Medium"
    explanation: str = ""
    points: int = 1
    time_limit: int = 30
    tags: list[str] = field(default_factory=list)
    custom_fields: dict[str, str] = field(default_factory=dict)
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str | None = None
    updated_by_upload: str | None = None

    @property
    def normalized_text(self) -> str:
        return self.question.strip().lower()

    @classmethod
    def from_candidate(cls, candidate: QuestionCandidate, question_id: int) -> Question:
        return cls(
            id=question_id,
            question=candidate.question,
            source=candidate.source,
            type=candidate.type,
            options=list(candidate.options),
            correct_answer=candidate.correct_answer,
            category=candidate.category,
            difficulty=candidate.difficulty,
            explanation=candidate.explanation,
            points=candidate.points,
            time_limit=candidate.time_limit,
            tags=list(candidate.tags),
            custom_fields=dict(candidate.custom_fields),
        )

    def copy(self) -> Question:
        return replace(
            self,
            options=list(self.options),
            tags=list(self.tags),
            custom_fields=dict(self.custom_fields),
        )

    def option_for(self, letter: str | None) -> str | None:
        """Return the option text behind a correct-answer letter, if any."""
        if not letter or letter not in OPTION_LETTERS:
            return None
        idx = OPTION_LETTERS.index(letter)
        return self.options[idx] if idx < len(self.options) else None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["source"] = self.source.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Question:
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known}
        kwargs["id"] = int(data["id"])
        kwargs["source"] = SourceInfo.from_dict(data.get("source"))
        kwargs["options"] = list(data.get("options") or [])
        kwargs["tags"] = list(data.get("tags") or [])
        kwargs["custom_fields"] = dict(data.get("custom_fields") or {})
        return cls(**kwargs)
