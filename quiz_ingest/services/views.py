from __future__ import annotations

import json
from typing import Any

import pandas as pd

from ..models.collection import QuestionCollection
from ..models.question import OPTION_LETTERS, Question

"""Read-only views over a QuestionCollection: stats, paginated query and export.

None of these mutate the collection; they are safe to call between uploads.
"""

__all__ = [
    "EXPORT_COLUMNS",
    "collection_frame",
    "collection_stats",
    "query_questions",
    "export_json",
    "export_csv",
]

OPTION_COLUMNS = [f"option_{letter.lower()}" for letter in OPTION_LETTERS]
EXPORT_COLUMNS = [
    "id",
    "category",
    "difficulty",
    "type",
    "question",
    *OPTION_COLUMNS,
    "correct_answer",
    "explanation",
    "points",
    "time_limit",
    "tags",
]


def _flat_record(q: Question) -> dict[str, Any]:
    record: dict[str, Any] = {
        "id": q.id,
        "category": q.category,
        "difficulty": q.difficulty,
        "type": q.type,
        "question": q.question,
        "correct_answer": q.correct_answer or "",
        "explanation": q.explanation,
        "points": q.points,
        "time_limit": q.time_limit,
        "tags": ",".join(q.tags),
    }
    for letter, column in zip(OPTION_LETTERS, OPTION_COLUMNS, strict=True):
        record[column] = q.option_for(letter) or ""
    return record


def collection_frame(collection: QuestionCollection) -> pd.DataFrame:
    """One row per question, flat export columns."""
    return pd.DataFrame([_flat_record(q) for q in collection], columns=EXPORT_COLUMNS)


def collection_stats(collection: QuestionCollection) -> dict[str, Any]:
    """Size and composition of the bank.

    ``categories`` / ``difficulties`` list distinct values in first-seen order;
    the ``*Counts`` mappings give the number of questions per value.
    """
    df = collection_frame(collection)
    return {
        "totalQuestions": len(collection),
        "totalUploads": len(collection.uploads),
        "categories": [str(v) for v in pd.unique(df["category"])],
        "difficulties": [str(v) for v in pd.unique(df["difficulty"])],
        "categoryCounts": {str(k): int(v) for k, v in df["category"].value_counts(sort=False).items()},
        "difficultyCounts": {str(k): int(v) for k, v in df["difficulty"].value_counts(sort=False).items()},
        "lastUpdated": collection.metadata.get("lastUpdated"),
        "version": collection.metadata.get("version"),
    }


def _matches(q: Question, category: str | None, difficulty: str | None, search: str | None) -> bool:
    if category and category != "all" and q.category != category:
        return False
    if difficulty and difficulty != "all" and q.difficulty != difficulty:
        return False
    if search:
        needle = search.lower()
        if needle not in q.question.lower() and needle not in q.explanation.lower():
            return False
    return True


def query_questions(
    collection: QuestionCollection,
    *,
    category: str | None = None,
    difficulty: str | None = None,
    search: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> dict[str, Any]:
    """Filter (``"all"`` disables a filter) and paginate questions in stored order."""
    if limit < 0 or offset < 0:
        raise ValueError("limit and offset must be non-negative")
    matched = [q for q in collection if _matches(q, category, difficulty, search)]
    page = matched[offset : offset + limit]
    return {
        "questions": [q.to_dict() for q in page],
        "pagination": {
            "total": len(matched),
            "limit": limit,
            "offset": offset,
            "hasMore": offset + limit < len(matched),
        },
    }


def export_json(collection: QuestionCollection) -> str:
    """The whole bank document (questions, uploads, metadata) as JSON text."""
    return json.dumps(collection.to_dict(), ensure_ascii=False, indent=2)


def export_csv(collection: QuestionCollection) -> str:
    """Questions as CSV text with a header row (EXPORT_COLUMNS)."""
    return collection_frame(collection).to_csv(index=False, lineterminator="\n")
