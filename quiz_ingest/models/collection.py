from __future__ import annotations

import copy
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from ..errors import ConcurrentUploadError
from .processing_result import UploadRecord
from .question import Question, QuestionCandidate

"""QuestionCollection: the persisted question bank plus its upload history.

The collection is shared mutable state. Exactly one upload may write it at a
time; ``exclusive()`` makes that single-writer precondition explicit by failing
fast when a second upload tries to take ownership. It is a guard, not a lock:
callers still serialize upload requests themselves.
"""

__all__ = [
    "QuestionCollection",
]

BANK_VERSION = "1.0"


class QuestionCollection:
    def __init__(
        self,
        questions: list[Question] | None = None,
        uploads: list[UploadRecord] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self.questions: list[Question] = list(questions or [])
        self._uploads: list[UploadRecord] = list(uploads or [])
        self.metadata: dict[str, Any] = dict(metadata or {"version": BANK_VERSION})
        self._active_upload: str | None = None

    def __len__(self) -> int:
        return len(self.questions)

    def __iter__(self) -> Iterator[Question]:
        return iter(self.questions)

    @property
    def uploads(self) -> tuple[UploadRecord, ...]:
        """Upload history (append-only; exposed read-only)."""
        return tuple(self._uploads)

    @property
    def active_upload(self) -> str | None:
        return self._active_upload

    @contextmanager
    def exclusive(self, upload_id: str) -> Iterator[QuestionCollection]:
        """Claim the collection for one upload for the duration of the block."""
        if self._active_upload is not None:
            raise ConcurrentUploadError(
                f"collection is already being written by upload {self._active_upload}; "
                f"upload {upload_id} must wait"
            )
        self._active_upload = upload_id
        try:
            yield self
        finally:
            self._active_upload = None

    def next_id(self) -> int:
        return max((q.id for q in self.questions), default=0) + 1

    def add_candidate(self, candidate: QuestionCandidate) -> Question:
        """Persist a candidate as a new Question with a freshly assigned identifier."""
        question = Question.from_candidate(candidate, self.next_id())
        self.questions.append(question)
        return question

    def get(self, question_id: int) -> Question | None:
        for q in self.questions:
            if q.id == question_id:
                return q
        return None

    def replace(self, question: Question) -> None:
        """Swap the stored record that carries ``question.id`` (first match)."""
        for idx, q in enumerate(self.questions):
            if q.id == question.id:
                self.questions[idx] = question
                return
        raise KeyError(f"question id {question.id} not in collection")

    def append_upload(self, record: UploadRecord) -> None:
        self._uploads.append(record)

    def to_dict(self) -> dict[str, Any]:
        return {
            "questions": [q.to_dict() for q in self.questions],
            "uploads": [u.to_dict() for u in self._uploads],
            "metadata": copy.deepcopy(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> QuestionCollection:
        data = data or {}
        return cls(
            questions=[Question.from_dict(q) for q in data.get("questions") or []],
            uploads=[UploadRecord.from_dict(u) for u in data.get("uploads") or []],
            metadata=data.get("metadata") or {"version": BANK_VERSION},
        )

    def snapshot(self) -> dict[str, Any]:
        """Detached copy of the current state, for rollback."""
        return self.to_dict()

    def restore(self, snapshot: dict[str, Any]) -> None:
        """Reset questions, history and metadata to a previous snapshot (in place)."""
        restored = QuestionCollection.from_dict(snapshot)
        self.questions = restored.questions
        self._uploads = list(restored.uploads)
        self.metadata = restored.metadata
