from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass, replace
from typing import Protocol

from ..errors import BackupRequiredError
from ..models.collection import QuestionCollection
from ..models.options import MergeStrategy
from ..models.question import CONTENT_FIELDS, Question, QuestionCandidate, utc_now_iso

"""Duplicate detection and merge strategies.

Duplicate policy and merge behaviour are small capability objects selected by
name, so the orchestrator never passes opaque callables around:

- DuplicateResolver: ``text`` (case-insensitive trimmed question text, the
  reference policy) or ``id_or_text`` (CSV id column equal to an existing id,
  then text).
- Merge behaviours, one per MergeStrategy value:

  ============  ======================  =====================
  strategy      duplicate found         no duplicate
  ============  ======================  =====================
  skip          skipped                 added
  overwrite     updated (id kept)       added
  merge         updated (id kept)       added
  force         added (new id)          added
  ============  ======================  =====================
"""

logger = logging.getLogger(__name__)

__all__ = [
    "ADDED",
    "UPDATED",
    "SKIPPED",
    "DuplicateResolver",
    "QuestionTextResolver",
    "IdOrTextResolver",
    "get_duplicate_resolver",
    "MergeOutcome",
    "MergeBehaviour",
    "get_merge_behaviour",
    "apply_merge_strategy",
]

ADDED = "added"
UPDATED = "updated"
SKIPPED = "skipped"


class DuplicateResolver(Protocol):
    name: str

    def find_duplicate(self, candidate: QuestionCandidate, questions: Iterable[Question]) -> Question | None:
        """Return the first equivalent existing question in iteration order, or None."""
        ...


class QuestionTextResolver:
    """Equivalent when the question texts match after trimming and lower-casing."""
    name = "text"

    def find_duplicate(self, candidate: QuestionCandidate, questions: Iterable[Question]) -> Question | None:
        wanted = candidate.normalized_text
        for q in questions:
            if q.normalized_text == wanted:
                return q
        return None


class IdOrTextResolver:
    """Match the CSV ``id`` column against existing identifiers first, then fall back to text."""
    name = "id_or_text"

    def __init__(self) -> None:
        self._text = QuestionTextResolver()

    def find_duplicate(self, candidate: QuestionCandidate, questions: Iterable[Question]) -> Question | None:
        pool = list(questions)
        original = candidate.source.original_id
        if original is not None and original.strip().isdecimal():
            wanted_id = int(original)
            for q in pool:
                if q.id == wanted_id:
                    return q
        return self._text.find_duplicate(candidate, pool)


_RESOLVERS: dict[str, type] = {
    QuestionTextResolver.name: QuestionTextResolver,
    IdOrTextResolver.name: IdOrTextResolver,
}


def get_duplicate_resolver(name: str | None = None) -> DuplicateResolver:
    key = (name or QuestionTextResolver.name).strip().lower()
    try:
        return _RESOLVERS[key]()
    except KeyError as e:
        raise ValueError(f"unknown duplicate policy {name!r}; expected one of: {sorted(_RESOLVERS)}") from e


@dataclass(frozen=True)
class MergeOutcome:
    action: str  # added / updated / skipped
    question: Question | None  # the stored record, None when skipped


def _updated_copy(existing: Question, changes: dict[str, object], upload_id: str) -> Question:
    merged = replace(existing.copy(), **changes)
    merged.updated_at = utc_now_iso()
    merged.updated_by_upload = upload_id
    return merged


def _content_of(candidate: QuestionCandidate, names: Iterable[str]) -> dict[str, object]:
    out: dict[str, object] = {}
    for name in names:
        value = getattr(candidate, name)
        if isinstance(value, tuple):
            value = list(value)
        elif isinstance(value, dict):
            value = dict(value)
        out[name] = value
    return out


class MergeBehaviour(ABC):
    """Base behaviour: add when there is no duplicate."""
    strategy: MergeStrategy

    @abstractmethod
    def on_duplicate(
        self,
        candidate: QuestionCandidate,
        existing: Question,
        collection: QuestionCollection,
        upload_id: str,
    ) -> MergeOutcome:
        """Handle a candidate whose duplicate ``existing`` is already stored."""

    def apply(
        self,
        candidate: QuestionCandidate,
        existing: Question | None,
        collection: QuestionCollection,
        upload_id: str,
    ) -> MergeOutcome:
        if existing is None:
            return MergeOutcome(ADDED, collection.add_candidate(candidate))
        return self.on_duplicate(candidate, existing, collection, upload_id)


class SkipBehaviour(MergeBehaviour):
    strategy = MergeStrategy.SKIP

    def on_duplicate(
        self,
        candidate: QuestionCandidate,
        existing: Question,
        collection: QuestionCollection,
        upload_id: str,
    ) -> MergeOutcome:
        return MergeOutcome(SKIPPED, None)


class OverwriteBehaviour(MergeBehaviour):
    """Candidate content replaces the existing record; id, provenance and creation time stay."""
    strategy = MergeStrategy.OVERWRITE

    def on_duplicate(
        self,
        candidate: QuestionCandidate,
        existing: Question,
        collection: QuestionCollection,
        upload_id: str,
    ) -> MergeOutcome:
        updated = _updated_copy(existing, _content_of(candidate, CONTENT_FIELDS), upload_id)
        collection.replace(updated)
        return MergeOutcome(UPDATED, updated)


class FieldMergeBehaviour(MergeBehaviour):
    """Only fields actually present in the incoming row are copied onto the existing record."""
    strategy = MergeStrategy.MERGE

    def on_duplicate(
        self,
        candidate: QuestionCandidate,
        existing: Question,
        collection: QuestionCollection,
        upload_id: str,
    ) -> MergeOutcome:
        names = [n for n in CONTENT_FIELDS if n in candidate.provided]
        changes = _content_of(candidate, names)
        if "custom_fields" in changes:
            merged_custom = dict(existing.custom_fields)
            merged_custom.update(candidate.custom_fields)
            changes["custom_fields"] = merged_custom
        updated = _updated_copy(existing, changes, upload_id)
        collection.replace(updated)
        return MergeOutcome(UPDATED, updated)


class ForceBehaviour(MergeBehaviour):
    """Always store the candidate as a new record with a fresh identifier."""
    strategy = MergeStrategy.FORCE

    def on_duplicate(
        self,
        candidate: QuestionCandidate,
        existing: Question,
        collection: QuestionCollection,
        upload_id: str,
    ) -> MergeOutcome:
        return MergeOutcome(ADDED, collection.add_candidate(candidate))


_BEHAVIOURS: dict[MergeStrategy, MergeBehaviour] = {
    b.strategy: b for b in (SkipBehaviour(), OverwriteBehaviour(), FieldMergeBehaviour(), ForceBehaviour())
}


def get_merge_behaviour(strategy: MergeStrategy) -> MergeBehaviour:
    return _BEHAVIOURS[strategy]


def apply_merge_strategy(
    candidate: QuestionCandidate,
    existing: Question | None,
    strategy: MergeStrategy,
    collection: QuestionCollection,
    *,
    upload_id: str,
    backup_ready: bool = False,
) -> MergeOutcome:
    """Apply one candidate to the collection under ``strategy``.

    Args:
        candidate: Converted question
        existing: DuplicateResolver result (None when the question is new)
        strategy: Requested merge strategy
        collection: Collection to mutate (caller holds ``exclusive``)
        upload_id: Current upload, recorded on updated records
        backup_ready: Whether this upload's snapshot has been written

    Raises:
        BackupRequiredError: a record would be rewritten without a snapshot
    """
    if existing is not None and strategy.mutates_existing and not backup_ready:
        raise BackupRequiredError(
            f"refusing to {strategy.value} question id={existing.id}: no backup for upload {upload_id}"
        )
    outcome = get_merge_behaviour(strategy).apply(candidate, existing, collection, upload_id)
    logger.debug(
        "strategy=%s action=%s id=%s duplicate_of=%s",
        strategy.value,
        outcome.action,
        outcome.question.id if outcome.question else None,
        existing.id if existing else None,
    )
    return outcome
