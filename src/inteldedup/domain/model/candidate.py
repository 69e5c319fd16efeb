"""Duplicate candidates and their review lifecycle."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from inteldedup.domain.errors import ConflictError

from .enums import CandidateStatus, DetectionMethod

if TYPE_CHECKING:
    from .entity import EntitySnapshot

type PairKey = tuple[str, str]


def canonical_pair_key(first_id: str, second_id: str) -> PairKey:
    """Return the two ids in lexicographic order; ``(a, b)`` and ``(b, a)`` collide."""

    if first_id <= second_id:
        return first_id, second_id
    return second_id, first_id


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class CandidateTransitionError(ConflictError):
    """Raised when a review action is not allowed from the current status."""

    def __init__(self, candidate_id: UUID, status: CandidateStatus, target: CandidateStatus) -> None:
        self.candidate_id = candidate_id
        self.status = status
        self.target = target
        super().__init__(f"Candidate {candidate_id} is {status.value}; cannot mark it {target.value}")


@dataclass(eq=False, kw_only=True)
class DuplicateCandidate:
    """Hypothesis that two intrusion sets describe the same actor.

    ``entity1`` always holds the snapshot with the lexicographically smaller id.
    """

    entity1: EntitySnapshot
    entity2: EntitySnapshot
    similarity_score: float
    name_similarity: float
    detection_method: DetectionMethod
    alias_overlap: int = 0
    status: CandidateStatus = CandidateStatus.PENDING
    canonical_entity_id: str | None = None
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    notes: str | None = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    merge_claim: str | None = None
    merge_claimed_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.entity1.id == self.entity2.id:
            raise ValueError("A candidate cannot pair an entity with itself")
        if self.entity1.id > self.entity2.id:
            self.entity1, self.entity2 = self.entity2, self.entity1

    @property
    def pair_key(self) -> PairKey:
        return self.entity1.id, self.entity2.id

    def involves(self, entity_id: str) -> bool:
        return entity_id in self.pair_key

    def entity(self, entity_id: str) -> EntitySnapshot:
        if entity_id == self.entity1.id:
            return self.entity1
        if entity_id == self.entity2.id:
            return self.entity2
        raise KeyError(entity_id)

    def counterpart(self, entity_id: str) -> EntitySnapshot:
        if entity_id == self.entity1.id:
            return self.entity2
        if entity_id == self.entity2.id:
            return self.entity1
        raise KeyError(entity_id)

    def approve(
        self,
        *,
        reviewer: str,
        canonical_entity_id: str | None = None,
        at: datetime | None = None,
    ) -> None:
        self._review(CandidateStatus.APPROVED, reviewer, canonical_entity_id, at)

    def reject(
        self,
        *,
        reviewer: str,
        canonical_entity_id: str | None = None,
        at: datetime | None = None,
    ) -> None:
        self._review(CandidateStatus.REJECTED, reviewer, canonical_entity_id, at)

    def ensure_reviewable(self, target: CandidateStatus) -> None:
        # merged is terminal: the platform no longer holds both entities
        if self.status is CandidateStatus.MERGED:
            raise CandidateTransitionError(self.id, self.status, target)

    def _review(
        self,
        target: CandidateStatus,
        reviewer: str,
        canonical_entity_id: str | None,
        at: datetime | None,
    ) -> None:
        self.ensure_reviewable(target)
        moment = at or _utcnow()
        self.status = target
        self.reviewed_by = reviewer
        self.reviewed_at = moment
        self.canonical_entity_id = canonical_entity_id
        self.updated_at = moment
