"""Candidate persistence and the human review state machine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from inteldedup.domain.errors import InputError, NotFoundError
from inteldedup.domain.model import (
    STUCK_SCAN_MESSAGE,
    CandidateStatus,
    CandidateTransitionError,
    DuplicateCandidate,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator
    from uuid import UUID

    from inteldedup.domain.model import PairKey
    from inteldedup.domain.ports.persistence import CandidateRepository
    from inteldedup.domain.ports.unit_of_work import DedupUnitOfWork

log = getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(slots=True)
class CandidateBatch:
    """Accumulates scan output until a single bulk persist call flushes it."""

    _candidates: dict[PairKey, DuplicateCandidate] = field(
        default_factory=dict["PairKey", DuplicateCandidate]
    )

    def add(self, candidate: DuplicateCandidate) -> None:
        # first candidate for a pair wins, matching scan order (highest score first)
        self._candidates.setdefault(candidate.pair_key, candidate)

    def extend(self, candidates: Iterable[DuplicateCandidate]) -> None:
        for candidate in candidates:
            self.add(candidate)

    def __len__(self) -> int:
        return len(self._candidates)

    def __iter__(self) -> Iterator[DuplicateCandidate]:
        return iter(self._candidates.values())

    def clear(self) -> None:
        self._candidates.clear()


@dataclass(slots=True)
class PersistResult:
    written: int = 0
    skipped: int = 0
    existing: int = 0


def persist_scan_results(batch: CandidateBatch, repository: CandidateRepository) -> PersistResult:
    """Store new candidates, honouring the skip-list and never touching live reviews.

    The caller commits; ``written`` counts rows the store actually inserted.
    """

    skip_pairs = repository.adjudicated_pair_keys()
    log.info("Skipping %s already processed pairs", len(skip_pairs))

    result = PersistResult()
    for candidate in batch:
        if candidate.pair_key in skip_pairs:
            log.debug(
                "Skipping already processed pair: %s / %s",
                candidate.entity1.name,
                candidate.entity2.name,
            )
            result.skipped += 1
            continue
        if repository.insert_if_absent(candidate):
            result.written += 1
        else:
            result.existing += 1
    batch.clear()
    return result


def review_candidate(
    *,
    candidate_id: UUID,
    status: CandidateStatus,
    reviewer: str,
    unit_of_work_factory: Callable[[], DedupUnitOfWork],
    canonical_entity_id: str | None = None,
    now: Callable[[], datetime] = _utcnow,
) -> DuplicateCandidate:
    """Approve or reject a candidate; raises ``NotFoundError`` for unknown ids.

    The write is conditional on the stored row, so a merge committed after the
    read wins and the review fails with ``CandidateTransitionError``.
    """

    if status not in {CandidateStatus.APPROVED, CandidateStatus.REJECTED}:
        raise InputError(f"Review cannot set status {status.value}")

    with unit_of_work_factory() as uow:
        candidate = uow.repositories.candidates.get(candidate_id)
        if candidate is None:
            raise NotFoundError(f"Candidate {candidate_id} not found")
        if canonical_entity_id is not None and not candidate.involves(canonical_entity_id):
            raise InputError(
                f"canonicalEntityId {canonical_entity_id} is not part of candidate {candidate_id}"
            )

        candidate.ensure_reviewable(status)

        moment = now()
        if not uow.repositories.candidates.record_review(
            candidate_id,
            status=status,
            reviewer=reviewer,
            canonical_entity_id=canonical_entity_id,
            at=moment,
        ):
            raise CandidateTransitionError(candidate_id, CandidateStatus.MERGED, status)
        # keep the loaded object in line with the row just written
        if status is CandidateStatus.APPROVED:
            candidate.approve(reviewer=reviewer, canonical_entity_id=canonical_entity_id, at=moment)
        else:
            candidate.reject(reviewer=reviewer, canonical_entity_id=canonical_entity_id, at=moment)
        uow.commit()

    log.info("Candidate %s marked %s by %s", candidate_id, status.value, reviewer)
    return candidate


def list_candidates(
    *,
    unit_of_work_factory: Callable[[], DedupUnitOfWork],
    status: CandidateStatus | None = CandidateStatus.PENDING,
    limit: int | None = None,
) -> list[DuplicateCandidate]:
    with unit_of_work_factory() as uow:
        return uow.repositories.candidates.list_by_status(status, limit=limit)


def clear_stuck_scans(
    *,
    unit_of_work_factory: Callable[[], DedupUnitOfWork],
    now: Callable[[], datetime] = _utcnow,
) -> int:
    """Fail every scan run still marked running (operator recovery after a crash)."""

    with unit_of_work_factory() as uow:
        cleared = uow.repositories.scan_runs.fail_running(message=STUCK_SCAN_MESSAGE, at=now())
        uow.commit()
    log.warning("Marked %s running scan(s) as stuck", cleared)
    return cleared


def clear_all(*, unit_of_work_factory: Callable[[], DedupUnitOfWork]) -> None:
    """Irreversibly delete all merge history, candidates and scan runs."""

    with unit_of_work_factory() as uow:
        history = uow.repositories.history.delete_all()
        candidates = uow.repositories.candidates.delete_all()
        runs = uow.repositories.scan_runs.delete_all()
        uow.commit()
    log.warning(
        "Cleared dedup data: history=%s, candidates=%s, scan_runs=%s", history, candidates, runs
    )
