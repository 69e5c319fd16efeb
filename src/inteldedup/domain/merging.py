"""Merge executor and the repair pass for half-applied merges.

A merge touches two systems: the platform performs the merge, this store
records it. The history row is committed before the candidate status so a
crash between the two leaves evidence that ``reconcile_merges`` can act on.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from logging import getLogger
from typing import TYPE_CHECKING
from uuid import uuid4

from inteldedup.domain.errors import (
    ConflictError,
    InputError,
    NotFoundError,
    PersistenceError,
    UpstreamError,
)
from inteldedup.domain.model import MergeHistoryEntry

if TYPE_CHECKING:
    from collections.abc import Callable
    from uuid import UUID

    from inteldedup.domain.model import DuplicateCandidate, EntitySnapshot
    from inteldedup.domain.ports.merging import EntityMerger
    from inteldedup.domain.ports.unit_of_work import DedupUnitOfWork

log = getLogger(__name__)

DEFAULT_CLAIM_TTL = timedelta(minutes=15)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(slots=True, frozen=True)
class MergeOutcome:
    candidate_id: UUID
    kept: EntitySnapshot
    merged: EntitySnapshot


@dataclass(slots=True, frozen=True)
class ReconcileResult:
    repaired: int
    released_claims: int


def merge_candidate(
    *,
    candidate_id: UUID,
    keep_entity_id: str,
    merger: EntityMerger,
    unit_of_work_factory: Callable[[], DedupUnitOfWork],
    merged_by: str | None = None,
    now: Callable[[], datetime] = _utcnow,
) -> MergeOutcome:
    """Merge the candidate's other entity into ``keep_entity_id``.

    The platform merge is invoked at most once. Every attempt leaves exactly
    one history entry; a failed attempt leaves the candidate status as it was
    and re-raises.
    """

    if not keep_entity_id:
        raise InputError("keepEntityId must not be empty")

    token = uuid4().hex
    with unit_of_work_factory() as uow:
        candidate = uow.repositories.candidates.get(candidate_id)
        if candidate is None:
            raise NotFoundError(f"Candidate {candidate_id} not found")
        if not candidate.involves(keep_entity_id):
            raise InputError(
                f"keepEntityId {keep_entity_id} is not part of candidate {candidate_id}"
            )
        if not candidate.status.is_mergeable:
            raise ConflictError(f"Candidate {candidate_id} is {candidate.status.value}")
        if not uow.repositories.candidates.claim_for_merge(candidate_id, token=token, at=now()):
            raise ConflictError(f"Candidate {candidate_id} is already being merged")
        uow.commit()

    kept = candidate.entity(keep_entity_id)
    merged = candidate.counterpart(keep_entity_id)
    log.info("Merging %s (%s) into %s (%s)", merged.name, merged.id, kept.name, kept.id)

    try:
        merger.merge_entities(keep_entity_id=kept.id, merge_entity_ids=[merged.id])
    except Exception as exc:
        message = f"Merge failed: {exc}"
        log.warning("Merge of candidate %s failed: %s", candidate_id, exc)
        _record_failed_attempt(
            candidate,
            keep_entity_id=kept.id,
            merged_by=merged_by,
            error=str(exc) or type(exc).__name__,
            token=token,
            unit_of_work_factory=unit_of_work_factory,
        )
        status_code = exc.status_code if isinstance(exc, UpstreamError) else None
        raise UpstreamError(message, status_code=status_code) from exc

    try:
        with unit_of_work_factory() as uow:
            uow.repositories.history.add(
                MergeHistoryEntry.for_attempt(
                    candidate, keep_entity_id=kept.id, merged_by=merged_by
                )
            )
            uow.commit()
    except PersistenceError:
        # nothing on record points at this merge, so the log is the only trace
        log.exception(
            "Candidate %s: platform merged %s into %s but the history entry was not saved",
            candidate_id,
            merged.id,
            kept.id,
        )
        raise

    with unit_of_work_factory() as uow:
        applied = uow.repositories.candidates.mark_merged(
            candidate_id,
            canonical_entity_id=kept.id,
            reviewer=merged_by,
            at=now(),
            token=token,
        )
        uow.commit()
    if not applied:
        log.warning(
            "Candidate %s merged upstream but its status was not updated; run reconcile",
            candidate_id,
        )

    log.info("Merged %s into %s", merged.id, kept.id)
    return MergeOutcome(candidate_id=candidate_id, kept=kept, merged=merged)


def _record_failed_attempt(
    candidate: DuplicateCandidate,
    *,
    keep_entity_id: str,
    merged_by: str | None,
    error: str,
    token: str,
    unit_of_work_factory: Callable[[], DedupUnitOfWork],
) -> None:
    try:
        with unit_of_work_factory() as uow:
            uow.repositories.history.add(
                MergeHistoryEntry.for_attempt(
                    candidate,
                    keep_entity_id=keep_entity_id,
                    merged_by=merged_by,
                    error=error,
                )
            )
            uow.repositories.candidates.release_merge_claim(candidate.id, token=token)
            uow.commit()
    except PersistenceError:
        # the merge error is what the caller needs; reconcile releases the claim
        log.exception("Could not record failed merge for candidate %s", candidate.id)


def reconcile_merges(
    *,
    unit_of_work_factory: Callable[[], DedupUnitOfWork],
    claim_ttl: timedelta = DEFAULT_CLAIM_TTL,
    now: Callable[[], datetime] = _utcnow,
) -> ReconcileResult:
    """Finish merges whose history says success and drop abandoned claims."""

    moment = now()
    repaired = 0
    with unit_of_work_factory() as uow:
        for entry in uow.repositories.history.successful_unapplied():
            if uow.repositories.candidates.mark_merged(
                entry.candidate_id,
                canonical_entity_id=entry.kept_entity_id,
                reviewer=entry.merged_by,
                at=moment,
            ):
                log.info("Repaired candidate %s as merged", entry.candidate_id)
                repaired += 1
        released = uow.repositories.candidates.release_stale_claims(older_than=moment - claim_ttl)
        uow.commit()

    if released:
        log.warning("Released %s stale merge claim(s)", released)
    return ReconcileResult(repaired=repaired, released_claims=released)
