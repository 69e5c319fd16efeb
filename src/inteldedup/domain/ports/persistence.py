"""Ports for persisting candidates, merge history and scan runs."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from inteldedup.domain.model import (
    CandidateStatus,
    DuplicateCandidate,
    MergeHistoryEntry,
    PairKey,
    ScanRun,
)

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...

    def delete_all(self) -> int: ...


@runtime_checkable
class CandidateRepository(Protocol):
    """Persistence contract for duplicate candidates."""

    def insert_if_absent(self, candidate: DuplicateCandidate) -> bool:
        """Insert unless the canonical pair already exists; return whether a row was written."""
        ...

    def get(self, candidate_id: UUID) -> DuplicateCandidate | None: ...

    def adjudicated_pair_keys(self) -> set[PairKey]: ...

    def list_by_status(
        self,
        status: CandidateStatus | None = None,
        *,
        limit: int | None = None,
    ) -> list[DuplicateCandidate]: ...

    def record_review(
        self,
        candidate_id: UUID,
        *,
        status: CandidateStatus,
        reviewer: str,
        canonical_entity_id: str | None,
        at: datetime,
    ) -> bool:
        """Write a review decision unless the candidate is already merged."""
        ...

    def claim_for_merge(self, candidate_id: UUID, *, token: str, at: datetime) -> bool: ...

    def release_merge_claim(self, candidate_id: UUID, *, token: str) -> None: ...

    def mark_merged(
        self,
        candidate_id: UUID,
        *,
        canonical_entity_id: str,
        reviewer: str | None,
        at: datetime,
        token: str | None = None,
    ) -> bool: ...

    def release_stale_claims(self, *, older_than: datetime) -> int: ...

    def delete_all(self) -> int: ...


@runtime_checkable
class MergeHistoryRepository(Repository[MergeHistoryEntry], Protocol):
    """Append-only store of merge attempts."""

    def for_candidate(self, candidate_id: UUID) -> list[MergeHistoryEntry]: ...

    def successful_unapplied(self) -> list[MergeHistoryEntry]:
        """Successful attempts whose candidate is not (yet) marked merged."""
        ...


@runtime_checkable
class ScanRunRepository(Repository[ScanRun], Protocol):
    """Persistence contract for the scan ledger."""

    def get(self, scan_id: UUID) -> ScanRun | None: ...

    def fail_running(self, *, message: str, at: datetime) -> int: ...
