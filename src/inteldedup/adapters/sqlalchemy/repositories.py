"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING, cast

from sqlalchemy import delete, insert, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError

from inteldedup.adapters.sqlalchemy.mappings import (
    candidate_table,
    history_table,
    scan_run_table,
)
from inteldedup.domain.model import (
    ADJUDICATED_STATUSES,
    MERGEABLE_STATUSES,
    CandidateStatus,
    DuplicateCandidate,
    MergeHistoryEntry,
    ScanRun,
    ScanStatus,
)

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from sqlalchemy import CursorResult, Executable
    from sqlalchemy.orm import Session

    from inteldedup.domain.model import EntitySnapshot, PairKey


def _rowcount(session: Session, statement: Executable) -> int:
    result = cast("CursorResult[object]", session.execute(statement))
    return result.rowcount


def _snapshot_values(prefix: str, snapshot: EntitySnapshot) -> dict[str, object]:
    return {
        f"{prefix}_id": snapshot.id,
        f"{prefix}_name": snapshot.name,
        f"{prefix}_description": snapshot.description,
        f"{prefix}_aliases": snapshot.aliases,
        f"{prefix}_relationships": snapshot.relationship_count,
    }


def _candidate_values(candidate: DuplicateCandidate) -> dict[str, object]:
    return {
        "id": candidate.id,
        "created_at": candidate.created_at,
        "updated_at": candidate.updated_at,
        **_snapshot_values("entity1", candidate.entity1),
        **_snapshot_values("entity2", candidate.entity2),
        "similarity_score": candidate.similarity_score,
        "name_similarity": candidate.name_similarity,
        "alias_overlap": candidate.alias_overlap,
        "detection_method": candidate.detection_method,
        "status": candidate.status,
        "reviewed_by": candidate.reviewed_by,
        "reviewed_at": candidate.reviewed_at,
        "canonical_entity_id": candidate.canonical_entity_id,
        "notes": candidate.notes,
    }


class SqlAlchemyCandidateRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def insert_if_absent(self, candidate: DuplicateCandidate) -> bool:
        values = _candidate_values(candidate)
        dialect = self.session.get_bind().dialect.name
        pair_columns = [candidate_table.c.entity1_id, candidate_table.c.entity2_id]

        if dialect == "sqlite":
            stmt = (
                sqlite.insert(candidate_table)
                .values(values)
                .on_conflict_do_nothing(index_elements=pair_columns)
            )
            return _rowcount(self.session, stmt) == 1
        if dialect == "postgresql":
            stmt = (
                postgresql.insert(candidate_table)
                .values(values)
                .on_conflict_do_nothing(index_elements=pair_columns)
            )
            return _rowcount(self.session, stmt) == 1

        # other backends: a savepoint keeps a lost race from poisoning the transaction
        try:
            with self.session.begin_nested():
                self.session.execute(insert(candidate_table).values(values))
        except IntegrityError:
            return False
        return True

    def get(self, candidate_id: UUID) -> DuplicateCandidate | None:
        return self.session.get(DuplicateCandidate, candidate_id)

    def adjudicated_pair_keys(self) -> set[PairKey]:
        stmt = select(candidate_table.c.entity1_id, candidate_table.c.entity2_id).where(
            candidate_table.c.status.in_(sorted(ADJUDICATED_STATUSES))
        )
        return {(row.entity1_id, row.entity2_id) for row in self.session.execute(stmt)}

    def list_by_status(
        self,
        status: CandidateStatus | None = None,
        *,
        limit: int | None = None,
    ) -> list[DuplicateCandidate]:
        stmt = select(DuplicateCandidate).order_by(
            candidate_table.c.similarity_score.desc(),
            candidate_table.c.created_at,
        )
        if status is not None:
            stmt = stmt.where(candidate_table.c.status == status)
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.execute(stmt).scalars())

    def record_review(
        self,
        candidate_id: UUID,
        *,
        status: CandidateStatus,
        reviewer: str,
        canonical_entity_id: str | None,
        at: datetime,
    ) -> bool:
        stmt = (
            update(candidate_table)
            .where(candidate_table.c.id == candidate_id)
            .where(candidate_table.c.status != CandidateStatus.MERGED)
            .values(
                status=status,
                reviewed_by=reviewer,
                reviewed_at=at,
                canonical_entity_id=canonical_entity_id,
                updated_at=at,
            )
        )
        return _rowcount(self.session, stmt) == 1

    def claim_for_merge(self, candidate_id: UUID, *, token: str, at: datetime) -> bool:
        stmt = (
            update(candidate_table)
            .where(candidate_table.c.id == candidate_id)
            .where(candidate_table.c.status.in_(sorted(MERGEABLE_STATUSES)))
            .where(candidate_table.c.merge_claim.is_(None))
            .values(merge_claim=token, merge_claimed_at=at)
        )
        return _rowcount(self.session, stmt) == 1

    def release_merge_claim(self, candidate_id: UUID, *, token: str) -> None:
        stmt = (
            update(candidate_table)
            .where(candidate_table.c.id == candidate_id)
            .where(candidate_table.c.merge_claim == token)
            .values(merge_claim=None, merge_claimed_at=None)
        )
        self.session.execute(stmt)

    def mark_merged(
        self,
        candidate_id: UUID,
        *,
        canonical_entity_id: str,
        reviewer: str | None,
        at: datetime,
        token: str | None = None,
    ) -> bool:
        stmt = (
            update(candidate_table)
            .where(candidate_table.c.id == candidate_id)
            .where(candidate_table.c.status != CandidateStatus.MERGED)
            .values(
                status=CandidateStatus.MERGED,
                canonical_entity_id=canonical_entity_id,
                reviewed_by=reviewer,
                reviewed_at=at,
                updated_at=at,
                merge_claim=None,
                merge_claimed_at=None,
            )
        )
        if token is not None:
            stmt = stmt.where(candidate_table.c.merge_claim == token)
        return _rowcount(self.session, stmt) == 1

    def release_stale_claims(self, *, older_than: datetime) -> int:
        stmt = (
            update(candidate_table)
            .where(candidate_table.c.merge_claim.is_not(None))
            .where(candidate_table.c.merge_claimed_at < older_than)
            .values(merge_claim=None, merge_claimed_at=None)
        )
        return _rowcount(self.session, stmt)

    def delete_all(self) -> int:
        return _rowcount(self.session, delete(candidate_table))


class SqlAlchemyMergeHistoryRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: MergeHistoryEntry) -> None:
        self.session.add(entity)

    def for_candidate(self, candidate_id: UUID) -> list[MergeHistoryEntry]:
        stmt = (
            select(MergeHistoryEntry)
            .where(history_table.c.candidate_id == candidate_id)
            .order_by(history_table.c.created_at)
        )
        return list(self.session.execute(stmt).scalars())

    def successful_unapplied(self) -> list[MergeHistoryEntry]:
        stmt = (
            select(MergeHistoryEntry)
            .join(candidate_table, history_table.c.candidate_id == candidate_table.c.id)
            .where(history_table.c.success.is_(True))
            .where(candidate_table.c.status != CandidateStatus.MERGED)
            .order_by(history_table.c.created_at)
        )
        return list(self.session.execute(stmt).scalars())

    def delete_all(self) -> int:
        return _rowcount(self.session, delete(history_table))


class SqlAlchemyScanRunRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: ScanRun) -> None:
        self.session.add(entity)

    def get(self, scan_id: UUID) -> ScanRun | None:
        return self.session.get(ScanRun, scan_id)

    def fail_running(self, *, message: str, at: datetime) -> int:
        stmt = (
            update(scan_run_table)
            .where(scan_run_table.c.status == ScanStatus.RUNNING)
            .values(status=ScanStatus.FAILED, error_message=message, completed_at=at)
        )
        return _rowcount(self.session, stmt)

    def delete_all(self) -> int:
        return _rowcount(self.session, delete(scan_run_table))


if TYPE_CHECKING:
    from inteldedup.domain.ports.persistence import (
        CandidateRepository,
        MergeHistoryRepository,
        ScanRunRepository,
    )

    _candidate_check: CandidateRepository = SqlAlchemyCandidateRepository(cast("Session", None))
    _history_check: MergeHistoryRepository = SqlAlchemyMergeHistoryRepository(
        cast("Session", None)
    )
    _scan_run_check: ScanRunRepository = SqlAlchemyScanRunRepository(cast("Session", None))
