from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING
from uuid import uuid4

import pytest

from inteldedup.adapters.sqlalchemy.repositories import SqlAlchemyMergeHistoryRepository
from inteldedup.domain.errors import (
    ConflictError,
    InputError,
    NotFoundError,
    PersistenceError,
    UpstreamError,
)
from inteldedup.domain.merging import merge_candidate, reconcile_merges
from inteldedup.domain.model import CandidateStatus, MergeHistoryEntry
from inteldedup.domain.review import CandidateBatch, persist_scan_results, review_candidate
from tests.helpers.intel import FakeMerger, failing_merger, make_candidate

if TYPE_CHECKING:
    from collections.abc import Callable

    from inteldedup.adapters.sqlalchemy.unit_of_work import SqlAlchemyDedupUnitOfWork
    from inteldedup.domain.model import DuplicateCandidate

    UowFactory = Callable[[], SqlAlchemyDedupUnitOfWork]

NOW = datetime(2026, 3, 1, 9, 30, tzinfo=UTC)


def _stored(uow_factory: UowFactory) -> DuplicateCandidate:
    candidate = make_candidate()
    batch = CandidateBatch()
    batch.add(candidate)
    with uow_factory() as uow:
        persist_scan_results(batch, uow.repositories.candidates)
        uow.commit()
    return candidate


def _reload(uow_factory: UowFactory, candidate: DuplicateCandidate) -> DuplicateCandidate:
    with uow_factory() as uow:
        stored = uow.repositories.candidates.get(candidate.id)
    assert stored is not None
    return stored


def _history(uow_factory: UowFactory, candidate: DuplicateCandidate) -> list[MergeHistoryEntry]:
    with uow_factory() as uow:
        return uow.repositories.history.for_candidate(candidate.id)


def test_successful_merge_records_history_and_status(sqlite_unit_of_work: UowFactory) -> None:
    candidate = _stored(sqlite_unit_of_work)
    merger = FakeMerger()

    outcome = merge_candidate(
        candidate_id=candidate.id,
        keep_entity_id="intrusion-set--b",
        merger=merger,
        unit_of_work_factory=sqlite_unit_of_work,
        merged_by="admin-user",
        now=lambda: NOW,
    )

    assert merger.calls == [("intrusion-set--b", ("intrusion-set--a",))]
    assert outcome.kept.name == "Cozy Bear"
    assert outcome.merged.name == "APT29"

    stored = _reload(sqlite_unit_of_work, candidate)
    assert stored.status is CandidateStatus.MERGED
    assert stored.canonical_entity_id == "intrusion-set--b"
    assert stored.reviewed_by == "admin-user"
    assert stored.reviewed_at == NOW
    assert stored.merge_claim is None

    (entry,) = _history(sqlite_unit_of_work, candidate)
    assert entry.success is True
    assert entry.error_message is None
    assert entry.kept_entity_id == "intrusion-set--b"
    assert entry.merged_entity_id == "intrusion-set--a"
    assert entry.merged_entity_name == "APT29"
    assert entry.merged_by == "admin-user"


def test_approved_candidate_can_be_merged(sqlite_unit_of_work: UowFactory) -> None:
    candidate = _stored(sqlite_unit_of_work)
    review_candidate(
        candidate_id=candidate.id,
        status=CandidateStatus.APPROVED,
        reviewer="analyst-user",
        unit_of_work_factory=sqlite_unit_of_work,
    )

    merge_candidate(
        candidate_id=candidate.id,
        keep_entity_id="intrusion-set--a",
        merger=FakeMerger(),
        unit_of_work_factory=sqlite_unit_of_work,
    )

    assert _reload(sqlite_unit_of_work, candidate).status is CandidateStatus.MERGED


def test_failed_merge_records_error_and_keeps_status(sqlite_unit_of_work: UowFactory) -> None:
    candidate = _stored(sqlite_unit_of_work)
    merger = failing_merger("Entities are locked")

    with pytest.raises(UpstreamError, match="^Merge failed: Entities are locked$"):
        merge_candidate(
            candidate_id=candidate.id,
            keep_entity_id="intrusion-set--a",
            merger=merger,
            unit_of_work_factory=sqlite_unit_of_work,
            merged_by="admin-user",
        )

    assert len(merger.calls) == 1
    stored = _reload(sqlite_unit_of_work, candidate)
    assert stored.status is CandidateStatus.PENDING
    assert stored.merge_claim is None
    (entry,) = _history(sqlite_unit_of_work, candidate)
    assert entry.success is False
    assert entry.error_message == "Entities are locked"


def test_failed_merge_can_be_retried(sqlite_unit_of_work: UowFactory) -> None:
    candidate = _stored(sqlite_unit_of_work)
    with pytest.raises(UpstreamError):
        merge_candidate(
            candidate_id=candidate.id,
            keep_entity_id="intrusion-set--a",
            merger=failing_merger(),
            unit_of_work_factory=sqlite_unit_of_work,
        )

    merge_candidate(
        candidate_id=candidate.id,
        keep_entity_id="intrusion-set--a",
        merger=FakeMerger(),
        unit_of_work_factory=sqlite_unit_of_work,
    )

    assert [entry.success for entry in _history(sqlite_unit_of_work, candidate)] == [False, True]


def test_keep_entity_outside_pair_is_rejected(sqlite_unit_of_work: UowFactory) -> None:
    candidate = _stored(sqlite_unit_of_work)
    merger = FakeMerger()

    with pytest.raises(InputError):
        merge_candidate(
            candidate_id=candidate.id,
            keep_entity_id="intrusion-set--z",
            merger=merger,
            unit_of_work_factory=sqlite_unit_of_work,
        )

    assert merger.calls == []
    assert _history(sqlite_unit_of_work, candidate) == []


def test_empty_keep_entity_is_rejected(sqlite_unit_of_work: UowFactory) -> None:
    candidate = _stored(sqlite_unit_of_work)

    with pytest.raises(InputError):
        merge_candidate(
            candidate_id=candidate.id,
            keep_entity_id="",
            merger=FakeMerger(),
            unit_of_work_factory=sqlite_unit_of_work,
        )


def test_unknown_candidate_is_not_found(sqlite_unit_of_work: UowFactory) -> None:
    merger = FakeMerger()

    with pytest.raises(NotFoundError):
        merge_candidate(
            candidate_id=uuid4(),
            keep_entity_id="intrusion-set--a",
            merger=merger,
            unit_of_work_factory=sqlite_unit_of_work,
        )

    assert merger.calls == []


@pytest.mark.parametrize("status", [CandidateStatus.REJECTED, CandidateStatus.MERGED])
def test_adjudicated_candidate_cannot_be_merged(
    sqlite_unit_of_work: UowFactory, status: CandidateStatus
) -> None:
    candidate = _stored(sqlite_unit_of_work)
    with sqlite_unit_of_work() as uow:
        if status is CandidateStatus.MERGED:
            uow.repositories.candidates.mark_merged(
                candidate.id, canonical_entity_id="intrusion-set--a", reviewer=None, at=NOW
            )
        else:
            stored = uow.repositories.candidates.get(candidate.id)
            assert stored is not None
            stored.reject(reviewer="analyst-user")
        uow.commit()
    merger = FakeMerger()

    with pytest.raises(ConflictError):
        merge_candidate(
            candidate_id=candidate.id,
            keep_entity_id="intrusion-set--a",
            merger=merger,
            unit_of_work_factory=sqlite_unit_of_work,
        )

    assert merger.calls == []


def test_claimed_candidate_is_not_merged_twice(sqlite_unit_of_work: UowFactory) -> None:
    candidate = _stored(sqlite_unit_of_work)
    with sqlite_unit_of_work() as uow:
        assert uow.repositories.candidates.claim_for_merge(candidate.id, token="other", at=NOW)
        uow.commit()
    merger = FakeMerger()

    with pytest.raises(ConflictError, match="already being merged"):
        merge_candidate(
            candidate_id=candidate.id,
            keep_entity_id="intrusion-set--a",
            merger=merger,
            unit_of_work_factory=sqlite_unit_of_work,
        )

    assert merger.calls == []


def test_unrecorded_platform_merge_is_logged_with_entity_ids(
    sqlite_unit_of_work: UowFactory,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    candidate = _stored(sqlite_unit_of_work)
    merger = FakeMerger()

    def refuse(repository: SqlAlchemyMergeHistoryRepository, entity: MergeHistoryEntry) -> None:
        raise PersistenceError("Database write failed: disk I/O error")

    monkeypatch.setattr(SqlAlchemyMergeHistoryRepository, "add", refuse)
    with caplog.at_level(logging.ERROR, logger="inteldedup.domain.merging"):
        with pytest.raises(PersistenceError):
            merge_candidate(
                candidate_id=candidate.id,
                keep_entity_id="intrusion-set--b",
                merger=merger,
                unit_of_work_factory=sqlite_unit_of_work,
            )

    assert merger.calls == [("intrusion-set--b", ("intrusion-set--a",))]
    (record,) = caplog.records
    assert record.levelno == logging.ERROR
    assert "intrusion-set--a" in record.getMessage()
    assert "intrusion-set--b" in record.getMessage()
    assert str(candidate.id) in record.getMessage()


def test_reconcile_applies_successful_history(sqlite_unit_of_work: UowFactory) -> None:
    candidate = _stored(sqlite_unit_of_work)
    with sqlite_unit_of_work() as uow:
        uow.repositories.candidates.claim_for_merge(candidate.id, token="crashed", at=NOW)
        uow.repositories.history.add(
            MergeHistoryEntry.for_attempt(
                candidate, keep_entity_id="intrusion-set--a", merged_by="admin-user"
            )
        )
        uow.commit()

    result = reconcile_merges(unit_of_work_factory=sqlite_unit_of_work, now=lambda: NOW)

    assert result.repaired == 1
    assert result.released_claims == 0
    stored = _reload(sqlite_unit_of_work, candidate)
    assert stored.status is CandidateStatus.MERGED
    assert stored.canonical_entity_id == "intrusion-set--a"
    assert stored.merge_claim is None


def test_reconcile_releases_only_stale_claims(sqlite_unit_of_work: UowFactory) -> None:
    candidate = _stored(sqlite_unit_of_work)
    with sqlite_unit_of_work() as uow:
        uow.repositories.candidates.claim_for_merge(
            candidate.id, token="abandoned", at=NOW - timedelta(hours=1)
        )
        uow.commit()

    fresh = reconcile_merges(
        unit_of_work_factory=sqlite_unit_of_work,
        claim_ttl=timedelta(hours=2),
        now=lambda: NOW,
    )
    stale = reconcile_merges(
        unit_of_work_factory=sqlite_unit_of_work,
        claim_ttl=timedelta(minutes=15),
        now=lambda: NOW,
    )

    assert fresh.released_claims == 0
    assert stale.released_claims == 1
    stored = _reload(sqlite_unit_of_work, candidate)
    assert stored.status is CandidateStatus.PENDING
    assert stored.merge_claim is None
