"""Tests for SQLAlchemy repositories."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from sqlalchemy import text
from sqlalchemy.orm import Session  # noqa: TC002

from inteldedup.adapters.sqlalchemy.repositories import (
    SqlAlchemyCandidateRepository,
    SqlAlchemyMergeHistoryRepository,
    SqlAlchemyScanRunRepository,
)
from inteldedup.domain.model import (
    CandidateStatus,
    DetectionMethod,
    EntitySnapshot,
    MergeHistoryEntry,
    ScanRun,
    ScanStatus,
)
from tests.helpers.intel import make_candidate, make_entity

NOW = datetime(2026, 5, 2, 14, 0, tzinfo=UTC)


def test_candidate_round_trip_keeps_snapshots(sqlite_session: Session) -> None:
    repository = SqlAlchemyCandidateRepository(sqlite_session)
    candidate = make_candidate(
        make_entity(
            "intrusion-set--b",
            "Fancy Bear",
            "Sofacy",
            "Strontium",
            description="Russian GRU unit",
            relationship_count=42,
        ),
        make_entity("intrusion-set--a", "APT28", "Sofacy"),
        method=DetectionMethod.ALIAS_OVERLAP,
    )

    assert repository.insert_if_absent(candidate) is True
    sqlite_session.commit()
    sqlite_session.expunge_all()

    stored = repository.get(candidate.id)
    assert stored is not None
    assert stored.entity1 == EntitySnapshot(
        id="intrusion-set--a", name="APT28", description=None, aliases=("Sofacy",)
    )
    assert stored.entity2 == EntitySnapshot(
        id="intrusion-set--b",
        name="Fancy Bear",
        description="Russian GRU unit",
        aliases=("Sofacy", "Strontium"),
        relationship_count=42,
    )
    assert stored.detection_method is DetectionMethod.ALIAS_OVERLAP
    assert stored.status is CandidateStatus.PENDING
    assert stored.created_at.tzinfo is not None


def test_aliases_are_stored_as_json_array(sqlite_session: Session) -> None:
    repository = SqlAlchemyCandidateRepository(sqlite_session)
    candidate = make_candidate()
    repository.insert_if_absent(candidate)
    sqlite_session.commit()

    raw = sqlite_session.execute(
        text("SELECT entity1_aliases, status FROM dedup_candidate")
    ).one()

    assert raw.entity1_aliases == '["Cozy Bear"]'
    assert raw.status == "pending"


def test_insert_if_absent_ignores_existing_pair(sqlite_session: Session) -> None:
    repository = SqlAlchemyCandidateRepository(sqlite_session)

    assert repository.insert_if_absent(make_candidate(score=0.9)) is True
    assert repository.insert_if_absent(make_candidate(score=0.99)) is False
    sqlite_session.commit()

    (stored,) = repository.list_by_status(None)
    assert stored.similarity_score == 0.9


def test_adjudicated_pair_keys_cover_rejected_and_merged(sqlite_session: Session) -> None:
    repository = SqlAlchemyCandidateRepository(sqlite_session)
    pending = make_candidate(make_entity("p--1", "One"), make_entity("p--2", "Uno"))
    rejected = make_candidate(make_entity("r--1", "Two"), make_entity("r--2", "Dos"))
    merged = make_candidate(make_entity("m--1", "Three"), make_entity("m--2", "Tres"))
    for candidate in (pending, rejected, merged):
        repository.insert_if_absent(candidate)
    sqlite_session.commit()

    loaded = repository.get(rejected.id)
    assert loaded is not None
    loaded.reject(reviewer="analyst-user")
    repository.mark_merged(merged.id, canonical_entity_id="m--1", reviewer=None, at=NOW)
    sqlite_session.commit()

    assert repository.adjudicated_pair_keys() == {("r--1", "r--2"), ("m--1", "m--2")}


def test_claim_for_merge_admits_one_holder(sqlite_session: Session) -> None:
    repository = SqlAlchemyCandidateRepository(sqlite_session)
    candidate = make_candidate()
    repository.insert_if_absent(candidate)
    sqlite_session.commit()

    assert repository.claim_for_merge(candidate.id, token="first", at=NOW) is True
    assert repository.claim_for_merge(candidate.id, token="second", at=NOW) is False

    repository.release_merge_claim(candidate.id, token="second")
    assert repository.claim_for_merge(candidate.id, token="third", at=NOW) is False

    repository.release_merge_claim(candidate.id, token="first")
    assert repository.claim_for_merge(candidate.id, token="third", at=NOW) is True


def test_mark_merged_with_token_requires_matching_claim(sqlite_session: Session) -> None:
    repository = SqlAlchemyCandidateRepository(sqlite_session)
    candidate = make_candidate()
    repository.insert_if_absent(candidate)
    repository.claim_for_merge(candidate.id, token="mine", at=NOW)
    sqlite_session.commit()

    assert not repository.mark_merged(
        candidate.id, canonical_entity_id="intrusion-set--a", reviewer="x", at=NOW, token="other"
    )
    assert repository.mark_merged(
        candidate.id, canonical_entity_id="intrusion-set--a", reviewer="x", at=NOW, token="mine"
    )
    assert not repository.mark_merged(
        candidate.id, canonical_entity_id="intrusion-set--a", reviewer="x", at=NOW
    )
    sqlite_session.commit()
    sqlite_session.expunge_all()

    stored = repository.get(candidate.id)
    assert stored is not None
    assert stored.status is CandidateStatus.MERGED
    assert stored.merge_claim is None
    assert stored.merge_claimed_at is None


def test_record_review_leaves_merged_rows_alone(sqlite_session: Session) -> None:
    repository = SqlAlchemyCandidateRepository(sqlite_session)
    candidate = make_candidate()
    repository.insert_if_absent(candidate)
    sqlite_session.commit()

    assert repository.record_review(
        candidate.id,
        status=CandidateStatus.APPROVED,
        reviewer="analyst",
        canonical_entity_id="intrusion-set--a",
        at=NOW,
    )
    repository.mark_merged(
        candidate.id, canonical_entity_id="intrusion-set--b", reviewer="admin", at=NOW
    )
    assert not repository.record_review(
        candidate.id,
        status=CandidateStatus.REJECTED,
        reviewer="analyst",
        canonical_entity_id=None,
        at=NOW,
    )
    sqlite_session.commit()
    sqlite_session.expunge_all()

    stored = repository.get(candidate.id)
    assert stored is not None
    assert stored.status is CandidateStatus.MERGED
    assert stored.canonical_entity_id == "intrusion-set--b"
    assert stored.reviewed_by == "admin"


def test_release_stale_claims_uses_claim_age(sqlite_session: Session) -> None:
    repository = SqlAlchemyCandidateRepository(sqlite_session)
    old = make_candidate(make_entity("o--1", "Old"), make_entity("o--2", "Old."))
    fresh = make_candidate(make_entity("f--1", "Fresh"), make_entity("f--2", "Fresh."))
    for candidate in (old, fresh):
        repository.insert_if_absent(candidate)
    repository.claim_for_merge(old.id, token="old", at=NOW - timedelta(hours=2))
    repository.claim_for_merge(fresh.id, token="fresh", at=NOW)
    sqlite_session.commit()

    assert repository.release_stale_claims(older_than=NOW - timedelta(minutes=15)) == 1
    sqlite_session.commit()

    assert repository.claim_for_merge(old.id, token="retry", at=NOW) is True
    assert repository.claim_for_merge(fresh.id, token="retry", at=NOW) is False


def test_history_successful_unapplied_skips_merged_and_failures(
    sqlite_session: Session,
) -> None:
    candidates = SqlAlchemyCandidateRepository(sqlite_session)
    history = SqlAlchemyMergeHistoryRepository(sqlite_session)
    unapplied = make_candidate(make_entity("u--1", "A"), make_entity("u--2", "B"))
    applied = make_candidate(make_entity("d--1", "C"), make_entity("d--2", "D"))
    failed = make_candidate(make_entity("x--1", "E"), make_entity("x--2", "F"))
    for candidate in (unapplied, applied, failed):
        candidates.insert_if_absent(candidate)
    candidates.mark_merged(applied.id, canonical_entity_id="d--1", reviewer=None, at=NOW)
    history.add(MergeHistoryEntry.for_attempt(unapplied, keep_entity_id="u--1", merged_by=None))
    history.add(MergeHistoryEntry.for_attempt(applied, keep_entity_id="d--1", merged_by=None))
    history.add(
        MergeHistoryEntry.for_attempt(failed, keep_entity_id="x--1", merged_by=None, error="boom")
    )
    sqlite_session.commit()

    pending = history.successful_unapplied()

    assert [entry.candidate_id for entry in pending] == [unapplied.id]
    assert [entry.success for entry in history.for_candidate(failed.id)] == [False]


def test_scan_run_fail_running_only_touches_running(sqlite_session: Session) -> None:
    repository = SqlAlchemyScanRunRepository(sqlite_session)
    running = ScanRun(similarity_threshold=0.85, initiated_by="admin-user")
    done = ScanRun(similarity_threshold=0.85)
    done.complete(candidates_found=1, at=NOW)
    repository.add(running)
    repository.add(done)
    sqlite_session.commit()

    assert repository.fail_running(message="stuck", at=NOW) == 1
    sqlite_session.commit()
    sqlite_session.expunge_all()

    stored_running = repository.get(running.id)
    stored_done = repository.get(done.id)
    assert stored_running is not None
    assert stored_done is not None
    assert stored_running.status is ScanStatus.FAILED
    assert stored_running.error_message == "stuck"
    assert stored_done.status is ScanStatus.COMPLETED
    assert stored_done.completed_at == NOW
