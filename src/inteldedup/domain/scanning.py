"""Scan orchestration: fetch, detect, persist, and keep the run ledger honest."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from inteldedup.domain.errors import PersistenceError
from inteldedup.domain.model import ScanRun

from .review import CandidateBatch, persist_scan_results
from .scanner import ScanRules, scan_for_duplicates

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from uuid import UUID

    from inteldedup.domain.ports.fetching import EntitySource
    from inteldedup.domain.ports.unit_of_work import DedupUnitOfWork

    from .scanner import PairScorer

log = getLogger(__name__)

DEFAULT_SIMILARITY_THRESHOLD = 0.85


@dataclass(slots=True, frozen=True)
class ScanResult:
    scan_id: UUID
    entities_scanned: int
    candidates_found: int
    new_candidates: int


def run_scan(
    *,
    source: EntitySource,
    unit_of_work_factory: Callable[[], DedupUnitOfWork],
    initiated_by: str | None = None,
    rules: ScanRules | None = None,
    scorers: Sequence[PairScorer] = (),
    max_entities: int | None = None,
    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
) -> ScanResult:
    """Run one scan and record it in the ledger.

    Any failure after the run row exists marks the run ``failed`` with the
    error message and is re-raised to the caller.
    """

    with unit_of_work_factory() as uow:
        scan_run = ScanRun(similarity_threshold=similarity_threshold, initiated_by=initiated_by)
        uow.repositories.scan_runs.add(scan_run)
        uow.commit()
        log.info("Started scan run %s", scan_run.id)

        try:
            entities = source.fetch_intrusion_sets(max_entities=max_entities)
            scan_run.record_entity_count(len(entities))
            uow.commit()

            candidates = scan_for_duplicates(entities, rules=rules, scorers=scorers)
            batch = CandidateBatch()
            batch.extend(candidates)
            persisted = persist_scan_results(batch, uow.repositories.candidates)
            scan_run.complete(candidates_found=len(candidates))
            uow.commit()
        except Exception as exc:
            uow.rollback()
            log.exception("Scan run %s failed", scan_run.id)
            _record_failure(uow, scan_run, str(exc))
            raise

    log.info(
        "Finished scan run %s: entities=%s, candidates=%s, new=%s, skipped=%s",
        scan_run.id,
        len(entities),
        len(candidates),
        persisted.written,
        persisted.skipped,
    )
    return ScanResult(
        scan_id=scan_run.id,
        entities_scanned=len(entities),
        candidates_found=len(candidates),
        new_candidates=persisted.written,
    )


def _record_failure(uow: DedupUnitOfWork, scan_run: ScanRun, message: str) -> None:
    scan_run.fail(message)
    try:
        uow.commit()
    except PersistenceError:
        # the scan error is what the caller needs; clear-stuck recovers the row
        log.exception("Could not mark scan run %s as failed", scan_run.id)
        uow.rollback()
