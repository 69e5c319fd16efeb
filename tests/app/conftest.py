from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest

from inteldedup.commands import CommandContext
from inteldedup.domain.review import CandidateBatch, persist_scan_results
from tests.helpers.intel import (
    FakeAuthenticator,
    FakeEntitySource,
    FakeMerger,
    make_candidate,
    make_entity,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from inteldedup.adapters.sqlalchemy.unit_of_work import SqlAlchemyDedupUnitOfWork
    from inteldedup.domain.model import DuplicateCandidate

FIXED_NOW = datetime(2026, 6, 1, 10, 0, tzinfo=UTC)


@pytest.fixture
def entity_source() -> FakeEntitySource:
    return FakeEntitySource(
        entities=[
            make_entity("intrusion-set--1", "Lazarus Group", "Hidden Cobra"),
            make_entity("intrusion-set--2", "lazarus group"),
            make_entity("intrusion-set--3", "Turla", "Snake", "Venomous Bear"),
        ]
    )


@pytest.fixture
def merger() -> FakeMerger:
    return FakeMerger()


@pytest.fixture
def command_context(
    sqlite_unit_of_work: Callable[[], SqlAlchemyDedupUnitOfWork],
    entity_source: FakeEntitySource,
    merger: FakeMerger,
) -> CommandContext:
    return CommandContext(
        authenticator=FakeAuthenticator(),
        unit_of_work_factory=sqlite_unit_of_work,
        source_factory=lambda: entity_source,
        merger_factory=lambda: merger,
        now=lambda: FIXED_NOW,
    )


@pytest.fixture
def stored_candidate(
    sqlite_unit_of_work: Callable[[], SqlAlchemyDedupUnitOfWork],
) -> DuplicateCandidate:
    candidate = make_candidate()
    batch = CandidateBatch()
    batch.add(candidate)
    with sqlite_unit_of_work() as uow:
        persist_scan_results(batch, uow.repositories.candidates)
        uow.commit()
    return candidate
