"""SQLAlchemy adapter package for the deduplication store."""

from __future__ import annotations

from .mappings import mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyCandidateRepository,
    SqlAlchemyMergeHistoryRepository,
    SqlAlchemyScanRunRepository,
)
from .unit_of_work import SqlAlchemyDedupUnitOfWork, StartupError, shutdown, startup

__all__ = [
    "SqlAlchemyCandidateRepository",
    "SqlAlchemyDedupUnitOfWork",
    "SqlAlchemyMergeHistoryRepository",
    "SqlAlchemyScanRunRepository",
    "StartupError",
    "mapper_registry",
    "shutdown",
    "start_mappers",
    "startup",
]
