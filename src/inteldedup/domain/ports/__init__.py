"""Domain port definitions for adapters."""

from __future__ import annotations

from .auth import Authenticator
from .fetching import EntitySource
from .merging import EntityMerger
from .persistence import (
    CandidateRepository,
    MergeHistoryRepository,
    Repository,
    ScanRunRepository,
)
from .unit_of_work import (
    DedupRepositories,
    DedupUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "Authenticator",
    "CandidateRepository",
    "DedupRepositories",
    "DedupUnitOfWork",
    "EntityMerger",
    "EntitySource",
    "MergeHistoryRepository",
    "Repository",
    "RepositoryCollection",
    "ScanRunRepository",
    "UnitOfWork",
]
