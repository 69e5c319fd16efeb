"""Domain model for intrusion-set deduplication."""

from __future__ import annotations

from .audit import MergeHistoryEntry
from .candidate import (
    CandidateTransitionError,
    DuplicateCandidate,
    PairKey,
    canonical_pair_key,
)
from .entity import EntitySnapshot, IntelEntity
from .enums import (
    ADJUDICATED_STATUSES,
    MERGEABLE_STATUSES,
    CandidateStatus,
    DetectionMethod,
    Role,
    ScanStatus,
)
from .scan_run import STUCK_SCAN_MESSAGE, ScanRun
from .user import Caller

__all__ = [
    "ADJUDICATED_STATUSES",
    "MERGEABLE_STATUSES",
    "STUCK_SCAN_MESSAGE",
    "CandidateStatus",
    "CandidateTransitionError",
    "Caller",
    "DetectionMethod",
    "DuplicateCandidate",
    "EntitySnapshot",
    "IntelEntity",
    "MergeHistoryEntry",
    "PairKey",
    "Role",
    "ScanRun",
    "ScanStatus",
    "canonical_pair_key",
]
