"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class CandidateStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    MERGED = "merged"

    @property
    def is_mergeable(self) -> bool:
        return self in MERGEABLE_STATUSES


ADJUDICATED_STATUSES = frozenset({CandidateStatus.REJECTED, CandidateStatus.MERGED})
MERGEABLE_STATUSES = frozenset({CandidateStatus.PENDING, CandidateStatus.APPROVED})


class DetectionMethod(StrEnum):
    EXACT_NAME_MATCH = "exact_name_match"
    NAME_SIMILARITY = "name_similarity"
    ALIAS_OVERLAP = "alias_overlap"
    NAME_IN_ALIAS = "name_in_alias"

    # Reserved for optional second-pass scorers
    SEMANTIC_SIMILARITY = "semantic_similarity"


class ScanStatus(StrEnum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class Role(StrEnum):
    ADMIN = "admin"
    ANALYST = "analyst"
    USER = "user"
