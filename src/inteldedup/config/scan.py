"""Scan and merge defaults."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from .env import optional_env_float, optional_env_int

DEFAULT_SIMILARITY_THRESHOLD = 0.85
DEFAULT_NAME_SIMILARITY_THRESHOLD = 0.8
DEFAULT_ALIAS_OVERLAP_MINIMUM = 2
DEFAULT_NAME_IN_ALIAS_THRESHOLD = 0.9
DEFAULT_MAX_CANDIDATES = 500
DEFAULT_MERGE_CLAIM_TTL = timedelta(minutes=15)


@dataclass(frozen=True, slots=True)
class ScanConfig:
    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD
    name_similarity_threshold: float = DEFAULT_NAME_SIMILARITY_THRESHOLD
    alias_overlap_minimum: int = DEFAULT_ALIAS_OVERLAP_MINIMUM
    name_in_alias_threshold: float = DEFAULT_NAME_IN_ALIAS_THRESHOLD
    max_candidates: int = DEFAULT_MAX_CANDIDATES
    merge_claim_ttl: timedelta = DEFAULT_MERGE_CLAIM_TTL


def get_scan_config() -> ScanConfig:
    return ScanConfig(
        similarity_threshold=optional_env_float(
            "INTELDEDUP_SIMILARITY_THRESHOLD", DEFAULT_SIMILARITY_THRESHOLD
        ),
        max_candidates=optional_env_int("INTELDEDUP_MAX_CANDIDATES", DEFAULT_MAX_CANDIDATES),
    )
