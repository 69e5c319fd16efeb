"""Public interface for the OpenCTI adapter."""

from __future__ import annotations

from .client import INTRUSION_SETS_QUERY, MERGE_MUTATION, OpenCtiClient
from .schema import IntrusionSetNode, IntrusionSetsResponse, MergeResponse
from .translator import parse_intrusion_set

__all__ = [
    "INTRUSION_SETS_QUERY",
    "MERGE_MUTATION",
    "IntrusionSetNode",
    "IntrusionSetsResponse",
    "MergeResponse",
    "OpenCtiClient",
    "parse_intrusion_set",
]
