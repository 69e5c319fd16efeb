"""Audit records for merge attempts."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

if TYPE_CHECKING:
    from .candidate import DuplicateCandidate


@dataclass(eq=False, kw_only=True)
class MergeHistoryEntry:
    """Append-only outcome of one merge attempt, successful or not."""

    candidate_id: UUID
    kept_entity_id: str
    kept_entity_name: str
    merged_entity_id: str
    merged_entity_name: str
    success: bool
    merged_by: str | None = None
    error_message: str | None = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    @classmethod
    def for_attempt(
        cls,
        candidate: DuplicateCandidate,
        *,
        keep_entity_id: str,
        merged_by: str | None,
        error: str | None = None,
    ) -> MergeHistoryEntry:
        kept = candidate.entity(keep_entity_id)
        merged = candidate.counterpart(keep_entity_id)
        return cls(
            candidate_id=candidate.id,
            kept_entity_id=kept.id,
            kept_entity_name=kept.name,
            merged_entity_id=merged.id,
            merged_entity_name=merged.name,
            merged_by=merged_by,
            success=error is None,
            error_message=error,
        )
