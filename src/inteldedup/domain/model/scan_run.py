"""Ledger rows describing each scan invocation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID, uuid4

from .enums import ScanStatus

STUCK_SCAN_MESSAGE = "Cancelled - marked as stuck"


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(eq=False, kw_only=True)
class ScanRun:
    similarity_threshold: float
    initiated_by: str | None = None
    entity_count: int | None = None
    candidates_found: int = 0
    status: ScanStatus = ScanStatus.RUNNING
    error_message: str | None = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=_utcnow)
    completed_at: datetime | None = None

    def record_entity_count(self, count: int) -> None:
        self.entity_count = count

    def complete(self, *, candidates_found: int, at: datetime | None = None) -> None:
        self.candidates_found = candidates_found
        self.status = ScanStatus.COMPLETED
        self.completed_at = at or _utcnow()

    def fail(self, message: str, *, at: datetime | None = None) -> None:
        self.status = ScanStatus.FAILED
        self.error_message = message
        self.completed_at = at or _utcnow()
