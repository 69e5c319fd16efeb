"""Intrusion-set snapshots as retrieved from the intelligence platform."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime


@dataclass(frozen=True, slots=True, kw_only=True)
class IntelEntity:
    """One threat-actor record owned by the source platform.

    Fetched fresh on every scan and never persisted by this package; the
    relationship count is carried as a richness signal for reviewers choosing
    which side of a pair to keep.
    """

    id: str
    name: str
    description: str = ""
    aliases: tuple[str, ...] = field(default_factory=tuple)
    relationship_count: int = 0
    created: datetime | None = None
    modified: datetime | None = None

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("IntelEntity requires a non-empty id")
        if self.relationship_count < 0:
            raise ValueError("relationship_count must be non-negative")

    def snapshot(self) -> EntitySnapshot:
        return EntitySnapshot(
            id=self.id,
            name=self.name,
            description=self.description or None,
            aliases=self.aliases,
            relationship_count=self.relationship_count,
        )


@dataclass(frozen=True)
class EntitySnapshot:
    """Entity details captured on a candidate at detection time."""

    id: str
    name: str
    description: str | None = None
    aliases: tuple[str, ...] = ()
    relationship_count: int = 0

    def __composite_values__(self) -> tuple[object, ...]:
        return (self.id, self.name, self.description, self.aliases, self.relationship_count)
