"""Port for the platform-side merge operation."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence


@runtime_checkable
class EntityMerger(Protocol):
    """Absorb ``merge_entity_ids`` into ``keep_entity_id`` on the source platform.

    Called at most once per merge attempt; returns the surviving entity id.
    """

    def merge_entities(self, *, keep_entity_id: str, merge_entity_ids: Sequence[str]) -> str: ...


__all__ = ["EntityMerger"]
