"""Ports for retrieving intrusion sets from the intelligence platform."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from inteldedup.domain.model import IntelEntity


@runtime_checkable
class EntitySource(Protocol):
    """Retrieve the complete set of intrusion sets a scan compares.

    Implementations raise ``UpstreamError`` instead of returning partial data.
    """

    def fetch_intrusion_sets(self, *, max_entities: int | None = None) -> list[IntelEntity]: ...


__all__ = ["EntitySource"]
