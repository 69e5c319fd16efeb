"""Translate OpenCTI payloads into domain entities."""

from __future__ import annotations

from typing import TYPE_CHECKING

from inteldedup.domain.model import IntelEntity

if TYPE_CHECKING:
    from .schema import IntrusionSetNode


def parse_intrusion_set(node: IntrusionSetNode) -> IntelEntity:
    return IntelEntity(
        id=node.id,
        name=node.name,
        description=node.description or "",
        aliases=tuple(node.aliases or ()),
        relationship_count=node.relationship_count,
        created=node.created,
        modified=node.modified,
    )
