"""Port for resolving bearer credentials to callers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from inteldedup.domain.model import Caller


@runtime_checkable
class Authenticator(Protocol):
    def authenticate(self, token: str) -> Caller | None: ...


__all__ = ["Authenticator"]
