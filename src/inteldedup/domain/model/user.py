"""Authenticated callers of the command surface."""

from __future__ import annotations

from dataclasses import dataclass

from .enums import Role


@dataclass(frozen=True, slots=True)
class Caller:
    user_id: str
    role: Role = Role.USER

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN
