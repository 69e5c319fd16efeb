"""Bearer-token authentication against statically configured grants."""

from __future__ import annotations

import hmac
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from inteldedup.config.auth import AuthConfig, get_auth_config
from inteldedup.config.errors import InvalidConfigurationError
from inteldedup.domain.model import Caller, Role
from inteldedup.domain.ports.auth import Authenticator

if TYPE_CHECKING:
    from collections.abc import Mapping

log = getLogger(__name__)


def _callers_from_config(config: AuthConfig) -> dict[str, Caller]:
    callers: dict[str, Caller] = {}
    for token, grant in config.tokens.items():
        try:
            role = Role(grant.role)
        except ValueError as exc:
            raise InvalidConfigurationError(
                f"Unknown role {grant.role!r} for user {grant.user_id}"
            ) from exc
        callers[token] = Caller(user_id=grant.user_id, role=role)
    return callers


@dataclass(slots=True)
class StaticTokenAuthenticator:
    callers: Mapping[str, Caller] = field(default_factory=dict[str, Caller])

    @classmethod
    def from_config(cls, config: AuthConfig | None = None) -> StaticTokenAuthenticator:
        authenticator = cls(callers=_callers_from_config(config or get_auth_config()))
        if not authenticator.callers:
            log.warning("No API tokens configured; every command will be rejected")
        return authenticator

    def authenticate(self, token: str) -> Caller | None:
        if not token:
            return None
        presented = token.encode()
        for known, caller in self.callers.items():
            if hmac.compare_digest(known.encode(), presented):
                return caller
        return None


if TYPE_CHECKING:
    _authenticator_check: Authenticator = StaticTokenAuthenticator()
