"""Static API token configuration.

``INTELDEDUP_API_TOKENS`` holds comma-separated ``token=user_id:role`` entries,
for example ``s3cret=alice:admin,r3ad=bob:analyst``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from .errors import InvalidConfigurationError


@dataclass(frozen=True, slots=True)
class TokenGrant:
    user_id: str
    role: str


@dataclass(frozen=True, slots=True)
class AuthConfig:
    tokens: dict[str, TokenGrant] = field(default_factory=dict[str, TokenGrant])


def parse_token_grants(raw: str) -> dict[str, TokenGrant]:
    grants: dict[str, TokenGrant] = {}
    for raw_entry in raw.split(","):
        entry = raw_entry.strip()
        if not entry:
            continue
        token, sep, identity = entry.partition("=")
        user_id, colon, role = identity.partition(":")
        if not sep or not colon or not token.strip() or not user_id.strip() or not role.strip():
            raise InvalidConfigurationError(
                "INTELDEDUP_API_TOKENS entries must look like token=user_id:role"
            )
        grants[token.strip()] = TokenGrant(user_id=user_id.strip(), role=role.strip().lower())
    return grants


def get_auth_config() -> AuthConfig:
    return AuthConfig(tokens=parse_token_grants(os.getenv("INTELDEDUP_API_TOKENS", "")))
