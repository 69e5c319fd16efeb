"""Retry and rate-limit settings for outbound platform calls."""

from __future__ import annotations

from dataclasses import dataclass, field

import httpx

RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})
TRANSIENT_ERRORS: tuple[type[httpx.HTTPError], ...] = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """Exponential backoff for idempotent calls.

    GraphQL reads travel as POST, so POST is retryable unless a policy says
    otherwise. Mutations use ``NO_RETRY``.
    """

    total: int = 3
    backoff_factor: float = 0.5
    max_backoff_wait: float = 30.0
    methods: frozenset[str] = frozenset({"POST"})
    statuses: frozenset[int] = RETRYABLE_STATUSES
    exceptions: tuple[type[httpx.HTTPError], ...] = TRANSIENT_ERRORS

    @property
    def enabled(self) -> bool:
        return self.total > 0 and bool(self.methods)


NO_RETRY = RetryPolicy(total=0, methods=frozenset(), statuses=frozenset(), exceptions=())


@dataclass(slots=True, frozen=True)
class RateLimit:
    max_calls: int
    per_seconds: float


@dataclass(slots=True, frozen=True)
class ResilienceConfig:
    name: str
    timeout_seconds: float = 30.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    ratelimit: RateLimit | None = None
