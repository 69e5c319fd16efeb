"""Failure taxonomy shared by every deduplication entry point."""

from __future__ import annotations

from typing import ClassVar


class DedupError(RuntimeError):
    """Base class for errors surfaced to command callers as ``{"error": ...}``."""

    classification: ClassVar[str] = "internal-error"


class InputError(DedupError, ValueError):
    """Missing or invalid request fields; raised before any side effect."""

    classification = "bad-request"


class AuthError(DedupError):
    """Missing or unrecognised credential."""

    classification = "unauthorized"


class ForbiddenError(AuthError):
    """Authenticated caller lacks the administrator role."""

    classification = "forbidden"


class NotFoundError(DedupError, LookupError):
    classification = "not-found"


class ConflictError(DedupError):
    """The requested transition lost a race or is not allowed from the current state."""

    classification = "conflict"


class UpstreamError(DedupError):
    """The intelligence platform was unreachable or answered with an error payload."""

    classification = "upstream-failure"

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PersistenceError(DedupError):
    """A store read or write failed."""

    classification = "persistence-failure"
