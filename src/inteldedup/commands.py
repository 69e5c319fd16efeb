"""Action-discriminated command surface shared by the HTTP API and the CLI.

Every request is authenticated and authorised before any data access. Errors
come back as a single-level ``{"error": message}`` payload with the matching
HTTP status code.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Any, cast
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy.exc import SQLAlchemyError

from inteldedup.config.errors import ConfigurationError, InvalidConfigurationError
from inteldedup.config.scan import ScanConfig
from inteldedup.domain.errors import (
    AuthError,
    ConflictError,
    DedupError,
    ForbiddenError,
    InputError,
    NotFoundError,
    PersistenceError,
    UpstreamError,
)
from inteldedup.domain.merging import merge_candidate, reconcile_merges
from inteldedup.domain.model import CandidateStatus
from inteldedup.domain.review import (
    clear_all,
    clear_stuck_scans,
    list_candidates,
    review_candidate,
)
from inteldedup.domain.scanner import ScanRules
from inteldedup.domain.scanning import run_scan

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from inteldedup.domain.model import Caller, DuplicateCandidate, EntitySnapshot
    from inteldedup.domain.ports import (
        Authenticator,
        DedupUnitOfWork,
        EntityMerger,
        EntitySource,
    )

log = getLogger(__name__)

CLEAR_ALL_MESSAGE = "All dedup data cleared"
MAX_LIST_LIMIT = 1000

# subclasses first: the first matching entry wins
_STATUS_BY_ERROR: tuple[tuple[type[DedupError], int], ...] = (
    (ForbiddenError, 403),
    (AuthError, 401),
    (InputError, 400),
    (NotFoundError, 404),
    (ConflictError, 409),
    (UpstreamError, 502),
    (PersistenceError, 500),
)


class Action(StrEnum):
    SCAN = "scan"
    APPROVE = "approve"
    REJECT = "reject"
    MERGE = "merge"
    CLEAR_STUCK = "clear-stuck"
    CLEAR_ALL = "clear-all"
    RECONCILE = "reconcile"
    LIST_CANDIDATES = "list-candidates"


class CommandRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    action: str | None = None
    candidate_id: str | None = Field(default=None, alias="candidateId")
    keep_entity_id: str | None = Field(default=None, alias="keepEntityId")
    canonical_entity_id: str | None = Field(default=None, alias="canonicalEntityId")
    status: str | None = None
    limit: int | None = Field(default=None, ge=1, le=MAX_LIST_LIMIT)


@dataclass(slots=True, frozen=True)
class CommandResponse:
    status_code: int
    payload: dict[str, Any]

    @property
    def ok(self) -> bool:
        return self.status_code < 400


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(slots=True)
class CommandContext:
    """Collaborators a command needs; the platform client is resolved lazily."""

    authenticator: Authenticator
    unit_of_work_factory: Callable[[], DedupUnitOfWork]
    source_factory: Callable[[], EntitySource]
    merger_factory: Callable[[], EntityMerger]
    scan_config: ScanConfig = field(default_factory=ScanConfig)
    now: Callable[[], datetime] = _utcnow


def handle_command(
    body: object,
    *,
    authorization: str | None,
    context: CommandContext,
) -> CommandResponse:
    """Run one command and translate the outcome into a status code and payload."""

    try:
        if not isinstance(body, dict):
            raise InputError("Invalid JSON body")
        caller = authorize(authorization, context.authenticator)
        request = _parse_request(cast("Mapping[str, object]", body))
        log.info("Action %s requested by %s", request.action, caller.user_id)
        payload = _dispatch(request, caller, context)
    except DedupError as exc:
        return _error_response(exc)
    except ConfigurationError as exc:
        log.error("Server configuration error: %s", exc)
        return CommandResponse(500, {"error": f"Server configuration error: {exc}"})
    except SQLAlchemyError as exc:
        log.exception("Database error")
        return CommandResponse(500, {"error": f"Database error: {exc}"})
    return CommandResponse(200, {"success": True, **payload})


def authorize(authorization: str | None, authenticator: Authenticator) -> Caller:
    if not authorization or not authorization.strip():
        raise AuthError("Unauthorized: No auth header")
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        token = authorization.strip()
    caller = authenticator.authenticate(token.strip())
    if caller is None:
        raise AuthError("Unauthorized: Invalid token")
    if not caller.is_admin:
        raise ForbiddenError("Admin access required")
    return caller


def _parse_request(body: Mapping[str, object]) -> CommandRequest:
    try:
        return CommandRequest.model_validate(body)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(part) for part in error["loc"]) for error in exc.errors())
        raise InputError(f"Invalid request fields: {fields}") from exc


def _error_response(exc: DedupError) -> CommandResponse:
    status_code = next(
        (code for error_type, code in _STATUS_BY_ERROR if isinstance(exc, error_type)), 500
    )
    if status_code >= 500:
        log.error("Command failed (%s): %s", exc.classification, exc)
    else:
        log.warning("Command rejected (%s): %s", exc.classification, exc)
    return CommandResponse(status_code, {"error": str(exc)})


def _dispatch(
    request: CommandRequest,
    caller: Caller,
    context: CommandContext,
) -> dict[str, Any]:
    try:
        action = Action(request.action or "")
    except ValueError:
        raise InputError("Invalid action") from None

    match action:
        case Action.SCAN:
            return _scan(caller, context)
        case Action.APPROVE | Action.REJECT:
            return _review(request, action, caller, context)
        case Action.MERGE:
            return _merge(request, caller, context)
        case Action.CLEAR_STUCK:
            cleared = clear_stuck_scans(
                unit_of_work_factory=context.unit_of_work_factory, now=context.now
            )
            return {"cleared": cleared}
        case Action.CLEAR_ALL:
            clear_all(unit_of_work_factory=context.unit_of_work_factory)
            return {"message": CLEAR_ALL_MESSAGE}
        case Action.RECONCILE:
            result = reconcile_merges(
                unit_of_work_factory=context.unit_of_work_factory,
                claim_ttl=context.scan_config.merge_claim_ttl,
                now=context.now,
            )
            return {"repaired": result.repaired, "releasedClaims": result.released_claims}
        case Action.LIST_CANDIDATES:
            return _list(request, context)


def _scan(caller: Caller, context: CommandContext) -> dict[str, Any]:
    config = context.scan_config
    result = run_scan(
        source=context.source_factory(),
        unit_of_work_factory=context.unit_of_work_factory,
        initiated_by=caller.user_id,
        rules=_scan_rules(config),
        similarity_threshold=config.similarity_threshold,
    )
    return {
        "scanId": str(result.scan_id),
        "entitiesScanned": result.entities_scanned,
        "candidatesFound": result.candidates_found,
        "newCandidates": result.new_candidates,
    }


def _scan_rules(config: ScanConfig) -> ScanRules:
    if config.max_candidates < 0:
        raise InvalidConfigurationError(
            f"INTELDEDUP_MAX_CANDIDATES must be non-negative, got {config.max_candidates}"
        )
    return ScanRules(
        name_similarity_threshold=config.name_similarity_threshold,
        alias_overlap_minimum=config.alias_overlap_minimum,
        name_in_alias_threshold=config.name_in_alias_threshold,
        max_candidates=config.max_candidates,
    )


def _review(
    request: CommandRequest,
    action: Action,
    caller: Caller,
    context: CommandContext,
) -> dict[str, Any]:
    if not request.candidate_id:
        raise InputError("Missing candidateId")
    status = CandidateStatus.APPROVED if action is Action.APPROVE else CandidateStatus.REJECTED
    candidate = review_candidate(
        candidate_id=_parse_candidate_id(request.candidate_id),
        status=status,
        reviewer=caller.user_id,
        canonical_entity_id=request.canonical_entity_id or None,
        unit_of_work_factory=context.unit_of_work_factory,
        now=context.now,
    )
    return {"status": candidate.status.value}


def _merge(request: CommandRequest, caller: Caller, context: CommandContext) -> dict[str, Any]:
    if not request.candidate_id or not request.keep_entity_id:
        raise InputError("Missing candidateId or keepEntityId")
    outcome = merge_candidate(
        candidate_id=_parse_candidate_id(request.candidate_id),
        keep_entity_id=request.keep_entity_id,
        merger=context.merger_factory(),
        unit_of_work_factory=context.unit_of_work_factory,
        merged_by=caller.user_id,
        now=context.now,
    )
    return {
        "keptEntity": {"id": outcome.kept.id, "name": outcome.kept.name},
        "mergedEntity": {"id": outcome.merged.id, "name": outcome.merged.name},
    }


def _list(request: CommandRequest, context: CommandContext) -> dict[str, Any]:
    status: CandidateStatus | None = CandidateStatus.PENDING
    if request.status is not None:
        if request.status == "all":
            status = None
        else:
            try:
                status = CandidateStatus(request.status)
            except ValueError:
                raise InputError(f"Invalid status: {request.status}") from None
    candidates = list_candidates(
        unit_of_work_factory=context.unit_of_work_factory,
        status=status,
        limit=request.limit,
    )
    return {"candidates": [candidate_payload(candidate) for candidate in candidates]}


def _parse_candidate_id(value: str) -> UUID:
    try:
        return UUID(value)
    except ValueError:
        raise InputError(f"Invalid candidateId: {value}") from None


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _snapshot_payload(prefix: str, snapshot: EntitySnapshot) -> dict[str, Any]:
    return {
        f"{prefix}_id": snapshot.id,
        f"{prefix}_name": snapshot.name,
        f"{prefix}_description": snapshot.description,
        f"{prefix}_aliases": list(snapshot.aliases),
        f"{prefix}_relationships": snapshot.relationship_count,
    }


def candidate_payload(candidate: DuplicateCandidate) -> dict[str, Any]:
    """Row-shaped view of a candidate, as review tooling reads it."""

    return {
        "id": str(candidate.id),
        **_snapshot_payload("entity1", candidate.entity1),
        **_snapshot_payload("entity2", candidate.entity2),
        "similarity_score": candidate.similarity_score,
        "name_similarity": candidate.name_similarity,
        "alias_overlap": candidate.alias_overlap,
        "detection_method": candidate.detection_method.value,
        "status": candidate.status.value,
        "canonical_entity_id": candidate.canonical_entity_id,
        "reviewed_by": candidate.reviewed_by,
        "reviewed_at": _isoformat(candidate.reviewed_at),
        "notes": candidate.notes,
        "created_at": _isoformat(candidate.created_at),
        "updated_at": _isoformat(candidate.updated_at),
    }
