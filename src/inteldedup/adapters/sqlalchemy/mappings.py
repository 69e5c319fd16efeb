"""SQLAlchemy mapping metadata for the deduplication domain model."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import UTC, datetime
from enum import StrEnum
from functools import cache
from typing import Any, cast

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Dialect,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
    orm,
)
from sqlalchemy.orm import composite

from inteldedup.domain.model import (
    CandidateStatus,
    DetectionMethod,
    DuplicateCandidate,
    EntitySnapshot,
    MergeHistoryEntry,
    ScanRun,
    ScanStatus,
)

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class AliasListType(TypeDecorator[tuple[str, ...]]):
    """Ordered alias list stored as a JSON array."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: tuple[str, ...] | None, dialect: Dialect) -> str:
        _ = dialect
        return json.dumps(list(value or ()))

    def process_result_value(self, value: str | None, dialect: Dialect) -> tuple[str, ...]:
        _ = dialect
        if value is None:
            return ()
        loaded = json.loads(value)
        if not isinstance(loaded, list):
            return ()
        items = cast(list[Any], loaded)
        return tuple(item for item in items if isinstance(item, str))


def _enum_values(enum_cls: type[StrEnum]) -> list[str]:
    return [member.value for member in enum_cls]


def _str_enum(enum_cls: type[StrEnum]) -> Enum:
    return Enum(enum_cls, native_enum=False, values_callable=_enum_values, length=32)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def _snapshot_columns(prefix: str) -> list[Column[Any]]:
    return [
        Column(f"{prefix}_id", String, nullable=False),
        Column(f"{prefix}_name", String, nullable=False),
        Column(f"{prefix}_description", Text, nullable=True),
        Column(f"{prefix}_aliases", AliasListType(), nullable=False),
        Column(f"{prefix}_relationships", Integer, nullable=False, default=0),
    ]


candidate_table = Table(
    "dedup_candidate",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("updated_at", UTCDateTime(), nullable=False),
    *_snapshot_columns("entity1"),
    *_snapshot_columns("entity2"),
    Column("similarity_score", Float, nullable=False),
    Column("name_similarity", Float, nullable=False),
    Column("alias_overlap", Integer, nullable=False, default=0),
    Column("detection_method", _str_enum(DetectionMethod), nullable=False),
    Column("status", _str_enum(CandidateStatus), nullable=False),
    Column("reviewed_by", String, nullable=True),
    Column("reviewed_at", UTCDateTime(), nullable=True),
    Column("canonical_entity_id", String, nullable=True),
    Column("notes", Text, nullable=True),
    Column("merge_claim", String(64), nullable=True),
    Column("merge_claimed_at", UTCDateTime(), nullable=True),
    UniqueConstraint("entity1_id", "entity2_id", name="uq_dedup_candidate_pair"),
)

Index("ix_dedup_candidate_status", candidate_table.c.status)
Index("ix_dedup_candidate_similarity", candidate_table.c.similarity_score.desc())

history_table = Table(
    "dedup_history",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("candidate_id", UUIDColumnType, ForeignKey("dedup_candidate.id"), nullable=False),
    Column("kept_entity_id", String, nullable=False),
    Column("kept_entity_name", String, nullable=False),
    Column("merged_entity_id", String, nullable=False),
    Column("merged_entity_name", String, nullable=False),
    Column("merged_by", String, nullable=True),
    Column("success", Boolean, nullable=False),
    Column("error_message", Text, nullable=True),
)

Index("ix_dedup_history_created", history_table.c.created_at.desc())

scan_run_table = Table(
    "dedup_scan_run",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("completed_at", UTCDateTime(), nullable=True),
    Column("similarity_threshold", Float, nullable=False, default=0.85),
    Column("entity_count", Integer, nullable=True),
    Column("candidates_found", Integer, nullable=False, default=0),
    Column("status", _str_enum(ScanStatus), nullable=False),
    Column("error_message", Text, nullable=True),
    Column("initiated_by", String, nullable=True),
)

Index("ix_dedup_scan_run_created", scan_run_table.c.created_at.desc())


def _snapshot_composite(prefix: str) -> orm.Composite[EntitySnapshot]:
    return composite(
        EntitySnapshot,
        candidate_table.c[f"{prefix}_id"],
        candidate_table.c[f"{prefix}_name"],
        candidate_table.c[f"{prefix}_description"],
        candidate_table.c[f"{prefix}_aliases"],
        candidate_table.c[f"{prefix}_relationships"],
    )


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(
        DuplicateCandidate,
        candidate_table,
        properties={
            "entity1": _snapshot_composite("entity1"),
            "entity2": _snapshot_composite("entity2"),
        },
    )
    mapper_registry.map_imperatively(MergeHistoryEntry, history_table)
    mapper_registry.map_imperatively(ScanRun, scan_run_table)

    return mapper_registry
