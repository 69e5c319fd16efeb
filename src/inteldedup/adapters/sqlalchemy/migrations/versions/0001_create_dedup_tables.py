"""create dedup tables

Revision ID: 0001
Revises:
Create Date: 2026-01-03 22:00:00
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

CANDIDATE_STATUSES = ("pending", "approved", "rejected", "merged")
DETECTION_METHODS = (
    "exact_name_match",
    "name_similarity",
    "alias_overlap",
    "name_in_alias",
    "semantic_similarity",
)
SCAN_STATUSES = ("running", "completed", "failed")


def _status_enum(values: tuple[str, ...], name: str) -> sa.Enum:
    return sa.Enum(*values, name=name, native_enum=False, length=32)


def _snapshot_columns(prefix: str) -> list[sa.Column[object]]:
    return [
        sa.Column(f"{prefix}_id", sa.String(), nullable=False),
        sa.Column(f"{prefix}_name", sa.String(), nullable=False),
        sa.Column(f"{prefix}_description", sa.Text(), nullable=True),
        sa.Column(f"{prefix}_aliases", sa.Text(), nullable=False),
        sa.Column(f"{prefix}_relationships", sa.Integer(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "dedup_candidate",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        *_snapshot_columns("entity1"),
        *_snapshot_columns("entity2"),
        sa.Column("similarity_score", sa.Float(), nullable=False),
        sa.Column("name_similarity", sa.Float(), nullable=False),
        sa.Column("alias_overlap", sa.Integer(), nullable=False),
        sa.Column(
            "detection_method",
            _status_enum(DETECTION_METHODS, "detectionmethod"),
            nullable=False,
        ),
        sa.Column("status", _status_enum(CANDIDATE_STATUSES, "candidatestatus"), nullable=False),
        sa.Column("reviewed_by", sa.String(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("canonical_entity_id", sa.String(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("merge_claim", sa.String(length=64), nullable=True),
        sa.Column("merge_claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_dedup_candidate"),
        sa.UniqueConstraint("entity1_id", "entity2_id", name="uq_dedup_candidate_pair"),
    )
    op.create_index("ix_dedup_candidate_status", "dedup_candidate", ["status"])
    op.create_index(
        "ix_dedup_candidate_similarity",
        "dedup_candidate",
        [sa.text("similarity_score DESC")],
    )

    op.create_table(
        "dedup_history",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("candidate_id", sa.Uuid(), nullable=False),
        sa.Column("kept_entity_id", sa.String(), nullable=False),
        sa.Column("kept_entity_name", sa.String(), nullable=False),
        sa.Column("merged_entity_id", sa.String(), nullable=False),
        sa.Column("merged_entity_name", sa.String(), nullable=False),
        sa.Column("merged_by", sa.String(), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(
            ["candidate_id"],
            ["dedup_candidate.id"],
            name="fk_dedup_history_candidate_id_dedup_candidate",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_dedup_history"),
    )
    op.create_index("ix_dedup_history_created", "dedup_history", [sa.text("created_at DESC")])

    op.create_table(
        "dedup_scan_run",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("similarity_threshold", sa.Float(), nullable=False),
        sa.Column("entity_count", sa.Integer(), nullable=True),
        sa.Column("candidates_found", sa.Integer(), nullable=False),
        sa.Column("status", _status_enum(SCAN_STATUSES, "scanstatus"), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("initiated_by", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_dedup_scan_run"),
    )
    op.create_index("ix_dedup_scan_run_created", "dedup_scan_run", [sa.text("created_at DESC")])


def downgrade() -> None:
    op.drop_index("ix_dedup_scan_run_created", table_name="dedup_scan_run")
    op.drop_table("dedup_scan_run")
    op.drop_index("ix_dedup_history_created", table_name="dedup_history")
    op.drop_table("dedup_history")
    op.drop_index("ix_dedup_candidate_similarity", table_name="dedup_candidate")
    op.drop_index("ix_dedup_candidate_status", table_name="dedup_candidate")
    op.drop_table("dedup_candidate")
