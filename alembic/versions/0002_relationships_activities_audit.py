"""Add scored relationships, activities, and audit events.

Revision ID: 0002_relationships_activities_audit
Revises: 0001_entities
Create Date: 2026-10-02
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0002_relationships_activities_audit"
down_revision = "0001_entities"
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    is_postgres = bind.dialect.name == "postgresql"
    json_type = postgresql.JSONB() if is_postgres else sa.JSON()

    op.create_table(
        "entity_relationships",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("workspace_id", sa.String(length=100), nullable=False),
        sa.Column(
            "source_entity_id",
            sa.String(length=36),
            sa.ForeignKey("entities.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "target_entity_id",
            sa.String(length=36),
            sa.ForeignKey("entities.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("relationship_type", sa.String(length=100), nullable=False),
        sa.Column("strength_score", sa.Integer()),
        sa.Column("metadata", json_type, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "strength_score IS NULL OR (strength_score >= 0 AND strength_score <= 100)",
            name="ck_entity_relationships_strength",
        ),
        sa.UniqueConstraint(
            "workspace_id",
            "source_entity_id",
            "target_entity_id",
            "relationship_type",
            name="uq_entity_relationships_edge",
        ),
    )
    op.create_index(
        "ix_entity_relationships_source",
        "entity_relationships",
        ["workspace_id", "source_entity_id"],
    )
    op.create_index(
        "ix_entity_relationships_target",
        "entity_relationships",
        ["workspace_id", "target_entity_id"],
    )
    op.create_index(
        "ix_entity_relationships_type",
        "entity_relationships",
        ["workspace_id", "relationship_type"],
    )

    op.create_table(
        "activities",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("workspace_id", sa.String(length=100), nullable=False),
        sa.Column("user_id", sa.String(length=100)),
        sa.Column(
            "entity_id",
            sa.String(length=36),
            sa.ForeignKey("entities.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("activity_type", sa.String(length=50), nullable=False),
        sa.Column("source_module", sa.String(length=50)),
        sa.Column("content", json_type, nullable=False),
        sa.Column("participants", json_type, nullable=False),
        sa.Column("metadata", json_type, nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_activities_workspace", "activities", ["workspace_id"])
    op.create_index("ix_activities_entity", "activities", ["workspace_id", "entity_id"])
    op.create_index("ix_activities_timestamp", "activities", ["timestamp"])
    op.create_index("ix_activities_type", "activities", ["activity_type"])

    op.create_table(
        "audit_events",
        sa.Column("event_id", sa.String(length=36), primary_key=True),
        sa.Column("workspace_id", sa.String(length=100), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("event_type", sa.String(length=100), nullable=False),
        sa.Column("event_version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("actor_id", sa.String(length=255)),
        sa.Column("target_type", sa.String(length=50), nullable=False),
        sa.Column("target_ids", json_type, nullable=False),
        sa.Column("metadata", json_type),
    )
    op.create_index(
        "ix_audit_events_workspace_created",
        "audit_events",
        ["workspace_id", "created_at"],
    )
    op.create_index("ix_audit_events_event_type", "audit_events", ["event_type"])


def downgrade() -> None:
    op.drop_index("ix_audit_events_event_type", table_name="audit_events")
    op.drop_index("ix_audit_events_workspace_created", table_name="audit_events")
    op.drop_table("audit_events")
    op.drop_index("ix_activities_type", table_name="activities")
    op.drop_index("ix_activities_timestamp", table_name="activities")
    op.drop_index("ix_activities_entity", table_name="activities")
    op.drop_index("ix_activities_workspace", table_name="activities")
    op.drop_table("activities")
    op.drop_index("ix_entity_relationships_type", table_name="entity_relationships")
    op.drop_index("ix_entity_relationships_target", table_name="entity_relationships")
    op.drop_index("ix_entity_relationships_source", table_name="entity_relationships")
    op.drop_table("entity_relationships")
