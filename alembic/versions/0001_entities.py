"""Create the polymorphic entities table.

Revision ID: 0001_entities
Revises:
Create Date: 2026-09-28
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_entities"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    is_postgres = bind.dialect.name == "postgresql"
    json_type = postgresql.JSONB() if is_postgres else sa.JSON()

    op.create_table(
        "entities",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("workspace_id", sa.String(length=100), nullable=False),
        sa.Column("user_id", sa.String(length=100)),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("data", json_type, nullable=False),
        sa.Column("relationships", json_type, nullable=False),
        sa.Column("metadata", json_type, nullable=False),
        sa.Column("search_vector", sa.Text()),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("version >= 1", name="ck_entities_version_positive"),
    )
    op.create_index("ix_entities_workspace", "entities", ["workspace_id"])
    op.create_index("ix_entities_workspace_type", "entities", ["workspace_id", "type"])
    op.create_index("ix_entities_workspace_user", "entities", ["workspace_id", "user_id"])
    op.create_index("ix_entities_created_at", "entities", ["created_at"])

    # JSON containment lookups only have an index type on PostgreSQL.
    if is_postgres:
        op.create_index("ix_entities_data", "entities", ["data"], postgresql_using="gin")
        op.create_index(
            "ix_entities_relationships",
            "entities",
            ["relationships"],
            postgresql_using="gin",
        )


def downgrade() -> None:
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        op.drop_index("ix_entities_relationships", table_name="entities")
        op.drop_index("ix_entities_data", table_name="entities")
    op.drop_index("ix_entities_created_at", table_name="entities")
    op.drop_index("ix_entities_workspace_user", table_name="entities")
    op.drop_index("ix_entities_workspace_type", table_name="entities")
    op.drop_index("ix_entities_workspace", table_name="entities")
    op.drop_table("entities")
