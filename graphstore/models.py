"""
graphstore Database Models
PostgreSQL (JSONB) schema with a SQLite fallback
"""

from datetime import datetime, timezone
import uuid
from typing import Optional
from sqlalchemy import (
    Column, Integer, String, Text, DateTime, ForeignKey, CheckConstraint, Index,
    UniqueConstraint, JSON,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base

import graphstore.config as config

DB_BACKEND_EFFECTIVE = config.DB_BACKEND_EFFECTIVE

JSON_TYPE = JSONB if DB_BACKEND_EFFECTIVE == "postgres" else JSON


def _uuid_default() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def isoformat_utc(value: Optional[datetime]) -> Optional[str]:
    # SQLite hands back naive datetimes; every stored timestamp is UTC.
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


Base = declarative_base()


# =============================================================================
# Entities (the one polymorphic table)
# =============================================================================

class Entity(Base):
    __tablename__ = "entities"

    id = Column(String(36), primary_key=True, default=_uuid_default)
    workspace_id = Column(String(100), nullable=False)
    user_id = Column(String(100))
    type = Column(String(50), nullable=False)  # contact/deal/task/message/...
    data = Column(JSON_TYPE, nullable=False, default=dict)
    relationships = Column(JSON_TYPE, nullable=False, default=dict)  # edge name -> id | [id]
    metadata_ = Column("metadata", JSON_TYPE, nullable=False, default=dict)
    search_vector = Column(Text)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("version >= 1", name="ck_entities_version_positive"),
        Index("ix_entities_workspace", "workspace_id"),
        Index("ix_entities_workspace_type", "workspace_id", "type"),
        Index("ix_entities_workspace_user", "workspace_id", "user_id"),
        Index("ix_entities_created_at", "created_at"),
        Index("ix_entities_data", "data", postgresql_using="gin"),
        Index("ix_entities_relationships", "relationships", postgresql_using="gin"),
    )

    # UPDATEs carry "WHERE version = <loaded version>" and bump it.
    __mapper_args__ = {"version_id_col": version}


# =============================================================================
# Entity Relationships (scored side table)
# =============================================================================

class EntityRelationship(Base):
    __tablename__ = "entity_relationships"

    id = Column(String(36), primary_key=True, default=_uuid_default)
    workspace_id = Column(String(100), nullable=False)
    source_entity_id = Column(
        String(36), ForeignKey("entities.id", ondelete="CASCADE"), nullable=False
    )
    target_entity_id = Column(
        String(36), ForeignKey("entities.id", ondelete="CASCADE"), nullable=False
    )
    relationship_type = Column(String(100), nullable=False)
    strength_score = Column(Integer)
    metadata_ = Column("metadata", JSON_TYPE, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "strength_score IS NULL OR (strength_score >= 0 AND strength_score <= 100)",
            name="ck_entity_relationships_strength",
        ),
        UniqueConstraint(
            "workspace_id",
            "source_entity_id",
            "target_entity_id",
            "relationship_type",
            name="uq_entity_relationships_edge",
        ),
        Index("ix_entity_relationships_source", "workspace_id", "source_entity_id"),
        Index("ix_entity_relationships_target", "workspace_id", "target_entity_id"),
        Index("ix_entity_relationships_type", "workspace_id", "relationship_type"),
    )


# =============================================================================
# Activities (append-only)
# =============================================================================

class Activity(Base):
    __tablename__ = "activities"

    id = Column(String(36), primary_key=True, default=_uuid_default)
    workspace_id = Column(String(100), nullable=False)
    user_id = Column(String(100))
    entity_id = Column(String(36), ForeignKey("entities.id", ondelete="CASCADE"), nullable=False)
    activity_type = Column(String(50), nullable=False)  # email_sent/task_completed/...
    source_module = Column(String(50))
    content = Column(JSON_TYPE, nullable=False, default=dict)
    participants = Column(JSON_TYPE, nullable=False, default=list)
    metadata_ = Column("metadata", JSON_TYPE, nullable=False, default=dict)
    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_activities_workspace", "workspace_id"),
        Index("ix_activities_entity", "workspace_id", "entity_id"),
        Index("ix_activities_timestamp", "timestamp"),
        Index("ix_activities_type", "activity_type"),
    )


# =============================================================================
# Audit Events
# =============================================================================

class AuditEvent(Base):
    __tablename__ = "audit_events"

    event_id = Column(String(36), primary_key=True, default=_uuid_default)
    workspace_id = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    event_type = Column(String(100), nullable=False)
    event_version = Column(Integer, default=1, nullable=False)
    actor_id = Column(String(255))
    target_type = Column(String(50), nullable=False)
    target_ids = Column(JSON_TYPE, nullable=False)
    metadata_ = Column("metadata", JSON_TYPE)

    __table_args__ = (
        Index("ix_audit_events_workspace_created", "workspace_id", "created_at"),
        Index("ix_audit_events_event_type", "event_type"),
    )


__all__ = [
    "Base",
    "JSON_TYPE",
    "Entity",
    "EntityRelationship",
    "Activity",
    "AuditEvent",
    "utcnow",
    "isoformat_utc",
]
