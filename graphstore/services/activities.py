"""
Activity log: append-only "something happened to entity X" records.

Rows are only ever inserted here; they go away when their entity is deleted.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

import graphstore.config as config
from graphstore.audit import EVENT_ACTIVITY_RECORDED, log_event
from graphstore.errors import ValidationError
from graphstore.models import Activity, isoformat_utc, utcnow
from graphstore.services.entities import EntityStore
from graphstore.services.relationships import edge_targets
from graphstore.validators import (
    validate_document,
    validate_entity_id,
    validate_limit,
    validate_offset,
    validate_optional_text,
    validate_required_text,
    validate_tenant_id,
)

logger = config.logger


def serialize_activity(row: Activity) -> dict:
    return {
        "id": row.id,
        "workspace_id": row.workspace_id,
        "user_id": row.user_id,
        "entity_id": row.entity_id,
        "activity_type": row.activity_type,
        "source_module": row.source_module,
        "content": dict(row.content or {}),
        "participants": list(row.participants or []),
        "metadata": dict(row.metadata_ or {}),
        "timestamp": isoformat_utc(row.timestamp),
        "created_at": isoformat_utc(row.created_at),
    }


def _validate_participants(participants) -> list[str]:
    if participants is None:
        return []
    if not isinstance(participants, list) or any(not isinstance(item, str) for item in participants):
        raise ValidationError(
            "participants must be a list of strings",
            field="participants",
            error_type="invalid_type",
        )
    return list(participants)


def _validate_timestamp(value, field: str) -> Optional[datetime]:
    if value is None:
        return None
    if not isinstance(value, datetime):
        raise ValidationError(f"{field} must be a datetime", field=field, error_type="invalid_type")
    return value


class ActivityLog:
    def __init__(self, entities: EntityStore):
        self._entities = entities

    def record(
        self,
        workspace_id: str,
        entity_id: str,
        activity_type: str,
        source_module: Optional[str] = None,
        content: Optional[dict] = None,
        participants: Optional[list[str]] = None,
        user_id: Optional[str] = None,
        metadata: Optional[dict] = None,
        timestamp: Optional[datetime] = None,
    ) -> dict:
        """Append one activity against an existing entity of the tenant."""
        validate_tenant_id(workspace_id)
        validate_entity_id(entity_id, "entity_id")
        validate_required_text(activity_type, "activity_type", 50)
        validate_optional_text(source_module, "source_module", 50)
        validate_optional_text(user_id, "user_id", 100)
        content = validate_document(content or {}, "content")
        metadata = validate_document(metadata or {}, "metadata")
        people = _validate_participants(participants)
        happened_at = _validate_timestamp(timestamp, "timestamp")

        with self._entities.transaction() as db:
            self._entities.require(db, workspace_id, entity_id)
            now = utcnow()
            row = Activity(
                workspace_id=workspace_id,
                user_id=user_id,
                entity_id=entity_id,
                activity_type=activity_type,
                source_module=source_module,
                content=dict(content),
                participants=people,
                metadata_=dict(metadata),
                timestamp=happened_at or now,
                created_at=now,
            )
            db.add(row)
            db.flush()
            log_event(
                db,
                workspace_id=workspace_id,
                event_type=EVENT_ACTIVITY_RECORDED,
                target_type="activity",
                target_ids=[row.id],
                actor_id=user_id,
                metadata={"entity_id": entity_id, "activity_type": activity_type},
            )
            result = serialize_activity(row)
        logger.debug(
            "activity_recorded",
            extra={"entity_id": entity_id, "activity_type": activity_type},
        )
        return result

    def list(
        self,
        workspace_id: str,
        entity_id: Optional[str] = None,
        activity_type: Optional[str] = None,
        source_module: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[dict]:
        validate_tenant_id(workspace_id)
        if entity_id is not None:
            validate_entity_id(entity_id, "entity_id")
        validate_optional_text(activity_type, "activity_type", 50)
        validate_optional_text(source_module, "source_module", 50)
        _validate_timestamp(since, "since")
        validate_limit(limit)
        validate_offset(offset)

        with self._entities.transaction() as db:
            query = db.query(Activity).filter(Activity.workspace_id == workspace_id)
            if entity_id:
                query = query.filter(Activity.entity_id == entity_id)
            if activity_type:
                query = query.filter(Activity.activity_type == activity_type)
            if source_module:
                query = query.filter(Activity.source_module == source_module)
            if since is not None:
                query = query.filter(Activity.timestamp >= since)
            rows = (
                query.order_by(Activity.timestamp.desc(), Activity.id.desc())
                .offset(offset)
                .limit(limit)
                .all()
            )
            return [serialize_activity(row) for row in rows]

    def timeline(self, workspace_id: str, entity_id: str, limit: int = 100) -> list[dict]:
        """Activities of an entity and of everything it references inline, newest first."""
        validate_tenant_id(workspace_id)
        validate_entity_id(entity_id, "entity_id")
        validate_limit(limit)

        with self._entities.transaction() as db:
            entity = self._entities.require(db, workspace_id, entity_id)
            entity_ids = [entity_id]
            for value in (entity.relationships or {}).values():
                for related_id in edge_targets(value):
                    if related_id not in entity_ids:
                        entity_ids.append(related_id)

            rows = (
                db.query(Activity)
                .filter(Activity.workspace_id == workspace_id)
                .filter(Activity.entity_id.in_(entity_ids))
                .order_by(Activity.timestamp.desc(), Activity.id.desc())
                .limit(limit)
                .all()
            )
            return [serialize_activity(row) for row in rows]


__all__ = ["ActivityLog", "serialize_activity"]
