"""
Audit logging helpers (DB-only, metadata-only).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import and_, or_

import graphstore.config as config
from graphstore.models import AuditEvent, isoformat_utc, utcnow

EVENT_ENTITY_CREATED = "entity.created"
EVENT_ENTITY_UPDATED = "entity.updated"
EVENT_ENTITY_DELETED = "entity.deleted"
EVENT_ENTITY_LINKED = "entity.linked"
EVENT_ENTITY_UNLINKED = "entity.unlinked"
EVENT_RELATIONSHIP_UPSERTED = "relationship.upserted"
EVENT_RELATIONSHIP_DELETED = "relationship.deleted"
EVENT_RELATIONSHIPS_REBUILT = "relationship.rebuilt"
EVENT_ACTIVITY_RECORDED = "activity.recorded"

ALLOWED_TARGET_TYPES = {"entity", "relationship", "activity"}

# Entity documents never go into the audit trail.
FORBIDDEN_METADATA_KEYS = {
    "data",
    "content",
    "search_vector",
    "body",
}
MAX_METADATA_STRING_LENGTH = 500
MAX_TARGET_ID_LENGTH = 200


def _normalize_key(key: str) -> str:
    return key.strip().lower().replace("-", "_")


def _validate_metadata_value(value: Any, path: str = "") -> None:
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise ValueError("metadata keys must be strings")
            if _normalize_key(key) in FORBIDDEN_METADATA_KEYS:
                raise ValueError(f"metadata key '{key}' is not allowed")
            next_path = f"{path}.{key}" if path else key
            _validate_metadata_value(item, next_path)
        return
    if isinstance(value, list):
        for item in value:
            _validate_metadata_value(item, path)
        return
    if isinstance(value, str) and len(value) > MAX_METADATA_STRING_LENGTH:
        raise ValueError(f"metadata value too long at '{path or 'value'}'")


def _coerce_target_ids(target_ids: Any) -> list[str]:
    if not isinstance(target_ids, (list, tuple)):
        raise ValueError("target_ids must be a list")
    coerced: list[str] = []
    for item in target_ids:
        if not isinstance(item, str):
            raise ValueError("target_ids must contain strings")
        if len(item) > MAX_TARGET_ID_LENGTH:
            raise ValueError("target_id value too long")
        coerced.append(item)
    return coerced


def log_event(
    db,
    *,
    workspace_id: str,
    event_type: str,
    target_type: str,
    target_ids: list[str],
    actor_id: Optional[str] = None,
    metadata: Optional[dict] = None,
) -> Optional[AuditEvent]:
    """
    Append an audit event to the caller's session (DB-only, metadata-only).
    """
    if not config.AUDIT_ENABLED:
        return None
    if not event_type or not isinstance(event_type, str):
        raise ValueError("event_type must be a non-empty string")
    if target_type not in ALLOWED_TARGET_TYPES:
        raise ValueError("target_type must be one of: entity|relationship|activity")

    safe_target_ids = _coerce_target_ids(target_ids)

    if metadata is not None:
        if not isinstance(metadata, dict):
            raise ValueError("metadata must be a dict")
        _validate_metadata_value(metadata)

    event = AuditEvent(
        created_at=utcnow(),
        workspace_id=workspace_id,
        event_type=event_type,
        actor_id=actor_id,
        target_type=target_type,
        target_ids=safe_target_ids,
        metadata_=metadata,
    )
    db.add(event)
    return event


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def serialize_audit_event(row: AuditEvent) -> dict:
    return {
        "event_id": row.event_id,
        "created_at": isoformat_utc(row.created_at),
        "event_type": row.event_type,
        "event_version": row.event_version,
        "workspace_id": row.workspace_id,
        "actor_id": row.actor_id,
        "target_type": row.target_type,
        "target_ids": row.target_ids,
        "metadata": row.metadata_,
    }


def list_audit_events(
    db,
    *,
    workspace_id: str,
    event_type: Optional[str] = None,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    limit: int = 100,
    cursor: Optional[str] = None,
) -> dict:
    """
    Query a tenant's audit events with optional filtering and cursor pagination.
    """
    if limit <= 0:
        raise ValueError("limit must be positive")

    query = db.query(AuditEvent).filter(AuditEvent.workspace_id == workspace_id)
    if event_type:
        query = query.filter(AuditEvent.event_type == event_type)

    dt_from = _parse_dt(date_from)
    dt_to = _parse_dt(date_to)
    if dt_from:
        query = query.filter(AuditEvent.created_at >= dt_from)
    if dt_to:
        query = query.filter(AuditEvent.created_at <= dt_to)

    if cursor:
        cursor_event = (
            db.query(AuditEvent)
            .filter(AuditEvent.workspace_id == workspace_id)
            .filter(AuditEvent.event_id == cursor)
            .first()
        )
        if cursor_event:
            query = query.filter(
                or_(
                    AuditEvent.created_at < cursor_event.created_at,
                    and_(
                        AuditEvent.created_at == cursor_event.created_at,
                        AuditEvent.event_id < cursor_event.event_id,
                    ),
                )
            )

    rows = (
        query.order_by(AuditEvent.created_at.desc(), AuditEvent.event_id.desc())
        .limit(limit)
        .all()
    )
    next_cursor = rows[-1].event_id if rows else None
    return {
        "status": "ok",
        "count": len(rows),
        "events": [serialize_audit_event(row) for row in rows],
        "next_cursor": next_cursor,
    }


__all__ = [
    "AuditEvent",
    "log_event",
    "list_audit_events",
    "serialize_audit_event",
    "ALLOWED_TARGET_TYPES",
    "EVENT_ENTITY_CREATED",
    "EVENT_ENTITY_UPDATED",
    "EVENT_ENTITY_DELETED",
    "EVENT_ENTITY_LINKED",
    "EVENT_ENTITY_UNLINKED",
    "EVENT_RELATIONSHIP_UPSERTED",
    "EVENT_RELATIONSHIP_DELETED",
    "EVENT_RELATIONSHIPS_REBUILT",
    "EVENT_ACTIVITY_RECORDED",
]
