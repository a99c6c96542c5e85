"""
Entity store services: tenant-scoped CRUD over the polymorphic entities table.

Supports:
- Creating entities (single and batch) with a derived search vector
- Tenant-scoped lookup and structured queries
- Merge-not-replace updates guarded by the row version
- Hard deletes that also remove side-table edges and activities
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

import graphstore.config as config
from graphstore.audit import (
    EVENT_ENTITY_CREATED,
    EVENT_ENTITY_DELETED,
    EVENT_ENTITY_UPDATED,
    log_event,
)
from graphstore.errors import ConflictError, EntityNotFoundError, StorageError, ValidationError
from graphstore.models import Activity, Entity, EntityRelationship, _uuid_default, isoformat_utc, utcnow
from graphstore.payloads import validate_payload
from graphstore.search import extract_searchable_text
from graphstore.services.query import EntityQuery, build_entity_query, validate_query
from graphstore.validators import (
    validate_document,
    validate_entity_id,
    validate_entity_type,
    validate_mapping,
    validate_optional_text,
    validate_relationship_map,
    validate_tenant_id,
)

logger = config.logger


def serialize_entity(row: Entity) -> dict:
    metadata = dict(row.metadata_ or {})
    metadata["version"] = row.version
    return {
        "id": row.id,
        "workspace_id": row.workspace_id,
        "user_id": row.user_id,
        "type": row.type,
        "data": dict(row.data or {}),
        "relationships": dict(row.relationships or {}),
        "metadata": metadata,
        "search_vector": row.search_vector,
        "created_at": isoformat_utc(row.created_at),
        "updated_at": isoformat_utc(row.updated_at),
    }


class EntityStore:
    """Tenant-scoped access to entities through an injected session factory.

    Every public method opens one session, does all of its work in one
    transaction and closes the session before returning plain dicts.
    """

    def __init__(self, session_factory):
        if session_factory is None:
            raise RuntimeError("Database not initialized - session factory is None")
        self._session_factory = session_factory

    @contextmanager
    def transaction(self) -> Iterator[Any]:
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning("storage_error", extra={"error": exc.__class__.__name__})
            raise StorageError(str(exc)) from exc
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    # -------------------------------------------------------------------------
    # Row helpers shared with the relationship graph and activity log
    # -------------------------------------------------------------------------

    @staticmethod
    def load(db, workspace_id: str, entity_id: str, *, for_update: bool = False) -> Optional[Entity]:
        query = (
            db.query(Entity)
            .filter(Entity.id == entity_id)
            .filter(Entity.workspace_id == workspace_id)
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    def require(self, db, workspace_id: str, entity_id: str, *, for_update: bool = False) -> Entity:
        row = self.load(db, workspace_id, entity_id, for_update=for_update)
        if row is None:
            raise EntityNotFoundError(entity_id)
        return row

    def apply_update(
        self,
        db,
        row: Entity,
        *,
        data_patch: Optional[dict] = None,
        relationships_patch: Optional[dict] = None,
        metadata_patch: Optional[dict] = None,
        replace_relationships: Optional[dict] = None,
        expected_version: Optional[int] = None,
    ) -> Entity:
        """Merge patches into ``row`` and flush one version-guarded UPDATE."""
        # A failed flush expires ``row``; only these may be used afterwards.
        entity_id = row.id
        current_version = row.version
        if expected_version is not None and expected_version != current_version:
            raise ConflictError(entity_id, expected_version, current_version)

        if data_patch is not None:
            merged = {**(row.data or {}), **data_patch}
            if config.VALIDATE_PAYLOADS:
                validate_payload(row.type, merged)
            row.data = merged
            row.search_vector = extract_searchable_text(
                merged if config.REINDEX_MERGED_DATA else data_patch
            )

        if replace_relationships is not None:
            row.relationships = dict(replace_relationships)
        if relationships_patch is not None:
            row.relationships = {**(row.relationships or {}), **relationships_patch}

        row.metadata_ = {
            **(row.metadata_ or {}),
            **(metadata_patch or {}),
            "version": current_version + 1,
        }
        row.updated_at = utcnow()

        try:
            db.flush()
        except StaleDataError as exc:
            logger.warning("entity_version_conflict", extra={"entity_id": entity_id})
            raise ConflictError(entity_id, expected_version=current_version) from exc
        return row

    # -------------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------------

    def _build_entity(
        self,
        workspace_id: str,
        entity_type: str,
        data: dict,
        relationships: Optional[dict],
        metadata: Optional[dict],
        user_id: Optional[str],
    ) -> Entity:
        validate_tenant_id(workspace_id)
        validate_entity_type(entity_type)
        validate_document(data, "data")
        relationships = validate_relationship_map(relationships or {})
        metadata = validate_document(metadata or {}, "metadata")
        validate_optional_text(user_id, "user_id", 100)
        if config.VALIDATE_PAYLOADS:
            validate_payload(entity_type, data)

        now = utcnow()
        return Entity(
            id=_uuid_default(),
            workspace_id=workspace_id,
            user_id=user_id,
            type=entity_type,
            data=dict(data),
            relationships=dict(relationships),
            metadata_={
                **metadata,
                "version": 1,
                "createdBy": metadata.get("createdBy") or metadata.get("userId") or user_id or "system",
            },
            search_vector=extract_searchable_text(data),
            version=1,
            created_at=now,
            updated_at=now,
        )

    def create(
        self,
        workspace_id: str,
        entity_type: str,
        data: dict,
        relationships: Optional[dict] = None,
        metadata: Optional[dict] = None,
        user_id: Optional[str] = None,
    ) -> dict:
        """Create one entity and return it."""
        row = self._build_entity(workspace_id, entity_type, data, relationships, metadata, user_id)
        with self.transaction() as db:
            db.add(row)
            db.flush()
            log_event(
                db,
                workspace_id=workspace_id,
                event_type=EVENT_ENTITY_CREATED,
                target_type="entity",
                target_ids=[row.id],
                actor_id=user_id,
                metadata={"type": entity_type},
            )
            result = serialize_entity(row)
        logger.debug("entity_created", extra={"entity_id": result["id"], "type": entity_type})
        return result

    def create_many(self, workspace_id: str, items: list[dict]) -> list[dict]:
        """Create several entities in one transaction; any invalid item aborts all."""
        validate_tenant_id(workspace_id)
        if not isinstance(items, list):
            raise ValidationError("items must be a list", field="items", error_type="invalid_type")
        if len(items) > config.MAX_BATCH_SIZE:
            raise ValidationError(
                f"items exceeds max items {config.MAX_BATCH_SIZE}",
                field="items",
                error_type="max_items",
            )
        rows = []
        for item in items:
            validate_mapping(item, "items")
            rows.append(
                self._build_entity(
                    workspace_id,
                    item.get("type"),
                    item.get("data"),
                    item.get("relationships"),
                    item.get("metadata"),
                    item.get("user_id"),
                )
            )
        if not rows:
            return []

        with self.transaction() as db:
            db.add_all(rows)
            db.flush()
            log_event(
                db,
                workspace_id=workspace_id,
                event_type=EVENT_ENTITY_CREATED,
                target_type="entity",
                target_ids=[row.id for row in rows],
                metadata={"count": len(rows)},
            )
            results = [serialize_entity(row) for row in rows]
        logger.debug("entities_created", extra={"count": len(results)})
        return results

    # -------------------------------------------------------------------------
    # Read
    # -------------------------------------------------------------------------

    def find_by_id(self, workspace_id: str, entity_id: str) -> Optional[dict]:
        """Return the entity, or None when it is absent from this tenant."""
        validate_tenant_id(workspace_id)
        validate_entity_id(entity_id)
        with self.transaction() as db:
            row = self.load(db, workspace_id, entity_id)
            return serialize_entity(row) if row is not None else None

    def get(self, workspace_id: str, entity_id: str) -> dict:
        entity = self.find_by_id(workspace_id, entity_id)
        if entity is None:
            raise EntityNotFoundError(entity_id)
        return entity

    def find(self, query: EntityQuery) -> list[dict]:
        validate_query(query)
        with self.transaction() as db:
            rows = build_entity_query(db, query).all()
            return [serialize_entity(row) for row in rows]

    def count(self, query: EntityQuery) -> int:
        # No aggregate path: counts the unpaginated result set.
        return len(self.find(query.without_pagination()))

    # -------------------------------------------------------------------------
    # Update / delete
    # -------------------------------------------------------------------------

    def update(
        self,
        workspace_id: str,
        entity_id: str,
        data_patch: Optional[dict] = None,
        relationships_patch: Optional[dict] = None,
        metadata_patch: Optional[dict] = None,
        expected_version: Optional[int] = None,
    ) -> dict:
        """Shallow-merge the supplied patches and bump the version by one.

        Pass ``expected_version`` (the version last read) to reject the write
        with ConflictError if another writer got there first.
        """
        validate_tenant_id(workspace_id)
        validate_entity_id(entity_id)
        if data_patch is not None:
            validate_document(data_patch, "data")
        if relationships_patch is not None:
            validate_relationship_map(relationships_patch)
        if metadata_patch is not None:
            validate_document(metadata_patch, "metadata")
        if expected_version is not None and (
            isinstance(expected_version, bool) or not isinstance(expected_version, int)
        ):
            raise ValidationError(
                "expected_version must be an integer",
                field="expected_version",
                error_type="invalid_type",
            )

        with self.transaction() as db:
            row = self.require(db, workspace_id, entity_id, for_update=True)
            self.apply_update(
                db,
                row,
                data_patch=data_patch,
                relationships_patch=relationships_patch,
                metadata_patch=metadata_patch,
                expected_version=expected_version,
            )
            changed = [
                name
                for name, patch in (
                    ("data", data_patch),
                    ("relationships", relationships_patch),
                    ("metadata", metadata_patch),
                )
                if patch is not None
            ]
            log_event(
                db,
                workspace_id=workspace_id,
                event_type=EVENT_ENTITY_UPDATED,
                target_type="entity",
                target_ids=[entity_id],
                metadata={"fields": changed, "version": row.version},
            )
            result = serialize_entity(row)
        logger.debug("entity_updated", extra={"entity_id": entity_id, "version": result["metadata"]["version"]})
        return result

    def delete(self, workspace_id: str, entity_id: str) -> bool:
        """Hard-delete the entity; side-table edges and activities go with it."""
        validate_tenant_id(workspace_id)
        validate_entity_id(entity_id)
        with self.transaction() as db:
            if self.load(db, workspace_id, entity_id) is None:
                return False
            db.query(EntityRelationship).filter(
                EntityRelationship.workspace_id == workspace_id,
                or_(
                    EntityRelationship.source_entity_id == entity_id,
                    EntityRelationship.target_entity_id == entity_id,
                ),
            ).delete(synchronize_session=False)
            db.query(Activity).filter(
                Activity.workspace_id == workspace_id,
                Activity.entity_id == entity_id,
            ).delete(synchronize_session=False)
            removed = (
                db.query(Entity)
                .filter(Entity.id == entity_id)
                .filter(Entity.workspace_id == workspace_id)
                .delete(synchronize_session=False)
            )
            log_event(
                db,
                workspace_id=workspace_id,
                event_type=EVENT_ENTITY_DELETED,
                target_type="entity",
                target_ids=[entity_id],
            )
        logger.debug("entity_deleted", extra={"entity_id": entity_id})
        return removed > 0


__all__ = ["EntityStore", "serialize_entity"]
