"""
Relationship graph services.

Two representations of an edge live side by side:
- the inline ``relationships`` map on each entity (edge name -> id | [id]),
  read together with the entity
- rows in ``entity_relationships`` carrying a type, an optional 0-100 strength
  score and metadata, queryable without loading either endpoint

``link``/``unlink`` maintain both, so the inline map can be rebuilt from the
side table. ``create_relationship`` writes only a side-table row, and
``unlink`` leaves such scored rows in place.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import or_

import graphstore.config as config
from graphstore.audit import (
    EVENT_ENTITY_LINKED,
    EVENT_ENTITY_UNLINKED,
    EVENT_RELATIONSHIP_DELETED,
    EVENT_RELATIONSHIP_UPSERTED,
    EVENT_RELATIONSHIPS_REBUILT,
    log_event,
)
from graphstore.errors import ValidationError
from graphstore.models import Entity, EntityRelationship, isoformat_utc, utcnow
from graphstore.services.entities import EntityStore, serialize_entity
from graphstore.validators import (
    validate_document,
    validate_edge_name,
    validate_entity_id,
    validate_limit,
    validate_strength_score,
    validate_tenant_id,
)

logger = config.logger

REVERSE_PREFIX = "reverse_"
# Marks side-table rows written by link(); only those are removed by unlink().
LINK_ORIGIN = "link"


def reverse_edge_name(edge_type: str) -> str:
    return f"{REVERSE_PREFIX}{edge_type}"


def edge_targets(value) -> list[str]:
    """Normalize an inline edge value (id, list of ids or None) to a list."""
    if value is None:
        return []
    if isinstance(value, list):
        return [item for item in value if isinstance(item, str)]
    if isinstance(value, str):
        return [value]
    return []


def with_target(relationships: Optional[dict], edge_name: str, target_id: str) -> dict:
    updated = dict(relationships or {})
    current = updated.get(edge_name)
    if current is None:
        targets = []
    elif isinstance(current, list):
        targets = list(current)
    else:
        targets = [current]
    if target_id not in targets:
        targets.append(target_id)
    updated[edge_name] = targets
    return updated


def without_target(relationships: Optional[dict], edge_name: str, target_id: str) -> Optional[dict]:
    """Return the map with ``target_id`` removed, or None if nothing changes.

    An edge left empty is dropped from the map entirely.
    """
    current = (relationships or {}).get(edge_name)
    if current is None:
        return None
    updated = dict(relationships)
    if isinstance(current, list):
        if target_id not in current:
            return None
        remaining = [item for item in current if item != target_id]
        if remaining:
            updated[edge_name] = remaining
        else:
            del updated[edge_name]
        return updated
    if current == target_id:
        del updated[edge_name]
        return updated
    return None


def serialize_relationship(row: EntityRelationship) -> dict:
    return {
        "id": row.id,
        "workspace_id": row.workspace_id,
        "source_entity_id": row.source_entity_id,
        "target_entity_id": row.target_entity_id,
        "relationship_type": row.relationship_type,
        "strength_score": row.strength_score,
        "metadata": dict(row.metadata_ or {}),
        "created_at": isoformat_utc(row.created_at),
        "updated_at": isoformat_utc(row.updated_at),
    }


class RelationshipGraph:
    def __init__(self, entities: EntityStore):
        self._entities = entities

    # -------------------------------------------------------------------------
    # Side-table helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _edge_row(db, workspace_id: str, source_id: str, target_id: str, rel_type: str):
        return (
            db.query(EntityRelationship)
            .filter(EntityRelationship.workspace_id == workspace_id)
            .filter(EntityRelationship.source_entity_id == source_id)
            .filter(EntityRelationship.target_entity_id == target_id)
            .filter(EntityRelationship.relationship_type == rel_type)
            .first()
        )

    def _upsert_edge_row(
        self,
        db,
        workspace_id: str,
        source_id: str,
        target_id: str,
        rel_type: str,
        strength_score: Optional[int] = None,
        metadata: Optional[dict] = None,
    ) -> tuple[EntityRelationship, bool]:
        existing = self._edge_row(db, workspace_id, source_id, target_id, rel_type)
        now = utcnow()
        if existing:
            if strength_score is not None:
                existing.strength_score = strength_score
            if metadata is not None:
                existing.metadata_ = dict(metadata)
            else:
                # Rewritten by create_relationship(): no longer a bare link() mirror.
                existing.metadata_ = {
                    key: value for key, value in (existing.metadata_ or {}).items() if key != "origin"
                }
            existing.updated_at = now
            db.flush()
            return existing, False
        row = EntityRelationship(
            workspace_id=workspace_id,
            source_entity_id=source_id,
            target_entity_id=target_id,
            relationship_type=rel_type,
            strength_score=strength_score,
            metadata_=dict(metadata or {}),
            created_at=now,
            updated_at=now,
        )
        db.add(row)
        db.flush()
        return row, True

    @staticmethod
    def _ensure_link_row(db, workspace_id: str, source_id: str, target_id: str, rel_type: str) -> None:
        """Mirror an inline edge into the side table unless a row already exists.

        A pre-existing row (scored via ``create_relationship``) is left as is.
        """
        existing = RelationshipGraph._edge_row(db, workspace_id, source_id, target_id, rel_type)
        if existing is not None:
            return
        now = utcnow()
        db.add(
            EntityRelationship(
                workspace_id=workspace_id,
                source_entity_id=source_id,
                target_entity_id=target_id,
                relationship_type=rel_type,
                metadata_={"origin": LINK_ORIGIN},
                created_at=now,
                updated_at=now,
            )
        )
        db.flush()

    @staticmethod
    def _delete_link_rows(db, workspace_id: str, source_id: str, target_id: str, rel_type: str) -> int:
        """Delete the side-table mirror of an inline edge; scored rows stay."""
        row = RelationshipGraph._edge_row(db, workspace_id, source_id, target_id, rel_type)
        if row is None or (row.metadata_ or {}).get("origin") != LINK_ORIGIN:
            return 0
        db.delete(row)
        db.flush()
        return 1

    def _add_inline_edge(self, db, row, edge_type: str, target_id: str) -> None:
        updated = with_target(row.relationships, edge_type, target_id)
        if updated == (row.relationships or {}):
            return
        self._entities.apply_update(db, row, replace_relationships=updated)

    # -------------------------------------------------------------------------
    # Inline edges
    # -------------------------------------------------------------------------

    def link(
        self,
        workspace_id: str,
        source_id: str,
        target_id: str,
        edge_type: str,
        bidirectional: bool = True,
    ) -> None:
        """Add ``target_id`` under ``edge_type`` on the source, once.

        When bidirectional the source is also added under ``reverse_<edge_type>``
        on the target. Both endpoints must exist in the tenant.
        """
        validate_tenant_id(workspace_id)
        validate_entity_id(source_id, "source_id")
        validate_entity_id(target_id, "target_id")
        validate_edge_name(edge_type)

        with self._entities.transaction() as db:
            source = self._entities.require(db, workspace_id, source_id, for_update=True)
            target = self._entities.require(db, workspace_id, target_id, for_update=True)

            self._add_inline_edge(db, source, edge_type, target_id)
            self._ensure_link_row(db, workspace_id, source_id, target_id, edge_type)

            if bidirectional:
                reverse_type = reverse_edge_name(edge_type)
                self._add_inline_edge(db, target, reverse_type, source_id)
                self._ensure_link_row(db, workspace_id, target_id, source_id, reverse_type)

            log_event(
                db,
                workspace_id=workspace_id,
                event_type=EVENT_ENTITY_LINKED,
                target_type="entity",
                target_ids=[source_id, target_id],
                metadata={"edge_type": edge_type, "bidirectional": bidirectional},
            )
        logger.debug(
            "entities_linked",
            extra={"source_id": source_id, "target_id": target_id, "edge_type": edge_type},
        )

    def unlink(
        self,
        workspace_id: str,
        source_id: str,
        target_id: str,
        edge_type: str,
        bidirectional: bool = True,
    ) -> None:
        """Remove the edge (and its reverse); a missing edge or entity is a no-op."""
        validate_tenant_id(workspace_id)
        validate_entity_id(source_id, "source_id")
        validate_entity_id(target_id, "target_id")
        validate_edge_name(edge_type)

        with self._entities.transaction() as db:
            changed = False
            source = self._entities.load(db, workspace_id, source_id, for_update=True)
            if source is not None:
                updated = without_target(source.relationships, edge_type, target_id)
                if updated is not None:
                    self._entities.apply_update(db, source, replace_relationships=updated)
                    changed = True
            changed = self._delete_link_rows(db, workspace_id, source_id, target_id, edge_type) > 0 or changed

            if bidirectional:
                reverse_type = reverse_edge_name(edge_type)
                target = self._entities.load(db, workspace_id, target_id, for_update=True)
                if target is not None:
                    updated = without_target(target.relationships, reverse_type, source_id)
                    if updated is not None:
                        self._entities.apply_update(db, target, replace_relationships=updated)
                        changed = True
                changed = (
                    self._delete_link_rows(db, workspace_id, target_id, source_id, reverse_type) > 0
                    or changed
                )

            if changed:
                log_event(
                    db,
                    workspace_id=workspace_id,
                    event_type=EVENT_ENTITY_UNLINKED,
                    target_type="entity",
                    target_ids=[source_id, target_id],
                    metadata={"edge_type": edge_type, "bidirectional": bidirectional},
                )

    def find_related(
        self,
        workspace_id: str,
        entity_id: str,
        edge_type: Optional[str] = None,
    ) -> list[dict]:
        """Entities referenced inline by ``entity_id``, in reference order.

        Ids that no longer resolve in the tenant are skipped.
        """
        validate_tenant_id(workspace_id)
        validate_entity_id(entity_id)
        if edge_type is not None:
            validate_edge_name(edge_type)

        with self._entities.transaction() as db:
            entity = self._entities.load(db, workspace_id, entity_id)
            if entity is None or not entity.relationships:
                return []

            if edge_type is not None:
                related_ids = edge_targets(entity.relationships.get(edge_type))
            else:
                related_ids = []
                for value in entity.relationships.values():
                    related_ids.extend(edge_targets(value))
            related_ids = list(dict.fromkeys(related_ids))
            if not related_ids:
                return []

            rows = (
                db.query(Entity)
                .filter(Entity.workspace_id == workspace_id)
                .filter(Entity.id.in_(related_ids))
                .all()
            )
            by_id = {row.id: row for row in rows}
            return [serialize_entity(by_id[rid]) for rid in related_ids if rid in by_id]

    # -------------------------------------------------------------------------
    # Side-table edges
    # -------------------------------------------------------------------------

    def create_relationship(
        self,
        workspace_id: str,
        source_id: str,
        target_id: str,
        relationship_type: str,
        strength_score: Optional[int] = None,
        metadata: Optional[dict] = None,
    ) -> dict:
        """Upsert a scored side-table edge; the inline maps are not touched."""
        validate_tenant_id(workspace_id)
        validate_entity_id(source_id, "source_id")
        validate_entity_id(target_id, "target_id")
        validate_edge_name(relationship_type, "relationship_type")
        score = validate_strength_score(strength_score)
        if metadata is not None:
            validate_document(metadata, "metadata")

        with self._entities.transaction() as db:
            self._entities.require(db, workspace_id, source_id)
            self._entities.require(db, workspace_id, target_id)
            row, created = self._upsert_edge_row(
                db,
                workspace_id,
                source_id,
                target_id,
                relationship_type,
                strength_score=score,
                metadata=metadata,
            )
            log_event(
                db,
                workspace_id=workspace_id,
                event_type=EVENT_RELATIONSHIP_UPSERTED,
                target_type="relationship",
                target_ids=[row.id],
                metadata={"relationship_type": relationship_type, "created": created},
            )
            return serialize_relationship(row)

    def list_relationships(
        self,
        workspace_id: str,
        entity_id: str,
        direction: str = "both",
        relationship_type: Optional[str] = None,
        min_strength: Optional[int] = None,
        limit: int = 100,
    ) -> list[dict]:
        """Side-table edges touching an entity, oldest first."""
        validate_tenant_id(workspace_id)
        validate_entity_id(entity_id)
        validate_limit(limit)
        direction_value = (direction or "both").strip().lower()
        if direction_value not in {"both", "out", "in"}:
            raise ValidationError(
                "direction must be one of: both, out, in",
                field="direction",
                error_type="invalid_value",
            )
        min_strength = validate_strength_score(min_strength)

        with self._entities.transaction() as db:
            self._entities.require(db, workspace_id, entity_id)

            query = db.query(EntityRelationship).filter(EntityRelationship.workspace_id == workspace_id)
            if direction_value == "out":
                query = query.filter(EntityRelationship.source_entity_id == entity_id)
            elif direction_value == "in":
                query = query.filter(EntityRelationship.target_entity_id == entity_id)
            else:
                query = query.filter(
                    or_(
                        EntityRelationship.source_entity_id == entity_id,
                        EntityRelationship.target_entity_id == entity_id,
                    )
                )
            if relationship_type:
                query = query.filter(EntityRelationship.relationship_type == relationship_type)
            if min_strength is not None:
                query = query.filter(EntityRelationship.strength_score >= min_strength)

            rows = (
                query.order_by(EntityRelationship.created_at.asc(), EntityRelationship.id.asc())
                .limit(limit)
                .all()
            )
            return [serialize_relationship(row) for row in rows]

    def delete_relationship(self, workspace_id: str, relationship_id: str) -> bool:
        validate_tenant_id(workspace_id)
        validate_entity_id(relationship_id, "relationship_id")
        with self._entities.transaction() as db:
            removed = (
                db.query(EntityRelationship)
                .filter(EntityRelationship.id == relationship_id)
                .filter(EntityRelationship.workspace_id == workspace_id)
                .delete(synchronize_session=False)
            )
            if removed:
                log_event(
                    db,
                    workspace_id=workspace_id,
                    event_type=EVENT_RELATIONSHIP_DELETED,
                    target_type="relationship",
                    target_ids=[relationship_id],
                )
        return removed > 0

    def rebuild_relationships(self, workspace_id: str, entity_id: str) -> dict:
        """Rewrite inline edges from the entity's outgoing side-table rows.

        Every edge name with at least one outgoing row is set to exactly those
        targets (oldest first). Edge names with no rows are left unchanged.
        """
        validate_tenant_id(workspace_id)
        validate_entity_id(entity_id)

        with self._entities.transaction() as db:
            entity = self._entities.require(db, workspace_id, entity_id, for_update=True)
            rows = (
                db.query(EntityRelationship)
                .filter(EntityRelationship.workspace_id == workspace_id)
                .filter(EntityRelationship.source_entity_id == entity_id)
                .order_by(EntityRelationship.created_at.asc(), EntityRelationship.id.asc())
                .all()
            )
            derived: dict[str, list[str]] = {}
            for row in rows:
                targets = derived.setdefault(row.relationship_type, [])
                if row.target_entity_id not in targets:
                    targets.append(row.target_entity_id)

            rebuilt = {**(entity.relationships or {}), **derived}
            if rebuilt != (entity.relationships or {}):
                self._entities.apply_update(db, entity, replace_relationships=rebuilt)
                log_event(
                    db,
                    workspace_id=workspace_id,
                    event_type=EVENT_RELATIONSHIPS_REBUILT,
                    target_type="entity",
                    target_ids=[entity_id],
                    metadata={"edge_types": sorted(derived)},
                )
            return serialize_entity(entity)


__all__ = [
    "RelationshipGraph",
    "reverse_edge_name",
    "edge_targets",
    "with_target",
    "without_target",
    "serialize_relationship",
]
