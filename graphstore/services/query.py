"""
Entity query compilation.

Turns an ``EntityQuery`` into SQLAlchemy filter clauses over the ``entities``
table. All clauses are ANDed; a list-valued ``type`` is an OR of equalities.
JSON access differs between PostgreSQL (JSONB operators) and SQLite (json1
functions), so the clauses are built for the session's dialect.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from typing import Any, Optional, Sequence, Union

from sqlalchemy import String, Text, case, cast, exists, func, literal, or_, select

from graphstore.config import MAX_SEARCH_LENGTH
from graphstore.errors import ValidationError
from graphstore.models import Entity
from graphstore.search import escape_like
from graphstore.validators import (
    validate_edge_name,
    validate_entity_id,
    validate_limit,
    validate_offset,
    validate_optional_text,
    validate_tenant_id,
)

ORDER_COLUMNS = {
    "created_at": Entity.created_at,
    "createdAt": Entity.created_at,
    "updated_at": Entity.updated_at,
    "updatedAt": Entity.updated_at,
}
ORDER_DIRECTIONS = {"asc", "desc"}


@dataclass
class EntityQuery:
    workspace_id: str
    user_id: Optional[str] = None
    type: Optional[Union[str, Sequence[str]]] = None
    where: dict[str, Any] = field(default_factory=dict)
    relationships: dict[str, str] = field(default_factory=dict)
    search: Optional[str] = None
    order_by: str = "created_at"
    order_direction: str = "desc"
    limit: Optional[int] = None
    offset: Optional[int] = None

    def without_pagination(self) -> "EntityQuery":
        return replace(self, limit=None, offset=None)


def validate_query(query: EntityQuery) -> None:
    validate_tenant_id(query.workspace_id)
    validate_optional_text(query.user_id, "user_id", 100)
    validate_optional_text(query.search, "search", MAX_SEARCH_LENGTH)
    validate_limit(query.limit)
    validate_offset(query.offset)
    if query.order_by not in ORDER_COLUMNS:
        raise ValidationError(
            "order_by must be one of: created_at, updated_at",
            field="order_by",
            error_type="invalid_value",
        )
    if query.order_direction not in ORDER_DIRECTIONS:
        raise ValidationError(
            "order_direction must be one of: asc, desc",
            field="order_direction",
            error_type="invalid_value",
        )
    if query.type is not None and not isinstance(query.type, str):
        if any(not isinstance(value, str) for value in query.type):
            raise ValidationError("type must be a string or a list of strings", field="type", error_type="invalid_type")
    if not isinstance(query.where, dict):
        raise ValidationError("where must be an object", field="where", error_type="invalid_type")
    if not isinstance(query.relationships, dict):
        raise ValidationError("relationships must be an object", field="relationships", error_type="invalid_type")
    for edge_name, target_id in query.relationships.items():
        validate_edge_name(edge_name, field="relationships")
        validate_entity_id(target_id, field=f"relationships.{edge_name}")


def _json_path(key: str) -> str:
    return '$."' + key.replace('"', '\\"') + '"'


def _value_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    return json.dumps(value)


def _sqlite_field_text(key: str):
    # Same text as PostgreSQL's ``->>``: json_extract alone turns true/false into 1/0.
    path = _json_path(key)
    json_kind = func.json_type(Entity.data, path)
    return case(
        (json_kind == "true", literal("true")),
        (json_kind == "false", literal("false")),
        else_=cast(func.json_extract(Entity.data, path), String),
    )


def data_field_equals(key: str, value: Any, dialect: str):
    """``data[key]`` compared as text against ``value``."""
    if dialect == "postgresql":
        return Entity.data[key].astext == _value_text(value)
    return _sqlite_field_text(key) == _value_text(value)


def relationship_contains(edge_name: str, target_id: str, dialect: str):
    """Match a scalar edge equal to ``target_id`` or a list edge containing it."""
    if dialect == "postgresql":
        edge = Entity.relationships[edge_name]
        return or_(edge.astext == target_id, edge.contains([target_id]))
    members = func.json_each(Entity.relationships, _json_path(edge_name)).table_valued("value")
    return exists(
        select(literal(1)).select_from(members).where(members.c.value == target_id)
    ).correlate(Entity)


def search_matches(term: str):
    pattern = f"%{escape_like(term)}%"
    return or_(
        Entity.search_vector.ilike(pattern, escape="\\"),
        cast(Entity.data, Text).ilike(pattern, escape="\\"),
    )


def build_conditions(query: EntityQuery, dialect: str) -> list:
    conditions = [Entity.workspace_id == query.workspace_id]

    if query.user_id:
        conditions.append(Entity.user_id == query.user_id)

    if query.type:
        if isinstance(query.type, str):
            conditions.append(Entity.type == query.type)
        else:
            conditions.append(Entity.type.in_(list(query.type)))

    if query.search:
        conditions.append(search_matches(query.search))

    for key, value in query.where.items():
        if value is None:
            continue
        conditions.append(data_field_equals(key, value, dialect))

    for edge_name, target_id in query.relationships.items():
        conditions.append(relationship_contains(edge_name, target_id, dialect))

    return conditions


def build_entity_query(db, query: EntityQuery):
    """Return an ORM query for ``query`` bound to ``db``; validation is the caller's job."""
    dialect = db.get_bind().dialect.name
    order_column = ORDER_COLUMNS[query.order_by]
    if query.order_direction == "asc":
        ordering = (order_column.asc(), Entity.id.asc())
    else:
        ordering = (order_column.desc(), Entity.id.desc())

    orm_query = db.query(Entity).filter(*build_conditions(query, dialect)).order_by(*ordering)
    if query.limit:
        orm_query = orm_query.limit(query.limit)
    if query.offset:
        orm_query = orm_query.offset(query.offset)
    return orm_query


__all__ = [
    "EntityQuery",
    "validate_query",
    "build_conditions",
    "build_entity_query",
    "data_field_equals",
    "relationship_contains",
    "search_matches",
]
