"""
Wiring for the store services around one session factory.
"""

from __future__ import annotations

from dataclasses import dataclass

from graphstore.db import DB
from graphstore.services.activities import ActivityLog
from graphstore.services.entities import EntityStore
from graphstore.services.relationships import RelationshipGraph


@dataclass
class GraphStore:
    entities: EntityStore
    graph: RelationshipGraph
    activities: ActivityLog


def build_store(session_factory=None) -> GraphStore:
    """Build the services over ``session_factory`` (default: the initialized DB)."""
    factory = session_factory or DB.SessionLocal
    if factory is None:
        raise RuntimeError("Database not initialized - call init_db() first")
    entities = EntityStore(factory)
    return GraphStore(
        entities=entities,
        graph=RelationshipGraph(entities),
        activities=ActivityLog(entities),
    )


__all__ = ["GraphStore", "build_store"]
