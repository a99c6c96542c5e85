import pytest

import graphstore.config as config
from graphstore.audit import (
    EVENT_ENTITY_CREATED,
    EVENT_ENTITY_DELETED,
    EVENT_ENTITY_LINKED,
    EVENT_ENTITY_UPDATED,
    list_audit_events,
    log_event,
)
from graphstore.models import AuditEvent


def test_audit_rejects_content_metadata(db_session):
    before = db_session.query(AuditEvent).count()
    with pytest.raises(ValueError):
        log_event(
            db_session,
            workspace_id="ws1",
            event_type=EVENT_ENTITY_UPDATED,
            target_type="entity",
            target_ids=["e1"],
            metadata={"data": {"email": "should_not_log"}},
        )
    db_session.rollback()
    after = db_session.query(AuditEvent).count()
    assert after == before


def test_audit_rejects_long_strings(db_session):
    with pytest.raises(ValueError):
        log_event(
            db_session,
            workspace_id="ws1",
            event_type=EVENT_ENTITY_UPDATED,
            target_type="entity",
            target_ids=["e1"],
            metadata={"note": "x" * 600},
        )
    db_session.rollback()


def test_audit_rejects_unknown_target_type(db_session):
    with pytest.raises(ValueError):
        log_event(
            db_session,
            workspace_id="ws1",
            event_type=EVENT_ENTITY_UPDATED,
            target_type="document",
            target_ids=["e1"],
        )


def test_store_writes_metadata_only_events(store, db_session):
    a = store.entities.create("ws1", "note", {"title": "secret plans"})
    b = store.entities.create("ws1", "note", {"title": "b"})
    store.entities.update("ws1", a["id"], data_patch={"title": "more secret plans"})
    store.graph.link("ws1", a["id"], b["id"], "related")
    store.entities.delete("ws1", b["id"])

    result = list_audit_events(db_session, workspace_id="ws1", limit=50)
    event_types = [event["event_type"] for event in result["events"]]

    assert event_types.count(EVENT_ENTITY_CREATED) == 2
    assert EVENT_ENTITY_UPDATED in event_types
    assert EVENT_ENTITY_LINKED in event_types
    assert EVENT_ENTITY_DELETED in event_types
    assert all("secret" not in str(event["metadata"]) for event in result["events"])

    updated = next(event for event in result["events"] if event["event_type"] == EVENT_ENTITY_UPDATED)
    assert updated["target_ids"] == [a["id"]]
    assert updated["metadata"] == {"fields": ["data"], "version": 2}


def test_audit_events_are_tenant_scoped_and_paged(store, db_session):
    for index in range(3):
        store.entities.create("ws1", "note", {"title": f"n{index}"})
    store.entities.create("ws2", "note", {"title": "other"})

    first = list_audit_events(db_session, workspace_id="ws1", limit=2)
    second = list_audit_events(db_session, workspace_id="ws1", limit=2, cursor=first["next_cursor"])

    assert first["count"] == 2
    assert second["count"] == 1
    seen = {event["event_id"] for event in first["events"] + second["events"]}
    assert len(seen) == 3


def test_audit_can_be_disabled(store, db_session, monkeypatch):
    monkeypatch.setattr(config, "AUDIT_ENABLED", False)

    store.entities.create("ws1", "note", {"title": "quiet"})

    assert db_session.query(AuditEvent).count() == 0
