from datetime import datetime, timedelta, timezone

import pytest

from graphstore.errors import EntityNotFoundError, ValidationError


BASE_TIME = datetime(2026, 10, 1, 9, 0, tzinfo=timezone.utc)


def test_record_and_list_newest_first(store):
    contact = store.entities.create("ws1", "contact", {"firstName": "Ada"})
    for hours, kind in [(0, "email_sent"), (2, "call_logged"), (1, "email_sent")]:
        store.activities.record(
            "ws1",
            contact["id"],
            kind,
            source_module="crm",
            content={"summary": kind},
            participants=["ada@example.test"],
            timestamp=BASE_TIME + timedelta(hours=hours),
        )

    listed = store.activities.list("ws1", entity_id=contact["id"])

    assert [item["activity_type"] for item in listed] == ["call_logged", "email_sent", "email_sent"]
    assert listed[0]["participants"] == ["ada@example.test"]
    assert listed[0]["timestamp"] == (BASE_TIME + timedelta(hours=2)).isoformat()


def test_list_filters(store):
    contact = store.entities.create("ws1", "contact", {"firstName": "Ada"})
    store.activities.record("ws1", contact["id"], "email_sent", source_module="mail", timestamp=BASE_TIME)
    store.activities.record(
        "ws1", contact["id"], "task_completed", source_module="tasks", timestamp=BASE_TIME + timedelta(days=1)
    )

    assert len(store.activities.list("ws1", activity_type="email_sent")) == 1
    assert len(store.activities.list("ws1", source_module="tasks")) == 1
    assert len(store.activities.list("ws1", since=BASE_TIME + timedelta(hours=1))) == 1
    assert len(store.activities.list("ws1", limit=1)) == 1
    assert len(store.activities.list("ws1", offset=1)) == 1
    assert store.activities.list("ws2") == []


def test_record_requires_entity_in_tenant(store):
    contact = store.entities.create("ws1", "contact", {"firstName": "Ada"})

    with pytest.raises(EntityNotFoundError):
        store.activities.record("ws2", contact["id"], "email_sent")
    with pytest.raises(EntityNotFoundError):
        store.activities.record("ws1", "missing", "email_sent")


def test_record_validates_inputs(store):
    contact = store.entities.create("ws1", "contact", {"firstName": "Ada"})

    with pytest.raises(ValidationError):
        store.activities.record("ws1", contact["id"], "")
    with pytest.raises(ValidationError):
        store.activities.record("ws1", contact["id"], "email_sent", participants="ada")
    with pytest.raises(ValidationError):
        store.activities.record("ws1", contact["id"], "email_sent", timestamp="yesterday")


def test_timeline_includes_linked_entities(store):
    contact = store.entities.create("ws1", "contact", {"firstName": "Ada"})
    task = store.entities.create("ws1", "task", {"title": "Send proposal"})
    unrelated = store.entities.create("ws1", "task", {"title": "Other"})
    store.graph.link("ws1", contact["id"], task["id"], "tasks")

    store.activities.record("ws1", contact["id"], "email_sent", timestamp=BASE_TIME)
    store.activities.record("ws1", task["id"], "task_completed", timestamp=BASE_TIME + timedelta(hours=3))
    store.activities.record("ws1", unrelated["id"], "task_completed", timestamp=BASE_TIME + timedelta(hours=5))

    timeline = store.activities.timeline("ws1", contact["id"])

    assert [(item["entity_id"], item["activity_type"]) for item in timeline] == [
        (task["id"], "task_completed"),
        (contact["id"], "email_sent"),
    ]


def test_timeline_missing_entity(store):
    with pytest.raises(EntityNotFoundError):
        store.activities.timeline("ws1", "missing")
