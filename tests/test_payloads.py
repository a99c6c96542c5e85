import pytest

import graphstore.config as config
from graphstore.errors import ValidationError
from graphstore.payloads import validate_payload


def test_unknown_types_are_open_documents():
    validate_payload("custom_widget", {"anything": [1, 2, {"goes": True}]})


def test_known_type_accepts_extra_keys(store):
    entity = store.entities.create(
        "ws1",
        "contact",
        {"firstName": "Ada", "lastName": "Lovelace", "linkedin": "ada-l", "tags": ["vip"]},
    )

    assert entity["data"]["linkedin"] == "ada-l"


def test_task_requires_title(store):
    with pytest.raises(ValidationError) as excinfo:
        store.entities.create("ws1", "task", {"status": "pending"})

    assert excinfo.value.field == "data.title"
    assert excinfo.value.error_type == "invalid_payload"


@pytest.mark.parametrize(
    "entity_type, data",
    [
        ("task", {"title": "Call back", "status": "someday"}),
        ("deal", {"name": "Renewal", "probability": 140}),
        ("company", {"name": ""}),
        ("message", {"channel": "email"}),
        ("contact", {"tags": "vip"}),
    ],
)
def test_invalid_payloads_rejected(entity_type, data):
    with pytest.raises(ValidationError):
        validate_payload(entity_type, data)


def test_update_validates_merged_document(store):
    task = store.entities.create("ws1", "task", {"title": "Call back", "status": "pending"})

    with pytest.raises(ValidationError):
        store.entities.update("ws1", task["id"], data_patch={"status": "someday"})

    current = store.entities.get("ws1", task["id"])
    assert current["data"]["status"] == "pending"
    assert current["metadata"]["version"] == 1

    updated = store.entities.update("ws1", task["id"], data_patch={"status": "completed"})
    assert updated["data"] == {"title": "Call back", "status": "completed"}


def test_validation_can_be_disabled(store, monkeypatch):
    monkeypatch.setattr(config, "VALIDATE_PAYLOADS", False)

    entity = store.entities.create("ws1", "task", {"status": "someday"})

    assert entity["data"] == {"status": "someday"}
