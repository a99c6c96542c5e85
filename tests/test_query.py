import pytest

from graphstore.errors import ValidationError
from graphstore.services.query import EntityQuery


@pytest.fixture
def crm(store):
    acme = store.entities.create("ws1", "company", {"name": "Acme", "industry": "Robotics"})
    ada = store.entities.create(
        "ws1",
        "contact",
        {"firstName": "Ada", "email": "ada@acme.test", "status": "active", "score": 5, "vip": True},
        relationships={"company": acme["id"]},
        user_id="u1",
    )
    bob = store.entities.create(
        "ws1",
        "contact",
        {"firstName": "Bob", "email": "bob@other.test", "status": "lead", "score": 7, "vip": False},
        relationships={"company": [acme["id"], "other-company"]},
        user_id="u2",
    )
    deal = store.entities.create("ws1", "deal", {"name": "Acme renewal 100%_off", "stage": "won"})
    store.entities.create("ws2", "contact", {"firstName": "Ada", "status": "active"})
    return {"acme": acme, "ada": ada, "bob": bob, "deal": deal}


def _ids(results):
    return {item["id"] for item in results}


def test_tenant_is_always_applied(store, crm):
    results = store.entities.find(EntityQuery(workspace_id="ws1"))

    assert len(results) == 4
    assert all(item["workspace_id"] == "ws1" for item in results)


def test_empty_tenant_is_rejected(store):
    with pytest.raises(ValidationError):
        store.entities.find(EntityQuery(workspace_id=""))


def test_type_filter_single_and_list(store, crm):
    contacts = store.entities.find(EntityQuery(workspace_id="ws1", type="contact"))
    assert _ids(contacts) == {crm["ada"]["id"], crm["bob"]["id"]}

    mixed = store.entities.find(EntityQuery(workspace_id="ws1", type=["company", "deal"]))
    assert _ids(mixed) == {crm["acme"]["id"], crm["deal"]["id"]}

    unfiltered = store.entities.find(EntityQuery(workspace_id="ws1", type=[]))
    assert len(unfiltered) == 4


def test_user_filter(store, crm):
    results = store.entities.find(EntityQuery(workspace_id="ws1", user_id="u2"))

    assert _ids(results) == {crm["bob"]["id"]}


def test_where_string_equality(store, crm):
    results = store.entities.find(
        EntityQuery(workspace_id="ws1", type="contact", where={"status": "active"})
    )

    assert _ids(results) == {crm["ada"]["id"]}


def test_where_non_string_values(store, crm):
    by_score = store.entities.find(EntityQuery(workspace_id="ws1", where={"score": 7}))
    assert _ids(by_score) == {crm["bob"]["id"]}

    by_flag = store.entities.find(EntityQuery(workspace_id="ws1", where={"vip": True}))
    assert _ids(by_flag) == {crm["ada"]["id"]}


def test_where_compares_booleans_as_text(store, crm):
    by_text = store.entities.find(EntityQuery(workspace_id="ws1", where={"vip": "true"}))
    assert _ids(by_text) == {crm["ada"]["id"]}

    by_text_false = store.entities.find(EntityQuery(workspace_id="ws1", where={"vip": "false"}))
    assert _ids(by_text_false) == {crm["bob"]["id"]}

    flagged = store.entities.create("ws1", "note", {"flag": "true"})
    by_bool = store.entities.find(EntityQuery(workspace_id="ws1", where={"flag": True}))
    assert _ids(by_bool) == {flagged["id"]}


def test_where_skips_none_values(store, crm):
    results = store.entities.find(
        EntityQuery(workspace_id="ws1", type="contact", where={"status": None})
    )

    assert len(results) == 2


def test_relationship_filter_matches_scalar_and_list_edges(store, crm):
    results = store.entities.find(
        EntityQuery(workspace_id="ws1", relationships={"company": crm["acme"]["id"]})
    )
    assert _ids(results) == {crm["ada"]["id"], crm["bob"]["id"]}

    only_bob = store.entities.find(
        EntityQuery(workspace_id="ws1", relationships={"company": "other-company"})
    )
    assert _ids(only_bob) == {crm["bob"]["id"]}

    none = store.entities.find(EntityQuery(workspace_id="ws1", relationships={"owner": crm["acme"]["id"]}))
    assert none == []


def test_search_is_case_insensitive_substring(store, crm):
    results = store.entities.find(EntityQuery(workspace_id="ws1", search="ACME"))

    assert _ids(results) == {crm["acme"]["id"], crm["ada"]["id"], crm["deal"]["id"]}


def test_search_folds_non_ascii_case(store, crm):
    unit = store.entities.create("ws1", "note", {"name": "Ångström"})

    results = store.entities.find(EntityQuery(workspace_id="ws1", search="ÅNGSTRÖM"))

    assert _ids(results) == {unit["id"]}


def test_search_matches_serialized_data(store, crm):
    # Numbers are not in the search vector but are in the stored document.
    results = store.entities.find(EntityQuery(workspace_id="ws1", type="contact", search="7"))

    assert crm["bob"]["id"] in _ids(results)


def test_search_wildcards_match_literally(store, crm):
    assert _ids(store.entities.find(EntityQuery(workspace_id="ws1", search="100%_off"))) == {crm["deal"]["id"]}
    assert store.entities.find(EntityQuery(workspace_id="ws1", search="100%%off")) == []
    assert store.entities.find(EntityQuery(workspace_id="ws1", search="a_a")) == []


def test_default_order_is_newest_first(store, crm):
    results = store.entities.find(EntityQuery(workspace_id="ws1"))

    assert [item["id"] for item in results] == [
        crm["deal"]["id"],
        crm["bob"]["id"],
        crm["ada"]["id"],
        crm["acme"]["id"],
    ]


def test_order_by_updated_at(store, crm):
    store.entities.update("ws1", crm["acme"]["id"], metadata_patch={"touched": True})

    results = store.entities.find(EntityQuery(workspace_id="ws1", order_by="updated_at"))

    assert results[0]["id"] == crm["acme"]["id"]


def test_pagination_and_count(store, crm):
    query = EntityQuery(workspace_id="ws1", order_direction="asc")
    everything = [item["id"] for item in store.entities.find(query)]

    first = store.entities.find(EntityQuery(workspace_id="ws1", order_direction="asc", limit=2))
    second = store.entities.find(EntityQuery(workspace_id="ws1", order_direction="asc", limit=2, offset=2))

    assert [item["id"] for item in first + second] == everything
    assert store.entities.count(EntityQuery(workspace_id="ws1", limit=1, offset=1)) == 4


@pytest.mark.parametrize(
    "overrides",
    [
        {"order_by": "name"},
        {"order_direction": "sideways"},
        {"limit": 0},
        {"limit": 501},
        {"offset": -1},
        {"type": ["contact", 3]},
    ],
)
def test_invalid_query_is_rejected(store, overrides):
    with pytest.raises(ValidationError):
        store.entities.find(EntityQuery(workspace_id="ws1", **overrides))
