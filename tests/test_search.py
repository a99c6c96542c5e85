from graphstore.search import escape_like, extract_searchable_text


def test_extract_walks_depth_first_in_order():
    data = {
        "name": "Ada",
        "address": {"city": "London", "lines": ["12 Crescent", {"note": "rear door"}]},
        "email": "ada@example.test",
    }

    assert extract_searchable_text(data) == "Ada London 12 Crescent rear door ada@example.test"


def test_extract_ignores_non_string_scalars():
    data = {"count": 3, "ratio": 0.5, "active": True, "missing": None, "tags": [1, "one", False]}

    assert extract_searchable_text(data) == "one"


def test_extract_empty_and_scalar_inputs():
    assert extract_searchable_text({}) == ""
    assert extract_searchable_text([]) == ""
    assert extract_searchable_text("solo") == "solo"
    assert extract_searchable_text(42) == ""


def test_extract_is_deterministic():
    data = {"b": ["x", {"c": "y"}], "a": "z"}

    assert extract_searchable_text(data) == extract_searchable_text(dict(data))
    assert extract_searchable_text(data) == "x y z"


def test_extract_keeps_empty_strings():
    assert extract_searchable_text({"a": "", "b": "x"}) == " x"


def test_escape_like():
    assert escape_like("50%_off") == "50\\%\\_off"
    assert escape_like("back\\slash") == "back\\\\slash"
    assert escape_like("plain") == "plain"
