"""
Search vector extraction.

The search vector is a flat string of every string leaf in an entity's data
document. It backs the ``search`` clause of entity queries, so the output must
depend only on the document's shape and values: dicts are walked in insertion
order, lists in index order, and only ``str`` leaves are kept.
"""

from __future__ import annotations

from typing import Any


def _collect_strings(value: Any, out: list[str]) -> None:
    if isinstance(value, str):
        out.append(value)
    elif isinstance(value, dict):
        for item in value.values():
            _collect_strings(item, out)
    elif isinstance(value, (list, tuple)):
        for item in value:
            _collect_strings(item, out)


def extract_searchable_text(data: Any) -> str:
    """Join every string leaf of ``data`` with single spaces, depth first."""
    texts: list[str] = []
    _collect_strings(data, texts)
    return " ".join(texts)


def escape_like(term: str, escape: str = "\\") -> str:
    """Escape LIKE wildcards so the term matches literally."""
    return (
        term.replace(escape, escape + escape)
        .replace("%", escape + "%")
        .replace("_", escape + "_")
    )


__all__ = ["extract_searchable_text", "escape_like"]
