"""
Shared validation helpers for graphstore services.
"""

from __future__ import annotations

import json
import math
from typing import Any, Optional

from graphstore.config import (
    MAX_DOCUMENT_BYTES,
    MAX_EDGE_NAME_LENGTH,
    MAX_RESULT_LIMIT,
    MAX_TENANT_ID_LENGTH,
    MAX_TYPE_LENGTH,
)
from graphstore.errors import ValidationError


def validate_required_text(value: str, field: str, max_len: int) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} must be a non-empty string", field=field, error_type="required")
    if len(value) > max_len:
        raise ValidationError(f"{field} exceeds max length {max_len}", field=field, error_type="max_length")
    return value


def validate_optional_text(value: Optional[str], field: str, max_len: int) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", field=field, error_type="invalid_type")
    if len(value) > max_len:
        raise ValidationError(f"{field} exceeds max length {max_len}", field=field, error_type="max_length")
    return value


def validate_tenant_id(value: str) -> str:
    return validate_required_text(value, "workspace_id", MAX_TENANT_ID_LENGTH)


def validate_entity_type(value: str) -> str:
    return validate_required_text(value, "type", MAX_TYPE_LENGTH)


def validate_entity_id(value: str, field: str = "id") -> str:
    return validate_required_text(value, field, 255)


def validate_edge_name(value: str, field: str = "edge_type") -> str:
    return validate_required_text(value, field, MAX_EDGE_NAME_LENGTH)


def validate_limit(value: Optional[int], field: str = "limit", max_value: int = MAX_RESULT_LIMIT) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer", field=field, error_type="invalid_type")
    if value <= 0 or value > max_value:
        raise ValidationError(f"{field} must be between 1 and {max_value}", field=field, error_type="out_of_range")


def validate_offset(value: Optional[int], field: str = "offset") -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer", field=field, error_type="invalid_type")
    if value < 0:
        raise ValidationError(f"{field} must not be negative", field=field, error_type="out_of_range")


def validate_mapping(value: Any, field: str) -> dict:
    if not isinstance(value, dict):
        raise ValidationError(f"{field} must be an object", field=field, error_type="invalid_type")
    return value


def validate_document(value: Any, field: str, max_bytes: int = MAX_DOCUMENT_BYTES) -> dict:
    """Check that a document is a JSON object within the size budget."""
    validate_mapping(value, field)
    try:
        size = len(json.dumps(value))
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be JSON-serializable", field=field, error_type="invalid_type") from exc
    if size > max_bytes:
        raise ValidationError(
            f"{field} exceeds max size {max_bytes} bytes",
            field=field,
            error_type="max_bytes",
        )
    return value


def validate_relationship_map(value: Any, field: str = "relationships") -> dict:
    """Edge values must be an id or a list of ids."""
    validate_document(value, field)
    for edge_name, target in value.items():
        if isinstance(target, str):
            continue
        if isinstance(target, list) and all(isinstance(item, str) for item in target):
            continue
        if target is None:
            continue
        raise ValidationError(
            f"{field}.{edge_name} must be an id or a list of ids",
            field=field,
            error_type="invalid_type",
        )
    return value


def validate_strength_score(value: Optional[int]) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError("strength_score must be a number", field="strength_score", error_type="invalid_type")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError("strength_score must be a finite number", field="strength_score", error_type="invalid_value")
    if float(value) != int(value):
        raise ValidationError("strength_score must be a whole number", field="strength_score", error_type="invalid_value")
    score = int(value)
    if not 0 <= score <= 100:
        raise ValidationError(
            "strength_score must be between 0 and 100",
            field="strength_score",
            error_type="out_of_range",
        )
    return score
