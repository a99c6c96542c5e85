"""
Known payload shapes per entity type.

The store persists ``data`` as an open document. For the entity types the
product modules share, the document is checked against a pydantic model at
the boundary; extra keys are allowed and kept as written. Types without a
registered model are stored unchecked.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from graphstore.errors import ValidationError


class _Payload(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class ContactPayload(_Payload):
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    email: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    tags: list[str] = Field(default_factory=list)


class CompanyPayload(_Payload):
    name: str = Field(min_length=1)
    domain: Optional[str] = None
    industry: Optional[str] = None


class DealPayload(_Payload):
    name: str = Field(min_length=1)
    stage: Optional[str] = None
    value: Optional[float] = None
    currency: Optional[str] = None
    probability: Optional[float] = Field(default=None, ge=0, le=100)


class TaskPayload(_Payload):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    status: Literal["pending", "in_progress", "completed", "cancelled", "todo", "done"] = "pending"
    priority: Optional[Literal["low", "medium", "high", "urgent"]] = None
    due_date: Optional[Union[datetime, str]] = Field(default=None, alias="dueDate")
    assigned_to: Optional[str] = Field(default=None, alias="assignedTo")


class MessagePayload(_Payload):
    content: str
    channel: Optional[Literal["chat", "email", "sms"]] = None
    thread_id: Optional[str] = Field(default=None, alias="threadId")


class CalendarEventPayload(_Payload):
    title: str = Field(min_length=1)
    start_time: Optional[Union[datetime, str]] = Field(default=None, alias="startTime")
    end_time: Optional[Union[datetime, str]] = Field(default=None, alias="endTime")
    attendees: list[str] = Field(default_factory=list)
    location: Optional[str] = None


PAYLOAD_MODELS: dict[str, type[_Payload]] = {
    "contact": ContactPayload,
    "company": CompanyPayload,
    "deal": DealPayload,
    "task": TaskPayload,
    "message": MessagePayload,
    "calendar_event": CalendarEventPayload,
}


def _issue_field(exc: PydanticValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "data"
    loc = ".".join(str(part) for part in errors[0].get("loc", ()))
    return f"data.{loc}" if loc else "data"


def validate_payload(entity_type: str, data: dict[str, Any]) -> None:
    """Raise ValidationError when ``data`` does not fit the type's known shape."""
    model = PAYLOAD_MODELS.get(entity_type)
    if model is None:
        return
    try:
        model.model_validate(data)
    except PydanticValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        raise ValidationError(
            f"Invalid {entity_type} payload: {first.get('msg', 'invalid value')}",
            field=_issue_field(exc),
            error_type="invalid_payload",
        ) from exc


__all__ = [
    "ContactPayload",
    "CompanyPayload",
    "DealPayload",
    "TaskPayload",
    "MessagePayload",
    "CalendarEventPayload",
    "PAYLOAD_MODELS",
    "validate_payload",
]
