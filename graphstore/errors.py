"""
Shared error types for the entity store.
"""

from typing import Optional


class ValidationError(ValueError):
    def __init__(
        self,
        message: str,
        field: str = "unknown",
        error_type: str = "invalid",
        data: Optional[dict] = None,
    ):
        super().__init__(message)
        self.field = field
        self.error_type = error_type
        self.data = data


class EntityNotFoundError(LookupError):
    """No entity with this id exists in the tenant.

    An entity owned by another tenant is reported exactly like a missing one,
    so the message carries the id only.
    """

    def __init__(self, entity_id: str):
        super().__init__(f"Entity {entity_id} not found")
        self.entity_id = entity_id


class ConflictError(RuntimeError):
    """The stored version moved on since the caller read it."""

    def __init__(
        self,
        entity_id: str,
        expected_version: Optional[int] = None,
        actual_version: Optional[int] = None,
    ):
        if expected_version is not None and actual_version is not None:
            message = (
                f"Entity {entity_id} version conflict "
                f"(expected {expected_version}, found {actual_version})"
            )
        else:
            message = f"Entity {entity_id} was modified concurrently"
        super().__init__(message)
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class StorageError(RuntimeError):
    """Raised when the underlying database driver fails."""
