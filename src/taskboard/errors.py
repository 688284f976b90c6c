"""Typed failures raised by the store, policy, and service layers.

Each error carries the HTTP status code the API layer reports for it, so the
exception handlers in :mod:`taskboard.server.api` never need to guess.
"""

from __future__ import annotations

from typing import Any, Optional


class TrackerError(Exception):
    """Base class for every failure surfaced to callers."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, *, errors: Any = None) -> None:
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class NotFoundError(TrackerError):
    """A referenced user/project/task is missing or tombstoned."""

    status_code = 404
    default_message = "Resource not found"


class AuthorizationError(TrackerError):
    """The access policy denied the operation."""

    status_code = 403
    default_message = "Forbidden"


class AuthenticationError(TrackerError):
    """No valid actor could be resolved for the request."""

    status_code = 401
    default_message = "Unauthorized"


class ValidationError(TrackerError):
    status_code = 400
    default_message = "Validation failed"


class ConflictError(TrackerError):
    """A uniqueness constraint was violated in the store."""

    status_code = 409
    default_message = "Resource already exists"


class StoreFailure(TrackerError):
    """Unexpected persistence failure; the attempted change was not applied."""

    status_code = 500
    default_message = "Database error"


class MissingRecordError(StoreFailure):
    """An update targeted a record id the store does not hold."""

    status_code = 404
    default_message = "Resource not found"

    def __init__(self, entity: str, record_id: str) -> None:
        self.entity = entity
        self.record_id = record_id
        super().__init__(f"{entity} {record_id} not found")
