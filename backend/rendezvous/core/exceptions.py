"""
Service-layer exceptions.

Every failure of the coordination core surfaces as one of these types; the
API layer translates them into HTTP responses and the Celery tasks decide
from them whether a unit of work is worth retrying.
"""

from __future__ import annotations

from typing import Any


class ServiceError(Exception):
    """Base exception for service layer errors."""


class NotFoundError(ServiceError):
    """Raised when a schedule or notification does not exist."""

    def __init__(self, resource: str, identifier: Any):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} {identifier} not found")


class PermissionDeniedError(ServiceError):
    """Raised when the actor is neither the owner nor a participant."""


class UnauthenticatedError(ServiceError):
    """Raised when no acting user can be established."""


class InvalidStateError(ServiceError):
    """Raised when an operation does not apply to the schedule's current state."""


class ScheduleValidationError(InvalidStateError):
    """Raised when a schedule draft breaks a creation/edit rule."""

    def __init__(self, message: str, field: str | None = None):
        self.message = message
        self.field = field
        super().__init__(message)


class StaleWriteError(ServiceError):
    """Raised when a compare-and-swap write lost against a concurrent writer."""

    def __init__(self, resource: str, identifier: Any, expected_version: int):
        self.resource = resource
        self.identifier = identifier
        self.expected_version = expected_version
        super().__init__(
            f"{resource} {identifier} changed concurrently (expected version {expected_version})"
        )


class StoreUnavailableError(ServiceError):
    """Transient store failure; the whole unit of work is safe to retry."""
