"""
Error types for EventSquare Server.

This module defines the exception taxonomy shared by the access layer,
the store and the HTTP API:
- EventSquareError: Base exception
- PolicyConfigurationError: Access policy declared a capability without its accessor
- AccessDeniedError: Caller lacks read or write permission on a record
- AuthenticationRequiredError: Operation needs an identified caller
- RecordNotFoundError: Record does not exist
- ConflictError: Record collides with an existing one
- InvalidRecordError: Record payload is inconsistent

Invariants:
    - All errors inherit from EventSquareError
    - Errors carry a stable code for programmatic handling
    - A denial is only an exception when a caller asks for one
      (check_*_or_raise); can_read/can_write return booleans
"""

from __future__ import annotations

from typing import Any


class EventSquareError(Exception):
    """Base exception for all EventSquare errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "EVENTSQUARE_ERROR"
        self.details = details or {}


class PolicyConfigurationError(EventSquareError):
    """Access policy is misconfigured.

    Raised at policy construction when a capability flag is set
    but the matching accessor is missing. Never recovered.
    """

    def __init__(self, policy_name: str, missing: list[str]) -> None:
        super().__init__(
            f"Access policy '{policy_name}' is missing accessors: {', '.join(missing)}",
            code="POLICY_CONFIGURATION_ERROR",
            details={"policy": policy_name, "missing": missing},
        )
        self.policy_name = policy_name
        self.missing = missing


class AccessDeniedError(EventSquareError):
    """Caller lacks the required permission on a record."""

    def __init__(
        self,
        actor: str | None,
        resource_type: str,
        resource_id: str | None,
        permission: str,
    ) -> None:
        who = actor or "anonymous"
        super().__init__(
            f"Access denied: {who} lacks {permission} on {resource_type} {resource_id}",
            code="ACCESS_DENIED",
            details={
                "actor": actor,
                "resource_type": resource_type,
                "resource_id": resource_id,
                "permission": permission,
            },
        )
        self.actor = actor
        self.resource_type = resource_type
        self.resource_id = resource_id
        self.permission = permission


class AuthenticationRequiredError(EventSquareError):
    """Operation requires an identified caller."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message, code="AUTHENTICATION_REQUIRED")


class RecordNotFoundError(EventSquareError):
    """Record does not exist.

    Raised when:
    - Event, invitation or RSVP id is unknown
    - A referenced event is missing
    - A user id is unknown to the admin tools
    """

    def __init__(self, resource_type: str, resource_id: str) -> None:
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            code="NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id},
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class ConflictError(EventSquareError):
    """Record collides with existing data (duplicate id, duplicate RSVP, ...)."""

    def __init__(self, message: str, resource_type: str | None = None) -> None:
        super().__init__(
            message,
            code="CONFLICT",
            details={"resource_type": resource_type},
        )
        self.resource_type = resource_type


class InvalidRecordError(EventSquareError):
    """Record payload is inconsistent.

    Raised when:
    - Event ends before it starts
    - Path id and body id disagree
    """

    def __init__(self, message: str, field_name: str | None = None) -> None:
        super().__init__(
            message,
            code="INVALID_RECORD",
            details={"field": field_name},
        )
        self.field_name = field_name
