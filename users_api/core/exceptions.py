"""Domain-level exception hierarchy for service and repository layers.

Every error raised deliberately by business logic carries a fixed
:class:`~users_api.core.error_codes.ErrorKind`. The HTTP status defaults to the
kind's status. ``context`` holds diagnostic data for server-side logs; it is
never sent to clients in production.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from users_api.core.error_codes import ErrorKind, kind_to_code, kind_to_status


class DomainError(Exception):
    """Base class for domain-specific failures."""

    default_kind: ErrorKind = ErrorKind.INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(
        self,
        message: str | None = None,
        kind: ErrorKind | None = None,
        status: int | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.kind = kind or self.default_kind
        self.status = status if status is not None else kind_to_status(self.kind)
        self.context = dict(context) if context else None
        super().__init__(self.message)

    @property
    def error_code(self) -> str:
        return kind_to_code(self.kind)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, kind={self.kind.name}, status={self.status})"


class ValidationError(DomainError):
    """Raised when input validation fails; carries messages per field."""

    default_kind = ErrorKind.VALIDATION_FAILED
    default_message = "Validation failed"

    def __init__(
        self,
        errors: Mapping[str, list[str]],
        message: str | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        if not errors:
            raise ValueError("ValidationError requires at least one field error")
        self.errors = {field: list(messages) for field, messages in errors.items()}
        super().__init__(message, context=context)


class ResourceNotFoundError(DomainError):
    """Raised when a requested entity does not exist."""

    default_kind = ErrorKind.RESOURCE_NOT_FOUND
    default_message = "Resource not found"


class ConflictError(DomainError):
    """Raised when a state conflict occurs (e.g. duplicate entries)."""

    default_kind = ErrorKind.RESOURCE_CONFLICT
    default_message = "Resource conflict"


class BusinessRuleViolationError(DomainError):
    default_kind = ErrorKind.BUSINESS_RULE_VIOLATION
    default_message = "Business rule violation"


class UnauthorizedError(DomainError):
    default_kind = ErrorKind.UNAUTHORIZED
    default_message = "Unauthorized access"


class ForbiddenError(DomainError):
    default_kind = ErrorKind.FORBIDDEN
    default_message = "Access forbidden"


class ExternalServiceError(DomainError):
    """Raised when infrastructure (DB or external service) is unavailable."""

    default_kind = ErrorKind.EXTERNAL_SERVICE_ERROR
    default_message = "External service error"
