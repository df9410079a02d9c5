"""Application error taxonomy.

Codes follow ``E{category}{specific}``:

- 01: validation
- 02: authentication
- 03: authorization
- 04: resources (not found, already exists, conflict)
- 05: business logic
- 06: external services
- 99: system / unexpected
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Final


class ErrorKind(str, Enum):
    """Closed set of error kinds. The value is the wire ``errorCode``."""

    VALIDATION_FAILED = "E01001"
    INVALID_INPUT = "E01002"
    INVALID_FORMAT = "E01003"

    UNAUTHORIZED = "E02001"
    INVALID_CREDENTIALS = "E02002"
    SESSION_EXPIRED = "E02003"
    INVALID_TOKEN = "E02004"

    FORBIDDEN = "E03001"
    INSUFFICIENT_PERMISSIONS = "E03002"

    RESOURCE_NOT_FOUND = "E04001"
    RESOURCE_ALREADY_EXISTS = "E04002"
    RESOURCE_CONFLICT = "E04003"

    BUSINESS_RULE_VIOLATION = "E05001"
    INVALID_STATE = "E05002"
    OPERATION_NOT_ALLOWED = "E05003"

    EXTERNAL_SERVICE_ERROR = "E06001"
    EXTERNAL_SERVICE_TIMEOUT = "E06002"
    EXTERNAL_SERVICE_UNAVAILABLE = "E06003"

    INTERNAL_SERVER_ERROR = "E99001"
    NOT_IMPLEMENTED = "E99002"
    SERVICE_UNAVAILABLE = "E99003"


_KIND_STATUS: Final = MappingProxyType(
    {
        ErrorKind.VALIDATION_FAILED: 400,
        ErrorKind.INVALID_INPUT: 400,
        ErrorKind.INVALID_FORMAT: 400,
        ErrorKind.UNAUTHORIZED: 401,
        ErrorKind.INVALID_CREDENTIALS: 401,
        ErrorKind.SESSION_EXPIRED: 401,
        ErrorKind.INVALID_TOKEN: 401,
        ErrorKind.FORBIDDEN: 403,
        ErrorKind.INSUFFICIENT_PERMISSIONS: 403,
        ErrorKind.RESOURCE_NOT_FOUND: 404,
        ErrorKind.RESOURCE_ALREADY_EXISTS: 409,
        ErrorKind.RESOURCE_CONFLICT: 409,
        ErrorKind.BUSINESS_RULE_VIOLATION: 422,
        ErrorKind.INVALID_STATE: 409,
        ErrorKind.OPERATION_NOT_ALLOWED: 403,
        ErrorKind.EXTERNAL_SERVICE_ERROR: 503,
        ErrorKind.EXTERNAL_SERVICE_TIMEOUT: 504,
        ErrorKind.EXTERNAL_SERVICE_UNAVAILABLE: 503,
        ErrorKind.INTERNAL_SERVER_ERROR: 500,
        ErrorKind.NOT_IMPLEMENTED: 501,
        ErrorKind.SERVICE_UNAVAILABLE: 503,
    }
)

# Statuses raised by the framework itself (routing, guards, HTTPException).
_STATUS_KIND: Final = MappingProxyType(
    {
        400: ErrorKind.INVALID_INPUT,
        401: ErrorKind.UNAUTHORIZED,
        403: ErrorKind.FORBIDDEN,
        404: ErrorKind.RESOURCE_NOT_FOUND,
        409: ErrorKind.RESOURCE_CONFLICT,
        422: ErrorKind.BUSINESS_RULE_VIOLATION,
        503: ErrorKind.SERVICE_UNAVAILABLE,
    }
)


def kind_to_status(kind: ErrorKind) -> int:
    return _KIND_STATUS[kind]


def kind_to_code(kind: ErrorKind) -> str:
    return kind.value


def status_to_error_kind(status: int) -> ErrorKind:
    """Map a bare HTTP status to a kind; unmapped statuses are internal errors."""
    return _STATUS_KIND.get(status, ErrorKind.INTERNAL_SERVER_ERROR)
