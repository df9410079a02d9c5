"""Map any caught exception to the normalized :class:`ErrorResponse`.

Every value is first normalized into one of a closed set of variants, then
dispatched once. Precedence is fixed because a value can match several shapes
at the same time (a ``ValidationError`` also exposes an ``errors`` map):

1. domain errors (``DomainError`` and its ``ValidationError`` subtype)
2. framework HTTP errors (``starlette.exceptions.HTTPException``)
3. recognized validation shapes (pydantic / FastAPI validation errors, raw
   ``message.validation`` lists and raw ``errors`` maps)
4. everything else

The raw-shape sniffing in (3) is intentionally permissive and kept for
compatibility with callers that raise plain validation payloads.
"""

from __future__ import annotations

import traceback
from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from users_api.core.error_codes import ErrorKind, kind_to_code, status_to_error_kind
from users_api.core.exceptions import DomainError, ValidationError
from users_api.core.validation import flatten_pydantic_errors, flatten_validation_entries
from users_api.schemas.common import ErrorResponse
from users_api.utils.sensitive_data import DEFAULT_MAX_DEPTH, sanitize

DEFAULT_FRAMEWORK_MESSAGE = "An error occurred"
UNKNOWN_MESSAGE = "An unexpected error occurred"
VALIDATION_MESSAGE = "Validation failed"


class ErrorVariant(str, Enum):
    DOMAIN = "domain"
    VALIDATION = "validation"
    FRAMEWORK = "framework"
    RAW_VALIDATION = "raw_validation"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class NormalizedError:
    variant: ErrorVariant
    value: Any
    field_errors: dict[str, list[str]] | None = None


@dataclass
class _Mapped:
    status_code: int
    message: str
    error_code: str
    errors: dict[str, list[str]] | None = None
    data: Any = None


def safe_str(value: Any) -> str:
    try:
        return str(value)
    except Exception:
        return f"<unprintable {type(value).__name__}>"


def describe_exception(value: Any) -> dict[str, str]:
    """``{name, message, stack}`` for exceptions, ``{exception}`` for anything else."""
    if isinstance(value, BaseException):
        stack = "".join(traceback.format_exception(type(value), value, value.__traceback__))
        return {"name": type(value).__name__, "message": safe_str(value), "stack": stack}
    return {"exception": safe_str(value)}


def _member(value: Any, name: str) -> Any:
    if value is None or isinstance(value, (str, bytes, int, float)):
        return None
    if isinstance(value, Mapping):
        return value.get(name)
    return getattr(value, name, None)


def _entry_messages(entry: Any) -> list[str]:
    if isinstance(entry, (list, tuple)):
        return [safe_str(m) for m in entry]
    message = _member(entry, "message")
    return [safe_str(entry if message is None else message)]


def _raw_validation_errors(value: Any) -> dict[str, list[str]] | None:
    validation = _member(_member(value, "message"), "validation")
    if isinstance(validation, (list, tuple)):
        return flatten_validation_entries(validation)
    errors = _member(value, "errors")
    if isinstance(errors, Mapping):
        return {safe_str(key): _entry_messages(entry) for key, entry in errors.items()}
    return None


def normalize_exception(value: Any) -> NormalizedError:
    """Tag ``value`` with the single variant it will be classified as."""
    if isinstance(value, ValidationError):
        return NormalizedError(ErrorVariant.VALIDATION, value)
    if isinstance(value, DomainError):
        return NormalizedError(ErrorVariant.DOMAIN, value)
    if isinstance(value, StarletteHTTPException):
        return NormalizedError(ErrorVariant.FRAMEWORK, value)
    if isinstance(value, RequestValidationError):
        errors = flatten_pydantic_errors(value.errors(), strip_source=True)
        return NormalizedError(ErrorVariant.RAW_VALIDATION, value, errors)
    if isinstance(value, PydanticValidationError):
        errors = flatten_pydantic_errors(value.errors())
        return NormalizedError(ErrorVariant.RAW_VALIDATION, value, errors)
    raw = _raw_validation_errors(value)
    if raw is not None:
        return NormalizedError(ErrorVariant.RAW_VALIDATION, value, raw)
    return NormalizedError(ErrorVariant.UNKNOWN, value)


def _coerce_errors(value: Any) -> dict[str, list[str]] | None:
    if not isinstance(value, Mapping):
        return None
    out: dict[str, list[str]] = {}
    for field, messages in value.items():
        if isinstance(messages, (list, tuple)):
            out[safe_str(field)] = [safe_str(m) for m in messages]
        else:
            out[safe_str(field)] = [safe_str(messages)]
    return out


def _valid_status(status: Any) -> bool:
    return isinstance(status, int) and not isinstance(status, bool) and 100 <= status <= 599


def utc_timestamp(now: datetime | None = None) -> str:
    """ISO8601 UTC with milliseconds and a ``Z`` suffix."""
    now = now or datetime.now(UTC)
    return now.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def to_jsonable(value: Any, depth: int = 0, max_depth: int = DEFAULT_MAX_DEPTH) -> Any:
    """Reduce ``value`` to JSON types; anything else is stringified."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if depth > max_depth:
        return safe_str(value)
    if isinstance(value, Mapping):
        return {safe_str(k): to_jsonable(v, depth + 1, max_depth) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_jsonable(v, depth + 1, max_depth) for v in value]
    return safe_str(value)


class ExceptionMapper:
    """Classify exceptions into :class:`ErrorResponse` objects. Never raises."""

    def __init__(
        self, *, is_production: bool, clock: Callable[[], datetime] | None = None
    ) -> None:
        self._is_production = is_production
        self._clock = clock or (lambda: datetime.now(UTC))
        self._handlers: dict[ErrorVariant, Callable[[NormalizedError], _Mapped]] = {
            ErrorVariant.DOMAIN: self._map_domain_error,
            ErrorVariant.VALIDATION: self._map_domain_error,
            ErrorVariant.FRAMEWORK: self._map_framework_error,
            ErrorVariant.RAW_VALIDATION: self._map_raw_validation,
            ErrorVariant.UNKNOWN: self._map_unknown,
        }

    @property
    def is_production(self) -> bool:
        return self._is_production

    def map_exception(self, exception: Any, correlation_id: str | None = None) -> ErrorResponse:
        try:
            normalized = normalize_exception(exception)
            mapped = self._handlers[normalized.variant](normalized)
            if not _valid_status(mapped.status_code):
                mapped = replace(
                    mapped,
                    status_code=500,
                    error_code=kind_to_code(ErrorKind.INTERNAL_SERVER_ERROR),
                )
            return self._build(mapped, correlation_id)
        except Exception:
            return self._build(
                self._map_unknown(NormalizedError(ErrorVariant.UNKNOWN, exception)),
                correlation_id,
            )

    def _build(self, mapped: _Mapped, correlation_id: str | None) -> ErrorResponse:
        # data never leaves the process in production, whatever the branch
        data = None
        if not self._is_production and mapped.data is not None:
            data = to_jsonable(sanitize(mapped.data))
            if not isinstance(data, dict):
                data = {"detail": data}
        return ErrorResponse(
            status_code=mapped.status_code,
            message=mapped.message,
            error_code=mapped.error_code,
            timestamp=utc_timestamp(self._clock()),
            correlation_id=correlation_id,
            errors=mapped.errors,
            data=data,
        )

    def _map_domain_error(self, normalized: NormalizedError) -> _Mapped:
        exc: DomainError = normalized.value
        errors = _coerce_errors(exc.errors) if isinstance(exc, ValidationError) else None
        return _Mapped(exc.status, safe_str(exc.message), exc.error_code, errors, exc.context)

    def _map_framework_error(self, normalized: NormalizedError) -> _Mapped:
        exc: StarletteHTTPException = normalized.value
        status = exc.status_code
        code = kind_to_code(status_to_error_kind(status))
        payload = exc.detail

        if isinstance(payload, str):
            return _Mapped(status, payload, code)
        if isinstance(payload, Mapping):
            message = payload.get("message")
            if not isinstance(message, str) or not message:
                message = DEFAULT_FRAMEWORK_MESSAGE
            return _Mapped(status, message, code, _coerce_errors(payload.get("errors")), dict(payload))
        if payload is None:
            return _Mapped(status, DEFAULT_FRAMEWORK_MESSAGE, code)
        return _Mapped(status, DEFAULT_FRAMEWORK_MESSAGE, code, data={"detail": payload})

    def _map_raw_validation(self, normalized: NormalizedError) -> _Mapped:
        return _Mapped(
            400,
            VALIDATION_MESSAGE,
            kind_to_code(ErrorKind.VALIDATION_FAILED),
            dict(normalized.field_errors or {}),
        )

    def _map_unknown(self, normalized: NormalizedError) -> _Mapped:
        return _Mapped(
            500,
            UNKNOWN_MESSAGE,
            kind_to_code(ErrorKind.INTERNAL_SERVER_ERROR),
            data=describe_exception(normalized.value),
        )
