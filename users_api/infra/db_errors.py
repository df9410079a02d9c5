"""Translate SQLAlchemy / PostgreSQL failures into domain errors.

Wrap data-access code with :func:`translate_database_errors` (or decorate
coroutines with :func:`translates_database_errors`) so that upper layers only
ever see :class:`~users_api.core.exceptions.DomainError`. Errors that do not
carry a known engine signature are re-raised unchanged.
"""

from __future__ import annotations

import functools
import re
import socket
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from enum import Enum
from typing import Any, Final, TypeVar

import structlog
from sqlalchemy import exc as sa_exc

from users_api.core.exceptions import (
    ConflictError,
    DomainError,
    ExternalServiceError,
    ResourceNotFoundError,
    ValidationError,
)

T = TypeVar("T")


class PgErrorCode(str, Enum):
    """PostgreSQL SQLSTATE codes with a dedicated translation."""

    UNIQUE_VIOLATION = "23505"
    FOREIGN_KEY_VIOLATION = "23503"
    NOT_NULL_VIOLATION = "23502"
    INVALID_TEXT_REPRESENTATION = "22P02"
    SYNTAX_ERROR = "42601"
    UNDEFINED_COLUMN = "42703"
    UNDEFINED_TABLE = "42P01"


_INVALID_OPERATION_TYPES: Final = {
    PgErrorCode.SYNTAX_ERROR.value: "QUERY_INTERPRETATION_ERROR",
    PgErrorCode.NOT_NULL_VIOLATION.value: "REQUIRED_VALUE_MISSING",
    PgErrorCode.INVALID_TEXT_REPRESENTATION.value: "INPUT_ERROR",
    PgErrorCode.UNDEFINED_COLUMN.value: "UNDEFINED_COLUMN",
    PgErrorCode.UNDEFINED_TABLE.value: "TABLE_DOES_NOT_EXIST",
}

# admin_shutdown, crash_shutdown, cannot_connect_now
_CONNECTION_SQLSTATES: Final = frozenset({"57P01", "57P02", "57P03"})

# raised unwrapped by asyncpg while connecting (refused, reset, DNS lookup)
_SOCKET_ERRORS: Final = (ConnectionError, socket.gaierror)

_KEY_DETAIL_RE: Final = re.compile(r"Key \((?P<columns>[^)]*)\)=")
_CLASS_PREFIX_RE: Final = re.compile(r"^<class '[^']+'>:\s*")

logger = structlog.get_logger(__name__)


def _error_sources(exc: sa_exc.DBAPIError) -> list[Any]:
    # asyncpg errors arrive wrapped by the SQLAlchemy adapter (original on __cause__)
    orig = exc.orig
    sources = [orig, getattr(orig, "__cause__", None), getattr(orig, "diag", None)]
    return [s for s in sources if s is not None]


def _first_attr(sources: list[Any], *names: str) -> str | None:
    for source in sources:
        for name in names:
            value = getattr(source, name, None)
            if isinstance(value, str) and value:
                return value
    return None


def sqlstate_of(exc: sa_exc.DBAPIError) -> str | None:
    return _first_attr(_error_sources(exc), "sqlstate", "pgcode")


def engine_message(exc: sa_exc.DBAPIError) -> str:
    text = str(exc.orig) if exc.orig is not None else str(exc)
    first_line = text.strip().splitlines()[0] if text.strip() else type(exc).__name__
    return _CLASS_PREFIX_RE.sub("", first_line)


def _affected_fields(exc: sa_exc.DBAPIError) -> list[str]:
    sources = _error_sources(exc)
    detail = _first_attr(sources, "detail", "message_detail") or str(exc.orig)
    match = _KEY_DETAIL_RE.search(detail)
    if match:
        return [c.strip() for c in match.group("columns").split(",") if c.strip()]
    column = _first_attr(sources, "column_name")
    return [column] if column else []


def _base_context(exc: sa_exc.DBAPIError, code: str | None) -> dict[str, Any]:
    sources = _error_sources(exc)
    context: dict[str, Any] = {"db_code": code, "message": engine_message(exc)}
    table = _first_attr(sources, "table_name")
    constraint = _first_attr(sources, "constraint_name")
    if table:
        context["table"] = table
    if constraint:
        context["constraint"] = constraint
    return context


def _is_connection_failure(exc: sa_exc.DBAPIError, code: str | None) -> bool:
    if exc.connection_invalidated:
        return True
    if code is None:
        return isinstance(exc, (sa_exc.OperationalError, sa_exc.InterfaceError))
    return code.startswith("08") or code in _CONNECTION_SQLSTATES


def _connection_failed(exc: BaseException) -> ExternalServiceError:
    context = {
        "db_error_type": "CONNECTION_FAILURE",
        "error_type": type(exc).__name__,
        "message": str(exc),
    }
    logger.debug("db_error_translated", **context)
    return ExternalServiceError("Database connection failed", context=context)


def _translate_dbapi_error(exc: sa_exc.DBAPIError) -> BaseException:
    code = sqlstate_of(exc)
    if _is_connection_failure(exc, code):
        return _connection_failed(exc)
    if code is None:
        return exc

    context = _base_context(exc, code)

    if code == PgErrorCode.UNIQUE_VIOLATION:
        fields = ", ".join(_affected_fields(exc)) or "unknown field"
        context.update(db_error_type="UNIQUE_CONSTRAINT_VIOLATION", fields=fields)
        logger.debug("db_error_translated", **context)
        return ConflictError(f"Unique constraint violation on: {fields}", context=context)

    if code == PgErrorCode.FOREIGN_KEY_VIOLATION:
        context.update(db_error_type="FOREIGN_KEY_CONSTRAINT_VIOLATION")
        fields = _affected_fields(exc)
        if fields:
            context["fields"] = ", ".join(fields)
        logger.debug("db_error_translated", **context)
        return ConflictError("Foreign key constraint failed", context=context)

    if code in _INVALID_OPERATION_TYPES:
        context.update(db_error_type=_INVALID_OPERATION_TYPES[code])
        fields = _affected_fields(exc)
        if fields:
            context["fields"] = ", ".join(fields)
        logger.debug("db_error_translated", **context)
        return ValidationError(
            {"database": [f"Database error: {context['message']}"]},
            message="Invalid database operation",
            context=context,
        )

    context.update(db_error_type="UNKNOWN")
    logger.debug("db_error_translated", **context)
    return ExternalServiceError("Database operation failed", context=context)


def translate_db_error(exc: BaseException) -> BaseException:
    """Return the domain error for ``exc``, or ``exc`` itself when unrecognized."""
    if isinstance(exc, DomainError):
        return exc

    if isinstance(exc, sa_exc.NoResultFound):
        context = {"db_error_type": "RECORD_NOT_FOUND", "message": str(exc)}
        logger.debug("db_error_translated", **context)
        return ResourceNotFoundError("Record not found", context=context)

    if isinstance(exc, sa_exc.DBAPIError):
        return _translate_dbapi_error(exc)

    if isinstance(exc, (sa_exc.DisconnectionError, sa_exc.TimeoutError, *_SOCKET_ERRORS)):
        return _connection_failed(exc)

    if isinstance(exc, (sa_exc.StatementError, sa_exc.ArgumentError)):
        context = {"error_type": type(exc).__name__, "message": str(exc)}
        logger.debug("db_error_translated", **context)
        return ValidationError(
            {"database": ["Invalid data provided"]},
            message="Invalid data provided",
            context=context,
        )

    return exc


@contextmanager
def translate_database_errors() -> Iterator[None]:
    """Re-raise recognized database failures as domain errors."""
    try:
        yield
    except (sa_exc.SQLAlchemyError, *_SOCKET_ERRORS) as exc:
        translated = translate_db_error(exc)
        if translated is exc:
            raise
        raise translated from exc


def translates_database_errors(
    fn: Callable[..., Awaitable[T]],
) -> Callable[..., Awaitable[T]]:
    """Decorator form of :func:`translate_database_errors` for coroutines."""

    @functools.wraps(fn)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        with translate_database_errors():
            return await fn(*args, **kwargs)

    return wrapper
