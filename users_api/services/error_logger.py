"""Structured logging of failed requests."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Final

import structlog
from starlette.requests import Request

from users_api.core.exceptions import DomainError
from users_api.logging import get_logger
from users_api.schemas.common import ErrorResponse
from users_api.services.exception_mapper import describe_exception
from users_api.utils.sensitive_data import sanitize

SENSITIVE_HEADERS: Final[tuple[str, ...]] = ("authorization", "cookie", "set-cookie")
BODY_METHODS: Final = frozenset({"POST", "PUT", "PATCH"})


@dataclass
class RequestContext:
    """Request metadata the error logger needs, detached from the framework."""

    method: str
    path: str
    headers: Mapping[str, str] = field(default_factory=dict)
    query: Mapping[str, Any] = field(default_factory=dict)
    body: Any = None
    correlation_id: str | None = None

    @classmethod
    def from_request(cls, request: Request) -> RequestContext:
        state = request.state
        return cls(
            method=request.method,
            path=request.url.path,
            headers=dict(request.headers),
            query=dict(request.query_params),
            # set by body-validating dependencies; the stream may already be consumed
            body=getattr(state, "body", None),
            correlation_id=getattr(state, "correlation_id", None),
        )


def determine_log_level(status_code: int) -> str:
    if status_code >= 500:
        return "error"
    if status_code >= 400:
        return "warning"
    if status_code >= 300:
        return "info"
    return "debug"


class ErrorLogger:
    """Emit one log record per failed request at a status-derived severity.

    Headers, query and body are sanitized. Stack details of the original
    exception are attached outside production only. Logging is best-effort and
    never raises into the caller.
    """

    def __init__(
        self, *, is_production: bool, logger: structlog.stdlib.BoundLogger | None = None
    ) -> None:
        self._is_production = is_production
        self._logger = logger or get_logger("users_api.errors")

    def log_exception(
        self, exception: Any, response: ErrorResponse, request: RequestContext
    ) -> None:
        try:
            level = determine_log_level(response.status_code)
            context = self.build_log_context(exception, response, request)
            log = getattr(self._logger, level)
            log(
                "request_failed",
                message=f"{level.capitalize()}: {response.message} [{response.status_code}]",
                **context,
            )
        except Exception:
            # second failure while handling an error: fall back to plain logging
            logging.getLogger(__name__).debug("error_logger_failed", exc_info=True)

    def build_log_context(
        self, exception: Any, response: ErrorResponse, request: RequestContext
    ) -> dict[str, Any]:
        context: dict[str, Any] = {
            "status_code": response.status_code,
            "error_code": response.error_code,
            "path": request.path,
            "method": request.method,
            "correlation_id": response.correlation_id,
            "headers": sanitize(dict(request.headers), extra_sensitive_fields=SENSITIVE_HEADERS),
            "query": sanitize(dict(request.query)),
        }

        if request.method.upper() in BODY_METHODS and request.body:
            context["body"] = sanitize(request.body)

        if isinstance(exception, DomainError) and exception.context:
            context["error_context"] = sanitize(exception.context)

        if not self._is_production and isinstance(exception, BaseException):
            context["error"] = describe_exception(exception)

        return context
