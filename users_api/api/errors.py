"""Global exception boundary.

One place turns any exception escaping request handling into the normalized
error body: classify once, log the same response object, then reply with
``response.status_code``.
"""

from __future__ import annotations

from collections.abc import Callable

import sentry_sdk
import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from users_api.core.error_codes import ErrorKind
from users_api.core.exceptions import DomainError
from users_api.services.error_logger import ErrorLogger, RequestContext
from users_api.services.exception_mapper import ExceptionMapper, utc_timestamp

FALLBACK_MESSAGE = "Internal server error occurred while processing the original error"


def _passthrough_headers(exc: Exception) -> dict[str, str] | None:
    # e.g. Allow on 405, WWW-Authenticate on 401
    headers = getattr(exc, "headers", None) if isinstance(exc, StarletteHTTPException) else None
    return dict(headers) if headers else None


class ExceptionBoundary:
    def __init__(self, mapper: ExceptionMapper, error_logger: ErrorLogger) -> None:
        self._mapper = mapper
        self._error_logger = error_logger

    async def handle(self, request: Request, exc: Exception) -> JSONResponse:
        correlation_id = getattr(request.state, "correlation_id", None)
        try:
            response = self._mapper.map_exception(exc, correlation_id)
            self._error_logger.log_exception(exc, response, RequestContext.from_request(request))
            if response.status_code >= 500:
                _report_to_sentry(exc)
            return JSONResponse(
                status_code=response.status_code,
                content=response.to_content(),
                headers=_passthrough_headers(exc),
            )
        except Exception:
            structlog.get_logger(__name__).error(
                "exception_boundary_failed", correlation_id=correlation_id, exc_info=True
            )
            return _fallback_response(correlation_id)

    async def middleware(self, request: Request, call_next: Callable) -> Response:
        """Catch what the framework's exception handlers do not (unknown errors)."""
        try:
            return await call_next(request)
        except Exception as exc:
            return await self.handle(request, exc)


def _report_to_sentry(exc: Exception) -> None:
    try:
        sentry_sdk.capture_exception(exc)
    except Exception:
        # Never let Sentry instrumentation break error handling
        pass


def _fallback_response(correlation_id: str | None) -> JSONResponse:
    content = {
        "status": "error",
        "statusCode": 500,
        "message": FALLBACK_MESSAGE,
        "errorCode": ErrorKind.INTERNAL_SERVER_ERROR.value,
        "timestamp": utc_timestamp(),
    }
    if correlation_id is not None:
        content["correlationId"] = correlation_id
    return JSONResponse(status_code=500, content=content)


def install(app: FastAPI, boundary: ExceptionBoundary) -> None:
    """Register the boundary for framework, validation, domain and unknown errors."""
    app.add_exception_handler(StarletteHTTPException, boundary.handle)
    app.add_exception_handler(RequestValidationError, boundary.handle)
    app.add_exception_handler(DomainError, boundary.handle)
    app.middleware("http")(boundary.middleware)
