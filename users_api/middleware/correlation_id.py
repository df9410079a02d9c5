from __future__ import annotations

import time
import uuid
from collections.abc import Callable

import sentry_sdk
import structlog
from fastapi import Request, Response

CORRELATION_ID_HEADER = "X-Correlation-ID"


async def correlation_id_middleware(request: Request, call_next: Callable) -> Response:
    """Attach/propagate the Correlation-ID and emit a structured access log.

    - Prefer inbound X-Correlation-ID; generate UUID4 if absent
    - Store it on request.state so error responses and logs can echo it
    - Bind correlation_id, path, method to contextvars so service logs include it
    - Always set X-Correlation-ID on the response
    """
    logger = structlog.get_logger(__name__)

    cid = request.headers.get(CORRELATION_ID_HEADER) or str(uuid.uuid4())
    request.state.correlation_id = cid

    structlog.contextvars.bind_contextvars(
        correlation_id=cid, path=request.url.path, method=request.method
    )

    try:
        sentry_sdk.set_tag("correlation_id", cid)
        sentry_sdk.set_tag("path", request.url.path)
        sentry_sdk.set_tag("method", request.method)
    except Exception:
        # Never let Sentry instrumentation break request processing
        pass

    start_ns = time.perf_counter_ns()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
    except Exception:
        # Only reachable if the exception boundary itself is bypassed
        duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000.0
        logger.error(
            "http_request",
            correlation_id=cid,
            path=request.url.path,
            method=request.method,
            status=status_code,
            duration_ms=round(duration_ms, 3),
            client_ip=_client_ip(request),
            exc_info=True,
        )
        structlog.contextvars.clear_contextvars()
        raise

    duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000.0
    logger.info(
        "http_request",
        correlation_id=cid,
        path=request.url.path,
        method=request.method,
        status=status_code,
        duration_ms=round(duration_ms, 3),
        client_ip=_client_ip(request),
    )

    response.headers[CORRELATION_ID_HEADER] = cid

    # Clear per-request bindings to avoid leakage across tasks
    structlog.contextvars.clear_contextvars()
    return response


def _client_ip(request: Request) -> str:
    return (request.client.host if request.client else None) or "-"
