"""Request guards: payload size and handler timeout.

Both raise framework HTTP errors so the exception boundary renders them in the
normalized error shape.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from fastapi import HTTPException, Request, Response, status

from users_api.core.config import Settings


def _settings(request: Request) -> Settings:
    return request.app.state.settings


async def request_size_limit_middleware(request: Request, call_next: Callable) -> Response:
    settings = _settings(request)

    url = request.url
    target = url.path + (f"?{url.query}" if url.query else "")
    if len(target) > settings.max_url_length:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="URL length exceeds maximum allowed size",
        )

    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit():
        if int(content_length) > settings.max_request_body_size:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail="Request body size exceeds maximum allowed size",
            )

    return await call_next(request)


async def request_timeout_middleware(request: Request, call_next: Callable) -> Response:
    timeout = _settings(request).request_timeout
    try:
        return await asyncio.wait_for(call_next(request), timeout=timeout)
    except TimeoutError:
        raise HTTPException(
            status_code=status.HTTP_408_REQUEST_TIMEOUT, detail="Request timeout exceeded"
        ) from None
