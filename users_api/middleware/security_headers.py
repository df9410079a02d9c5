from __future__ import annotations

from collections.abc import Callable

from fastapi import Request, Response

from users_api.core.config import Settings


async def security_headers_middleware(request: Request, call_next: Callable) -> Response:
    """Attach the configured security headers to every response, errors included.

    Values a handler already set are left alone.
    """
    settings: Settings = request.app.state.settings
    response = await call_next(request)
    for name, value in settings.security_headers.items():
        response.headers.setdefault(name, value)
    return response
