from __future__ import annotations

from collections.abc import Callable
from typing import TypedDict

from fastapi import HTTPException, Request, Response, status
from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter

from users_api.core.config import Settings


class RateLimitInfo(TypedDict, total=False):
    method: str
    ip: str
    limit: str


# In-memory storage is enough for a single process. Switch to Redis storage
# when running several workers behind a load balancer.
_storage = MemoryStorage()
_rate = MovingWindowRateLimiter(_storage)


def _client_ip(request: Request) -> str:
    # Prefer X-Forwarded-For if present (first hop), fall back to ASGI client
    xff = request.headers.get("x-forwarded-for")
    if xff:
        return xff.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "local"


def _limit_for(settings: Settings) -> RateLimitItemPerSecond:
    return RateLimitItemPerSecond(settings.rate_limit_max_requests, settings.rate_limit_window)


def reset_rate_limits() -> None:
    _storage.reset()


async def rate_limit_middleware(request: Request, call_next: Callable) -> Response:
    settings: Settings = request.app.state.settings
    # Do not rate-limit OPTIONS (CORS preflight)
    if not settings.rate_limit_active or request.method.upper() == "OPTIONS":
        return await call_next(request)

    limit = _limit_for(settings)
    key = f"ip:{_client_ip(request)}|m:{request.method.upper()}"

    if not _rate.hit(limit, key):
        info: RateLimitInfo = {
            "method": request.method.upper(),
            "ip": _client_ip(request),
            "limit": f"{settings.rate_limit_max_requests}/{settings.rate_limit_window}s",
        }
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={"message": "Too Many Requests", **info},
        )

    response = await call_next(request)
    response.headers.setdefault("X-RateLimit-Limit", str(settings.rate_limit_max_requests))
    return response
