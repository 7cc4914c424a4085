"""
Request rate limits.

Every route counts against RATE_LIMIT_DEFAULT per client address through
SlowAPIMiddleware. The auth handshake routes carry the stricter
RATE_LIMIT_AUTH through @limiter.limit instead.
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from app.core.config import settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    enabled=settings.RATE_LIMIT_ENABLED,
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={"error": "RateLimited", "detail": f"Rate limit exceeded: {exc.detail}"},
    )
