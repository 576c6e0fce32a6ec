"""
Rate Limiting for Campus ERP API
================================
slowapi limiter keyed by authenticated user, falling back to client IP.

Default limit comes from RATE_LIMIT_PER_MINUTE. Sensitive endpoints
(login, token refresh) carry their own stricter decorators.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse

from campus_erp.core.config import settings
from campus_erp.core.logging_config import logger


def get_user_identifier(request: Request) -> str:
    """
    Rate limit key: user id when the auth dependency stored one on
    request.state, otherwise the client IP.
    """
    user_id = getattr(request.state, 'user_id', None)
    if user_id:
        return f"user:{user_id}"
    return f"ip:{get_remote_address(request)}"


limiter = Limiter(
    key_func=get_user_identifier,
    default_limits=[f"{settings.RATE_LIMIT_PER_MINUTE}/minute"],
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """Return 429 with a Retry-After hint"""
    logger.warning(
        f"[RateLimit] Exceeded for {get_user_identifier(request)}: {exc.detail}"
    )

    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "message": "Too many requests. Please slow down.",
            "detail": str(exc.detail),
        },
        headers={"Retry-After": "60"},
    )


def auth_rate_limit():
    """Rate limit for credential endpoints (5/min)"""
    return limiter.limit("5/minute", key_func=get_user_identifier)
