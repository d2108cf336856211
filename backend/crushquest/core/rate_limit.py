"""
Rate limiting configuration using slowapi.

Uses the viewer id for authenticated users, client IP for anonymous.
Backed by Redis when enabled so limits hold across worker processes.
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded

from crushquest.core.config import get_settings


def _get_rate_limit_key(request: Request) -> str:
    """Key requests by "viewer:{user_id}", falling back to "ip:{client_ip}"."""
    viewer = getattr(request.state, "viewer", None)
    if viewer is not None and getattr(viewer, "is_authenticated", False):
        return f"viewer:{viewer.user_id}"

    client_ip = request.client.host if request.client else "unknown"
    return f"ip:{client_ip}"


_settings = get_settings()

limiter = Limiter(
    key_func=_get_rate_limit_key,
    default_limits=["120/minute"],
    enabled=_settings.rate_limit_enabled,
    storage_uri=_settings.redis_url if _settings.rate_limit_enabled else "memory://",
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Handle rate limit exceeded errors with a standardized response."""
    return JSONResponse(
        status_code=429,
        content={
            "detail": "Rate limit exceeded. Please try again later.",
            "code": "RATE_LIMIT_EXCEEDED",
        },
    )
