"""Rate limiting using slowapi."""

from fastapi import Request
from slowapi import Limiter

from .config import Settings


def _get_real_ip(request: Request) -> str:
    """Extract client IP, supporting X-Forwarded-For behind a proxy."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def create_limiter(settings: Settings) -> Limiter:
    """One limiter per app; the default limit applies to every route."""
    return Limiter(
        key_func=_get_real_ip,
        default_limits=[settings.rate_limit],
        enabled=settings.rate_limit_enabled,
    )
