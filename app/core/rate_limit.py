"""
Rate limiting for the RouteWise API.

- Uses user_id (JWT sub) when authenticated
- Falls back to IP address for unauthenticated requests
- Disabled in the test environment
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from app.core.config import settings
from app.utils.logger import get_logger

logger = get_logger(__name__)


def user_or_ip(request: Request) -> str:
    """
    Generate rate-limiting key.

    Priority:
    1. Authenticated user ID (JWT sub)
    2. Client IP address
    3. Fallback anonymous key
    """
    user = getattr(request.state, "user", None)

    if isinstance(user, dict) and "sub" in user:
        return f"user:{user['sub']}"

    ip = get_remote_address(request)
    return f"ip:{ip}" if ip else "anonymous"


limiter = Limiter(
    key_func=user_or_ip,
    default_limits=[settings.DEFAULT_RATE_LIMIT],
    enabled=settings.ENV != "test",
)


async def rate_limit_exceeded_handler(
    request: Request,
    exc: RateLimitExceeded,
):
    """
    Custom response when rate limit is exceeded.
    """
    user = getattr(request.state, "user", None)

    logger.warning(
        "Rate limit exceeded",
        extra={
            "path": request.url.path,
            "user_id": user.get("sub") if isinstance(user, dict) else None,
            "ip": get_remote_address(request),
        },
    )

    return JSONResponse(
        status_code=429,
        content={
            "error": "rate_limit_exceeded",
            "message": "Too many requests. Please slow down.",
        },
    )
