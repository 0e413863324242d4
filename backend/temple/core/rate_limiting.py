"""Rate limiting configuration using slowapi.

Donation creation and proof upload are open to guests, so they are
throttled. Requests carrying a valid session cookie are keyed on the JWT
subject; everything else is keyed on the client IP.

Usage in routers:
    from temple.core.rate_limiting import limiter

    @router.post("")
    @limiter.limit(settings.rate_limit_donation_create)
    async def create_donation(request: Request, ...):
        ...
"""

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from temple.core.auth import decode_principal
from temple.core.config import settings


def _rate_limit_key_func(request: Request) -> str:
    """Get rate limit key from request.

    Key format:
    - Valid session cookie: "user:{sub}"
    - No/invalid cookie: "unauth:{ip}"
    """
    token = request.cookies.get(settings.auth_cookie_name)
    if token:
        principal = decode_principal(token)
        if principal is not None:
            return f"user:{principal.user_id}"

    return f"unauth:{get_remote_address(request)}"


# In-memory storage; limits are per process.
limiter = Limiter(
    key_func=_rate_limit_key_func,
    enabled=settings.rate_limit_enabled,
)


def rate_limit_exceeded_handler(
    _request: Request,
    exc: RateLimitExceeded,
) -> Response:
    """Render RateLimitExceeded as a 429 error envelope with Retry-After."""
    # exc.detail looks like "5 per 1 minute"; fall back to 60 seconds
    try:
        retry_after = str(exc.detail.split()[-1])
        int(retry_after.rstrip("s"))
    except (ValueError, AttributeError, IndexError):
        retry_after = "60"

    return JSONResponse(
        status_code=429,
        content={
            "error": {
                "code": "RATE_LIMITED",
                "message": f"Rate limit exceeded: {exc.detail}",
            }
        },
        headers={"Retry-After": retry_after},
    )
