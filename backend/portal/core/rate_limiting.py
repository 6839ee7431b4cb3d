"""Rate limiting configuration using slowapi.

Security: Limits brute-force attempts on sign-in and employee id guessing
on the link endpoint.

When auth is enabled, rate limiting keys on the JWT subject (per-principal)
so employees behind a shared warehouse IP don't block each other.
Unauthenticated requests fall back to IP-based keying.

Usage in routers:
    from portal.core.rate_limiting import limiter

    @router.post("/link")
    @limiter.limit(settings.rate_limit_link)
    async def link_employee_id(request: Request, ...):
        ...
"""

import jwt
from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from portal.core.auth import decode_jwt
from portal.core.config import settings

# Principal ids are opaque strings; cap what we accept as a key component
_MAX_SUB_LENGTH = 128


def _rate_limit_key_func(request: Request) -> str:
    """Get rate limit key from request.

    Key format:
    - Auth disabled: "{ip}" (local dev mode)
    - Auth enabled + valid JWT: "principal:{sub}"
    - Auth enabled + no/invalid JWT: "unauth:{ip}"

    Args:
        request: The incoming request.

    Returns:
        Rate limit key string.
    """
    if not settings.auth_enabled:
        return get_remote_address(request)

    token = request.cookies.get(settings.auth_cookie_name)
    if token:
        try:
            sub = decode_jwt(token)["sub"]
            if isinstance(sub, str) and len(sub) <= _MAX_SUB_LENGTH:
                return f"principal:{sub}"
        except (jwt.InvalidTokenError, KeyError):
            pass

    return f"unauth:{get_remote_address(request)}"


# Global limiter instance (in-memory storage, single instance deployment)
limiter = Limiter(
    key_func=_rate_limit_key_func,
    enabled=settings.rate_limit_enabled,
)


def rate_limit_exceeded_handler(
    _request: Request,
    exc: RateLimitExceeded,
) -> Response:
    """Handle rate limit exceeded errors.

    Returns 429 Too Many Requests with the standard error envelope.

    Args:
        request: The incoming request.
        exc: The rate limit exception.

    Returns:
        JSONResponse with 429 status and retry-after header.
    """
    # exc.detail looks like "10 per 1 minute"; fall back to 60 seconds
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
