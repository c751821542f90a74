"""Request rate limiting backed by the ``limits`` package."""

import time
from typing import Callable

import structlog
from fastapi.responses import ORJSONResponse
from limits import RateLimitItem, parse
from limits.storage import storage_from_string
from limits.strategies import FixedWindowRateLimiter
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from projecthub.api.v1.auth import decode_token
from projecthub.config import Settings
from projecthub.exceptions import AuthenticationError, error_body

logger = structlog.get_logger()

DEFAULT_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


class RateLimiter:
    """Fixed-window request quotas for one application instance."""

    def __init__(self, settings: Settings):
        self.enabled = settings.rate_limit_enabled
        self.default_limit = parse(settings.rate_limit_default)
        self.auth_limit = parse(settings.rate_limit_auth)
        self._strategy = FixedWindowRateLimiter(
            storage_from_string(settings.rate_limit_storage_uri)
        )

    def hit(self, item: RateLimitItem, scope: str, key: str) -> int | None:
        """Count one request against ``item``.

        Returns None while the caller is within quota, otherwise the number of
        seconds until the current window resets.
        """
        if self._strategy.hit(item, scope, key):
            return None
        reset_time, _ = self._strategy.get_window_stats(item, scope, key)
        return max(1, int(reset_time - time.time()))


def _caller_key(request: Request, settings: Settings) -> str:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        token = request.cookies.get(settings.auth_cookie_name, "")
    if not token:
        return f"ip:{client_ip(request)}"
    try:
        user_id = decode_token(token, "access", settings)
    except AuthenticationError:
        # Bad tokens are rejected by the route itself; count them per IP
        return f"ip:{client_ip(request)}"
    return f"user:{user_id}"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Global quota keyed by user id for authenticated callers, else by client IP."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        limiter: RateLimiter = request.app.state.rate_limiter
        settings: Settings = request.app.state.settings

        # Health checks stay reachable for load balancers
        if not limiter.enabled or request.url.path.startswith(f"{settings.api_prefix}/health"):
            return await call_next(request)

        key = _caller_key(request, settings)
        retry_after = limiter.hit(limiter.default_limit, "global", key)
        if retry_after is not None:
            logger.warning("Rate limit exceeded", scope="global", key=key, path=request.url.path)
            return ORJSONResponse(
                status_code=429,
                content=error_body(DEFAULT_LIMIT_MESSAGE),
                headers={"Retry-After": str(retry_after)},
            )
        return await call_next(request)
