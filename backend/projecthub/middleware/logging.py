"""Structured logging middleware."""

import time
from typing import Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger()

# Health checks hit these constantly; keep them out of the request log
QUIET_SUFFIXES = ("/health", "/health/ready")


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for structured request/response logging."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Log request and response with timing information."""
        start_time = time.perf_counter()

        # Set by RequestIDMiddleware, which runs first
        request_id = getattr(request.state, "request_id", "unknown")

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            client_ip=request.client.host if request.client else "unknown",
        )

        quiet = request.url.path.endswith(QUIET_SUFFIXES)
        if not quiet:
            logger.info("request_started")

        try:
            response = await call_next(request)
        except Exception as exc:
            process_time = time.perf_counter() - start_time
            logger.exception(
                "request_failed",
                error=str(exc),
                duration_ms=round(process_time * 1000, 2),
            )
            raise

        process_time = time.perf_counter() - start_time
        duration_ms = round(process_time * 1000, 2)

        if not quiet:
            log = logger.warning if response.status_code >= 500 else logger.info
            log(
                "request_completed",
                status_code=response.status_code,
                duration_ms=duration_ms,
            )

        response.headers["X-Process-Time"] = str(duration_ms)
        return response
