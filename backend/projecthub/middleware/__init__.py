"""Middleware package."""

from projecthub.middleware.logging import LoggingMiddleware
from projecthub.middleware.rate_limit import RateLimiter, RateLimitMiddleware
from projecthub.middleware.request_id import RequestIDMiddleware

__all__ = ["LoggingMiddleware", "RateLimitMiddleware", "RateLimiter", "RequestIDMiddleware"]
