"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from projecthub.api import router as api_router
from projecthub.config import Settings, get_settings
from projecthub.db.session import close_db, create_engine, create_session_factory, init_db
from projecthub.exceptions import AppError, error_body
from projecthub.log import configure_logging
from projecthub.middleware.logging import LoggingMiddleware
from projecthub.middleware.rate_limit import RateLimiter, RateLimitMiddleware
from projecthub.middleware.request_id import RequestIDMiddleware

logger = structlog.get_logger()

# Request sections stripped from validation error locations
_LOCATION_PREFIXES = {"body", "query", "path", "header", "cookie"}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup/shutdown events."""
    settings: Settings = app.state.settings
    logger.info("Starting ProjectHub API", version=settings.app_version)
    await init_db(app.state.engine)
    logger.info("Database connection initialized")

    yield

    logger.info("Shutting down ProjectHub API")
    await close_db(app.state.engine)
    logger.info("Database connection closed")


def _field_name(loc: tuple) -> str:
    parts = [str(p) for p in loc if not (isinstance(p, str) and p in _LOCATION_PREFIXES)]
    return ".".join(parts) if parts else "request"


def _error_message(error: dict[str, Any]) -> str:
    # Messages raised from validators keep their own wording
    ctx = error.get("ctx") or {}
    if "error" in ctx:
        return str(ctx["error"])
    return error.get("msg", "Invalid value")


def register_exception_handlers(app: FastAPI) -> None:
    """Map exceptions to the JSON error envelope."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> ORJSONResponse:
        extra: dict[str, Any] = {}
        errors = getattr(exc, "errors", None)
        if errors:
            extra["errors"] = errors
        if exc.status_code >= 500:
            logger.error("Application error", error=exc.message, code=exc.code)
        else:
            logger.info("Request rejected", status_code=exc.status_code, error=exc.message)
        headers = None
        retry_after = getattr(exc, "retry_after", None)
        if retry_after is not None:
            headers = {"Retry-After": str(retry_after)}
        return ORJSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.message, **extra),
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        errors = [
            {"field": _field_name(tuple(err.get("loc", ()))), "message": _error_message(err)}
            for err in exc.errors()
        ]
        message = errors[0]["message"] if errors else "Validation failed"
        logger.info("Validation failed", errors=errors)
        return ORJSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_body(message, errors=errors),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=exc.status_code,
            content=error_body(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError) -> ORJSONResponse:
        logger.warning("Integrity error", error=str(exc.orig))
        return ORJSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=error_body("Request conflicts with existing data"),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception("Unhandled exception", error_type=type(exc).__name__)
        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body("Internal server error"),
        )


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    The application owns its settings, engine and session factory; they live
    on ``app.state`` and reach handlers through dependencies.
    """
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Project, sprint and budget management API",
        openapi_url=f"{settings.api_prefix}/openapi.json",
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.engine = create_engine(settings)
    app.state.session_factory = create_session_factory(app.state.engine)
    app.state.rate_limiter = RateLimiter(settings)

    # Add middleware (order matters - last added is first executed)
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    # Trust proxy headers (X-Forwarded-Proto, X-Forwarded-For) from the reverse proxy
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])

    register_exception_handlers(app)
    app.include_router(api_router, prefix=settings.api_prefix)

    return app


app = create_app()
