"""Health check endpoints."""

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from projecthub.api.v1.common import AppSettings
from projecthub.db.session import get_db_session

router = APIRouter()
logger = structlog.get_logger()


@router.get("/health")
async def health_check(settings: AppSettings) -> dict[str, str]:
    """Basic health check."""
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
    }


@router.get("/health/ready")
async def readiness_check(
    settings: AppSettings,
    db: AsyncSession = Depends(get_db_session),
) -> dict[str, str | dict[str, str]]:
    """Readiness check including database connectivity."""
    checks: dict[str, str] = {}

    # Check database
    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "healthy"
    except SQLAlchemyError as e:
        logger.warning("Database readiness check failed", error=str(e))
        checks["database"] = "unhealthy"

    overall_status = "healthy" if all(v == "healthy" for v in checks.values()) else "unhealthy"

    return {
        "status": overall_status,
        "version": settings.app_version,
        "checks": checks,
    }
