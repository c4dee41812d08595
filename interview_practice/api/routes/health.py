"""
Health check endpoints.

Provides system health information for monitoring.
"""

from fastapi import APIRouter, HTTPException
import structlog

from interview_practice.core.config import settings
from interview_practice.persistence.database import check_database_health

log = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint.

    Returns:
        System health status including database connectivity.
    """
    db_health = await check_database_health()

    overall_status = "healthy" if db_health["status"] == "healthy" else "unhealthy"

    return {
        "success": True,
        "status": overall_status,
        "version": "0.1.0",
        "debug": settings.debug,
        "components": {"database": db_health},
    }


@router.get("/health/live")
async def liveness():
    """Liveness probe. Returns 200 if the application is running."""
    return {"success": True, "status": "alive"}


@router.get("/health/ready")
async def readiness():
    """Readiness probe. Returns 503 until the database answers."""
    db_health = await check_database_health()

    if db_health["status"] != "healthy":
        log.warning("readiness_check_failed", error=db_health.get("error"))
        raise HTTPException(status_code=503, detail="Database not ready")

    return {"success": True, "status": "ready"}
