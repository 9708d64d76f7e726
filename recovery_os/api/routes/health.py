"""Health check endpoints."""

import logging

from fastapi import APIRouter, Request

from recovery_os import __version__
from recovery_os.config import get_settings
from recovery_os.core.database import ping_db

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check(request: Request) -> dict:
    """Basic health check."""
    return {
        "status": "healthy",
        "service": "recovery-os",
    }


@router.get("/health/ready")
async def readiness_check(request: Request) -> dict:
    """Readiness check - verifies the database answers."""
    errors = []

    try:
        await ping_db()
    except Exception as e:
        logger.warning("Database readiness check failed: %s", e)
        errors.append(f"Database check failed: {e}")

    if errors:
        return {
            "status": "not_ready",
            "errors": errors,
        }

    return {"status": "ready"}


@router.get("/health/live")
async def liveness_check() -> dict:
    """Liveness check - basic process health."""
    return {"status": "alive"}


@router.get("/api-info")
async def api_info(request: Request) -> dict:
    """API information for frontend integration."""
    settings = get_settings()
    return {
        "name": "RecoveryOS API",
        "version": __version__,
        "timeline": {
            "start_day": settings.timeline_start_day,
            "end_day": settings.timeline_end_day,
            "phase_granularity": settings.phase_granularity,
            "timezone": settings.clinic_timezone,
        },
    }
