"""
Health check endpoints.
"""

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter

from product_house.core.config import settings
from product_house.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """
    Basic health check endpoint.
    Returns application status.
    """
    return {
        "status": "healthy",
        "app": settings.app_name,
        "environment": settings.app_env,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/health/ready")
async def readiness_check() -> dict[str, Any]:
    """
    Readiness check endpoint.
    Reports which collaborators are configured.
    """
    checks = {
        "app": True,
        "completion_service": bool(settings.anthropic.api_key),
    }
    if not checks["completion_service"]:
        logger.warning("Readiness: completion service API key missing")

    all_healthy = all(checks.values())

    return {
        "status": "ready" if all_healthy else "not_ready",
        "storage_backend": settings.storage_backend.value,
        "checks": checks,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """
    Liveness check endpoint.
    Simple check that the application is running.
    """
    return {"status": "alive"}
