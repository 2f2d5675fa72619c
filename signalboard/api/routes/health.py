"""Health check endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from signalboard.cache.client import valkey_healthcheck
from signalboard.core.config import settings
from signalboard.core.logging import get_logger
from signalboard.database.connection import db_healthcheck
from signalboard.schemas.common import HealthResponse


router = APIRouter(prefix="/health")

logger = get_logger("health")


@router.get(
    "",
    response_model=HealthResponse,
    summary="Health check",
    description="Check the health status of the API and its dependencies.",
)
async def health_check() -> HealthResponse:
    """
    Perform health check on API and dependencies.

    The cache is optional for correctness, so a cache outage only degrades.
    """
    checks = {
        "database": await db_healthcheck(),
        "cache": await valkey_healthcheck(),
    }

    if all(checks.values()):
        overall = "healthy"
    elif checks["database"]:
        overall = "degraded"
    else:
        overall = "unhealthy"

    return HealthResponse(status=overall, version=settings.app_version, checks=checks)


@router.get(
    "/ready",
    summary="Readiness check",
    description="Check if the API is ready to accept traffic.",
)
async def readiness_check() -> dict:
    if not await db_healthcheck():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not ready",
        )
    return {"status": "ready"}


@router.get(
    "/live",
    summary="Liveness check",
    description="Check if the API process is alive.",
)
async def liveness_check() -> dict:
    return {"status": "alive"}
