"""Health check endpoints for the RepoWatch API.

This module provides endpoints for monitoring application health,
readiness, and liveness, used by orchestration systems like Kubernetes,
plus a pipeline view with queue depths for operators.
"""

from enum import Enum

import structlog
from fastapi import APIRouter, Response, status
from pydantic import BaseModel, Field

from api.dependencies import DatabaseDep, MonitorDep, RedisDep, SettingsDep
from core.indexing.models import PipelineStatus

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


class HealthStatus(str, Enum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class HealthResponse(BaseModel):
    """Response model for health check endpoints.

    Attributes:
        status: Overall health status.
        message: Optional status message.
    """

    status: HealthStatus = Field(..., description="Health status")
    message: str | None = Field(None, description="Optional status message")


class ReadinessResponse(BaseModel):
    """Response model for readiness check.

    Attributes:
        status: Overall readiness status.
        checks: Individual service check results.
    """

    status: HealthStatus = Field(..., description="Overall readiness status")
    checks: dict[str, dict[str, str]] = Field(
        default_factory=dict,
        description="Individual service check results",
    )


@router.get(
    "",
    response_model=HealthResponse,
    summary="Basic health check",
    description="Returns basic health status of the API.",
)
async def health_check(settings: SettingsDep) -> HealthResponse:
    """Basic health check endpoint.

    This endpoint does not check external dependencies.

    Returns:
        HealthResponse with healthy status.
    """
    return HealthResponse(
        status=HealthStatus.HEALTHY,
        message=f"{settings.app_name} is running",
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    summary="Readiness check",
    description="Checks that the database and Redis are reachable.",
    responses={
        status.HTTP_200_OK: {"description": "Application is ready"},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"description": "Application is not ready"},
    },
)
async def readiness_check(
    response: Response,
    database: DatabaseDep,
    redis: RedisDep,
) -> ReadinessResponse:
    """Readiness check endpoint.

    Args:
        response: Outgoing response, used to set 503 when not ready.
        database: Relational database.
        redis: Redis client backing the queues and the cache.

    Returns:
        ReadinessResponse with check results for each service.
    """
    checks: dict[str, dict[str, str]] = {}

    db_health = await database.health_check()
    if db_health.get("status") == "healthy":
        checks["database"] = {"status": "healthy"}
    else:
        checks["database"] = {
            "status": "unhealthy",
            "message": str(db_health.get("message", "Unknown error")),
        }

    try:
        await redis.ping()
        checks["redis"] = {"status": "healthy"}
    except Exception as e:
        logger.warning("redis_health_check_failed", error=str(e))
        checks["redis"] = {"status": "unhealthy", "message": str(e)}

    ready = all(check["status"] == "healthy" for check in checks.values())
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return ReadinessResponse(
        status=HealthStatus.HEALTHY if ready else HealthStatus.UNHEALTHY,
        checks=checks,
    )


@router.get(
    "/pipeline",
    response_model=PipelineStatus,
    summary="Pipeline status",
    description="Reports whether the monitor is running and how many jobs are queued.",
)
async def pipeline_status(monitor: MonitorDep) -> PipelineStatus:
    """Queue depths and monitor state."""
    return await monitor.status()


@router.get(
    "/live",
    response_model=HealthResponse,
    summary="Liveness check",
    description="Checks if the application process is alive.",
)
async def liveness_check() -> HealthResponse:
    """Liveness check endpoint.

    Returns:
        HealthResponse with alive status.
    """
    return HealthResponse(status=HealthStatus.HEALTHY)
