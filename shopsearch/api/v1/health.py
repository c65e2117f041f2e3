"""Health check endpoints."""

from typing import Any

from fastapi import APIRouter
from sqlalchemy import text

from shopsearch.core.config import settings
from shopsearch.core.deps import DBSession
from shopsearch.schemas.common import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(db: DBSession) -> dict[str, Any]:
    """
    Health check endpoint.

    Checks the catalog database and the analytics broker. The broker being
    down degrades analytics only, so it does not mark the service unhealthy.
    """
    health_status: dict[str, Any] = {
        "status": "healthy",
        "version": settings.version,
        "environment": settings.environment,
        "checks": {},
    }

    # Check catalog database
    try:
        await db.execute(text("SELECT 1"))
        health_status["checks"]["database"] = "healthy"
    except Exception as e:
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = f"unhealthy: {str(e)}"

    # Check Celery broker
    if settings.search_analytics_enabled:
        try:
            import redis.asyncio as redis

            redis_client = redis.from_url(str(settings.redis_url))  # type: ignore[no-untyped-call]
            await redis_client.ping()
            await redis_client.aclose()
            health_status["checks"]["broker"] = "healthy"
        except Exception as e:
            health_status["checks"]["broker"] = f"degraded: {str(e)}"
    else:
        health_status["checks"]["broker"] = "disabled"

    return health_status


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """
    Liveness probe for Kubernetes/container orchestration.

    Simple check that the service is running.
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(db: DBSession) -> dict[str, str]:
    """
    Readiness probe for Kubernetes/container orchestration.

    Ready once the catalog database answers.
    """
    await db.execute(text("SELECT 1"))

    return {"status": "ready"}
