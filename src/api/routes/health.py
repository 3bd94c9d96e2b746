"""
Health check endpoint with database and channel configuration checks.
"""

import time

import structlog
from fastapi import APIRouter, Depends

from src.api.dependencies import get_database
from src.api.models import ComponentHealth, HealthResponse
from src.config.settings import get_settings
from src.storage.database import Database

router = APIRouter()
logger = structlog.get_logger(__name__)


async def _check_database(db: Database) -> ComponentHealth:
    """Check database connectivity and measure latency."""
    start = time.perf_counter()
    try:
        healthy = await db.health_check()
        latency_ms = (time.perf_counter() - start) * 1000
        return ComponentHealth(
            status="healthy" if healthy else "unhealthy",
            latency_ms=round(latency_ms, 2),
        )
    except Exception as e:
        latency_ms = (time.perf_counter() - start) * 1000
        return ComponentHealth(
            status="unhealthy",
            latency_ms=round(latency_ms, 2),
            details={"error": str(e)},
        )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description="Check the health of the service and its dependencies.",
)
async def health_check(db: Database = Depends(get_database)) -> HealthResponse:
    """
    Check database connectivity and report which channels are live.

    Status logic:
    - unhealthy: database is down
    - degraded: no notification channel is configured (all deliveries mocked)
    - healthy: database up and at least one channel configured
    """
    settings = get_settings()

    channels_configured = {
        "slack": settings.slack_configured,
        "email": settings.smtp_configured,
        "push": settings.push_configured,
        "whatsapp": settings.whatsapp_configured,
    }

    db_health = await _check_database(db)

    if db_health.status == "unhealthy":
        status = "unhealthy"
    elif not any(channels_configured.values()):
        status = "degraded"
    else:
        status = "healthy"

    if status != "healthy":
        logger.warning("Health check not healthy", status=status)

    return HealthResponse(
        status=status,
        environment=settings.environment,
        channels_configured=channels_configured,
        components={"database": db_health},
        version="0.1.0",
    )
