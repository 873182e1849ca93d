"""
Health check endpoints.

``/health`` reports dependency status along with the registered
providers and publishing platforms; ``/health/live`` is a bare liveness
probe for the load balancer.
"""

import logging
from datetime import UTC, datetime
from typing import Any

import redis
from fastapi import APIRouter, Depends, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clipforge import __version__
from clipforge.core.config import Settings, get_settings
from clipforge.core.database import get_db
from clipforge.core.exceptions import ExternalServiceError
from clipforge.integrations.storage_client import StorageClient
from clipforge.providers.registry import available_providers
from clipforge.publishers.registry import supported_platforms
from clipforge.schemas.common import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter()


def _healthy(message: str) -> dict[str, Any]:
    return {"status": "healthy", "message": message}


def _unhealthy(message: str) -> dict[str, Any]:
    return {"status": "unhealthy", "message": message}


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health Check",
    description="Dependency status plus the providers and platforms this deployment knows.",
)
async def health_check(
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
) -> HealthResponse:
    """
    The database is required. Redis (the task broker) and object storage
    only degrade the status, since reads keep working without them.
    """
    checks = {
        "database": await check_database(db),
        "redis": await check_redis(settings),
        "storage": await check_s3(settings),
    }

    if checks["database"]["status"] != "healthy":
        overall = "unhealthy"
    elif any(check["status"] != "healthy" for check in checks.values()):
        overall = "degraded"
    else:
        overall = "healthy"

    if overall != "healthy":
        logger.warning("Health check not healthy", extra={"status": overall})

    return HealthResponse(
        status=overall,
        version=__version__,
        environment=settings.environment,
        timestamp=datetime.now(UTC),
        checks=checks,
        providers=available_providers(),
        platforms=supported_platforms(),
    )


@router.get("/live", status_code=status.HTTP_200_OK, summary="Liveness Probe")
async def liveness() -> dict[str, str]:
    return {"status": "ok"}


async def check_database(db: Session) -> dict[str, Any]:
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        return _unhealthy(f"Database connection failed: {e}")
    return _healthy("Database connection successful")


async def check_redis(settings: Settings) -> dict[str, Any]:
    client = redis.from_url(settings.redis_url, socket_connect_timeout=2)
    try:
        client.ping()
    except redis.RedisError as e:
        return _unhealthy(f"Redis connection failed: {e}")
    finally:
        client.close()
    return _healthy("Redis connection successful")


async def check_s3(settings: Settings) -> dict[str, Any]:
    try:
        StorageClient.for_health_check(settings).check_bucket()
    except ExternalServiceError as e:
        return _unhealthy(f"{e.message}: {e.details.get('original_error', '')}")
    return _healthy("Bucket reachable")
