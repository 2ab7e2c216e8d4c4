"""Liveness and readiness probes."""

from typing import Any

from fastapi import APIRouter

from src.config.settings import get_settings
from src.core.database.async_cassandra import AsyncCassandraConnection
from src.core.redis import get_redis


router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }


@router.get("/live")
async def liveness() -> dict[str, str]:
    return {"status": "alive"}


@router.get("/ready")
async def readiness() -> dict[str, Any]:
    """Cassandra decides readiness; Redis is reported but optional."""
    cassandra_up = AsyncCassandraConnection.is_connected()
    return {
        "status": "ready" if cassandra_up else "degraded",
        "cassandra": cassandra_up,
        "redis": get_redis() is not None,
        "environment": get_settings().environment,
    }
