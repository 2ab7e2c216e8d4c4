# ruff: noqa: PLW0603
"""Optional Redis client.

Only the login rate limiter uses Redis. When the server is unreachable at
startup the API runs without it and the limiter is skipped.
"""

import redis.asyncio as redis

from src.config.settings import get_settings
from src.core.logging import get_logger


logger = get_logger(__name__)

_client: redis.Redis | None = None


async def init_redis() -> redis.Redis | None:
    """Connect and ping; returns None (and logs) if Redis is unavailable."""
    global _client

    settings = get_settings()
    client = redis.from_url(
        settings.redis_url,
        max_connections=settings.redis_max_connections,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_socket_connect_timeout,
        decode_responses=True,
    )
    try:
        await client.ping()
    except (redis.ConnectionError, redis.TimeoutError) as e:
        logger.warning(
            "redis_unavailable",
            error=str(e),
            message="Login rate limiting disabled",
        )
        await client.aclose()
        return None

    _client = client
    logger.info("redis_connected")
    return client


async def shutdown_redis() -> None:
    global _client

    if _client is None:
        return
    await _client.aclose()
    _client = None
    logger.info("redis_disconnected")


def get_redis() -> redis.Redis | None:
    return _client
