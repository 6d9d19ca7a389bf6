"""Redis client construction."""

from __future__ import annotations

from redis import Redis

from resources.substrates.redis.config import RedisSettings


def create_redis_client(settings: RedisSettings) -> Redis:
    """Return a pooled client whose replies are decoded to ``str``."""
    timeouts = {
        "socket_connect_timeout": settings.connect_timeout_seconds,
        "socket_timeout": settings.socket_timeout_seconds,
    }
    return Redis.from_url(
        settings.url or "",
        max_connections=settings.max_connections,
        decode_responses=True,
        **timeouts,
    )
