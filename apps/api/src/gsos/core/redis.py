"""
Rate-limit Redis connection

The public submission and tracking endpoints count requests in Redis so
limits hold across API workers. Redis is optional outside production:
when no connection was established the rate limiter keeps its windows
in process memory instead.
"""

import logging

from redis.asyncio import Redis, from_url
from redis.exceptions import RedisError

from gsos.core.config import settings

logger = logging.getLogger(__name__)

_client: Redis | None = None


def _build_client(url: str) -> Redis:
    return from_url(
        url,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=settings.redis_connect_timeout_seconds,
        health_check_interval=30,
    )


async def init_redis(url: str | None = None) -> Redis:
    """
    Connect to Redis and make the client visible to the rate limiter.

    The client is only published after a successful PING so a half-open
    connection never replaces the in-memory fallback.
    """
    global _client
    candidate = _build_client(url or settings.redis_url)
    try:
        await candidate.ping()
    except RedisError:
        await candidate.aclose()
        raise
    _client = candidate
    logger.info("Rate limit windows stored in Redis")
    return candidate


async def get_redis() -> Redis | None:
    """Return the connected client, or None when limits run in memory."""
    return _client


def is_redis_available() -> bool:
    return _client is not None


async def close_redis() -> None:
    global _client
    client, _client = _client, None
    if client is not None:
        await client.aclose()
