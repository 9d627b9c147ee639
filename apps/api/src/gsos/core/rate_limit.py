"""
Request rate limits.

Each limit is a sliding window keyed by caller: the client IP for the
public submission and tracking endpoints, the staff user id for status
changes. Windows live in Redis sorted sets when `gsos.core.redis` holds
a connection and in this process's memory otherwise.
"""

import logging
import time
import uuid
from collections import deque

from fastapi import HTTPException, Request, status

from gsos.core import redis as redis_module

logger = logging.getLogger(__name__)

# key -> request timestamps inside the current window, oldest first
_windows: dict[str, deque[float]] = {}
# key -> time its newest hit leaves the window
_expiry: dict[str, float] = {}
_SWEEP_INTERVAL_SECONDS = 60
_last_sweep = 0.0


class RateLimitExceeded(HTTPException):
    """HTTP 429 carrying a Retry-After hint of one full window."""

    def __init__(self, limit: int, window_seconds: int):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": "RATE_LIMIT_EXCEEDED",
                "message": f"Too many requests. At most {limit} are accepted every {window_seconds} seconds.",
                "retry_after_seconds": window_seconds,
            },
            headers={"Retry-After": str(window_seconds)},
        )


async def _redis_window_allows(client, key: str, limit: int, window_seconds: int) -> bool:
    now = time.time()
    pipe = client.pipeline()
    pipe.zremrangebyscore(key, 0, now - window_seconds)
    pipe.zcard(key)
    # Members must be unique or two hits in the same instant count once
    pipe.zadd(key, {f"{now}:{uuid.uuid4().hex[:8]}": now})
    pipe.expire(key, window_seconds)
    _, in_window, *_ = await pipe.execute()
    return in_window < limit


def _sweep_expired(now: float) -> None:
    global _last_sweep
    if now - _last_sweep < _SWEEP_INTERVAL_SECONDS:
        return
    _last_sweep = now
    for key in [k for k, expires in _expiry.items() if expires <= now]:
        del _expiry[key]
        _windows.pop(key, None)


def _memory_window_allows(key: str, limit: int, window_seconds: int) -> bool:
    now = time.time()
    _sweep_expired(now)
    hits = _windows.setdefault(key, deque())
    while hits and hits[0] <= now - window_seconds:
        hits.popleft()
    if len(hits) >= limit:
        return False
    hits.append(now)
    _expiry[key] = now + window_seconds
    return True


async def check_rate_limit(key: str, limit: int, window_seconds: int) -> bool:
    """
    Record a hit on `key` and report whether it fits in the window.

    A Redis failure mid-request degrades to the in-memory window rather
    than rejecting or letting the request through unchecked.
    """
    client = await redis_module.get_redis()
    if client is not None:
        try:
            return await _redis_window_allows(client, key, limit, window_seconds)
        except Exception as e:
            logger.warning(f"Rate limit store error for {key}, using memory window: {e}")
    return _memory_window_allows(key, limit, window_seconds)


async def enforce_rate_limit(key: str, limit: int, window_seconds: int) -> None:
    """Raise RateLimitExceeded when `key` is over `limit` hits per window."""
    if not await check_rate_limit(key, limit, window_seconds):
        logger.warning(f"Rate limit hit: {key} ({limit}/{window_seconds}s)")
        raise RateLimitExceeded(limit, window_seconds)


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def reset_memory_store() -> None:
    global _last_sweep
    _last_sweep = 0.0
    _expiry.clear()
    _windows.clear()


__all__ = [
    "RateLimitExceeded",
    "check_rate_limit",
    "client_ip",
    "enforce_rate_limit",
    "reset_memory_store",
]
