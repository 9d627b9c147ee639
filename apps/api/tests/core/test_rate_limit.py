"""
Unit tests for the sliding-window rate limiter.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from gsos.core import rate_limit
from gsos.core.rate_limit import RateLimitExceeded, check_rate_limit, enforce_rate_limit


@pytest.fixture
def mock_redis():
    """Create a mock Redis client whose window already holds `count` entries."""

    def build(count: int):
        redis = MagicMock()
        pipe = MagicMock()
        pipe.execute = AsyncMock(return_value=[0, count, 1, True])
        redis.pipeline.return_value = pipe
        return redis

    return build


class TestMemoryBackend:
    @pytest.mark.asyncio
    async def test_allows_up_to_limit(self):
        with patch("gsos.core.rate_limit.redis_module.get_redis", AsyncMock(return_value=None)):
            results = [await check_rate_limit("k", 3, 60) for _ in range(4)]
        assert results == [True, True, True, False]

    @pytest.mark.asyncio
    async def test_keys_are_independent(self):
        with patch("gsos.core.rate_limit.redis_module.get_redis", AsyncMock(return_value=None)):
            assert await check_rate_limit("a", 1, 60)
            assert await check_rate_limit("b", 1, 60)
            assert not await check_rate_limit("a", 1, 60)

    def test_expired_windows_are_evicted(self):
        with patch("gsos.core.rate_limit.time.time", side_effect=[1000.0, 1030.0, 1070.0]):
            assert rate_limit._memory_window_allows("ip:10.0.0.1", 1, 60)
            assert rate_limit._memory_window_allows("ip:10.0.0.2", 1, 60)
            assert rate_limit._memory_window_allows("ip:10.0.0.3", 1, 60)

        # 10.0.0.1 left its window at 1060 and is swept; 10.0.0.2 is still live
        assert set(rate_limit._windows) == {"ip:10.0.0.2", "ip:10.0.0.3"}

    @pytest.mark.asyncio
    async def test_enforce_raises_429(self):
        with patch("gsos.core.rate_limit.redis_module.get_redis", AsyncMock(return_value=None)):
            await enforce_rate_limit("k", 1, 30)
            with pytest.raises(RateLimitExceeded) as exc_info:
                await enforce_rate_limit("k", 1, 30)
        assert exc_info.value.status_code == 429
        assert exc_info.value.headers["Retry-After"] == "30"


class TestRedisBackend:
    @pytest.mark.asyncio
    async def test_under_limit(self, mock_redis):
        redis = mock_redis(2)
        with patch("gsos.core.rate_limit.redis_module.get_redis", AsyncMock(return_value=redis)):
            assert await check_rate_limit("k", 3, 60)
        redis.pipeline.return_value.zadd.assert_called_once()

    @pytest.mark.asyncio
    async def test_over_limit(self, mock_redis):
        with patch(
            "gsos.core.rate_limit.redis_module.get_redis", AsyncMock(return_value=mock_redis(3))
        ):
            assert not await check_rate_limit("k", 3, 60)

    @pytest.mark.asyncio
    async def test_redis_error_falls_back_to_memory(self, mock_redis):
        redis = mock_redis(0)
        redis.pipeline.return_value.execute.side_effect = ConnectionError("redis gone")
        with patch("gsos.core.rate_limit.redis_module.get_redis", AsyncMock(return_value=redis)):
            assert await check_rate_limit("k", 1, 60)
            assert not await check_rate_limit("k", 1, 60)
