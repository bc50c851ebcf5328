"""
Cache Test Factory

Creates raw redis client doubles (for RedisCacheClient) and a controllable
clock for TTL tests.
"""

import asyncio
from typing import Any
from unittest.mock import AsyncMock

from redis.exceptions import ConnectionError as RedisConnectionError


class FakeClock:
    """Manually advanced clock, callable like time.time."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CacheTestFactory:
    """Factory for creating cache test objects."""

    @staticmethod
    def redis_client_with_data(initial_data: dict[str, Any] | None = None) -> AsyncMock:
        """Create a raw redis client double backed by a dict."""
        client = AsyncMock()
        client.data = dict(initial_data or {})

        async def mock_get(key):
            return client.data.get(key)

        async def mock_set(key, value, ex=None):
            client.data[key] = value
            client.last_ex = ex
            return True

        async def mock_delete(key):
            return 1 if client.data.pop(key, None) is not None else 0

        async def mock_dbsize():
            return len(client.data)

        client.get = AsyncMock(side_effect=mock_get)
        client.set = AsyncMock(side_effect=mock_set)
        client.delete = AsyncMock(side_effect=mock_delete)
        client.dbsize = AsyncMock(side_effect=mock_dbsize)
        client.ping = AsyncMock(return_value=True)
        client.aclose = AsyncMock()
        return client

    @staticmethod
    def failing_redis_client(error: Exception | None = None) -> AsyncMock:
        """Create a raw redis client whose every command fails."""
        if error is None:
            error = RedisConnectionError("Connection refused")

        client = AsyncMock()
        client.ping = AsyncMock(side_effect=error)
        client.get = AsyncMock(side_effect=error)
        client.set = AsyncMock(side_effect=error)
        client.delete = AsyncMock(side_effect=error)
        client.dbsize = AsyncMock(side_effect=error)
        client.aclose = AsyncMock()
        return client

    @staticmethod
    def slow_redis_client(delay: float = 1.0) -> AsyncMock:
        """Create a raw redis client whose GET/SET exceed any operation timeout."""
        client = CacheTestFactory.redis_client_with_data()

        async def delayed(*args, **kwargs):
            await asyncio.sleep(delay)
            return None

        client.get = AsyncMock(side_effect=delayed)
        client.set = AsyncMock(side_effect=delayed)
        return client
