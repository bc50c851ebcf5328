"""
In-Memory Cache Client

Dict-backed implementation of the CacheClient protocol for tests, demos and
local development. Same surface and the same failure semantics as
RedisCacheClient, including TTL expiry and degraded mode. Expired entries are dropped on read
and swept from the whole store on writes (at most once per sweep_interval),
so keys that are never read again do not accumulate.

Note: process-local and not shared between workers.

Author: System Architect
Date: 2026-01-14
"""

import copy
import time
from collections.abc import Callable
from typing import Any

import orjson

from marketplace_cache.core.config.constants import ConnectionState, Stage
from marketplace_cache.core.interfaces.cache import CacheEntry, CacheInfo
from marketplace_cache.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)


class InMemoryCacheClient:
    """
    In-memory cache client.

    The clock is injectable so TTL expiry can be tested without sleeping.
    ``force_degraded()`` and ``recover()`` drive the degraded-mode paths.

    Usage:
        now = [1000.0]
        cache = InMemoryCacheClient(clock=lambda: now[0])
        await cache.connect()
        await cache.set("k", {"a": 1}, ttl=30)
        now[0] += 31
        assert await cache.get("k") is None
    """

    def __init__(self, clock: Callable[[], float] = time.time, sweep_interval: float = 1.0):
        self._store: dict[str, CacheEntry] = {}
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._next_sweep = 0.0
        self._state = ConnectionState.DISCONNECTED
        self._degraded_transitions = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def degraded_transitions(self) -> int:
        return self._degraded_transitions

    async def connect(self) -> None:
        self._state = ConnectionState.CONNECTED
        log_stage(logger, Stage.CACHE_CONNECT, "In-memory cache ready", level="debug")

    async def disconnect(self) -> None:
        self._state = ConnectionState.DISCONNECTED
        self._store.clear()

    def force_degraded(self, reason: str = "forced") -> None:
        """Simulate the store becoming unreachable."""
        if self._state == ConnectionState.DEGRADED:
            return
        self._state = ConnectionState.DEGRADED
        self._degraded_transitions += 1
        log_stage(
            logger,
            Stage.CACHE_DEGRADED,
            "Cache unavailable, serving without cache",
            level="warning",
            operation="force_degraded",
            error=reason,
        )

    def recover(self) -> None:
        """Simulate the store becoming reachable again."""
        if self._state != ConnectionState.DEGRADED:
            return
        self._state = ConnectionState.CONNECTED
        log_stage(logger, Stage.CACHE_RECOVERED, "Cache connection recovered")

    def _available(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    async def get(self, key: str) -> Any | None:
        if not self._available():
            return None

        entry = self._store.get(key)
        if entry is None:
            return None

        if entry.is_expired(self._clock()):
            del self._store[key]
            return None

        # Callers must not be able to mutate what is stored
        return copy.deepcopy(entry.value)

    async def set(self, key: str, value: Any, ttl: float) -> bool:
        if not self._available():
            return False
        if ttl <= 0:
            logger.warning("Refusing to cache with non-positive TTL", key=key, ttl=ttl)
            return False

        # Round-trip through orjson so stored values match what Redis would return
        try:
            stored = orjson.loads(orjson.dumps(value))
        except TypeError as e:
            logger.warning("Cache value is not serializable", key=key, error=str(e))
            return False

        now = self._clock()
        self._evict_expired(now)
        self._store[key] = CacheEntry(value=stored, expires_at=now + ttl)
        return True

    async def delete(self, key: str) -> bool:
        if not self._available():
            return False
        self._store.pop(key, None)
        return True

    async def ping(self) -> bool:
        return self._available()

    async def info(self) -> CacheInfo:
        now = self._clock()
        self._evict_expired(now, force=True)
        key_count = len(self._store)
        return CacheInfo(
            connected=self._available(),
            key_count=key_count if self._available() else 0,
            state=self._state,
            degraded_transitions=self._degraded_transitions,
        )

    def _evict_expired(self, now: float, force: bool = False) -> None:
        if not force and now < self._next_sweep:
            return
        self._next_sweep = now + self._sweep_interval
        expired = [key for key, entry in self._store.items() if entry.is_expired(now)]
        for key in expired:
            del self._store[key]
