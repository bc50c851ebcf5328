"""
Read-Through Query Cache

Architecture:
    QueryCache (Public API)
        ├── CacheClient (get / set / delete, injected)
        ├── QueryCacheObserver (hit/miss/fallback counters and stage logging)
        └── In-flight map (optional per-key single-flight)

Behavior of get_or_fetch(key, producer, ttl):
    1. Cache unavailable → call producer directly, store nothing (fallback)
    2. Hit               → decode and return the stored value
    3. Miss              → call producer, store best-effort with ttl, return

Producer errors propagate unchanged and nothing is cached. A producer result
of None is returned but effectively never cached, since a stored null reads
back as a miss.

Stampede protection is opt-in: with dedupe_inflight=True, concurrent misses on
the same key inside this process share a single producer call. The shared call
runs in its own task, so it keeps going and stores its result for the remaining
waiters even when the caller that started it is cancelled.

Author: System Architect
Date: 2026-01-14
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from pydantic import BaseModel

from marketplace_cache.core.config.constants import ConnectionState, Stage
from marketplace_cache.core.interfaces.cache import CacheClient
from marketplace_cache.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)

T = TypeVar("T")

Producer = Callable[[], Awaitable[T] | T]


def default_encode(value: Any) -> Any:
    """
    Convert a producer result into a JSON-compatible payload.

    Pydantic models (and lists/tuples of them) are dumped in JSON mode;
    anything else is passed through.
    """
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (list, tuple)):
        return [default_encode(item) for item in value]
    return value


# =============================================================================
# LAYER 1: OBSERVABILITY
# =============================================================================


class QueryCacheObserver:
    """
    Tracks query cache outcomes and logs them with stage identifiers.

    Metrics Tracked:
    - hits / misses (cache consulted)
    - fallbacks (cache unavailable, producer called directly)
    - producer_calls, stores, invalidations
    - deduplicated (callers served by another caller's in-flight fetch)
    """

    def __init__(self, logger_instance=None):
        self._logger = logger_instance or logger
        self.hits = 0
        self.misses = 0
        self.fallbacks = 0
        self.producer_calls = 0
        self.stores = 0
        self.invalidations = 0
        self.deduplicated = 0

    def record_hit(self, key: str) -> None:
        self.hits += 1
        log_stage(self._logger, Stage.QUERY_HIT, "Query cache hit", level="debug", cache_key=key)

    def record_miss(self, key: str) -> None:
        self.misses += 1
        log_stage(self._logger, Stage.QUERY_MISS, "Query cache miss", level="debug", cache_key=key)

    def record_fallback(self, key: str, state: ConnectionState) -> None:
        self.fallbacks += 1
        log_stage(
            self._logger,
            Stage.QUERY_MISS,
            "Cache unavailable, fetching directly",
            level="debug",
            cache_key=key,
            cache_state=state.value,
        )

    def record_store(self, key: str, ttl: float, stored: bool) -> None:
        if stored:
            self.stores += 1
        log_stage(
            self._logger, Stage.QUERY_STORE, "Query result cached", level="debug",
            cache_key=key, ttl=ttl, stored=stored,
        )

    def record_invalidate(self, key: str) -> None:
        self.invalidations += 1
        log_stage(self._logger, Stage.QUERY_INVALIDATE, "Query cache entry invalidated", level="debug", cache_key=key)

    def stats(self) -> dict[str, Any]:
        lookups = self.hits + self.misses
        return {
            "hits": self.hits,
            "misses": self.misses,
            "fallbacks": self.fallbacks,
            "producer_calls": self.producer_calls,
            "stores": self.stores,
            "invalidations": self.invalidations,
            "deduplicated": self.deduplicated,
            "hit_rate": round(self.hits / lookups, 4) if lookups else 0.0,
        }


# =============================================================================
# LAYER 2: PUBLIC API
# =============================================================================


class QueryCache:
    """
    Get-or-compute wrapper over a CacheClient.

    Usage:
        query_cache = QueryCache(cache_client)
        count = await query_cache.get_or_fetch(
            key, lambda: source.fetch_total_count(filters), ttl=300
        )
    """

    def __init__(
        self,
        client: CacheClient,
        dedupe_inflight: bool = False,
        observer: QueryCacheObserver | None = None,
    ):
        self._client = client
        self._dedupe_inflight = dedupe_inflight
        self._observer = observer or QueryCacheObserver()
        self._inflight: dict[str, asyncio.Future] = {}

    @property
    def client(self) -> CacheClient:
        return self._client

    @property
    def dedupe_inflight(self) -> bool:
        return self._dedupe_inflight

    async def get_or_fetch(
        self,
        key: str,
        producer: Producer,
        ttl: float,
        decode: Callable[[Any], T] | None = None,
        encode: Callable[[T], Any] = default_encode,
    ) -> T:
        """
        Return the cached value for ``key`` or produce, cache and return it.

        Args:
            key: Cache key (from KeyGenerator)
            producer: Zero-argument callable, sync or async
            ttl: Time-to-live in seconds for a freshly produced value
            decode: Rebuilds a typed value from the stored payload on a hit
            encode: Turns the produced value into a JSON-compatible payload

        Returns:
            The cached or freshly produced value

        Raises:
            Whatever ``producer`` raises; nothing is cached in that case
        """
        state = self._client.state
        if state != ConnectionState.CONNECTED:
            self._observer.record_fallback(key, state)
            return await self._fetch(key, producer, ttl, encode, store=False)

        cached = await self._client.get(key)
        if cached is not None:
            try:
                value = decode(cached) if decode else cached
            except (ValueError, TypeError) as e:
                logger.warning("Cached payload could not be decoded, refetching", cache_key=key, error=str(e))
                await self._client.delete(key)
            else:
                self._observer.record_hit(key)
                return value

        self._observer.record_miss(key)
        return await self._fetch(key, producer, ttl, encode, store=True)

    async def invalidate(self, key: str) -> bool:
        """Drop ``key`` from the cache. False if the cache was unavailable."""
        deleted = await self._client.delete(key)
        self._observer.record_invalidate(key)
        return deleted

    def stats(self) -> dict[str, Any]:
        """Snapshot of observer counters plus in-flight fetches."""
        return {
            **self._observer.stats(),
            "inflight": len(self._inflight),
            "dedupe_inflight": self._dedupe_inflight,
        }

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _fetch(self, key: str, producer: Producer, ttl: float, encode: Callable[[Any], Any], store: bool) -> Any:
        if not self._dedupe_inflight:
            return await self._produce_and_store(key, producer, ttl, encode, store)

        task = self._inflight.get(key)
        if task is not None:
            self._observer.deduplicated += 1
        else:
            task = asyncio.create_task(self._produce_and_store(key, producer, ttl, encode, store))
            self._inflight[key] = task
            task.add_done_callback(lambda t: self._release(key, t))

        # Cancelling one caller must not cancel the fetch the others wait on
        return await asyncio.shield(task)

    def _release(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # Retrieve the exception so a failure nobody awaited is not reported as lost
        if not task.cancelled():
            task.exception()

    async def _produce_and_store(
        self, key: str, producer: Producer, ttl: float, encode: Callable[[Any], Any], store: bool
    ) -> Any:
        self._observer.producer_calls += 1
        value = producer()
        if inspect.isawaitable(value):
            value = await value

        if store and value is not None:
            stored = await self._client.set(key, encode(value), ttl)
            self._observer.record_store(key, ttl, stored)

        return value
