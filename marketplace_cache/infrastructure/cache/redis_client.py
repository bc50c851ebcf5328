"""
Redis Cache Client with Degraded-Mode Fallback

Architecture:
    RedisCacheClient (Public API, implements CacheClient)
        ├── ConnectionManager (pool construction, connect with retry, close)
        ├── EntryCodec (CacheEntry <-> orjson bytes)
        └── Reconnect loop (background task while DEGRADED)

State machine:
    DISCONNECTED ──connect()──> CONNECTING ──ok──> CONNECTED
                                    │                  │
                                    └──retries out──> DEGRADED <──operation failed
                                                       │
                                    CONNECTED <──ping ok (background)
    any state ──disconnect()──> DISCONNECTED

Failure semantics:
    - Cache failures never fail a request: get → None, set/delete → False
    - Every operation is bounded by a short timeout (tens of milliseconds)
    - DEGRADED short-circuits all operations without touching the network
    - Transitions are logged once, not per failed operation

Works against Redis or Valkey; only GET, SET EX, DEL, PING and DBSIZE are used.

Author: System Architect
Date: 2026-01-14
"""

import asyncio
import math
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import orjson
import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import RedisError
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from marketplace_cache.core.config.constants import ConnectionState, Stage
from marketplace_cache.core.config.runtime import CacheClientConfig
from marketplace_cache.core.exceptions import CacheConnectionError
from marketplace_cache.core.interfaces.cache import CacheEntry, CacheInfo
from marketplace_cache.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)

T = TypeVar("T")

# Errors that mean "the store is unreachable or too slow"
TRANSIENT_ERRORS = (RedisError, OSError, asyncio.TimeoutError)


# =============================================================================
# LAYER 1: CONNECTION MANAGEMENT
# Pool construction, connection verification with retry, cleanup
# =============================================================================


class ConnectionManager:
    """
    Owns the redis-py client and its connection pool.

    Responsibility: build the pool, verify connectivity with retries, close.

    An already-built client can be injected (tests pass an AsyncMock); in that
    case no pool is created and ``close`` only closes the injected client.
    """

    def __init__(self, config: CacheClientConfig, client: redis.Redis | None = None):
        self._config = config
        self._client = client
        self._pool: ConnectionPool | None = None
        self._owns_client = client is None

    def _build_client(self) -> redis.Redis:
        """
        Create the connection pool and client.

        STAGE-CACHE.2.1: Pool construction

        decode_responses stays False: entries are orjson bytes.
        """
        self._pool = ConnectionPool(
            host=self._config.host,
            port=self._config.port,
            db=self._config.db,
            password=self._config.password,
            socket_connect_timeout=self._config.connect_timeout,
            socket_timeout=self._config.connect_timeout,
        )
        return redis.Redis(connection_pool=self._pool)

    @property
    def client(self) -> redis.Redis | None:
        return self._client

    async def connect(self) -> redis.Redis:
        """
        Verify connectivity, retrying with exponential backoff and jitter.

        STAGE-CACHE.2.2: Connection verification

        Returns:
            redis.Redis: A client that answered PING

        Raises:
            CacheConnectionError: After ``max_retries`` failed attempts
        """
        if self._client is None:
            self._client = self._build_client()

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._config.max_retries),
            wait=wait_exponential_jitter(
                initial=self._config.retry_backoff_base,
                max=self._config.retry_backoff_max,
            ),
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            before_sleep=lambda retry_state: logger.info(
                "Cache connection retry",
                stage=Stage.CACHE_CONNECT.value,
                attempt=retry_state.attempt_number,
                delay=round(retry_state.idle_for, 3),
                host=self._config.host,
                port=self._config.port,
            ),
        )

        try:
            async for attempt in retrying:
                with attempt:
                    await asyncio.wait_for(self._client.ping(), timeout=self._config.connect_timeout)
        except RetryError as e:
            last_error = e.last_attempt.exception()
            raise CacheConnectionError.from_exception(
                last_error,
                message=f"Failed to connect to cache after {self._config.max_retries} attempts",
                host=self._config.host,
                port=self._config.port,
                attempts=self._config.max_retries,
            ) from last_error

        return self._client

    async def ping(self) -> bool:
        """Single PING bounded by the connect timeout. Never raises."""
        if self._client is None:
            return False
        try:
            return bool(await asyncio.wait_for(self._client.ping(), timeout=self._config.connect_timeout))
        except TRANSIENT_ERRORS:
            return False

    async def close(self) -> None:
        """
        Close client and pool.

        STAGE-CACHE.3: Connection cleanup
        """
        if self._client is not None:
            try:
                await self._client.aclose()
            except TRANSIENT_ERRORS as e:
                logger.warning("Cache client close failed", stage=Stage.CACHE_DISCONNECT.value, error=str(e))

        if self._pool is not None:
            await self._pool.disconnect()
            self._pool = None

        if self._owns_client:
            self._client = None


# =============================================================================
# LAYER 2: ENTRY SERIALIZATION
# CacheEntry <-> bytes
# =============================================================================


class EntryCodec:
    """
    Serializes cache entries with orjson.

    Stored form: {"value": <json payload>, "expires_at": <epoch seconds>}
    """

    @staticmethod
    def encode(entry: CacheEntry) -> bytes:
        return orjson.dumps(entry.to_dict())

    @staticmethod
    def decode(raw: bytes | str) -> CacheEntry:
        """
        Raises:
            ValueError: If the stored bytes are not a valid entry
        """
        data = orjson.loads(raw)
        if not isinstance(data, dict) or "value" not in data or "expires_at" not in data:
            raise ValueError("Malformed cache entry")
        return CacheEntry(value=data["value"], expires_at=float(data["expires_at"]))


# =============================================================================
# LAYER 3: PUBLIC API
# =============================================================================


class RedisCacheClient:
    """
    Async cache client over redis-py with degraded-mode fallback.

    Usage:
        client = RedisCacheClient(CacheClientConfig(host="localhost"))
        try:
            await client.connect()
        except CacheConnectionError:
            pass  # keeps serving as DEGRADED, reconnects in the background

        await client.set("key", {"a": 1}, ttl=30)
        value = await client.get("key")
    """

    def __init__(
        self,
        config: CacheClientConfig,
        client: redis.Redis | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._config = config
        self._connection = ConnectionManager(config, client)
        self._codec = EntryCodec()
        self._clock = clock
        self._state = ConnectionState.DISCONNECTED
        self._reconnect_task: asyncio.Task | None = None
        self._degraded_transitions = 0

        log_stage(
            logger,
            Stage.CACHE_INIT,
            "Cache client created",
            level="debug",
            host=config.host,
            port=config.port,
            db=config.db,
            operation_timeout_ms=int(config.operation_timeout * 1000),
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def degraded_transitions(self) -> int:
        return self._degraded_transitions

    async def connect(self) -> None:
        """
        Connect to the store.

        STAGE-CACHE.2: Connection establishment

        Raises:
            CacheConnectionError: After all retries failed. The client is left
                DEGRADED and a background task keeps trying to reconnect.
        """
        if self._state == ConnectionState.CONNECTED:
            return

        await self._cancel_reconnect()
        self._state = ConnectionState.CONNECTING

        try:
            await self._connection.connect()
        except CacheConnectionError as e:
            self._enter_degraded("connect", e)
            raise

        self._state = ConnectionState.CONNECTED
        log_stage(
            logger,
            Stage.CACHE_CONNECT,
            "Cache connected",
            host=self._config.host,
            port=self._config.port,
            db=self._config.db,
        )

    async def disconnect(self) -> None:
        """
        Stop reconnecting, close the connection, and move to DISCONNECTED.

        STAGE-CACHE.3: Disconnect
        """
        await self._cancel_reconnect()
        await self._connection.close()
        self._state = ConnectionState.DISCONNECTED
        log_stage(logger, Stage.CACHE_DISCONNECT, "Cache disconnected")

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        """
        Get a value.

        Returns None on miss, on an expired entry, on a malformed entry, and
        whenever the store is unavailable.
        """
        raw = await self._execute("get", lambda client: client.get(key), default=None)
        if raw is None:
            return None

        try:
            entry = self._codec.decode(raw)
        except ValueError as e:
            logger.warning("Discarding malformed cache entry", key=key, error=str(e))
            await self.delete(key)
            return None

        if entry.is_expired(self._clock()):
            await self.delete(key)
            return None

        return entry.value

    async def set(self, key: str, value: Any, ttl: float) -> bool:
        """
        Store ``value`` for ``ttl`` seconds (SET key value EX ceil(ttl)).

        Returns:
            bool: True if stored; False while degraded, on failure, or for a
                non-positive TTL or non-serializable value
        """
        if ttl <= 0:
            logger.warning("Refusing to cache with non-positive TTL", key=key, ttl=ttl)
            return False

        try:
            payload = self._codec.encode(CacheEntry(value=value, expires_at=self._clock() + ttl))
        except TypeError as e:
            logger.warning("Cache value is not serializable", key=key, error=str(e))
            return False

        expire_seconds = max(1, math.ceil(ttl))
        result = await self._execute(
            "set", lambda client: client.set(key, payload, ex=expire_seconds), default=None
        )
        return bool(result)

    async def delete(self, key: str) -> bool:
        """Delete ``key``. True if the DEL reached the store."""
        result = await self._execute("delete", lambda client: client.delete(key), default=None)
        return result is not None

    async def ping(self) -> bool:
        """PING the store. False while degraded or on failure."""
        result = await self._execute("ping", lambda client: client.ping(), default=False)
        return bool(result)

    async def info(self) -> CacheInfo:
        """Connection state and DBSIZE."""
        key_count = await self._execute("info", lambda client: client.dbsize(), default=0)
        return CacheInfo(
            connected=self._state == ConnectionState.CONNECTED,
            key_count=int(key_count or 0),
            state=self._state,
            degraded_transitions=self._degraded_transitions,
        )

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _execute(
        self,
        operation: str,
        command: Callable[[redis.Redis], Awaitable[T]],
        default: T,
    ) -> T:
        """
        Run one command bounded by the operation timeout.

        Short-circuits to ``default`` unless CONNECTED. Transient failures
        move the client to DEGRADED and also return ``default``.
        """
        client = self._connection.client
        if self._state != ConnectionState.CONNECTED or client is None:
            return default

        try:
            return await asyncio.wait_for(command(client), timeout=self._config.operation_timeout)
        except TRANSIENT_ERRORS as e:
            self._enter_degraded(operation, e)
            return default

    def _enter_degraded(self, operation: str, error: BaseException) -> None:
        """Transition to DEGRADED; logs and schedules reconnection once per transition."""
        if self._state == ConnectionState.DEGRADED:
            return

        self._state = ConnectionState.DEGRADED
        self._degraded_transitions += 1
        log_stage(
            logger,
            Stage.CACHE_DEGRADED,
            "Cache unavailable, serving without cache",
            level="warning",
            operation=operation,
            error=str(error) or error.__class__.__name__,
            error_type=error.__class__.__name__,
        )
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self._reconnect_task is None or self._reconnect_task.done():
            self._reconnect_task = asyncio.get_running_loop().create_task(self._reconnect_loop())

    async def _reconnect_loop(self) -> None:
        """
        Ping with capped exponential backoff until the store answers.

        STAGE-CACHE.5: Background recovery
        """
        delay = self._config.retry_backoff_base
        attempts = 0

        while self._state == ConnectionState.DEGRADED:
            await asyncio.sleep(delay)
            attempts += 1

            if await self._connection.ping():
                self._state = ConnectionState.CONNECTED
                log_stage(
                    logger,
                    Stage.CACHE_RECOVERED,
                    "Cache connection recovered",
                    attempts=attempts,
                )
                return

            delay = min(delay * 2, self._config.retry_backoff_max)

    async def _cancel_reconnect(self) -> None:
        task = self._reconnect_task
        self._reconnect_task = None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
