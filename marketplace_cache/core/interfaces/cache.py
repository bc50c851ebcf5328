"""
Cache Client Protocol

This module defines the protocol every cache client implementation satisfies,
enabling dependency injection and testability.

Architectural Decision: Protocol-based abstraction
- One interface, two implementations (Redis-backed, in-memory)
- The implementation is chosen by configuration at construction time,
  never by branching inside business logic
- Runtime checking with @runtime_checkable

Author: System Architect
Date: 2026-01-14
"""

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from marketplace_cache.core.config.constants import ConnectionState


@dataclass(frozen=True)
class CacheEntry:
    """
    A stored value and its absolute expiry time (epoch seconds).

    Owned by the cache client. A read past ``expires_at`` is a miss.
    """
    value: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def to_dict(self) -> dict[str, Any]:
        return {"value": self.value, "expires_at": self.expires_at}


@dataclass(frozen=True)
class CacheInfo:
    """
    Introspection snapshot returned by ``CacheClient.info()``.

    Attributes:
        connected: True only while the client is CONNECTED
        key_count: Number of keys in the store (0 when unknown)
        state: Current connection state
        degraded_transitions: How many times the client has entered DEGRADED
    """
    connected: bool
    key_count: int
    state: ConnectionState
    degraded_transitions: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "connected": self.connected,
            "key_count": self.key_count,
            "state": self.state.value,
            "degraded_transitions": self.degraded_transitions,
        }


@runtime_checkable
class CacheClient(Protocol):
    """
    Protocol defining the interface for cache client implementations.

    Failure semantics shared by all implementations:
    - ``get`` returns None on miss, on an expired entry, and while degraded;
      callers cannot distinguish "not cached" from "cache unavailable"
    - ``set``/``delete`` are no-ops returning False while degraded
    - Operational errors are logged and swallowed, never raised

    Implementations:
    - RedisCacheClient: redis-py asyncio client against Redis/Valkey
    - InMemoryCacheClient: dict-backed double for tests and local runs

    Usage:
        async def lookup(cache: CacheClient, key: str) -> Any | None:
            return await cache.get(key)
    """

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        ...

    async def connect(self) -> None:
        """
        Establish connection to the store.

        Raises:
            CacheConnectionError: After all retries are exhausted. The client
                is left DEGRADED and keeps reconnecting in the background.
        """
        ...

    async def disconnect(self) -> None:
        """Close the connection and stop background reconnection."""
        ...

    async def get(self, key: str) -> Any | None:
        """Return the stored JSON-compatible value, or None."""
        ...

    async def set(self, key: str, value: Any, ttl: float) -> bool:
        """
        Store a JSON-compatible value for ``ttl`` seconds.

        Returns:
            bool: True if stored, False if skipped (degraded) or failed
        """
        ...

    async def delete(self, key: str) -> bool:
        """
        Remove a key.

        Returns:
            bool: True if the operation reached the store, False otherwise
        """
        ...

    async def ping(self) -> bool:
        """Check store health. Never raises."""
        ...

    async def info(self) -> CacheInfo:
        """Return connection and key-count introspection."""
        ...
