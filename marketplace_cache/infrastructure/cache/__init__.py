"""
Cache Module

Deterministic keys, cache clients (Redis-backed and in-memory) and the
read-through query cache.
"""

from .factory import CacheClientFactory, create_cache_client
from .key_generator import KeyGenerator, generate_key
from .memory_client import InMemoryCacheClient
from .query_cache import QueryCache, QueryCacheObserver
from .redis_client import RedisCacheClient

__all__ = [
    "CacheClientFactory",
    "create_cache_client",
    "KeyGenerator",
    "generate_key",
    "InMemoryCacheClient",
    "QueryCache",
    "QueryCacheObserver",
    "RedisCacheClient",
]
