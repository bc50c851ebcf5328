"""
Cache Client Factory

Selects the CacheClient implementation from configuration at construction
time. Business logic only ever sees the CacheClient protocol.
"""

from marketplace_cache.core.config.constants import CacheBackend
from marketplace_cache.core.config.runtime import CacheClientConfig
from marketplace_cache.core.exceptions import ConfigurationError
from marketplace_cache.core.interfaces.cache import CacheClient
from marketplace_cache.infrastructure.cache.memory_client import InMemoryCacheClient
from marketplace_cache.infrastructure.cache.redis_client import RedisCacheClient


class CacheClientFactory:
    """
    Factory for creating cache client instances.

    Supports:
    - Redis / Valkey (RedisCacheClient)
    - In-process dict (InMemoryCacheClient)
    """

    def __init__(self):
        self._client_types = {
            CacheBackend.REDIS: RedisCacheClient,
            CacheBackend.MEMORY: InMemoryCacheClient,
        }

    def create(self, config: CacheClientConfig) -> CacheClient:
        """
        Create a cache client for ``config.backend``.

        Raises:
            ConfigurationError: If the backend is not supported
        """
        try:
            backend = CacheBackend(config.backend)
        except ValueError:
            raise ConfigurationError(
                f"Unknown cache backend: {config.backend}",
                details={"available": self.get_available()},
            )

        if backend == CacheBackend.REDIS:
            return RedisCacheClient(config)
        return self._client_types[backend]()

    def get_available(self) -> list[str]:
        return [backend.value for backend in self._client_types]


def create_cache_client(config: CacheClientConfig) -> CacheClient:
    """
    Build the configured cache client.

    Example:
        client = create_cache_client(CacheClientConfig.from_settings(settings.cache))
        await client.connect()
    """
    return CacheClientFactory().create(config)
