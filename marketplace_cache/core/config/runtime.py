"""
Runtime Configuration Objects

Plain, immutable config objects handed to components at construction time.
They are built once from ``Settings`` by the process entry point; components
never read settings or the environment themselves.

Author: System Architect
Date: 2026-01-14
"""

from dataclasses import dataclass

from marketplace_cache.core.config.constants import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_MAX_RETRIES,
    DEFAULT_OPERATION_TIMEOUT_MS,
    DEFAULT_PAGE_SIZE,
    DEFAULT_PAGE_TTL,
    DEFAULT_RETRY_BACKOFF_BASE,
    DEFAULT_RETRY_BACKOFF_MAX,
    DEFAULT_STATS_TTL,
    KEY_PREFIX_DEFAULT,
    MAX_PAGE_SIZE,
    CacheBackend,
    DataSourceBackend,
)
from marketplace_cache.core.config.settings import CacheSettings, DataSourceSettings


@dataclass(frozen=True)
class CacheClientConfig:
    """
    Configuration for a cache client.

    Attributes:
        backend: Which implementation to construct
        host: Store host
        port: Store port
        db: Store database index
        password: Store password (optional)
        key_prefix: Namespace prepended to every key
        max_retries: Connection attempts before giving up and degrading
        retry_backoff_base: First backoff delay in seconds
        retry_backoff_max: Backoff ceiling in seconds
        operation_timeout: Per-operation timeout in seconds
        connect_timeout: Socket connect timeout in seconds
    """
    backend: CacheBackend = CacheBackend.REDIS
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: str | None = None
    key_prefix: str = KEY_PREFIX_DEFAULT
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_backoff_base: float = DEFAULT_RETRY_BACKOFF_BASE
    retry_backoff_max: float = DEFAULT_RETRY_BACKOFF_MAX
    operation_timeout: float = DEFAULT_OPERATION_TIMEOUT_MS / 1000
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT

    @classmethod
    def from_settings(cls, settings: CacheSettings) -> "CacheClientConfig":
        return cls(
            backend=CacheBackend(settings.CACHE_BACKEND),
            host=settings.CACHE_HOST,
            port=settings.CACHE_PORT,
            db=settings.CACHE_DB,
            password=settings.CACHE_PASSWORD,
            key_prefix=settings.CACHE_KEY_PREFIX,
            max_retries=settings.CACHE_MAX_RETRIES,
            retry_backoff_base=settings.CACHE_RETRY_BACKOFF_BASE,
            retry_backoff_max=settings.CACHE_RETRY_BACKOFF_MAX,
            operation_timeout=settings.CACHE_OPERATION_TIMEOUT_MS / 1000,
            connect_timeout=settings.CACHE_CONNECT_TIMEOUT,
        )


@dataclass(frozen=True)
class TTLPolicy:
    """
    Expiry policy per kind of cached data.

    page_ttl applies to volatile page windows; stats_ttl applies to slowly
    changing aggregates (total count and distinct-seller count share it).
    """
    page_ttl: float = DEFAULT_PAGE_TTL
    stats_ttl: float = DEFAULT_STATS_TTL

    @classmethod
    def from_settings(cls, settings: CacheSettings) -> "TTLPolicy":
        return cls(page_ttl=settings.CACHE_PAGE_TTL, stats_ttl=settings.CACHE_STATS_TTL)


@dataclass(frozen=True)
class DataSourceConfig:
    """Configuration for the listing data source."""
    backend: DataSourceBackend = DataSourceBackend.POSTGREST
    base_url: str = "http://localhost:3000"
    api_key: str | None = None
    timeout: float = 10.0
    max_retries: int = 2
    default_page_size: int = DEFAULT_PAGE_SIZE
    max_page_size: int = MAX_PAGE_SIZE
    seed_file: str | None = None

    @classmethod
    def from_settings(cls, settings: DataSourceSettings) -> "DataSourceConfig":
        return cls(
            backend=DataSourceBackend(settings.DATA_SOURCE_BACKEND),
            base_url=settings.DATA_SOURCE_BASE_URL,
            api_key=settings.DATA_SOURCE_API_KEY,
            timeout=settings.DATA_SOURCE_TIMEOUT,
            max_retries=settings.DATA_SOURCE_MAX_RETRIES,
            default_page_size=settings.DEFAULT_PAGE_SIZE,
            max_page_size=settings.MAX_PAGE_SIZE,
            seed_file=settings.DATA_SOURCE_SEED_FILE,
        )
