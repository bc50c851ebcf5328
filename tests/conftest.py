"""
Pytest configuration and shared fixtures.

Fixtures build real components (in-memory cache client, in-memory data
source, query cache, aggregation engine) with a controllable clock; the raw
redis client is replaced by AsyncMock doubles from test_fixtures.
"""

import pytest
from fastapi.testclient import TestClient

from marketplace_cache.application.app import create_app
from marketplace_cache.core.config.runtime import CacheClientConfig, TTLPolicy
from marketplace_cache.core.config.settings import Settings
from marketplace_cache.infrastructure.cache.key_generator import KeyGenerator
from marketplace_cache.infrastructure.cache.memory_client import InMemoryCacheClient
from marketplace_cache.infrastructure.cache.query_cache import QueryCache
from marketplace_cache.infrastructure.data_source.in_memory import InMemoryDataSource
from marketplace_cache.marketplace.services.aggregation_engine import AggregationEngine
from tests.test_fixtures.cache_factory import CacheTestFactory, FakeClock
from tests.test_fixtures.listing_factory import ListingTestFactory


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def test_settings():
    """Settings wired to in-process backends; ignores any local .env file."""
    return Settings(
        _env_file=None,
        CACHE_BACKEND="memory",
        DATA_SOURCE_BACKEND="memory",
        LOG_FORMAT="console",
        ENVIRONMENT="development",
    )


@pytest.fixture
def cache_config():
    """Cache client config with tight timeouts so failure tests stay fast."""
    return CacheClientConfig(
        host="cache.test",
        port=6379,
        max_retries=2,
        retry_backoff_base=0.01,
        retry_backoff_max=0.02,
        operation_timeout=0.05,
        connect_timeout=0.05,
    )


@pytest.fixture
def ttl_policy():
    return TTLPolicy(page_ttl=30, stats_ttl=300)


# ============================================================================
# Cache Fixtures
# ============================================================================


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def raw_redis():
    """Dict-backed raw redis client double."""
    return CacheTestFactory.redis_client_with_data()


@pytest.fixture
async def memory_cache(clock):
    """Connected in-memory cache client driven by the fake clock."""
    cache = InMemoryCacheClient(clock=clock)
    await cache.connect()
    yield cache
    await cache.disconnect()


@pytest.fixture
def query_cache(memory_cache):
    return QueryCache(memory_cache)


# ============================================================================
# Marketplace Fixtures
# ============================================================================


@pytest.fixture
def listings():
    """55 listings with strictly decreasing prices by id."""
    return ListingTestFactory.many(55)


@pytest.fixture
def data_source(listings):
    return InMemoryDataSource(listings)


@pytest.fixture
def engine(query_cache, data_source, ttl_policy):
    return AggregationEngine(
        query_cache,
        data_source,
        key_generator=KeyGenerator("test"),
        ttl_policy=ttl_policy,
        default_page_size=20,
        max_page_size=100,
    )


# ============================================================================
# Application Fixtures
# ============================================================================


@pytest.fixture
def client(test_settings, listings):
    """TestClient over a fully started application seeded with 55 listings."""
    app = create_app(test_settings)
    with TestClient(app) as test_client:
        app.state.data_source.replace(listings)
        yield test_client
