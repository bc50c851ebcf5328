"""
Unit Tests for AggregationEngine

Tests pagination arithmetic, count consistency between pages and stats,
reconciliation of stale cache generations, and behavior while the cache is
unavailable.
"""

import pytest

from marketplace_cache.core.exceptions import DataSourceError, InvalidPageRequestError
from marketplace_cache.infrastructure.cache.key_generator import KeyGenerator
from marketplace_cache.infrastructure.cache.memory_client import InMemoryCacheClient
from marketplace_cache.infrastructure.cache.query_cache import QueryCache
from marketplace_cache.infrastructure.data_source.in_memory import InMemoryDataSource
from marketplace_cache.marketplace.models.listing import ListingFilters
from marketplace_cache.marketplace.services.aggregation_engine import AggregationEngine
from tests.test_fixtures.listing_factory import ListingTestFactory


@pytest.mark.unit
class TestPagination:
    """Test page windows and totals."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("page, expected_length", [(1, 20), (2, 20), (3, 15)])
    async def test_page_lengths(self, engine, page, expected_length):
        """Test 55 items at 20 per page: 20, 20, 15."""
        result = await engine.get_marketplace_page(ListingFilters(), page=page, page_size=20)

        assert len(result.items) == expected_length
        assert result.total_items == 55
        assert result.total_pages == 3

    @pytest.mark.asyncio
    async def test_page_past_end_is_empty(self, engine):
        """Test that page 4 is empty but still reports the real total_pages."""
        result = await engine.get_marketplace_page(ListingFilters(), page=4, page_size=20)

        assert result.items == ()
        assert result.total_items == 55
        assert result.total_pages == 3
        assert result.has_next is False
        assert result.has_previous is True

    @pytest.mark.asyncio
    async def test_items_ordered_by_price(self, engine):
        """Test price descending across the page."""
        result = await engine.get_marketplace_page(ListingFilters(), page=1, page_size=20)
        prices = [item.price for item in result.items]

        assert prices == sorted(prices, reverse=True)

    @pytest.mark.asyncio
    async def test_pages_do_not_overlap(self, engine):
        """Test that consecutive pages cover every listing once."""
        seen = []
        for page in (1, 2, 3):
            result = await engine.get_marketplace_page(ListingFilters(), page=page, page_size=20)
            seen.extend(item.id for item in result.items)

        assert sorted(seen) == list(range(1, 56))

    @pytest.mark.asyncio
    async def test_default_page_size(self, engine):
        """Test that an omitted page_size uses the configured default."""
        result = await engine.get_marketplace_page(ListingFilters())
        assert result.page_size == 20

    @pytest.mark.asyncio
    async def test_empty_result_set(self, engine):
        """Test zeros, never nulls, for filters matching nothing."""
        filters = ListingFilters(category="nonexistent")

        page = await engine.get_marketplace_page(filters)
        stats = await engine.get_market_stats(filters)

        assert page.items == ()
        assert page.total_items == 0
        assert page.total_pages == 0
        assert stats.total_items == 0
        assert stats.distinct_sellers == 0

    @pytest.mark.asyncio
    async def test_filters_applied(self, engine):
        """Test that filters narrow page and stats alike."""
        filters = ListingFilters(category="tools")

        view = await engine.get_marketplace_view(filters, page=1, page_size=100)

        assert all(item.category == "tools" for item in view.page.items)
        assert view.stats.total_items == len(view.page.items)


@pytest.mark.unit
class TestValidation:
    """Test request bounds."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("page, page_size", [(0, 20), (-1, 20), (1, 0), (1, 101)])
    async def test_invalid_page_request(self, engine, data_source, page, page_size):
        """Test that out-of-range windows are rejected before any fetch."""
        with pytest.raises(InvalidPageRequestError):
            await engine.get_marketplace_page(ListingFilters(), page=page, page_size=page_size)

        assert data_source.calls == {"page": 0, "count": 0, "sellers": 0}

    @pytest.mark.asyncio
    async def test_page_zero_has_suggestion(self, engine):
        """Test that the error tells callers pages start at 1."""
        with pytest.raises(InvalidPageRequestError) as exc_info:
            await engine.get_marketplace_view(ListingFilters(), page=0)

        assert "suggestion" in exc_info.value.details


@pytest.mark.unit
class TestCountConsistency:
    """Test that pages and stats share one total."""

    @pytest.mark.asyncio
    async def test_page_and_stats_share_count(self, engine, data_source):
        """Test that the count is fetched once for a page and its stats."""
        filters = ListingFilters(category="weapons")

        page = await engine.get_marketplace_page(filters)
        stats = await engine.get_market_stats(filters)

        assert page.total_items == stats.total_items
        assert data_source.calls["count"] == 1

    @pytest.mark.asyncio
    async def test_stats_stay_consistent_after_write(self, engine, data_source, listings):
        """Test that a write inside the TTL window does not split the totals."""
        filters = ListingFilters()
        await engine.get_marketplace_page(filters)

        data_source.replace(listings[:40])
        stats = await engine.get_market_stats(filters)
        page = await engine.get_marketplace_page(filters, page=2)

        assert stats.total_items == page.total_items == 55

    @pytest.mark.asyncio
    async def test_view_reports_one_total(self, engine):
        """Test the combined view."""
        view = await engine.get_marketplace_view(ListingFilters(), page=3, page_size=20)

        assert view.page.total_items == view.stats.total_items == 55
        assert view.stats.distinct_sellers == 5
        assert len(view.page.items) == 15

    @pytest.mark.asyncio
    async def test_repeated_requests_served_from_cache(self, engine, data_source):
        """Test that identical requests within the TTL do not refetch."""
        for _ in range(3):
            await engine.get_marketplace_view(ListingFilters(), page=1)

        assert data_source.calls == {"page": 1, "count": 1, "sellers": 1}

    @pytest.mark.asyncio
    async def test_key_order_does_not_matter(self, engine, data_source):
        """Test that equal filters built differently share cache entries."""
        await engine.get_market_stats(ListingFilters(category="tools", min_price=100))
        await engine.get_market_stats(ListingFilters(min_price=100.0, category="tools", seller_id=None))

        assert data_source.calls["count"] == 1


@pytest.mark.unit
class TestReconciliation:
    """Test recovery when cached page and count come from different generations."""

    @pytest.mark.asyncio
    async def test_stale_page_reconciled(self, engine, data_source, listings):
        """Test that a cached page longer than the fresh count is recomputed."""
        filters = ListingFilters()
        await engine.get_marketplace_page(filters, page=1, page_size=20)

        data_source.replace(listings[:10])
        await engine.invalidate(filters)

        result = await engine.get_marketplace_page(filters, page=1, page_size=20)

        assert result.total_items == 10
        assert len(result.items) == 10
        assert data_source.calls["page"] == 2

    @pytest.mark.asyncio
    async def test_stale_view_reconciled(self, engine, data_source, listings):
        """Test reconciliation in the combined view."""
        filters = ListingFilters()
        await engine.get_marketplace_view(filters, page=1, page_size=20)

        data_source.replace(listings[:5])
        await engine.invalidate(filters)

        view = await engine.get_marketplace_view(filters, page=1, page_size=20)

        assert view.page.total_items == view.stats.total_items == 5
        assert len(view.page.items) == 5

    @pytest.mark.asyncio
    async def test_inconsistent_source_is_clamped(self, query_cache):
        """Test that a source returning more rows than it counts never breaks the page."""

        class OvercountingSource(InMemoryDataSource):
            async def fetch_total_count(self, filters):
                self.calls["count"] += 1
                return 5

        source = OvercountingSource(ListingTestFactory.many(8))
        engine = AggregationEngine(query_cache, source, KeyGenerator("test"))

        result = await engine.get_marketplace_page(ListingFilters(), page=1, page_size=20)

        assert result.total_items == 5
        assert len(result.items) == 5

    @pytest.mark.asyncio
    async def test_capped_source_short_page_stays_cached(self, query_cache, clock):
        """Test that a source capping rows per response is not refetched on every request."""

        class CappedSource(InMemoryDataSource):
            async def fetch_page(self, filters, page, page_size):
                rows = await super().fetch_page(filters, page, page_size)
                return rows[:10]

        source = CappedSource(ListingTestFactory.many(55))
        engine = AggregationEngine(query_cache, source, KeyGenerator("test"))

        for _ in range(3):
            result = await engine.get_marketplace_page(ListingFilters(), page=1, page_size=20)
            assert len(result.items) == 10
            assert result.total_items == 55

        assert source.calls["page"] == 1
        assert source.calls["count"] == 1

    @pytest.mark.asyncio
    async def test_capped_source_reconciles_once_per_page_expiry(self, query_cache, clock, ttl_policy):
        """Test that a page refetched against a cached total reconciles once, then is cached again."""

        class CappedSource(InMemoryDataSource):
            async def fetch_page(self, filters, page, page_size):
                rows = await super().fetch_page(filters, page, page_size)
                return rows[:10]

        source = CappedSource(ListingTestFactory.many(55))
        engine = AggregationEngine(query_cache, source, KeyGenerator("test"), ttl_policy=ttl_policy)

        await engine.get_marketplace_page(ListingFilters(), page=1, page_size=20)
        clock.advance(int(ttl_policy.page_ttl))
        for _ in range(3):
            await engine.get_marketplace_page(ListingFilters(), page=1, page_size=20)

        assert source.calls["page"] == 3
        assert source.calls["count"] == 2

    @pytest.mark.asyncio
    async def test_invalidate_with_page_drops_page_entry(self, engine, data_source, listings):
        """Test that page-specific invalidation forces a page refetch."""
        filters = ListingFilters()
        await engine.get_marketplace_page(filters, page=1, page_size=20)

        await engine.invalidate(filters, page=1, page_size=20)
        await engine.get_marketplace_page(filters, page=1, page_size=20)

        assert data_source.calls["page"] == 2
        assert data_source.calls["count"] == 2


@pytest.mark.unit
class TestFailureBehavior:
    """Test data source failures and an unavailable cache."""

    @pytest.mark.asyncio
    async def test_data_source_error_propagates(self, engine, data_source, memory_cache):
        """Test that a failed fetch surfaces and caches nothing."""
        data_source.fail_with = DataSourceError("upstream down")

        with pytest.raises(DataSourceError):
            await engine.get_marketplace_page(ListingFilters())

        assert (await memory_cache.info()).key_count == 0

    @pytest.mark.asyncio
    async def test_degraded_cache_matches_direct_results(self, listings):
        """Test that results with a degraded cache equal those with a healthy one."""
        healthy_cache = InMemoryCacheClient()
        await healthy_cache.connect()
        degraded_cache = InMemoryCacheClient()
        await degraded_cache.connect()
        degraded_cache.force_degraded()

        healthy = AggregationEngine(QueryCache(healthy_cache), InMemoryDataSource(listings), KeyGenerator("a"))
        degraded_source = InMemoryDataSource(listings)
        degraded = AggregationEngine(QueryCache(degraded_cache), degraded_source, KeyGenerator("b"))

        for page in (1, 3, 4):
            assert await degraded.get_marketplace_view(ListingFilters(), page=page) == await healthy.get_marketplace_view(
                ListingFilters(), page=page
            )

        assert degraded_source.calls["count"] == 3

    @pytest.mark.asyncio
    async def test_cache_recovery_resumes_caching(self, engine, data_source, memory_cache):
        """Test that results are cached again once the cache recovers."""
        memory_cache.force_degraded()
        await engine.get_market_stats(ListingFilters())
        memory_cache.recover()
        await engine.get_market_stats(ListingFilters())
        await engine.get_market_stats(ListingFilters())

        assert data_source.calls["count"] == 2
