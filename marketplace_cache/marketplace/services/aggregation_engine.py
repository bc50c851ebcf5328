"""
Aggregation Engine - Consistent Pages and Market Statistics
===========================================================

WHAT IS THIS SERVICE?
---------------------
AggregationEngine composes a page of listings together with the totals that
describe it (total item count, distinct seller count). Each logical
sub-query goes through the QueryCache under its own key:

    marketplace:page     filters + page + page_size   (page_ttl)
    marketplace:count    filters                      (stats_ttl)
    marketplace:sellers  filters                      (stats_ttl)

WHY ONE COUNT KEY?
------------------
The total used to compute total_pages and the total reported in MarketStats
come from the same key and TTL window. If they were fetched independently
with different staleness, a stats banner could report N items while the
page count implies a different number.

RECONCILIATION:
---------------
The page entry and the count entry can still come from different cache
generations (the page expires sooner). When the page length disagrees with
the length implied by the total and one side was just fetched while the
other came from the cache, all keys for the request are invalidated and
recomputed once. A mismatch between two fresh fetches belongs to the source
(for example a server-side row cap) and is only logged. Items are always
clamped to the implied length so the displayed page never exceeds the
reported total.

ARCHITECTURE:
-------------
Route → AggregationEngine → KeyGenerator (one key per sub-query)
                          → QueryCache → CacheClient
                                       → MarketplaceDataSource (on miss)
"""

import asyncio
import time
from dataclasses import dataclass

from marketplace_cache.core.config.constants import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    NAMESPACE_COUNT,
    NAMESPACE_PAGE,
    NAMESPACE_SELLERS,
    Stage,
)
from marketplace_cache.core.config.runtime import TTLPolicy
from marketplace_cache.core.exceptions import InvalidPageRequestError
from marketplace_cache.core.interfaces.data_source import MarketplaceDataSource
from marketplace_cache.core.logging.logger import get_logger, log_stage
from marketplace_cache.infrastructure.cache.key_generator import KeyGenerator
from marketplace_cache.infrastructure.cache.query_cache import QueryCache
from marketplace_cache.marketplace.models.listing import (
    Listing,
    ListingFilters,
    MarketplaceView,
    MarketStats,
    PaginatedResult,
    expected_page_length,
)

logger = get_logger(__name__)


def decode_listings(payload: list) -> list[Listing]:
    return [Listing.model_validate(row) for row in payload]


def decode_count(payload) -> int:
    if isinstance(payload, bool) or not isinstance(payload, int) or payload < 0:
        raise ValueError(f"invalid cached count: {payload!r}")
    return payload


def order_by_price(items: list[Listing]) -> list[Listing]:
    """Price descending; ties keep source order (stable sort)."""
    return sorted(items, key=lambda listing: -listing.price)


@dataclass(frozen=True)
class SubQueryKeys:
    """Cache keys for the sub-queries of one request."""
    page: str
    count: str
    sellers: str

    def all(self) -> tuple[str, str, str]:
        return (self.page, self.count, self.sellers)


class AggregationEngine:
    """
    Produces PaginatedResult and MarketStats from one consistent total.

    USAGE:
    ------
    engine = AggregationEngine(query_cache, data_source, KeyGenerator("mkt"))
    page = await engine.get_marketplace_page(ListingFilters(category="tools"), page=2, page_size=20)
    stats = await engine.get_market_stats(ListingFilters(category="tools"))
    """

    def __init__(
        self,
        query_cache: QueryCache,
        data_source: MarketplaceDataSource,
        key_generator: KeyGenerator | None = None,
        ttl_policy: TTLPolicy | None = None,
        default_page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
    ):
        """
        Args:
            query_cache: Read-through cache shared by all requests
            data_source: Authoritative listing source
            key_generator: Key derivation (default prefix when omitted)
            ttl_policy: TTLs for page windows and aggregates
            default_page_size: Page size used when none is requested
            max_page_size: Largest accepted page size
        """
        self._query_cache = query_cache
        self._data_source = data_source
        self._keys = key_generator or KeyGenerator()
        self._ttl = ttl_policy or TTLPolicy()
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    # ========================================================================
    # CONSUMER-FACING OPERATIONS
    # ========================================================================

    async def get_marketplace_page(
        self, filters: ListingFilters | None = None, page: int = 1, page_size: int | None = None
    ) -> PaginatedResult:
        """
        One page of listings ordered by price descending.

        Pages past the end are empty; total_pages still reports the real value.

        Raises:
            InvalidPageRequestError: page < 1 or page_size out of range
            InvalidKeyInputError: filters cannot be turned into a key
            DataSourceError: the underlying fetch failed (never masked)
        """
        filters = filters or ListingFilters()
        page_size = self._validate(page, page_size)
        keys = self._keys_for(filters, page, page_size)

        started = time.perf_counter()
        log_stage(logger, Stage.AGG_REQUEST, "Composing marketplace page", level="debug", page=page, page_size=page_size)

        fresh: set[str] = set()
        items, total = await asyncio.gather(
            self._cached_page(keys.page, filters, page, page_size, fresh),
            self._cached_count(keys.count, filters, fresh),
        )

        if self._needs_reconcile(len(items), total, page, page_size, fresh):
            await self._reconcile(keys, page, page_size, len(items), total)
            items, total = await asyncio.gather(
                self._cached_page(keys.page, filters, page, page_size),
                self._cached_count(keys.count, filters),
            )

        result = self._build_page(items, page, page_size, total)
        self._log_complete("page", started, page=page, total_items=total, returned=len(result.items))
        return result

    async def get_market_stats(self, filters: ListingFilters | None = None) -> MarketStats:
        """
        Total item count and distinct seller count for ``filters``.

        Shares the count key with get_marketplace_page, so both report the
        same total within a TTL window. Empty result sets yield zeros.
        """
        filters = filters or ListingFilters()
        params = filters.to_params()
        count_key = self._keys.generate_key(NAMESPACE_COUNT, params)
        sellers_key = self._keys.generate_key(NAMESPACE_SELLERS, params)

        total, sellers = await asyncio.gather(
            self._cached_count(count_key, filters),
            self._cached_sellers(sellers_key, filters),
        )
        return MarketStats(total_items=total, distinct_sellers=sellers)

    async def get_marketplace_view(
        self, filters: ListingFilters | None = None, page: int = 1, page_size: int | None = None
    ) -> MarketplaceView:
        """
        Page and stats composed from a single total count.

        All three sub-queries run concurrently and must complete before the
        result is composed.
        """
        filters = filters or ListingFilters()
        page_size = self._validate(page, page_size)
        keys = self._keys_for(filters, page, page_size)

        started = time.perf_counter()
        log_stage(logger, Stage.AGG_REQUEST, "Composing marketplace view", level="debug", page=page, page_size=page_size)

        fresh: set[str] = set()
        items, total, sellers = await asyncio.gather(
            self._cached_page(keys.page, filters, page, page_size, fresh),
            self._cached_count(keys.count, filters, fresh),
            self._cached_sellers(keys.sellers, filters),
        )

        if self._needs_reconcile(len(items), total, page, page_size, fresh):
            await self._reconcile(keys, page, page_size, len(items), total)
            items, total, sellers = await asyncio.gather(
                self._cached_page(keys.page, filters, page, page_size),
                self._cached_count(keys.count, filters),
                self._cached_sellers(keys.sellers, filters),
            )

        view = MarketplaceView(
            page=self._build_page(items, page, page_size, total),
            stats=MarketStats(total_items=total, distinct_sellers=sellers),
        )
        self._log_complete("view", started, page=page, total_items=total, distinct_sellers=sellers)
        return view

    async def invalidate(
        self, filters: ListingFilters | None = None, page: int | None = None, page_size: int | None = None
    ) -> None:
        """
        Drop cached aggregates for a filter shape, after a write.

        Count and seller entries are always dropped; a page entry only when
        ``page`` is given (page entries otherwise age out with page_ttl).
        """
        filters = filters or ListingFilters()
        params = filters.to_params()
        keys = [
            self._keys.generate_key(NAMESPACE_COUNT, params),
            self._keys.generate_key(NAMESPACE_SELLERS, params),
        ]
        if page is not None:
            size = page_size or self.default_page_size
            keys.append(self._keys.generate_key(NAMESPACE_PAGE, {**params, "page": page, "page_size": size}))

        await asyncio.gather(*(self._query_cache.invalidate(key) for key in keys))

    # ========================================================================
    # SUB-QUERIES
    # ========================================================================

    async def _cached_page(
        self, key: str, filters: ListingFilters, page: int, page_size: int, fresh: set[str] | None = None
    ) -> list[Listing]:
        async def produce():
            if fresh is not None:
                fresh.add("page")
            return await self._data_source.fetch_page(filters, page, page_size)

        items = await self._query_cache.get_or_fetch(key, produce, self._ttl.page_ttl, decode=decode_listings)
        return order_by_price(list(items))

    async def _cached_count(self, key: str, filters: ListingFilters, fresh: set[str] | None = None) -> int:
        async def produce():
            if fresh is not None:
                fresh.add("count")
            return await self._data_source.fetch_total_count(filters)

        return await self._query_cache.get_or_fetch(key, produce, self._ttl.stats_ttl, decode=decode_count)

    async def _cached_sellers(self, key: str, filters: ListingFilters) -> int:
        return await self._query_cache.get_or_fetch(
            key,
            lambda: self._data_source.fetch_distinct_seller_count(filters),
            self._ttl.stats_ttl,
            decode=decode_count,
        )

    # ========================================================================
    # HELPERS
    # ========================================================================

    def _validate(self, page: int, page_size: int | None) -> int:
        page_size = self.default_page_size if page_size is None else page_size

        if page < 1:
            raise InvalidPageRequestError(
                "page must be >= 1", details={"page": page}
            ).with_suggestion("Pages are numbered from 1")

        if page_size < 1 or page_size > self.max_page_size:
            raise InvalidPageRequestError(
                f"page_size must be between 1 and {self.max_page_size}",
                details={"page_size": page_size, "max_page_size": self.max_page_size},
            )

        return page_size

    def _keys_for(self, filters: ListingFilters, page: int, page_size: int) -> SubQueryKeys:
        params = filters.to_params()
        return SubQueryKeys(
            page=self._keys.generate_key(NAMESPACE_PAGE, {**params, "page": page, "page_size": page_size}),
            count=self._keys.generate_key(NAMESPACE_COUNT, params),
            sellers=self._keys.generate_key(NAMESPACE_SELLERS, params),
        )

    @staticmethod
    def _needs_reconcile(page_length: int, total: int, page: int, page_size: int, fresh: set[str]) -> bool:
        """
        Whether a page/total mismatch points at stale cache entries.

        ``fresh`` names the sub-queries that hit the data source during this
        composition. When both did, the mismatch is the source's own (a row
        cap, or a write between the two queries) and refetching would only
        repeat it. A short page read back together with a cached total is the
        same fetched pair again, so it is left alone too.
        """
        if page_length == expected_page_length(total, page, page_size):
            return False
        page_fresh = "page" in fresh
        count_fresh = "count" in fresh
        if page_fresh and count_fresh:
            return False
        if page_length > expected_page_length(total, page, page_size):
            return True
        return page_fresh != count_fresh

    async def _reconcile(self, keys: SubQueryKeys, page: int, page_size: int, page_length: int, total: int) -> None:
        log_stage(
            logger,
            Stage.AGG_RECONCILE,
            "Cached page disagrees with total count, recomputing",
            level="warning",
            page=page,
            page_size=page_size,
            page_length=page_length,
            total_items=total,
            expected_length=expected_page_length(total, page, page_size),
        )
        await asyncio.gather(*(self._query_cache.invalidate(key) for key in keys.all()))

    def _build_page(self, items: list[Listing], page: int, page_size: int, total: int) -> PaginatedResult:
        expected = expected_page_length(total, page, page_size)
        if len(items) < expected:
            # The source itself changed between the page and count queries
            logger.warning(
                "Data source returned a short page",
                page=page, page_length=len(items), expected_length=expected, total_items=total,
            )
        return PaginatedResult(items=tuple(items[:expected]), page=page, page_size=page_size, total_items=total)

    def _log_complete(self, operation: str, started: float, **fields) -> None:
        log_stage(
            logger,
            Stage.AGG_COMPLETE,
            "Marketplace result composed",
            operation=operation,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
            **fields,
        )
