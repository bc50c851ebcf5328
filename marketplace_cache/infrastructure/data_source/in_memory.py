"""
In-Memory Listing Data Source

Serves a seeded list of listings with the same ordering and filter semantics
as the PostgREST source. Used for tests, demos and local development.
"""

from collections.abc import Iterable

from marketplace_cache.core.exceptions import DataSourceError
from marketplace_cache.marketplace.models.listing import Listing, ListingFilters


class InMemoryDataSource:
    """
    Listings held in process.

    Ordering: price descending; ties keep id order (stable sort over an
    id-sorted list).

    ``fail_with`` makes every query raise, for exercising error propagation.
    ``calls`` counts queries per kind so tests can assert cache behavior.
    """

    def __init__(self, listings: Iterable[Listing] = ()):
        self._listings: list[Listing] = []
        self.fail_with: Exception | None = None
        self.calls = {"page": 0, "count": 0, "sellers": 0}
        self.replace(listings)

    def replace(self, listings: Iterable[Listing]) -> None:
        """Swap the whole data set (simulates writes between cache generations)."""
        by_id = sorted(listings, key=lambda listing: listing.id)
        self._listings = sorted(by_id, key=lambda listing: -listing.price)

    def add(self, listing: Listing) -> None:
        self.replace([*self._listings, listing])

    def _matching(self, filters: ListingFilters) -> list[Listing]:
        if self.fail_with is not None:
            raise self.fail_with
        return [listing for listing in self._listings if filters.matches(listing)]

    async def fetch_page(self, filters: ListingFilters, page: int, page_size: int) -> list[Listing]:
        if page < 1 or page_size < 1:
            raise DataSourceError("Invalid page window", details={"page": page, "page_size": page_size})
        self.calls["page"] += 1
        offset = (page - 1) * page_size
        return self._matching(filters)[offset:offset + page_size]

    async def fetch_total_count(self, filters: ListingFilters) -> int:
        self.calls["count"] += 1
        return len(self._matching(filters))

    async def fetch_distinct_seller_count(self, filters: ListingFilters) -> int:
        self.calls["sellers"] += 1
        return len({listing.seller_id for listing in self._matching(filters)})

    async def close(self) -> None:
        return None
