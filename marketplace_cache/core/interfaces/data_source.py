"""
Marketplace Data Source Protocol

The authoritative source of listings. The aggregation layer consumes this
protocol; concrete implementations live in infrastructure/data_source.

Every implementation must return pages ordered by price descending with ties
in stable id order, and must raise DataSourceError (never return partial data)
when a query fails.

Author: System Architect
Date: 2026-01-14
"""

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from marketplace_cache.marketplace.models.listing import Listing, ListingFilters


@runtime_checkable
class MarketplaceDataSource(Protocol):
    """
    Protocol for listing data sources.

    Implementations:
    - PostgrestDataSource: httpx client against the PostgREST ``public_items`` view
    - InMemoryDataSource: seeded listings for tests and local development
    """

    async def fetch_page(self, filters: ListingFilters, page: int, page_size: int) -> Sequence[Listing]:
        """
        Fetch one page of listings matching ``filters``.

        Pages past the end return an empty sequence.

        Raises:
            DataSourceError: If the query fails
        """
        ...

    async def fetch_total_count(self, filters: ListingFilters) -> int:
        """Count listings matching ``filters``."""
        ...

    async def fetch_distinct_seller_count(self, filters: ListingFilters) -> int:
        """Count distinct sellers among listings matching ``filters``."""
        ...

    async def close(self) -> None:
        """Release any underlying resources."""
        ...
