from .listing import (
    Listing,
    ListingFilters,
    MarketplaceView,
    MarketStats,
    PaginatedResult,
    expected_page_length,
    total_pages_for,
)

__all__ = [
    "Listing",
    "ListingFilters",
    "MarketplaceView",
    "MarketStats",
    "PaginatedResult",
    "expected_page_length",
    "total_pages_for",
]
