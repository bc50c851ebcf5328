"""
Marketplace Models

Pydantic models for listings, filter criteria and composed results.

PYDANTIC V2 FEATURES USED:
--------------------------
- frozen models (results are never mutated after construction)
- AliasChoices so rows from the ``public_items`` view (owner_id,
  price_diamonds, owner_username) and our own cached dumps (seller_id, price,
  seller_name) both validate into the same Listing
- computed_field for derived pagination values
- model_validator for cross-field checks

This module defines:
- Listing: item-for-sale projection
- ListingFilters: filter criteria shared by page, count and seller queries
- PaginatedResult: one page window plus its totals
- MarketStats: total item count and distinct seller count
- MarketplaceView: page and stats built from the same total
"""

import math
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

# ============================================================================
# LISTING
# ============================================================================


class Listing(BaseModel):
    """
    An item for sale.

    Read-only from the cache layer's perspective; owned by the data source.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    name: str
    price: float = Field(ge=0, validation_alias=AliasChoices("price", "price_diamonds"))
    seller_id: str = Field(validation_alias=AliasChoices("seller_id", "owner_id"))
    category: str | None = None
    seller_name: str | None = Field(default=None, validation_alias=AliasChoices("seller_name", "owner_username"))
    server_name: str | None = None
    description: str | None = None
    stock_quantity: int = Field(default=0, ge=0)
    trading_unit: str | None = None
    is_available: bool = True

    @field_validator("seller_id", mode="before")
    @classmethod
    def coerce_seller_id(cls, v):
        """Seller ids arrive as UUID strings or integers depending on the source."""
        return str(v) if v is not None else v

    @field_validator("price", mode="before")
    @classmethod
    def coerce_price(cls, v):
        """Missing or negative prices are treated as 0."""
        if v is None:
            return 0
        try:
            return max(float(v), 0.0)
        except (TypeError, ValueError):
            return 0

    @field_validator("stock_quantity", mode="before")
    @classmethod
    def coerce_stock_quantity(cls, v):
        if v is None:
            return 0
        try:
            return max(int(v), 0)
        except (TypeError, ValueError):
            return 0


# ============================================================================
# FILTERS
# ============================================================================


class ListingFilters(BaseModel):
    """
    Filter criteria for marketplace queries.

    Every sub-query of a request (page, total count, seller count) is keyed
    from the same ``to_params()`` mapping, so the three figures are always
    derived from the same filter shape.
    """

    model_config = ConfigDict(frozen=True)

    search: str | None = Field(default=None, max_length=200, description="Case-insensitive name search")
    category: str | None = Field(default=None, description="Exact category")
    seller_id: str | None = Field(default=None, description="Exact seller")
    server_name: str | None = Field(default=None, description="Exact server")
    min_price: float | None = Field(default=None, ge=0, description="Inclusive lower price bound")
    max_price: float | None = Field(default=None, ge=0, description="Inclusive upper price bound")
    is_available: bool | None = Field(default=None, description="Availability flag")

    @field_validator("search", "category", "seller_id", "server_name", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        """Treat blank strings as absent so '' and None share a cache key."""
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @model_validator(mode="after")
    def validate_price_range(self):
        if self.min_price is not None and self.max_price is not None and self.min_price > self.max_price:
            raise ValueError("min_price must not exceed max_price")
        return self

    def to_params(self) -> dict[str, Any]:
        """Filter parameters with unset fields omitted."""
        return self.model_dump(exclude_none=True)

    def matches(self, listing: Listing) -> bool:
        """Evaluate these filters against one listing (used by in-process sources)."""
        if self.search and self.search.lower() not in listing.name.lower():
            return False
        if self.category is not None and listing.category != self.category:
            return False
        if self.seller_id is not None and listing.seller_id != self.seller_id:
            return False
        if self.server_name is not None and listing.server_name != self.server_name:
            return False
        if self.min_price is not None and listing.price < self.min_price:
            return False
        if self.max_price is not None and listing.price > self.max_price:
            return False
        if self.is_available is not None and listing.is_available != self.is_available:
            return False
        return True


# ============================================================================
# RESULTS
# ============================================================================


def total_pages_for(total_items: int, page_size: int) -> int:
    """ceil(total_items / page_size); 0 for an empty result set."""
    return math.ceil(total_items / page_size) if total_items > 0 else 0


def expected_page_length(total_items: int, page: int, page_size: int) -> int:
    """Number of items page ``page`` must hold given ``total_items``."""
    offset = (page - 1) * page_size
    return max(0, min(page_size, total_items - offset))


class PaginatedResult(BaseModel):
    """
    One page of listings with the totals it was composed from.

    Invariants:
    - total_pages == ceil(total_items / page_size)
    - len(items) never exceeds what total_items allows for this page
      (page_size, the remainder on the last page, 0 past the end)
    - pages past the end are empty while total_pages still reports the real value
    """

    model_config = ConfigDict(frozen=True)

    items: tuple[Listing, ...] = ()
    page: int = Field(ge=1)
    page_size: int = Field(ge=1)
    total_items: int = Field(ge=0)

    @computed_field
    @property
    def total_pages(self) -> int:
        return total_pages_for(self.total_items, self.page_size)

    @computed_field
    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @computed_field
    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @model_validator(mode="after")
    def validate_page_length(self):
        expected = expected_page_length(self.total_items, self.page, self.page_size)
        if len(self.items) > expected:
            raise ValueError(
                f"page {self.page} can hold at most {expected} items for "
                f"total_items={self.total_items}, got {len(self.items)}"
            )
        return self


class MarketStats(BaseModel):
    """Aggregate figures for a filter shape. Zero, never null, when empty."""

    model_config = ConfigDict(frozen=True)

    total_items: int = Field(default=0, ge=0)
    distinct_sellers: int = Field(default=0, ge=0)


class MarketplaceView(BaseModel):
    """A page and its stats, composed from one total count."""

    model_config = ConfigDict(frozen=True)

    page: PaginatedResult
    stats: MarketStats

    @model_validator(mode="after")
    def validate_consistent_totals(self):
        if self.page.total_items != self.stats.total_items:
            raise ValueError("page and stats must report the same total_items")
        return self
