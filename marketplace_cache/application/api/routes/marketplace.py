"""
Marketplace Routes
==================

Thin HTTP surface over AggregationEngine. Handlers only translate query
parameters; validation, caching and consistency live in the engine.

    GET /marketplace/listings  → PaginatedResult
    GET /marketplace/stats     → MarketStats
    GET /marketplace/view      → MarketplaceView (page + stats from one total)
"""

from typing import Annotated

from fastapi import APIRouter, Query

from marketplace_cache.application.api.dependencies import AggregationEngineDep, ListingFiltersDep
from marketplace_cache.marketplace.models.listing import MarketplaceView, MarketStats, PaginatedResult

router = APIRouter(prefix="/marketplace", tags=["Marketplace"])

PageQuery = Annotated[int, Query(description="1-based page number")]
PageSizeQuery = Annotated[int | None, Query(description="Items per page (server default when omitted)")]


@router.get("/listings", response_model=PaginatedResult)
async def list_listings(
    engine: AggregationEngineDep,
    filters: ListingFiltersDep,
    page: PageQuery = 1,
    page_size: PageSizeQuery = None,
):
    """
    One page of listings ordered by price, highest first.

    HTTP Status Codes:
        200: Page returned (possibly empty past the last page)
        400: page / page_size out of range, or invalid filters
        502: Data source failed
    """
    return await engine.get_marketplace_page(filters, page=page, page_size=page_size)


@router.get("/stats", response_model=MarketStats)
async def market_stats(engine: AggregationEngineDep, filters: ListingFiltersDep):
    """Total listings and distinct sellers for the filters."""
    return await engine.get_market_stats(filters)


@router.get("/view", response_model=MarketplaceView)
async def marketplace_view(
    engine: AggregationEngineDep,
    filters: ListingFiltersDep,
    page: PageQuery = 1,
    page_size: PageSizeQuery = None,
):
    """Page and stats in one response, built from the same total count."""
    return await engine.get_marketplace_view(filters, page=page, page_size=page_size)
