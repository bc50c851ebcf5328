"""
FastAPI Dependency Injection Module
===================================

Route handlers receive the components built once in the application lifespan
(cache client, query cache, aggregation engine) through these providers.
Nothing here constructs a component: app.state is the only source, so tests
and the running service see exactly the instances the lifespan wired up.

Example:
    @router.get("/listings")
    async def listings(engine: AggregationEngineDep, filters: ListingFiltersDep):
        return await engine.get_marketplace_page(filters)
"""

from typing import Annotated

from fastapi import Depends, Query, Request
from pydantic import ValidationError as PydanticValidationError

from marketplace_cache.core.config.settings import Settings
from marketplace_cache.core.exceptions import ValidationError
from marketplace_cache.core.interfaces.cache import CacheClient
from marketplace_cache.infrastructure.cache.query_cache import QueryCache
from marketplace_cache.marketplace.models.listing import ListingFilters
from marketplace_cache.marketplace.services.aggregation_engine import AggregationEngine

# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


def _from_state(request: Request, name: str):
    component = getattr(request.app.state, name, None)
    if component is None:
        raise RuntimeError(
            f"{name} not initialized in app.state. "
            "This indicates the application lifespan startup didn't complete properly."
        )
    return component


def get_app_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return _from_state(request, "settings")


def get_aggregation_engine(request: Request) -> AggregationEngine:
    """The AggregationEngine built during startup."""
    return _from_state(request, "aggregation_engine")


def get_query_cache(request: Request) -> QueryCache:
    return _from_state(request, "query_cache")


def get_cache_client(request: Request) -> CacheClient:
    return _from_state(request, "cache_client")


def get_listing_filters(
    search: Annotated[str | None, Query(description="Case-insensitive name search")] = None,
    category: Annotated[str | None, Query()] = None,
    seller_id: Annotated[str | None, Query()] = None,
    server_name: Annotated[str | None, Query()] = None,
    min_price: Annotated[float | None, Query()] = None,
    max_price: Annotated[float | None, Query()] = None,
    is_available: Annotated[bool | None, Query()] = None,
) -> ListingFilters:
    """
    Build ListingFilters from query parameters.

    Raises:
        ValidationError: If the combination is invalid (e.g. min_price > max_price)
    """
    try:
        return ListingFilters(
            search=search,
            category=category,
            seller_id=seller_id,
            server_name=server_name,
            min_price=min_price,
            max_price=max_price,
            is_available=is_available,
        )
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid listing filters",
            details={"errors": [
                {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
                for err in e.errors()
            ]},
        ) from e


# ============================================================================
# TYPE ALIASES FOR CLEANER ROUTE SIGNATURES
# ============================================================================

SettingsDep = Annotated[Settings, Depends(get_app_settings)]
AggregationEngineDep = Annotated[AggregationEngine, Depends(get_aggregation_engine)]
QueryCacheDep = Annotated[QueryCache, Depends(get_query_cache)]
CacheClientDep = Annotated[CacheClient, Depends(get_cache_client)]
ListingFiltersDep = Annotated[ListingFilters, Depends(get_listing_filters)]
