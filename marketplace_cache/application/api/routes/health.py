"""
Health Check Routes
===================

    GET /health        → liveness plus cache state; always 200 while the process serves
    GET /health/cache  → cache client introspection and query cache counters

A degraded cache reports "degraded", never "unhealthy": the service keeps
answering correctly from the data source, only slower.
"""

from datetime import datetime, timezone

from fastapi import APIRouter
from pydantic import BaseModel

from marketplace_cache.application.api.dependencies import CacheClientDep, QueryCacheDep, SettingsDep
from marketplace_cache.core.config.constants import ConnectionState

router = APIRouter(prefix="/health", tags=["Health"])


# ============================================================================
# RESPONSE MODELS
# ============================================================================


class HealthResponse(BaseModel):
    """Standard health check response model."""

    status: str  # "healthy" or "degraded"
    timestamp: str
    version: str
    components: dict | None = None


class CacheHealthResponse(BaseModel):
    """Cache introspection response."""

    status: str
    connected: bool
    state: str
    key_count: int
    degraded_transitions: int
    query_cache: dict


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


# ============================================================================
# HEALTH CHECK ENDPOINTS
# ============================================================================


@router.get("", response_model=HealthResponse)
async def health_check(settings: SettingsDep, cache_client: CacheClientDep):
    """Quick health check for load balancers."""
    cache_state = cache_client.state
    status = "healthy" if cache_state == ConnectionState.CONNECTED else "degraded"
    return HealthResponse(
        status=status,
        timestamp=_timestamp(),
        version=settings.APP_VERSION,
        components={"cache": cache_state.value},
    )


@router.get("/cache", response_model=CacheHealthResponse)
async def cache_health(cache_client: CacheClientDep, query_cache: QueryCacheDep):
    """Cache client state, key count and hit/miss/fallback counters."""
    info = await cache_client.info()
    return CacheHealthResponse(
        status="healthy" if info.connected else "degraded",
        connected=info.connected,
        state=info.state.value,
        key_count=info.key_count,
        degraded_transitions=info.degraded_transitions,
        query_cache=query_cache.stats(),
    )
