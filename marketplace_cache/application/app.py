#!/usr/bin/env python3
"""
FastAPI Application Entry Point

This is the process entry point for the marketplace query cache. It is the
only place that reads Settings: the lifespan turns them into explicit config
objects, constructs one cache client, one query cache, one data source and
one aggregation engine, and owns their connect/disconnect lifecycle.

Author: System Architect
Date: 2026-01-14
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from marketplace_cache.application.api.middleware.error_handler import (
    ErrorHandlingMiddleware,
    register_exception_handlers,
)
from marketplace_cache.application.api.middleware.request_id import request_id_middleware
from marketplace_cache.application.api.routes.health import router as health_router
from marketplace_cache.application.api.routes.marketplace import router as marketplace_router
from marketplace_cache.core.config.constants import API_BASE_PATH, HEADER_REQUEST_ID, Stage
from marketplace_cache.core.config.runtime import CacheClientConfig, DataSourceConfig, TTLPolicy
from marketplace_cache.core.config.settings import Settings, get_settings
from marketplace_cache.core.exceptions import CacheConnectionError
from marketplace_cache.core.logging.logger import get_logger, log_stage, setup_logging
from marketplace_cache.infrastructure.cache.factory import create_cache_client
from marketplace_cache.infrastructure.cache.key_generator import KeyGenerator
from marketplace_cache.infrastructure.cache.query_cache import QueryCache
from marketplace_cache.infrastructure.data_source.factory import create_data_source
from marketplace_cache.marketplace.services.aggregation_engine import AggregationEngine

logger = get_logger(__name__)


# ============================================================================
# Application Lifespan
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle (startup and shutdown).

    A cache that cannot be reached at startup is not fatal: the client stays
    DEGRADED, requests are served straight from the data source, and the
    client reconnects in the background.
    """
    settings: Settings = app.state.settings

    setup_logging(log_level=settings.logging.LOG_LEVEL, log_format=settings.logging.LOG_FORMAT)

    log_stage(
        logger,
        Stage.INITIALIZATION,
        "Starting marketplace query cache",
        environment=settings.app.ENVIRONMENT,
        version=settings.app.APP_VERSION,
        cache_backend=settings.cache.CACHE_BACKEND,
        data_source_backend=settings.data_source.DATA_SOURCE_BACKEND,
    )

    cache_config = CacheClientConfig.from_settings(settings.cache)
    data_source_config = DataSourceConfig.from_settings(settings.data_source)

    cache_client = create_cache_client(cache_config)
    data_source = create_data_source(data_source_config)

    try:
        try:
            await cache_client.connect()
        except CacheConnectionError as e:
            logger.warning(
                "Cache unavailable at startup, continuing without cache",
                stage=Stage.INITIALIZATION.value,
                error=e.message,
                details=e.details,
            )

        query_cache = QueryCache(cache_client, dedupe_inflight=settings.cache.QUERY_CACHE_DEDUPE_INFLIGHT)
        engine = AggregationEngine(
            query_cache,
            data_source,
            key_generator=KeyGenerator(cache_config.key_prefix),
            ttl_policy=TTLPolicy.from_settings(settings.cache),
            default_page_size=data_source_config.default_page_size,
            max_page_size=data_source_config.max_page_size,
        )

        # Store in app state for dependencies.py
        app.state.cache_client = cache_client
        app.state.query_cache = query_cache
        app.state.data_source = data_source
        app.state.aggregation_engine = engine

        logger.info("Application startup complete", cache_state=cache_client.state.value)

        yield

    finally:
        log_stage(logger, Stage.SHUTDOWN, "Shutting down application")

        await data_source.close()
        await cache_client.disconnect()

        logger.info("Application shutdown complete")


# ============================================================================
# Application Factory
# ============================================================================


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Explicit settings (tests); defaults to the process settings

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app.APP_NAME,
        version=settings.app.APP_VERSION,
        description="Cache-backed marketplace listings with consistent page totals",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings

    # Middleware executes in reverse order of registration:
    # request ID → CORS → error handling → routes
    app.add_middleware(
        ErrorHandlingMiddleware,
        include_traceback=(settings.app.ENVIRONMENT == "development")
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.app.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[HEADER_REQUEST_ID],
    )
    app.middleware("http")(request_id_middleware)

    register_exception_handlers(app)

    app.include_router(health_router, prefix=API_BASE_PATH)
    app.include_router(marketplace_router, prefix=API_BASE_PATH)

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "name": settings.app.APP_NAME,
            "version": settings.app.APP_VERSION,
            "environment": settings.app.ENVIRONMENT,
            "docs": "/docs",
            "health": f"{API_BASE_PATH}/health",
        }

    return app


# ============================================================================
# Main Entry Point
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "marketplace_cache.application.app:create_app",
        factory=True,
        host=settings.app.API_HOST,
        port=settings.app.API_PORT,
        reload=settings.app.ENVIRONMENT == "development",
        log_level=settings.logging.LOG_LEVEL.lower(),
    )
