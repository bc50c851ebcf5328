#!/usr/bin/env python3
"""
Centralized Configuration Module using Pydantic Settings

This module provides type-safe, environment-based configuration for the
marketplace query cache. Every tunable (cache endpoint, retry policy, TTL
policy, data source location, pagination bounds) is declared here and read
once at process start.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support
- Type validation at startup (fail fast on misconfiguration)
- Components receive plain config objects built from these settings,
  never the settings singleton itself

Author: System Architect
Date: 2026-01-14
"""

from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from marketplace_cache.core.config.constants import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_MAX_RETRIES,
    DEFAULT_OPERATION_TIMEOUT_MS,
    DEFAULT_PAGE_SIZE,
    DEFAULT_PAGE_TTL,
    DEFAULT_RETRY_BACKOFF_BASE,
    DEFAULT_RETRY_BACKOFF_MAX,
    DEFAULT_STATS_TTL,
    KEY_PREFIX_DEFAULT,
    MAX_PAGE_SIZE,
)


class CacheSettings(BaseSettings):
    """
    Cache store configuration.

    STAGE-0.1: Cache connection, retry and TTL policy

    Architectural Decision: Bounded operations
    - Every cache operation is capped at CACHE_OPERATION_TIMEOUT_MS
    - Connection establishment retries with exponential backoff
    - Page windows and aggregates carry separate TTLs
    """

    CACHE_BACKEND: Literal["redis", "memory"] = Field(default="redis", description="Cache client implementation")
    CACHE_HOST: str = Field(default="localhost", description="Cache server host")
    CACHE_PORT: int = Field(default=6379, description="Cache server port")
    CACHE_DB: int = Field(default=0, description="Cache database number")
    CACHE_PASSWORD: str | None = Field(default=None, description="Cache password (if required)")
    CACHE_KEY_PREFIX: str = Field(default=KEY_PREFIX_DEFAULT, description="Prefix for every cache key")

    CACHE_MAX_RETRIES: int = Field(default=DEFAULT_MAX_RETRIES, ge=1, description="Connection attempts before degrading")
    CACHE_RETRY_BACKOFF_BASE: float = Field(default=DEFAULT_RETRY_BACKOFF_BASE, gt=0, description="Initial backoff in seconds")
    CACHE_RETRY_BACKOFF_MAX: float = Field(default=DEFAULT_RETRY_BACKOFF_MAX, gt=0, description="Backoff ceiling in seconds")
    CACHE_OPERATION_TIMEOUT_MS: int = Field(
        default=DEFAULT_OPERATION_TIMEOUT_MS, gt=0, description="Per-operation timeout in milliseconds"
    )
    CACHE_CONNECT_TIMEOUT: float = Field(default=DEFAULT_CONNECT_TIMEOUT, gt=0, description="Connect timeout in seconds")

    CACHE_PAGE_TTL: int = Field(default=DEFAULT_PAGE_TTL, gt=0, description="TTL for page windows (seconds)")
    CACHE_STATS_TTL: int = Field(default=DEFAULT_STATS_TTL, gt=0, description="TTL for counts and aggregates (seconds)")
    QUERY_CACHE_DEDUPE_INFLIGHT: bool = Field(
        default=False, description="Collapse concurrent misses for the same key into one fetch"
    )

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class DataSourceSettings(BaseSettings):
    """
    Listing data source configuration.

    STAGE-0.2: Data source location
    """

    DATA_SOURCE_BACKEND: Literal["postgrest", "memory"] = Field(
        default="postgrest", description="Data source implementation"
    )
    DATA_SOURCE_BASE_URL: str = Field(default="http://localhost:3000", description="PostgREST base URL")
    DATA_SOURCE_API_KEY: str | None = Field(default=None, description="API key sent as apikey/Bearer header")
    DATA_SOURCE_TIMEOUT: float = Field(default=10.0, gt=0, description="Request timeout in seconds")
    DATA_SOURCE_MAX_RETRIES: int = Field(default=2, ge=1, description="Attempts per data source request")
    DATA_SOURCE_SEED_FILE: str | None = Field(
        default=None, description="JSON file of listings loaded by the memory backend at startup"
    )

    DEFAULT_PAGE_SIZE: int = Field(default=DEFAULT_PAGE_SIZE, gt=0, description="Page size when none is requested")
    MAX_PAGE_SIZE: int = Field(default=MAX_PAGE_SIZE, gt=0, description="Largest page size accepted")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class LoggingSettings(BaseSettings):
    """
    Logging configuration.

    STAGE-0.3: Structured logging
    """

    LOG_LEVEL: str = Field(default="INFO", description="Log level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class ApplicationSettings(BaseSettings):
    """Application-level configuration."""

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development", description="Deployment environment"
    )
    DEBUG: bool = Field(default=False, description="Debug mode")
    APP_NAME: str = Field(default="marketplace-cache", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")
    API_HOST: str = Field(default="0.0.0.0", description="API host")
    API_PORT: int = Field(default=8000, description="API port")
    CORS_ORIGINS: list[str] = Field(default=["*"], description="Allowed CORS origins")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class Settings(BaseSettings):
    """
    Main settings class aggregating all configuration sections.

    Fields are flat so each one maps to a single environment variable; the
    nested properties return grouped views for the components that need them.

    Usage:
        from marketplace_cache.core.config.settings import get_settings

        settings = get_settings()
        port = settings.cache.CACHE_PORT
    """

    # Cache
    CACHE_BACKEND: Literal["redis", "memory"] = Field(default="redis")
    CACHE_HOST: str = Field(default="localhost")
    CACHE_PORT: int = Field(default=6379)
    CACHE_DB: int = Field(default=0)
    CACHE_PASSWORD: str | None = Field(default=None)
    CACHE_KEY_PREFIX: str = Field(default=KEY_PREFIX_DEFAULT)
    CACHE_MAX_RETRIES: int = Field(default=DEFAULT_MAX_RETRIES, ge=1)
    CACHE_RETRY_BACKOFF_BASE: float = Field(default=DEFAULT_RETRY_BACKOFF_BASE, gt=0)
    CACHE_RETRY_BACKOFF_MAX: float = Field(default=DEFAULT_RETRY_BACKOFF_MAX, gt=0)
    CACHE_OPERATION_TIMEOUT_MS: int = Field(default=DEFAULT_OPERATION_TIMEOUT_MS, gt=0)
    CACHE_CONNECT_TIMEOUT: float = Field(default=DEFAULT_CONNECT_TIMEOUT, gt=0)
    CACHE_PAGE_TTL: int = Field(default=DEFAULT_PAGE_TTL, gt=0)
    CACHE_STATS_TTL: int = Field(default=DEFAULT_STATS_TTL, gt=0)
    QUERY_CACHE_DEDUPE_INFLIGHT: bool = Field(default=False)

    # Data source
    DATA_SOURCE_BACKEND: Literal["postgrest", "memory"] = Field(default="postgrest")
    DATA_SOURCE_BASE_URL: str = Field(default="http://localhost:3000")
    DATA_SOURCE_API_KEY: str | None = Field(default=None)
    DATA_SOURCE_TIMEOUT: float = Field(default=10.0, gt=0)
    DATA_SOURCE_MAX_RETRIES: int = Field(default=2, ge=1)
    DATA_SOURCE_SEED_FILE: str | None = Field(default=None)
    DEFAULT_PAGE_SIZE: int = Field(default=DEFAULT_PAGE_SIZE, gt=0)
    MAX_PAGE_SIZE: int = Field(default=MAX_PAGE_SIZE, gt=0)

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json")

    # Application
    ENVIRONMENT: Literal["development", "staging", "production"] = Field(default="development")
    DEBUG: bool = Field(default=False)
    APP_NAME: str = Field(default="marketplace-cache")
    APP_VERSION: str = Field(default="1.0.0")
    API_HOST: str = Field(default="0.0.0.0")
    API_PORT: int = Field(default=8000)
    CORS_ORIGINS: list[str] = Field(default=["*"])

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    @model_validator(mode="after")
    def validate_bounds(self):
        """Cross-field checks: page size and backoff ordering."""
        if self.DEFAULT_PAGE_SIZE > self.MAX_PAGE_SIZE:
            raise ValueError("DEFAULT_PAGE_SIZE must not exceed MAX_PAGE_SIZE")
        if self.CACHE_RETRY_BACKOFF_BASE > self.CACHE_RETRY_BACKOFF_MAX:
            raise ValueError("CACHE_RETRY_BACKOFF_BASE must not exceed CACHE_RETRY_BACKOFF_MAX")
        return self

    # Nested configuration views
    @property
    def cache(self) -> 'CacheSettings':
        """Get cache settings."""
        return CacheSettings(
            CACHE_BACKEND=self.CACHE_BACKEND,
            CACHE_HOST=self.CACHE_HOST,
            CACHE_PORT=self.CACHE_PORT,
            CACHE_DB=self.CACHE_DB,
            CACHE_PASSWORD=self.CACHE_PASSWORD,
            CACHE_KEY_PREFIX=self.CACHE_KEY_PREFIX,
            CACHE_MAX_RETRIES=self.CACHE_MAX_RETRIES,
            CACHE_RETRY_BACKOFF_BASE=self.CACHE_RETRY_BACKOFF_BASE,
            CACHE_RETRY_BACKOFF_MAX=self.CACHE_RETRY_BACKOFF_MAX,
            CACHE_OPERATION_TIMEOUT_MS=self.CACHE_OPERATION_TIMEOUT_MS,
            CACHE_CONNECT_TIMEOUT=self.CACHE_CONNECT_TIMEOUT,
            CACHE_PAGE_TTL=self.CACHE_PAGE_TTL,
            CACHE_STATS_TTL=self.CACHE_STATS_TTL,
            QUERY_CACHE_DEDUPE_INFLIGHT=self.QUERY_CACHE_DEDUPE_INFLIGHT,
        )

    @property
    def data_source(self) -> 'DataSourceSettings':
        """Get data source settings."""
        return DataSourceSettings(
            DATA_SOURCE_BACKEND=self.DATA_SOURCE_BACKEND,
            DATA_SOURCE_BASE_URL=self.DATA_SOURCE_BASE_URL,
            DATA_SOURCE_API_KEY=self.DATA_SOURCE_API_KEY,
            DATA_SOURCE_TIMEOUT=self.DATA_SOURCE_TIMEOUT,
            DATA_SOURCE_MAX_RETRIES=self.DATA_SOURCE_MAX_RETRIES,
            DATA_SOURCE_SEED_FILE=self.DATA_SOURCE_SEED_FILE,
            DEFAULT_PAGE_SIZE=self.DEFAULT_PAGE_SIZE,
            MAX_PAGE_SIZE=self.MAX_PAGE_SIZE,
        )

    @property
    def logging(self) -> 'LoggingSettings':
        """Get logging settings."""
        return LoggingSettings(LOG_LEVEL=self.LOG_LEVEL, LOG_FORMAT=self.LOG_FORMAT)

    @property
    def app(self) -> 'ApplicationSettings':
        """Get application settings."""
        return ApplicationSettings(
            ENVIRONMENT=self.ENVIRONMENT,
            DEBUG=self.DEBUG,
            APP_NAME=self.APP_NAME,
            APP_VERSION=self.APP_VERSION,
            API_HOST=self.API_HOST,
            API_PORT=self.API_PORT,
            CORS_ORIGINS=self.CORS_ORIGINS,
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"  # Ignore extra environment variables
    )


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global settings instance (singleton).

    STAGE-0.4: Settings initialization

    Returns:
        Settings: Global settings instance
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


def reload_settings() -> Settings:
    """
    Reload settings (useful for testing).

    Returns:
        Settings: New settings instance
    """
    global _settings
    _settings = Settings()
    return _settings
