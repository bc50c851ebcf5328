"""
Unit Tests for Configuration

Tests Settings defaults, environment overrides, validation, nested views,
and the runtime config objects built from them.
"""

import pytest
from pydantic import ValidationError

from marketplace_cache.core.config.constants import CacheBackend, DataSourceBackend
from marketplace_cache.core.config.runtime import CacheClientConfig, DataSourceConfig, TTLPolicy
from marketplace_cache.core.config.settings import Settings, get_settings, reload_settings


@pytest.mark.unit
class TestSettingsDefaults:
    """Test default configuration values."""

    def test_cache_defaults(self):
        """Test cache defaults match the documented policy."""
        settings = Settings(_env_file=None)

        assert settings.CACHE_BACKEND == "redis"
        assert settings.CACHE_PORT == 6379
        assert settings.CACHE_KEY_PREFIX == "mkt"
        assert settings.CACHE_OPERATION_TIMEOUT_MS == 50
        assert settings.CACHE_PAGE_TTL == 30
        assert settings.CACHE_STATS_TTL == 300
        assert settings.QUERY_CACHE_DEDUPE_INFLIGHT is False

    def test_data_source_defaults(self):
        """Test data source and pagination defaults."""
        settings = Settings(_env_file=None)

        assert settings.DATA_SOURCE_BACKEND == "postgrest"
        assert settings.DEFAULT_PAGE_SIZE == 20
        assert settings.MAX_PAGE_SIZE == 100


@pytest.mark.unit
class TestSettingsEnvironment:
    """Test environment variable overrides."""

    def test_environment_overrides(self, monkeypatch):
        """Test that environment variables override defaults."""
        monkeypatch.setenv("CACHE_HOST", "valkey.internal")
        monkeypatch.setenv("CACHE_PAGE_TTL", "15")
        monkeypatch.setenv("QUERY_CACHE_DEDUPE_INFLIGHT", "true")

        settings = Settings(_env_file=None)

        assert settings.CACHE_HOST == "valkey.internal"
        assert settings.CACHE_PAGE_TTL == 15
        assert settings.QUERY_CACHE_DEDUPE_INFLIGHT is True

    def test_reload_settings_picks_up_changes(self, monkeypatch):
        """Test that reload_settings replaces the singleton."""
        first = get_settings()
        assert get_settings() is first

        monkeypatch.setenv("APP_NAME", "reloaded-cache")
        reloaded = reload_settings()

        assert reloaded is not first
        assert reloaded.APP_NAME == "reloaded-cache"
        assert get_settings() is reloaded

        monkeypatch.delenv("APP_NAME")
        reload_settings()


@pytest.mark.unit
class TestSettingsValidation:
    """Test validators."""

    def test_log_level_is_normalized(self):
        """Test that LOG_LEVEL is upper-cased."""
        assert Settings(_env_file=None, LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"

    def test_invalid_log_level_rejected(self):
        """Test that an unknown LOG_LEVEL fails fast."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, LOG_LEVEL="verbose")

    def test_default_page_size_cannot_exceed_max(self):
        """Test cross-field page size check."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, DEFAULT_PAGE_SIZE=50, MAX_PAGE_SIZE=10)

    def test_backoff_base_cannot_exceed_max(self):
        """Test cross-field backoff check."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, CACHE_RETRY_BACKOFF_BASE=10.0, CACHE_RETRY_BACKOFF_MAX=1.0)

    @pytest.mark.parametrize("field", ["CACHE_PAGE_TTL", "CACHE_STATS_TTL", "CACHE_OPERATION_TIMEOUT_MS"])
    def test_non_positive_values_rejected(self, field):
        """Test that TTLs and timeouts must be positive."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **{field: 0})

    def test_unknown_backend_rejected(self):
        """Test that only supported backends are accepted."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, CACHE_BACKEND="memcached")


@pytest.mark.unit
class TestNestedViews:
    """Test grouped settings views."""

    def test_cache_view(self):
        """Test that the cache view mirrors the flat fields."""
        settings = Settings(_env_file=None, CACHE_HOST="cache.test", CACHE_STATS_TTL=120)

        assert settings.cache.CACHE_HOST == "cache.test"
        assert settings.cache.CACHE_STATS_TTL == 120

    def test_other_views(self):
        """Test data source, logging and app views."""
        settings = Settings(_env_file=None, DATA_SOURCE_BASE_URL="http://rest.test", LOG_FORMAT="console")

        assert settings.data_source.DATA_SOURCE_BASE_URL == "http://rest.test"
        assert settings.logging.LOG_FORMAT == "console"
        assert settings.app.APP_NAME == "marketplace-cache"


@pytest.mark.unit
class TestRuntimeConfig:
    """Test runtime config objects built from settings."""

    def test_cache_client_config_from_settings(self):
        """Test that the operation timeout is converted to seconds."""
        settings = Settings(_env_file=None, CACHE_BACKEND="memory", CACHE_OPERATION_TIMEOUT_MS=40, CACHE_KEY_PREFIX="x")
        config = CacheClientConfig.from_settings(settings.cache)

        assert config.backend is CacheBackend.MEMORY
        assert config.operation_timeout == pytest.approx(0.04)
        assert config.key_prefix == "x"

    def test_ttl_policy_from_settings(self):
        """Test TTL policy values."""
        settings = Settings(_env_file=None, CACHE_PAGE_TTL=10, CACHE_STATS_TTL=600)
        policy = TTLPolicy.from_settings(settings.cache)

        assert policy == TTLPolicy(page_ttl=10, stats_ttl=600)

    def test_data_source_config_from_settings(self):
        """Test data source config values."""
        settings = Settings(_env_file=None, DATA_SOURCE_API_KEY="secret", MAX_PAGE_SIZE=50)
        config = DataSourceConfig.from_settings(settings.data_source)

        assert config.backend is DataSourceBackend.POSTGREST
        assert config.api_key == "secret"
        assert config.max_page_size == 50
        assert config.seed_file is None

    def test_seed_file_reaches_data_source_config(self):
        """Test that DATA_SOURCE_SEED_FILE flows through the settings view."""
        settings = Settings(_env_file=None, DATA_SOURCE_BACKEND="memory", DATA_SOURCE_SEED_FILE="/data/listings.json")
        config = DataSourceConfig.from_settings(settings.data_source)

        assert config.backend is DataSourceBackend.MEMORY
        assert config.seed_file == "/data/listings.json"

    def test_configs_are_immutable(self):
        """Test that runtime configs cannot be mutated."""
        config = CacheClientConfig()

        with pytest.raises(AttributeError):
            config.host = "elsewhere"
