"""
System Constants and Enumerations

This module defines system-wide constants and enumerations used across
the marketplace query cache.

Architectural Decision: Centralized constants for maintainability
- Single source of truth for magic numbers
- Type-safe enums for state management
- Easy to update and track changes
"""

from enum import Enum

# ============================================================================
# Stage Identifiers (for structured logging)
# ============================================================================


class Stage(str, Enum):
    """
    Processing stages for structured logging.

    Format: {PREFIX}.{SEQUENCE}_{DESCRIPTIVE_NAME}

    Each value is attached to log entries as the ``stage`` field so a request
    can be followed from key derivation through to result composition.
    """

    # Cache client lifecycle
    CACHE_INIT = "CACHE.1_CLIENT_INIT"
    CACHE_CONNECT = "CACHE.2_CONNECT"
    CACHE_DISCONNECT = "CACHE.3_DISCONNECT"
    CACHE_DEGRADED = "CACHE.4_DEGRADED"
    CACHE_RECOVERED = "CACHE.5_RECOVERED"

    # Query cache
    QUERY_HIT = "QC.1_CACHE_HIT"
    QUERY_MISS = "QC.2_CACHE_MISS"
    QUERY_STORE = "QC.3_CACHE_STORE"
    QUERY_INVALIDATE = "QC.4_CACHE_INVALIDATE"

    # Aggregation
    AGG_REQUEST = "AGG.1_REQUEST"
    AGG_RECONCILE = "AGG.2_RECONCILE"
    AGG_COMPLETE = "AGG.3_COMPLETE"

    # Data source
    DATA_FETCH = "DS.1_FETCH"
    DATA_ERROR = "DS.2_ERROR"

    # Application
    INITIALIZATION = "APP.0_INITIALIZATION"
    SHUTDOWN = "APP.9_SHUTDOWN"


# ============================================================================
# Cache Connection States
# ============================================================================


class ConnectionState(str, Enum):
    """
    Cache client connection states.

    DISCONNECTED: Not connected (initial state, or after explicit close)
    CONNECTING: Connection attempt in progress
    CONNECTED: Normal operation
    DEGRADED: Store unreachable; operations short-circuit to misses/no-ops
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DEGRADED = "degraded"


class CacheBackend(str, Enum):
    """Cache client implementations selectable by configuration."""

    REDIS = "redis"
    MEMORY = "memory"


class DataSourceBackend(str, Enum):
    """Data source implementations selectable by configuration."""

    POSTGREST = "postgrest"
    MEMORY = "memory"


# ============================================================================
# Cache Key Namespaces
# ============================================================================

KEY_PREFIX_DEFAULT = "mkt"

NAMESPACE_PAGE = "marketplace:page"
NAMESPACE_COUNT = "marketplace:count"
NAMESPACE_SELLERS = "marketplace:sellers"

# ============================================================================
# Defaults
# ============================================================================

# TTLs (seconds). Aggregates change slowly, page windows are volatile.
DEFAULT_STATS_TTL = 300
DEFAULT_PAGE_TTL = 30

# Cache operations must stay well under the cost of a direct fetch.
DEFAULT_OPERATION_TIMEOUT_MS = 50
DEFAULT_CONNECT_TIMEOUT = 2.0

# Connection retry policy
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_BACKOFF_BASE = 1.0
DEFAULT_RETRY_BACKOFF_MAX = 5.0

# Pagination
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

# ============================================================================
# HTTP
# ============================================================================

HEADER_REQUEST_ID = "X-Request-ID"
API_BASE_PATH = "/api/v1"

# PostgREST view exposing the item-for-sale projection
POSTGREST_LISTINGS_VIEW = "public_items"
