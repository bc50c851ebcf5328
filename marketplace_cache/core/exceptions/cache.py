"""
Cache-Related Exceptions

All exceptions related to the cache client and key derivation.

Author: System Architect
Date: 2026-01-14
"""

from marketplace_cache.core.exceptions.base import MarketplaceError


class CacheError(MarketplaceError):
    """Base exception for cache-related errors."""
    pass


class CacheConnectionError(CacheError):
    """
    Raised when the cache store cannot be reached after all connection attempts.

    Only ``connect()`` raises this. Individual get/set/delete calls never do;
    they degrade to a miss or a no-op instead.

    Common causes:
    - Cache server is down
    - Network connectivity issues
    - Incorrect host/port configuration
    - Authentication failure
    """
    pass


class InvalidKeyInputError(CacheError):
    """
    Raised when query parameters cannot be turned into a deterministic key.

    Common causes:
    - Callables or arbitrary objects among the parameter values
    - Self-referencing (cyclic) parameter structures
    - Non-string mapping keys
    - Empty namespace
    """
    pass
