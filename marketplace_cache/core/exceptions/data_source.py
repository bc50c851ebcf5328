"""
Data Source Exceptions

Errors raised by listing data sources (PostgREST, in-memory).
These propagate through the query cache unchanged; a failed fetch is never cached.

Author: System Architect
Date: 2026-01-14
"""

from marketplace_cache.core.exceptions.base import MarketplaceError


class DataSourceError(MarketplaceError):
    """
    Raised when the authoritative data source fails to answer a query.

    Common causes:
    - Upstream returned a non-2xx status
    - Malformed response body
    - Transport failure after all retries
    """

    status_code = 502
    retryable = True


class DataSourceTimeoutError(DataSourceError):
    """Raised when a data source request exceeds its timeout."""

    status_code = 504
