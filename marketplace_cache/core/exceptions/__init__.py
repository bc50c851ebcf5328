"""
Exception Module

Structured exception hierarchy for the marketplace query cache.
Exceptions are organized by theme.

Module Structure:
-----------------
- **base.py**: MarketplaceError base class + ConfigurationError
- **cache.py**: Cache client and key derivation exceptions
- **data_source.py**: Listing data source exceptions
- **validation.py**: Request validation exceptions

Usage:
------
```python
from marketplace_cache.core.exceptions import CacheConnectionError, InvalidPageRequestError
```

Author: System Architect
Date: 2026-01-14
"""

# Base exception
from marketplace_cache.core.exceptions.base import ConfigurationError, MarketplaceError

# Cache exceptions
from marketplace_cache.core.exceptions.cache import (
    CacheConnectionError,
    CacheError,
    InvalidKeyInputError,
)

# Data source exceptions
from marketplace_cache.core.exceptions.data_source import (
    DataSourceError,
    DataSourceTimeoutError,
)

# Validation exceptions
from marketplace_cache.core.exceptions.validation import (
    InvalidPageRequestError,
    ValidationError,
)

__all__ = [
    # Base
    "MarketplaceError",
    "ConfigurationError",
    # Cache
    "CacheError",
    "CacheConnectionError",
    "InvalidKeyInputError",
    # Data source
    "DataSourceError",
    "DataSourceTimeoutError",
    # Validation
    "ValidationError",
    "InvalidPageRequestError",
]
