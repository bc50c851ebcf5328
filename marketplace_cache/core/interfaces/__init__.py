"""
Core Interfaces Module

Protocols for the swappable components of the marketplace query cache.

Components:
-----------
- **cache.py**: CacheClient protocol, CacheEntry and CacheInfo
- **data_source.py**: MarketplaceDataSource protocol

Author: System Architect
Date: 2026-01-14
"""

from marketplace_cache.core.interfaces.cache import CacheClient, CacheEntry, CacheInfo
from marketplace_cache.core.interfaces.data_source import MarketplaceDataSource

__all__ = [
    "CacheClient",
    "CacheEntry",
    "CacheInfo",
    "MarketplaceDataSource",
]
