"""
Data Source Module

Authoritative listing sources behind the MarketplaceDataSource protocol.
"""

from .factory import create_data_source
from .in_memory import InMemoryDataSource
from .postgrest import PostgrestDataSource

__all__ = [
    "create_data_source",
    "InMemoryDataSource",
    "PostgrestDataSource",
]
