"""
Marketplace Query Cache

Cache-backed query aggregation for the item marketplace: deterministic cache
keys, a degradable cache client, read-through query caching and consistent
page + statistics composition.
"""

__version__ = "1.0.0"
