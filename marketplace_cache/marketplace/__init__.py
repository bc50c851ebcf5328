"""Marketplace domain: listing models and the aggregation service."""
