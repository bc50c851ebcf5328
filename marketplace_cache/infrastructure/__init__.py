"""Infrastructure layer: cache clients and listing data sources."""
