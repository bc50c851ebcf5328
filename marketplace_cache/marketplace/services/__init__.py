from .aggregation_engine import AggregationEngine

__all__ = ["AggregationEngine"]
