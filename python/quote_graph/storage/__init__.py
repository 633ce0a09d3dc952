"""Storage layer for the quote-graph system.

Uses DuckDB as the in-process aggregation engine.
"""

from .aggregation_store import AggregationStore, EngineFactory, duckdb_engine

__all__ = [
    "AggregationStore",
    "EngineFactory",
    "duckdb_engine",
]
