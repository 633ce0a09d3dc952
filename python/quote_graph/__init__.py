"""
Quote Graph - live aggregated quote table

Ingests batches of timestamped top-of-book quotes and keeps a DuckDB
table whose grouped view shows each (stock, timestamp) observation
exactly once, ready for a line chart:

- x-axis: timestamp (row pivot)
- one series per stock (column pivot)
- repeated observations averaged at read time
"""

__version__ = "0.1.0"
__author__ = "quote-graph"

from .config import Config, load_config
from .errors import (
    QuoteGraphError,
    EngineUnavailableError,
    MalformedRecordError,
    SchemaMismatchError,
)
from .models.types import (
    QUOTE_SCHEMA,
    TopOfBook,
    QuoteRecord,
    NormalizedRow,
    MergePolicy,
    Aggregate,
    ViewSpec,
    AggregatedPoint,
)
from .storage import AggregationStore, duckdb_engine
from .services import (
    normalize_record,
    normalize_batch,
    StreamAdapter,
    ReplayFeed,
)

__all__ = [
    # Config
    "Config",
    "load_config",
    # Errors
    "QuoteGraphError",
    "EngineUnavailableError",
    "MalformedRecordError",
    "SchemaMismatchError",
    # Types
    "QUOTE_SCHEMA",
    "TopOfBook",
    "QuoteRecord",
    "NormalizedRow",
    "MergePolicy",
    "Aggregate",
    "ViewSpec",
    "AggregatedPoint",
    # Storage
    "AggregationStore",
    "duckdb_engine",
    # Services
    "normalize_record",
    "normalize_batch",
    "StreamAdapter",
    "ReplayFeed",
]
