"""Data models for the quote-graph system."""

from .types import (
    QUOTE_SCHEMA,
    TopOfBook,
    QuoteRecord,
    NormalizedRow,
    MergePolicy,
    Aggregate,
    ViewSpec,
    AggregatedPoint,
    parse_timestamp,
)

__all__ = [
    "QUOTE_SCHEMA",
    "TopOfBook",
    "QuoteRecord",
    "NormalizedRow",
    "MergePolicy",
    "Aggregate",
    "ViewSpec",
    "AggregatedPoint",
    "parse_timestamp",
]
