"""Pytest configuration and fixtures."""

import sys
from datetime import datetime
from pathlib import Path

import pytest

# Add the python package to the path
PACKAGE_DIR = Path(__file__).parent.parent / "python"
sys.path.insert(0, str(PACKAGE_DIR))

from quote_graph.config import Config
from quote_graph.models.types import (
    QUOTE_SCHEMA,
    MergePolicy,
    NormalizedRow,
    QuoteRecord,
    TopOfBook,
    ViewSpec,
)
from quote_graph.storage.aggregation_store import AggregationStore, duckdb_engine


T1 = datetime(2019, 2, 11, 22, 6, 30, 572453)
T2 = datetime(2019, 2, 11, 22, 6, 31, 572453)


@pytest.fixture
def sample_config() -> Config:
    """Create a sample configuration for testing."""
    return Config()


@pytest.fixture
def sample_server_quote() -> dict:
    """A quote exactly as the quote server sends it."""
    return {
        "id": "0.109974697771",
        "stock": "ABC",
        "top_ask": {"price": 121.2, "size": 36},
        "top_bid": {"price": 120.48, "size": 109},
        "timestamp": "2019-02-11 22:06:30.572453",
    }


@pytest.fixture
def sample_record() -> QuoteRecord:
    """Create a sample quote record."""
    return QuoteRecord(
        stock="ABC",
        timestamp=T1,
        top_ask=TopOfBook(price=100.0, size=10),
        top_bid=TopOfBook(price=98.0, size=12),
    )


def make_row(stock: str, ask: float, bid: float, ts: datetime) -> NormalizedRow:
    return NormalizedRow(stock=stock, top_ask_price=ask, top_bid_price=bid, timestamp=ts)


def make_quote(stock: str, ask: float, bid: float, ts: datetime) -> dict:
    return {
        "stock": stock,
        "top_ask": {"price": ask, "size": 1},
        "top_bid": {"price": bid, "size": 1},
        "timestamp": ts,
    }


@pytest.fixture
def store():
    """In-memory store with the default view, distinct merge policy."""
    s = AggregationStore.create(QUOTE_SCHEMA, engine=duckdb_engine())
    s.configure_view(ViewSpec())
    yield s
    s.close()


@pytest.fixture
def append_store():
    """In-memory store with the default view, naive append policy."""
    s = AggregationStore.create(
        QUOTE_SCHEMA, engine=duckdb_engine(), merge_policy=MergePolicy.APPEND
    )
    s.configure_view(ViewSpec())
    yield s
    s.close()


class RecordingSink:
    """Render sink that remembers what it was given."""

    def __init__(self):
        self.loads = []

    def load(self, table, directives):
        self.loads.append((table, directives))


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
