"""Core data types for the quote-graph system."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from ..errors import MalformedRecordError


# Logical schema of the aggregation table: field name -> logical type.
QUOTE_SCHEMA: Dict[str, str] = {
    "stock": "string",
    "top_ask_price": "float",
    "top_bid_price": "float",
    "timestamp": "date",
}

# Timestamp layout used by the quote server, e.g. "2019-02-01 09:30:00.123456"
SERVER_TS_FORMAT = "%Y-%m-%d %H:%M:%S.%f"

TimestampLike = Union[datetime, str, int, float]


class MergePolicy(Enum):
    """How the store treats rows that repeat an earlier observation."""
    APPEND = "append"
    DISTINCT = "distinct"


class Aggregate(Enum):
    """Aggregation rules understood by the view layer."""
    AVG = "avg"
    SUM = "sum"
    MIN = "min"
    MAX = "max"
    COUNT = "count"
    DISTINCT_COUNT = "distinct count"
    LAST = "last"

    @property
    def sql(self) -> str:
        """SQL aggregate template; {col} is replaced by the quoted column."""
        return {
            Aggregate.AVG: "AVG({col})",
            Aggregate.SUM: "SUM({col})",
            Aggregate.MIN: "MIN({col})",
            Aggregate.MAX: "MAX({col})",
            Aggregate.COUNT: "COUNT({col})",
            Aggregate.DISTINCT_COUNT: "COUNT(DISTINCT {col})",
            Aggregate.LAST: "LAST({col})",
        }[self]

    @property
    def label(self) -> str:
        """Column suffix used when the rule applies to a pivot key."""
        return self.value.replace(" ", "_")


def parse_timestamp(value: TimestampLike) -> datetime:
    """Parse a date-like value into a naive UTC datetime.

    Accepts datetimes, ISO-8601 strings, the quote server's
    ``YYYY-MM-DD HH:MM:SS.ffffff`` strings and epoch milliseconds.
    """
    if isinstance(value, bool):
        raise MalformedRecordError(f"Invalid timestamp: {value!r}")

    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, (int, float)):
        try:
            ts = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            raise MalformedRecordError(f"Timestamp out of range: {value!r}") from None
    elif isinstance(value, str):
        text = value.strip()
        try:
            ts = datetime.strptime(text, SERVER_TS_FORMAT)
        except ValueError:
            try:
                ts = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                raise MalformedRecordError(f"Invalid timestamp: {value!r}") from None
    else:
        raise MalformedRecordError(f"Invalid timestamp: {value!r}")

    # The engine stores TIMESTAMP without zone; keep everything in UTC.
    if ts.tzinfo is not None:
        try:
            ts = ts.astimezone(timezone.utc).replace(tzinfo=None)
        except OverflowError:
            raise MalformedRecordError(f"Timestamp out of range: {value!r}") from None
    return ts


@dataclass
class TopOfBook:
    """Best price on one side of the book."""
    price: Optional[float] = None
    size: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> Optional["TopOfBook"]:
        """Parse a quote-server side, e.g. ``{"price": 118.1, "size": 40}``."""
        if not data:
            return None
        if not isinstance(data, Mapping):
            raise MalformedRecordError(f"Invalid book side: {data!r}")
        return cls(price=data.get("price"), size=data.get("size"))


@dataclass
class QuoteRecord:
    """A raw quote as delivered by the stream."""
    stock: Optional[str]
    timestamp: Optional[TimestampLike]
    top_ask: Optional[TopOfBook] = None
    top_bid: Optional[TopOfBook] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "QuoteRecord":
        """Create a record from the quote server's JSON shape.

        Example:
            {
                "stock": "ABC",
                "top_ask": {"price": 121.2, "size": 36},
                "top_bid": {"price": 120.48, "size": 109},
                "timestamp": "2019-02-11 22:06:30.572453"
            }
        """
        return cls(
            stock=data.get("stock"),
            timestamp=data.get("timestamp"),
            top_ask=TopOfBook.from_dict(data.get("top_ask", data.get("topAsk"))),
            top_bid=TopOfBook.from_dict(data.get("top_bid", data.get("topBid"))),
        )


@dataclass(frozen=True)
class NormalizedRow:
    """A schema-conformant row of the aggregation table."""
    stock: str
    top_ask_price: float
    top_bid_price: float
    timestamp: datetime

    def as_tuple(self) -> tuple:
        """Values in QUOTE_SCHEMA column order."""
        return (self.stock, self.top_ask_price, self.top_bid_price, self.timestamp)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stock": self.stock,
            "top_ask_price": self.top_ask_price,
            "top_bid_price": self.top_bid_price,
            "timestamp": self.timestamp,
        }


@dataclass
class ViewSpec:
    """Declarative grouping and aggregation of the table for a render sink."""
    view: str = "y_line"
    column_pivots: List[str] = field(default_factory=lambda: ["stock"])
    row_pivots: List[str] = field(default_factory=lambda: ["timestamp"])
    columns: List[str] = field(default_factory=lambda: ["top_ask_price"])
    aggregates: Dict[str, Aggregate] = field(default_factory=lambda: {
        "stock": Aggregate.DISTINCT_COUNT,
        "top_ask_price": Aggregate.AVG,
        "top_bid_price": Aggregate.AVG,
        "timestamp": Aggregate.DISTINCT_COUNT,
    })

    @property
    def group_keys(self) -> List[str]:
        """Row pivots first, then column pivots."""
        return self.row_pivots + [k for k in self.column_pivots if k not in self.row_pivots]

    def fields(self) -> List[str]:
        """Every field the view refers to."""
        names = list(self.group_keys) + list(self.columns) + list(self.aggregates)
        return list(dict.fromkeys(names))

    def directives(self) -> Dict[str, Any]:
        """Key/value directives for the render sink."""
        return {
            "view": self.view,
            "column-pivots": list(self.column_pivots),
            "row-pivots": list(self.row_pivots),
            "columns": list(self.columns),
            "aggregates": {name: agg.value for name, agg in self.aggregates.items()},
        }


@dataclass
class AggregatedPoint:
    """One group of the aggregated view."""
    keys: Dict[str, Any]
    values: Dict[str, Any]
    row_count: int

    def __getitem__(self, name: str) -> Any:
        if name in self.keys:
            return self.keys[name]
        return self.values[name]
