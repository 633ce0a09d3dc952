"""Normalization of raw quote records into aggregation rows.

Default rules:
- a missing side, or a side without a price, becomes 0.0
- a NaN price becomes 0.0
- stock and timestamp pass through; the timestamp is parsed to a
  naive UTC datetime

A record without stock or timestamp is out of contract and raises
MalformedRecordError. normalize_batch drops such records instead.
"""

import logging
import math
from typing import Any, Iterable, List, Mapping, Optional, Tuple, Union

from ..errors import MalformedRecordError
from ..models.types import NormalizedRow, QuoteRecord, TopOfBook, parse_timestamp

logger = logging.getLogger(__name__)

RawRecord = Union[QuoteRecord, Mapping[str, Any]]


def _price(side: Optional[TopOfBook]) -> float:
    if side is None:
        return 0.0
    if not isinstance(side, TopOfBook):
        raise MalformedRecordError(f"Invalid book side: {side!r}")
    if side.price is None:
        return 0.0
    try:
        price = float(side.price)
    except (TypeError, ValueError):
        raise MalformedRecordError(f"Invalid price: {side.price!r}") from None
    if math.isnan(price):
        return 0.0
    return price


def normalize_record(record: RawRecord) -> NormalizedRow:
    """Map one quote record onto the aggregation schema."""
    if isinstance(record, Mapping):
        record = QuoteRecord.from_dict(record)
    elif not isinstance(record, QuoteRecord):
        raise MalformedRecordError(f"Not a quote record: {record!r}")

    if not record.stock:
        raise MalformedRecordError("Quote record has no stock")
    if record.timestamp is None:
        raise MalformedRecordError(f"Quote record for {record.stock} has no timestamp")

    return NormalizedRow(
        stock=str(record.stock),
        top_ask_price=_price(record.top_ask),
        top_bid_price=_price(record.top_bid),
        timestamp=parse_timestamp(record.timestamp),
    )


def normalize_batch(records: Iterable[RawRecord]) -> Tuple[List[NormalizedRow], int]:
    """Normalize a batch, dropping malformed records.

    Returns:
        (rows, dropped) where dropped is the number of records skipped
    """
    rows = []
    dropped = 0
    for record in records:
        try:
            rows.append(normalize_record(record))
        except MalformedRecordError as e:
            logger.warning(f"Dropping malformed quote record: {e}")
            dropped += 1
    return rows, dropped
