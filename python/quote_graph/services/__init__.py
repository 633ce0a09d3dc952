"""Services for the quote-graph system."""

from .normalizer import normalize_record, normalize_batch
from .stream_adapter import StreamAdapter, AdapterStats, RenderSink
from .replay import ReplayFeed, ReplayStats

__all__ = [
    "normalize_record",
    "normalize_batch",
    "StreamAdapter",
    "AdapterStats",
    "RenderSink",
    "ReplayFeed",
    "ReplayStats",
]
