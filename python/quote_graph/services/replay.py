"""File-backed quote producer.

Replays recorded batches into a StreamAdapter. The file is JSON Lines:
each line is one batch, a JSON array of quote-server records:

    [{"stock": "ABC", "top_ask": {"price": 121.2, "size": 36}, ...}, ...]

A line holding a single JSON object is treated as a one-record batch.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Union

from .stream_adapter import StreamAdapter

logger = logging.getLogger(__name__)


@dataclass
class ReplayStats:
    """Statistics for a replay run."""
    lines_read: int = 0
    batches_fed: int = 0
    rows_submitted: int = 0
    errors: int = 0


class ReplayFeed:
    """Feeds recorded batches to a StreamAdapter, one batch per line."""

    def __init__(self, adapter: StreamAdapter):
        self.adapter = adapter
        self.stats = ReplayStats()

    def iter_batches(self, path: Union[str, Path]) -> Iterator[List[Dict[str, Any]]]:
        """Yield each decodable batch in the file."""
        with open(path, "r", encoding="utf-8") as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                self.stats.lines_read += 1

                try:
                    batch = json.loads(line)
                except json.JSONDecodeError:
                    logger.warning(f"Failed to parse line {line_no}: {line[:100]}")
                    self.stats.errors += 1
                    continue

                if isinstance(batch, dict):
                    batch = [batch]
                if not isinstance(batch, list):
                    logger.warning(f"Line {line_no} is not a batch: {line[:100]}")
                    self.stats.errors += 1
                    continue

                yield batch

    def feed_batch(self, batch: List[Dict[str, Any]]) -> int:
        """Feed a single batch to the adapter."""
        submitted = self.adapter.on_batch(batch)
        self.stats.batches_fed += 1
        self.stats.rows_submitted += submitted
        return submitted

    def replay(self, path: Union[str, Path]) -> ReplayStats:
        """Feed every batch in the file, in order."""
        logger.info(f"Replaying quote batches from {path}")
        for batch in self.iter_batches(path):
            self.feed_batch(batch)
        logger.info(
            f"Replay finished: {self.stats.batches_fed} batches, "
            f"{self.stats.rows_submitted} rows, {self.stats.errors} errors"
        )
        return self.stats
