"""Bridge from quote batches to the aggregation store.

The adapter is the store's only writer. Batches are processed one at a
time on the caller's thread; a second producer would need a queue in
front of on_batch.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Protocol, Sequence

from ..config import Config
from ..errors import EngineUnavailableError
from ..models.types import QUOTE_SCHEMA, ViewSpec
from ..storage.aggregation_store import AggregationStore, EngineFactory, duckdb_engine
from .normalizer import RawRecord, normalize_batch

logger = logging.getLogger(__name__)


class RenderSink(Protocol):
    """Anything that can display a table given view directives."""

    def load(self, table: AggregationStore, directives: Dict[str, Any]) -> None:
        ...


@dataclass
class AdapterStats:
    """Statistics for the stream adapter."""
    batches_received: int = 0
    records_received: int = 0
    rows_submitted: int = 0
    records_dropped: int = 0
    last_timestamp: Optional[datetime] = None


class StreamAdapter:
    """Feeds quote batches into an AggregationStore.

    Usage:
        adapter = StreamAdapter(config, sink=viewer)
        adapter.on_mount()
        adapter.on_batch(records)   # on every update
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        engine: Optional[EngineFactory] = None,
        sink: Optional[RenderSink] = None,
    ):
        self.config = config or Config()
        self.engine = engine or duckdb_engine(self.config.store.database)
        self.sink = sink
        self.view_spec: ViewSpec = self.config.view.to_view_spec()

        self.store: Optional[AggregationStore] = None
        self.stats = AdapterStats()
        self._mounted = False

    @property
    def is_active(self) -> bool:
        """True when batches reach a store."""
        return self.store is not None

    def on_mount(self) -> None:
        """Create the store, configure its view and hand it to the sink.

        If the engine is unavailable the adapter stays inactive and every
        later batch is ignored.
        """
        if self._mounted:
            return
        self._mounted = True

        store_config = self.config.store
        try:
            self.store = AggregationStore.create(
                QUOTE_SCHEMA,
                engine=self.engine,
                table_name=store_config.table_name,
                view_name=store_config.view_name,
                merge_policy=store_config.policy,
            )
        except EngineUnavailableError as e:
            logger.warning(f"Aggregation engine unavailable, chart disabled: {e}")
            self.store = None
            return

        self.store.configure_view(self.view_spec)

        if self.sink:
            self.sink.load(self.store, self.store.directives())

    def on_batch(self, records: Sequence[RawRecord]) -> int:
        """Normalize a batch and submit it to the store.

        Returns:
            Number of rows submitted (0 when the adapter is inactive)
        """
        self.stats.batches_received += 1
        self.stats.records_received += len(records)

        if self.store is None:
            logger.debug(f"No store, ignoring batch of {len(records)} records")
            return 0

        rows, dropped = normalize_batch(records)
        self.stats.records_dropped += dropped

        if rows:
            self.store.append(rows)
            self.stats.rows_submitted += len(rows)
            latest = max(row.timestamp for row in rows)
            if self.stats.last_timestamp is None or latest > self.stats.last_timestamp:
                self.stats.last_timestamp = latest

        return len(rows)

    def close(self) -> None:
        """Release the store."""
        if self.store:
            self.store.close()
            self.store = None

    def get_stats_dict(self) -> dict:
        """Get stats as dictionary."""
        return {
            "batches_received": self.stats.batches_received,
            "records_received": self.stats.records_received,
            "rows_submitted": self.stats.rows_submitted,
            "records_dropped": self.stats.records_dropped,
            "last_timestamp": self.stats.last_timestamp,
            "raw_rows": self.store.row_count() if self.store else 0,
        }
