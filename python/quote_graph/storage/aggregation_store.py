"""Aggregation table using DuckDB.

Holds the append-only quote rows and a live view that groups them by
the pivot keys, so repeated observations collapse into one point at
read time.
"""

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple
import duckdb

from ..errors import EngineUnavailableError, SchemaMismatchError
from ..models.types import AggregatedPoint, MergePolicy, ViewSpec

logger = logging.getLogger(__name__)


# Logical field types -> DuckDB column types
ENGINE_TYPES: Dict[str, str] = {
    "string": "VARCHAR",
    "float": "DOUBLE",
    "integer": "BIGINT",
    "boolean": "BOOLEAN",
    "date": "TIMESTAMP",
    "datetime": "TIMESTAMP",
}

NUMERIC_TYPES = ("float", "integer")

EngineFactory = Callable[[], duckdb.DuckDBPyConnection]


def duckdb_engine(database: str = ":memory:") -> EngineFactory:
    """Return an engine factory that opens a DuckDB connection."""
    def connect() -> duckdb.DuckDBPyConnection:
        return duckdb.connect(database)
    return connect


def _quote(name: str) -> str:
    """Quote an identifier for DuckDB."""
    return '"' + name.replace('"', '""') + '"'


class AggregationStore:
    """Schema-typed DuckDB table with a grouped read-side view.

    Usage:
        store = AggregationStore.create(QUOTE_SCHEMA, engine=duckdb_engine())
        store.configure_view(ViewSpec())
        store.append(rows)
        points = store.query_view()
    """

    def __init__(
        self,
        conn: duckdb.DuckDBPyConnection,
        schema: Mapping[str, str],
        table_name: str = "quotes",
        view_name: str = "quotes_view",
        merge_policy: MergePolicy = MergePolicy.DISTINCT,
    ):
        self._conn: Optional[duckdb.DuckDBPyConnection] = conn
        self._schema: Dict[str, str] = dict(schema)
        self.table_name = table_name
        self.view_name = view_name
        self.staging_name = f"{table_name}_staging"
        self.merge_policy = merge_policy
        self._view_spec: Optional[ViewSpec] = None

    @classmethod
    def create(
        cls,
        schema: Mapping[str, str],
        engine: Optional[EngineFactory] = None,
        table_name: str = "quotes",
        view_name: str = "quotes_view",
        merge_policy: MergePolicy = MergePolicy.DISTINCT,
    ) -> "AggregationStore":
        """Create an empty table bound to a fixed schema.

        Args:
            schema: Field name -> logical type ("string", "float", "date", ...)
            engine: Zero-argument factory returning a DuckDB connection.
                Defaults to an in-memory database.
            table_name: Name of the raw rows table.
            view_name: Name of the aggregated view.
            merge_policy: How repeated rows are written.

        Raises:
            EngineUnavailableError: The engine could not be started.
            SchemaMismatchError: The schema is invalid, or the table already
                holds rows under a different schema.
        """
        if engine is None:
            engine = duckdb_engine()

        try:
            conn = engine()
        except Exception as e:
            raise EngineUnavailableError(f"Could not start aggregation engine: {e}") from e
        if conn is None:
            raise EngineUnavailableError("Aggregation engine returned no connection")

        store = cls(conn, schema, table_name, view_name, merge_policy)
        try:
            store._create_tables()
        except Exception:
            store.close()
            raise

        logger.info(
            f"Created aggregation store {table_name} "
            f"({', '.join(store._schema)}; policy={merge_policy.value})"
        )
        return store

    @property
    def schema(self) -> Dict[str, str]:
        """Field name -> logical type. Copy; the schema never changes."""
        return dict(self._schema)

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def close(self) -> None:
        """Close the engine connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def _column_defs(self) -> List[Tuple[str, str]]:
        if not self._schema:
            raise SchemaMismatchError("Schema must define at least one field")
        columns = []
        for name, logical_type in self._schema.items():
            engine_type = ENGINE_TYPES.get(logical_type)
            if engine_type is None:
                raise SchemaMismatchError(f"Unknown type {logical_type!r} for field {name!r}")
            columns.append((name, engine_type))
        return columns

    def _existing_columns(self) -> List[Tuple[str, str]]:
        result = self._conn.execute("""
            SELECT column_name, data_type
            FROM information_schema.columns
            WHERE table_name = ? AND table_schema = 'main' AND table_catalog = current_database()
            ORDER BY ordinal_position
        """, [self.table_name]).fetchall()
        return [(row[0], row[1]) for row in result]

    def _create_tables(self) -> None:
        """Create the rows table, or reuse a compatible existing one."""
        columns = self._column_defs()
        existing = self._existing_columns()

        if existing and existing != columns:
            rows = self._conn.execute(
                f"SELECT COUNT(*) FROM {_quote(self.table_name)}"
            ).fetchone()[0]
            if rows:
                raise SchemaMismatchError(
                    f"Table {self.table_name} already holds {rows} rows "
                    f"with schema {existing}"
                )
            logger.warning(f"Replacing empty table {self.table_name} with new schema")
            self._conn.execute(f"DROP VIEW IF EXISTS {_quote(self.view_name)}")
            self._conn.execute(f"DROP TABLE {_quote(self.table_name)}")

        column_sql = ", ".join(f"{_quote(name)} {sql_type}" for name, sql_type in columns)
        self._conn.execute(f"CREATE TABLE IF NOT EXISTS {_quote(self.table_name)} ({column_sql})")

        # Incoming batches land here before the distinct merge
        self._conn.execute(
            f"CREATE OR REPLACE TEMP TABLE {_quote(self.staging_name)} ({column_sql})"
        )

    def _row_values(self, row: Any) -> tuple:
        if isinstance(row, Mapping):
            return tuple(row[name] for name in self._schema)
        if hasattr(row, "as_tuple"):
            return row.as_tuple()
        return tuple(row)

    def append(self, rows: Sequence[Any]) -> None:
        """Add rows to the table.

        Rows may be NormalizedRow objects, mappings keyed by field name or
        tuples in schema order. Under MergePolicy.DISTINCT, rows identical
        to an already stored row are not written again.
        """
        if self._conn is None:
            logger.debug("Store is not open, dropping append")
            return
        if not rows:
            return

        data = [self._row_values(row) for row in rows]
        placeholders = ", ".join("?" for _ in self._schema)

        if self.merge_policy == MergePolicy.APPEND:
            self._conn.executemany(
                f"INSERT INTO {_quote(self.table_name)} VALUES ({placeholders})",
                data
            )
            return

        table = _quote(self.table_name)
        staging = _quote(self.staging_name)
        self._conn.execute(f"DELETE FROM {staging}")
        self._conn.executemany(f"INSERT INTO {staging} VALUES ({placeholders})", data)
        # EXCEPT has set semantics: repeats inside the batch collapse too
        self._conn.execute(f"""
            INSERT INTO {table}
            SELECT * FROM {staging}
            EXCEPT
            SELECT * FROM {table}
        """)
        self._conn.execute(f"DELETE FROM {staging}")

    def configure_view(self, spec: ViewSpec) -> None:
        """Declare how the table is grouped and aggregated for readers.

        The view is a DuckDB VIEW, so it is re-evaluated against every row
        appended later. Aggregates on a pivot key are exposed as
        ``<field>_<rule>`` (e.g. ``stock_distinct_count``).
        """
        if self._conn is None:
            logger.debug("Store is not open, skipping view configuration")
            return

        unknown = [name for name in spec.fields() if name not in self._schema]
        if unknown:
            raise SchemaMismatchError(f"View refers to unknown fields: {unknown}")
        if not spec.group_keys:
            raise SchemaMismatchError("View needs at least one row or column pivot")

        keys = spec.group_keys
        select = [_quote(key) for key in keys]

        for name, agg in spec.aggregates.items():
            alias = f"{name}_{agg.label}" if name in keys else name
            select.append(f"{agg.sql.format(col=_quote(name))} AS {_quote(alias)}")

        # Measures without an explicit rule: average numbers, keep last otherwise
        for name in spec.columns:
            if name in keys or name in spec.aggregates:
                continue
            if self._schema[name] in NUMERIC_TYPES:
                select.append(f"AVG({_quote(name)}) AS {_quote(name)}")
            else:
                select.append(f"LAST({_quote(name)}) AS {_quote(name)}")

        select.append("COUNT(*) AS row_count")
        key_sql = ", ".join(_quote(key) for key in keys)

        self._conn.execute(f"""
            CREATE OR REPLACE VIEW {_quote(self.view_name)} AS
            SELECT {", ".join(select)}
            FROM {_quote(self.table_name)}
            GROUP BY {key_sql}
        """)
        self._view_spec = spec
        logger.info(f"Configured view {self.view_name}: {spec.directives()}")

    def directives(self) -> Dict[str, Any]:
        """View directives for the render sink (empty until configured)."""
        if self._view_spec is None:
            return {}
        return self._view_spec.directives()

    def row_count(self) -> int:
        """Number of raw rows, repeats included."""
        if self._conn is None:
            return 0
        return self._conn.execute(
            f"SELECT COUNT(*) FROM {_quote(self.table_name)}"
        ).fetchone()[0]

    def fetch_rows(self) -> List[Dict[str, Any]]:
        """All raw rows as field -> value dicts, in insertion order."""
        if self._conn is None:
            return []
        columns = ", ".join(_quote(name) for name in self._schema)
        result = self._conn.execute(
            f"SELECT {columns} FROM {_quote(self.table_name)}"
        ).fetchall()
        return [dict(zip(self._schema, row)) for row in result]

    def query_view(self) -> List[AggregatedPoint]:
        """Read the aggregated view, ordered by its group keys."""
        if self._conn is None or self._view_spec is None:
            return []

        keys = self._view_spec.group_keys
        order_sql = ", ".join(_quote(key) for key in keys)
        cursor = self._conn.execute(
            f"SELECT * FROM {_quote(self.view_name)} ORDER BY {order_sql}"
        )
        names = [desc[0] for desc in cursor.description]
        result = cursor.fetchall()

        points = []
        for row in result:
            record = dict(zip(names, row))
            row_count = record.pop("row_count")
            point_keys = {key: record.pop(key) for key in keys}
            points.append(AggregatedPoint(keys=point_keys, values=record, row_count=row_count))
        return points

    def series(self, column: Optional[str] = None) -> Dict[Any, List[Tuple[Any, Any]]]:
        """Chart series: one list of (x, value) pairs per column-pivot value.

        Args:
            column: Measure to plot. Defaults to the first view column.
        """
        spec = self._view_spec
        if spec is None:
            return {}
        if column is None:
            if not spec.columns:
                return {}
            column = spec.columns[0]

        x_key = spec.row_pivots[0] if spec.row_pivots else None
        series: Dict[Any, List[Tuple[Any, Any]]] = {}
        for point in self.query_view():
            if len(spec.column_pivots) == 1:
                name = point[spec.column_pivots[0]]
            elif spec.column_pivots:
                name = tuple(point[key] for key in spec.column_pivots)
            else:
                name = column
            x = point[x_key] if x_key else None
            series.setdefault(name, []).append((x, point[column]))
        return series
