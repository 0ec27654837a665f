"""
PostgreSQL adapter, with optional TimescaleDB hypertable support.

One class covers both relational backends: `pg-ntv` is a plain table, `pg-tsc`
is the same table turned into a compressible hypertable chunked on
`start_time`.

Statements are written by hand rather than generated through an ORM. With an
ORM builder most of a bulk upsert's wall time went into constructing and
reflecting the statement client-side, which drowned out the database cost this
benchmark is meant to measure.
"""

from __future__ import annotations

from functools import lru_cache
from typing import List, Optional, Sequence

from psycopg import Connection, sql
from psycopg.rows import class_row

from tsbench.backends.abstract import AbstractDatabase, bytes_to_kb, check_limit
from tsbench.domain.models import FIELDS, DataObject, collapse_duplicates
from tsbench.infrastructure.db_factory import get_postgres_connection
from tsbench.utils.logging import get_logger

log = get_logger(__name__)

# PostgreSQL accepts at most 65535 bind parameters per statement.
MAX_BIND_PARAMS = 65_535
BULK_CHUNK_ROWS = MAX_BIND_PARAMS // len(FIELDS)

CONFLICT_KEY = ("start_time", "interval", "area")
UPDATE_COLUMNS = ("updated_at", "source", "value")


def _columns() -> sql.Composed:
    return sql.SQL(", ").join(sql.Identifier(name) for name in FIELDS)


@lru_cache(maxsize=16)
def upsert_statement(table: str, rows: int) -> sql.Composed:
    """
    Build a `rows`-row INSERT ... ON CONFLICT DO UPDATE for `table`.

    Parameters follow FIELDS order, row after row.
    """
    if rows < 1:
        raise ValueError(f"rows must be >= 1, got {rows}")
    placeholder = sql.SQL("({})").format(sql.SQL(", ").join(sql.Placeholder() * len(FIELDS)))
    return sql.SQL(
        "INSERT INTO {table} ({columns}) VALUES {values} "
        "ON CONFLICT ({key}) DO UPDATE SET {updates}"
    ).format(
        table=sql.Identifier(table),
        columns=_columns(),
        values=sql.SQL(", ").join([placeholder] * rows),
        key=sql.SQL(", ").join(sql.Identifier(name) for name in CONFLICT_KEY),
        updates=sql.SQL(", ").join(
            sql.SQL("{col} = EXCLUDED.{col}").format(col=sql.Identifier(name))
            for name in UPDATE_COLUMNS
        ),
    )


def create_table_statement(table: str) -> sql.Composed:
    return sql.SQL(
        """
        CREATE TABLE {table} (
            created_at TIMESTAMPTZ NOT NULL,
            updated_at TIMESTAMPTZ NOT NULL,
            start_time TIMESTAMPTZ NOT NULL,
            "interval" BIGINT NOT NULL,
            area TEXT NOT NULL,
            source TEXT NOT NULL,
            value DOUBLE PRECISION NOT NULL,
            PRIMARY KEY (start_time, "interval", area)
        )
        """
    ).format(table=sql.Identifier(table))


class PostgresDatabase(AbstractDatabase):
    """
    Adapter over a single autocommit psycopg connection.

    `upsert_single` relies on autocommit so every record is its own
    transaction; `upsert_bulk` opens an explicit transaction around its
    chunked multi-row statements so the batch is all-or-nothing.
    """

    def __init__(
        self,
        name: str,
        dsn: str,
        table_name: str = "data_objects",
        using_timescale: bool = False,
        chunk_interval: str = "60 days",
        connect_attempts: int = 1,
        connect_timeout_s: int = 10,
        connection: Optional[Connection] = None,
        bulk_chunk_rows: int = BULK_CHUNK_ROWS,
    ) -> None:
        self.name = name
        self.table_name = table_name
        self.using_timescale = using_timescale
        self.supports_compression = using_timescale
        self.chunk_interval = chunk_interval
        self.bulk_chunk_rows = max(1, min(bulk_chunk_rows, BULK_CHUNK_ROWS))
        self._conn = connection or get_postgres_connection(
            dsn, attempts=connect_attempts, timeout_s=connect_timeout_s
        )

    def setup(self) -> None:
        table = sql.Identifier(self.table_name)
        with self._conn.transaction():
            with self._conn.cursor() as cur:
                cur.execute(sql.SQL("DROP TABLE IF EXISTS {} CASCADE").format(table))
                cur.execute(create_table_statement(self.table_name))
                cur.execute(
                    sql.SQL("CREATE INDEX {index} ON {table} (start_time)").format(
                        index=sql.Identifier(f"idx_{self.table_name}_start_time"),
                        table=table,
                    )
                )
                if self.using_timescale:
                    # The start_time index above is the only time index on both variants.
                    cur.execute(
                        "SELECT create_hypertable(%s::regclass, 'start_time', "
                        "chunk_time_interval => %s::interval, create_default_indexes => FALSE)",
                        (self.table_name, self.chunk_interval),
                    )
                    # Every primary key column must be a segmentby or orderby column.
                    cur.execute(
                        sql.SQL(
                            "ALTER TABLE {} SET (timescaledb.compress, "
                            "timescaledb.compress_segmentby = 'area, \"interval\"', "
                            "timescaledb.compress_orderby = 'start_time DESC')"
                        ).format(table)
                    )
        log.info(
            "Schema reset",
            extra={
                "backend": self.name,
                "table": self.table_name,
                "hypertable": self.using_timescale,
            },
        )

    def close(self) -> None:
        if not self._conn.closed:
            self._conn.close()

    def upsert_single(self, docs: Sequence[DataObject]) -> None:
        query = upsert_statement(self.table_name, 1)
        with self._conn.cursor() as cur:
            for doc in docs:
                cur.execute(query, doc.as_row())

    def upsert_bulk(self, docs: Sequence[DataObject]) -> None:
        if not docs:
            return
        # A single statement may not touch the same key twice.
        rows = collapse_duplicates(docs)
        with self._conn.transaction():
            with self._conn.cursor() as cur:
                for start in range(0, len(rows), self.bulk_chunk_rows):
                    chunk = rows[start : start + self.bulk_chunk_rows]
                    params = [value for doc in chunk for value in doc.as_row()]
                    cur.execute(upsert_statement(self.table_name, len(chunk)), params)

    def get_ordered_with_limit(self, limit: int) -> List[DataObject]:
        check_limit(limit)
        if limit == 0:
            return []
        query = sql.SQL("SELECT {columns} FROM {table} ORDER BY start_time DESC LIMIT %s").format(
            columns=_columns(), table=sql.Identifier(self.table_name)
        )
        with self._conn.cursor(row_factory=class_row(DataObject)) as cur:
            cur.execute(query, (limit,))
            return cur.fetchall()

    def table_size_in_kb(self) -> int:
        # hypertable_size sums every chunk; pg_total_relation_size would only
        # see the (empty) parent table of a hypertable.
        func = "hypertable_size" if self.using_timescale else "pg_total_relation_size"
        with self._conn.cursor() as cur:
            cur.execute(
                sql.SQL("SELECT {}(%s::regclass)").format(sql.Identifier(func)),
                (self.table_name,),
            )
            row = cur.fetchone()
        return bytes_to_kb(self.name, row[0] if row else None)

    def exec_manual_compression(self) -> None:
        if not self.using_timescale:
            log.debug("Compression not supported, skipping", extra={"backend": self.name})
            return
        with self._conn.cursor() as cur:
            cur.execute(
                "SELECT compress_chunk(c, if_not_compressed => TRUE) "
                "FROM show_chunks(%s::regclass) AS c",
                (self.table_name,),
            )
            chunks = len(cur.fetchall())
        log.info("Chunks compressed", extra={"backend": self.name, "chunks": chunks})


__all__ = [
    "BULK_CHUNK_ROWS",
    "PostgresDatabase",
    "create_table_statement",
    "upsert_statement",
]
