"""
PostgreSQL row store backend.

Maps the partitioned row-store contract onto PostgreSQL:

- keyspace -> schema, partition/clustering key -> composite primary key,
- atomic batch -> one transaction,
- consistency level -> transaction-local `synchronous_commit`,
- paged partition read -> server-side cursor fetched `page_size` rows at a time.

Each worker owns one `PostgresRowStore`, holding one pooled connection from
open to close. A connection found broken is returned to the pool and replaced
on the next call; the call that hit the breakage still reports an
indeterminate outcome.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from psycopg import Connection, Cursor, sql
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from rowcounter.domain.models import Consistency, TableSpec
from rowcounter.errors import IndeterminateOutcome, translate_errors
from rowcounter.infrastructure.row_store import (
    Mutation,
    Row,
    SchemaOptions,
    Upsert,
    check_pages,
    require_single_partition,
)
from rowcounter.utils.logging import get_logger

log = get_logger(__name__)

PG_TYPES: Dict[str, str] = {
    "int": "integer",
    "bigint": "bigint",
    "text": "text",
    "blob": "bytea",
    "boolean": "boolean",
}

# Closest PostgreSQL durability setting for each replica acknowledgement level.
SYNCHRONOUS_COMMIT: Dict[Consistency, str] = {
    Consistency.ONE: "local",
    Consistency.QUORUM: "on",
    Consistency.ALL: "remote_apply",
}


def apply_statement_timeout(cur: Cursor, timeout_ms: int) -> None:
    """Bound every statement of the current transaction; 0 disables the limit."""
    cur.execute("SELECT set_config('statement_timeout', %s, true)", (str(max(timeout_ms, 0)),))


def apply_write_consistency(cur: Cursor, consistency: Consistency) -> None:
    """Map a consistency level onto the transaction's commit durability."""
    cur.execute(
        "SELECT set_config('synchronous_commit', %s, true)",
        (SYNCHRONOUS_COMMIT[consistency],),
    )


class PostgresRowStore:
    """
    Row store session backed by one pooled psycopg connection.
    """

    def __init__(
        self,
        pool: ConnectionPool,
        keyspace: str = "jepsen_keyspace",
        page_size: int = 5_000,
        statement_timeout_ms: int = 5_000,
        fail_on_multipage: bool = False,
    ) -> None:
        self._pool = pool
        self.keyspace = keyspace
        self.page_size = page_size
        self.statement_timeout_ms = statement_timeout_ms
        self.fail_on_multipage = fail_on_multipage
        self._conn: Optional[Connection] = None

    def _connection(self) -> Connection:
        if self._conn is not None and (self._conn.broken or self._conn.closed):
            log.warning("Replacing broken connection", extra={"keyspace": self.keyspace})
            self._pool.putconn(self._conn)
            self._conn = None
        if self._conn is None:
            self._conn = self._pool.getconn()
        return self._conn

    def _table(self, table: TableSpec) -> sql.Identifier:
        return sql.Identifier(self.keyspace, table.name)

    # -- statements -------------------------------------------------------

    def upsert_statement(self, table: TableSpec, values: Row) -> tuple[sql.Composed, List[Any]]:
        columns = list(values)
        updates = [c for c in columns if c not in table.key_columns]
        query = sql.SQL("INSERT INTO {tbl} ({cols}) VALUES ({params}) ON CONFLICT ({pk}, {ck}) ").format(
            tbl=self._table(table),
            cols=sql.SQL(", ").join(sql.Identifier(c) for c in columns),
            params=sql.SQL(", ").join([sql.Placeholder()] * len(columns)),
            pk=sql.Identifier(table.partition_column),
            ck=sql.Identifier(table.clustering_column),
        )
        if updates:
            query += sql.SQL("DO UPDATE SET {}").format(
                sql.SQL(", ").join(
                    sql.SQL("{col} = EXCLUDED.{col}").format(col=sql.Identifier(c)) for c in updates
                )
            )
        else:
            query += sql.SQL("DO NOTHING")
        return query, [values[c] for c in columns]

    def delete_statement(self, table: TableSpec, key: Row) -> tuple[sql.Composed, List[Any]]:
        query = sql.SQL("DELETE FROM {tbl} WHERE {pk} = %s AND {ck} = %s").format(
            tbl=self._table(table),
            pk=sql.Identifier(table.partition_column),
            ck=sql.Identifier(table.clustering_column),
        )
        return query, [key[table.partition_column], key[table.clustering_column]]

    def select_statement(
        self, table: TableSpec, partition_key: Any, clustering_key: Optional[Any] = None
    ) -> tuple[sql.Composed, List[Any]]:
        query = sql.SQL("SELECT {cols} FROM {tbl} WHERE {pk} = %s").format(
            cols=sql.SQL(", ").join(sql.Identifier(c) for c in table.columns),
            tbl=self._table(table),
            pk=sql.Identifier(table.partition_column),
        )
        params: List[Any] = [partition_key]
        if clustering_key is not None:
            query += sql.SQL(" AND {ck} = %s").format(ck=sql.Identifier(table.clustering_column))
            params.append(clustering_key)
        query += sql.SQL(" ORDER BY {ck}").format(ck=sql.Identifier(table.clustering_column))
        return query, params

    def system_config_statement(self, dbname: str, name: str, value: object) -> sql.Composed:
        """Persist a server setting for new sessions on this database."""
        return sql.SQL("ALTER DATABASE {db} SET {name} = {value}").format(
            db=sql.Identifier(dbname),
            name=sql.SQL(".").join(sql.Identifier(part) for part in name.split(".")),
            value=sql.Literal(str(value)),
        )

    # -- contract ---------------------------------------------------------

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(IndeterminateOutcome),
        reraise=True,
    )
    def create_schema(self, table: TableSpec, options: SchemaOptions) -> None:
        columns = sql.SQL(", ").join(
            sql.SQL("{} {}").format(sql.Identifier(name), sql.SQL(PG_TYPES[kind]))
            for name, kind in table.columns.items()
        )
        comment = (
            f"replication_factor={options.replication_factor} "
            f"compaction={options.compaction_strategy}"
        )
        with translate_errors():
            conn = self._connection()
            with conn.transaction():
                with conn.cursor() as cur:
                    cur.execute(
                        sql.SQL("CREATE SCHEMA IF NOT EXISTS {}").format(sql.Identifier(self.keyspace))
                    )
                    cur.execute(
                        sql.SQL("CREATE TABLE IF NOT EXISTS {tbl} ({cols}, PRIMARY KEY ({pk}, {ck}))").format(
                            tbl=self._table(table),
                            cols=columns,
                            pk=sql.Identifier(table.partition_column),
                            ck=sql.Identifier(table.clustering_column),
                        )
                    )
                    cur.execute(
                        sql.SQL("COMMENT ON TABLE {} IS {}").format(self._table(table), sql.Literal(comment))
                    )
                    for name, value in options.system_config.items():
                        cur.execute(self.system_config_statement(conn.info.dbname, name, value))
        log.info("Table ready", extra={"table": table.name, "keyspace": self.keyspace, "options": comment})

    def read(
        self,
        table: TableSpec,
        partition_key: Any,
        consistency: Consistency,
        clustering_key: Optional[Any] = None,
    ) -> List[Row]:
        query, params = self.select_statement(table, partition_key, clustering_key)
        rows: List[Row] = []
        pages = 0
        with translate_errors():
            conn = self._connection()
            with conn.transaction():
                with conn.cursor() as cur:
                    apply_statement_timeout(cur, self.statement_timeout_ms)
                # Named cursor: rows arrive page by page, so fragmentation is visible.
                with conn.cursor(name="partition_read", row_factory=dict_row) as cur:
                    cur.execute(query, params)
                    while True:
                        page = cur.fetchmany(self.page_size)
                        if not page:
                            break
                        pages += 1
                        rows.extend(page)
        check_pages(table, partition_key, pages, len(rows), self.fail_on_multipage)
        log.debug(
            "Partition read",
            extra={"table": table.name, "partition_key": partition_key, "rows": len(rows),
                   "consistency": consistency.value},
        )
        return rows

    def write(self, table: TableSpec, values: Row, consistency: Consistency) -> None:
        self.atomic_batch(table, values.get(table.partition_column), [Upsert(dict(values))], consistency)

    def atomic_batch(
        self,
        table: TableSpec,
        partition_key: Any,
        mutations: Sequence[Mutation],
        consistency: Consistency,
    ) -> None:
        require_single_partition(table, partition_key, mutations)
        statements = [
            self.upsert_statement(table, m.values) if isinstance(m, Upsert) else self.delete_statement(table, m.key)
            for m in mutations
        ]
        with translate_errors():
            conn = self._connection()
            with conn.transaction():
                with conn.cursor() as cur:
                    apply_statement_timeout(cur, self.statement_timeout_ms)
                    apply_write_consistency(cur, consistency)
                    for query, params in statements:
                        cur.execute(query, params)

    def close(self) -> None:
        if self._conn is not None:
            self._pool.putconn(self._conn)
            self._conn = None


__all__ = [
    "PG_TYPES",
    "SYNCHRONOUS_COMMIT",
    "PostgresRowStore",
    "apply_statement_timeout",
    "apply_write_consistency",
]
