"""
In-process row store.

Same contract as the PostgreSQL backend: partial upserts, physical deletes,
paged partition reads and batches that are atomic and isolated per store. One
instance is shared by every worker of a run; `close` is a no-op.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, List, Optional, Sequence

from rowcounter.domain.models import Consistency, TableSpec
from rowcounter.errors import DefiniteFailure
from rowcounter.infrastructure.row_store import (
    Delete,
    Mutation,
    Row,
    SchemaOptions,
    Upsert,
    check_pages,
    require_single_partition,
)
from rowcounter.utils.logging import get_logger

log = get_logger(__name__)


class InMemoryRowStore:
    def __init__(self, page_size: int = 5_000, fail_on_multipage: bool = False) -> None:
        self.page_size = page_size
        self.fail_on_multipage = fail_on_multipage
        self.schema_options: Dict[str, SchemaOptions] = {}
        self.system_config: Dict[str, str] = {}
        # table -> partition -> clustering key -> row
        self._tables: Dict[str, Dict[Any, Dict[Any, Row]]] = {}
        self._lock = threading.RLock()

    def create_schema(self, table: TableSpec, options: SchemaOptions) -> None:
        with self._lock:
            self._tables.setdefault(table.name, {})
            self.schema_options.setdefault(table.name, options)
            self.system_config.update(options.system_config)
        log.info("Table ready", extra={"table": table.name, "backend": "memory"})

    def _table(self, table: TableSpec) -> Dict[Any, Dict[Any, Row]]:
        try:
            return self._tables[table.name]
        except KeyError:
            raise DefiniteFailure(f"unconfigured table {table.name}") from None

    def read(
        self,
        table: TableSpec,
        partition_key: Any,
        consistency: Consistency,
        clustering_key: Optional[Any] = None,
    ) -> List[Row]:
        with self._lock:
            partition = self._table(table).get(partition_key, {})
            if clustering_key is not None:
                row = partition.get(clustering_key)
                rows = [dict(row)] if row is not None else []
            else:
                rows = [dict(partition[k]) for k in sorted(partition)]
        pages = -(-len(rows) // self.page_size) if rows else 1
        check_pages(table, partition_key, pages, len(rows), self.fail_on_multipage)
        return rows

    def _apply(self, table: TableSpec, mutation: Mutation) -> None:
        rows = self._table(table)
        if isinstance(mutation, Upsert):
            values = mutation.values
            partition = rows.setdefault(values[table.partition_column], {})
            ck = values[table.clustering_column]
            row = partition.setdefault(ck, {column: None for column in table.columns})
            row.update(values)
        elif isinstance(mutation, Delete):
            partition = rows.get(mutation.key[table.partition_column], {})
            partition.pop(mutation.key[table.clustering_column], None)

    def write(self, table: TableSpec, values: Row, consistency: Consistency) -> None:
        upsert = Upsert(dict(values))
        require_single_partition(table, values.get(table.partition_column), [upsert])
        with self._lock:
            self._apply(table, upsert)

    def atomic_batch(
        self,
        table: TableSpec,
        partition_key: Any,
        mutations: Sequence[Mutation],
        consistency: Consistency,
    ) -> None:
        require_single_partition(table, partition_key, mutations)
        with self._lock:
            self._table(table)
            for mutation in mutations:
                self._apply(table, mutation)

    def row_count(self, table: TableSpec, partition_key: Any) -> int:
        with self._lock:
            return len(self._tables.get(table.name, {}).get(partition_key, {}))

    def close(self) -> None:
        return None


__all__ = ["InMemoryRowStore"]
