"""
Row store contract consumed by the counter strategies.

A store holds tables of rows addressed by (partition key, clustering key).
All calls block until the store answers or times out. Concrete backends
(PostgreSQL, in-memory) translate their own failures into the
`rowcounter.errors` taxonomy.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence, Union, runtime_checkable

from rowcounter.domain.models import Consistency, TableSpec
from rowcounter.errors import DefiniteFailure, MultipageReadError
from rowcounter.utils.logging import get_logger

log = get_logger(__name__)

Row = Dict[str, Any]


@dataclass(frozen=True)
class Upsert:
    """
    Insert-or-update of the given columns only.

    Columns left out keep their stored value, or stay NULL for a new row.
    """

    values: Row


@dataclass(frozen=True)
class Delete:
    """Physical removal of the row with the given primary key."""

    key: Row


Mutation = Union[Upsert, Delete]


@dataclass(frozen=True)
class SchemaOptions:
    """
    Pass-through table options; backends apply what they support.

    `system_config` holds store-level settings (name -> value) written once
    during schema setup.
    """

    replication_factor: int = 3
    compaction_strategy: str = "SizeTieredCompactionStrategy"
    system_config: Dict[str, str] = field(default_factory=dict)


@runtime_checkable
class RowStore(Protocol):
    """
    Blocking partitioned row store.

    Implementations must make `atomic_batch` commit or fail as one unit and be
    isolated from concurrent readers of the same partition.
    """

    def create_schema(self, table: TableSpec, options: SchemaOptions) -> None:
        """Create the keyspace and table if they do not exist yet."""
        ...

    def read(
        self,
        table: TableSpec,
        partition_key: Any,
        consistency: Consistency,
        clustering_key: Optional[Any] = None,
    ) -> List[Row]:
        """Return the partition's rows (or one row) ordered by clustering key."""
        ...

    def write(self, table: TableSpec, values: Row, consistency: Consistency) -> None:
        """Upsert a single row."""
        ...

    def atomic_batch(
        self,
        table: TableSpec,
        partition_key: Any,
        mutations: Sequence[Mutation],
        consistency: Consistency,
    ) -> None:
        """Apply all mutations to one partition as a single indivisible unit."""
        ...

    def close(self) -> None:
        """Release the connection held by this store session."""
        ...


def mutation_partition(table: TableSpec, mutation: Mutation) -> Any:
    row = mutation.values if isinstance(mutation, Upsert) else mutation.key
    return row.get(table.partition_column)


def require_single_partition(
    table: TableSpec, partition_key: Any, mutations: Sequence[Mutation]
) -> None:
    """Reject a batch that strays outside `partition_key` before sending anything."""
    for mutation in mutations:
        row = mutation.values if isinstance(mutation, Upsert) else mutation.key
        missing = [c for c in table.key_columns if row.get(c) is None]
        if missing:
            raise DefiniteFailure(f"{table.name}: mutation lacks key columns {missing}")
        if mutation_partition(table, mutation) != partition_key:
            raise DefiniteFailure(
                f"{table.name}: batch for partition {partition_key!r} touches "
                f"partition {mutation_partition(table, mutation)!r}"
            )


def check_pages(
    table: TableSpec,
    partition_key: Any,
    pages: int,
    rows: int,
    fail_on_multipage: bool,
) -> None:
    """
    Flag a partition read that needed more than one page.

    Logged at ERROR either way; raised only when `fail_on_multipage` is set.
    """
    if pages <= 1:
        return
    log.error(
        "Multipaging detected",
        extra={"table": table.name, "partition_key": partition_key, "pages": pages, "rows": rows},
    )
    if fail_on_multipage:
        raise MultipageReadError(table.name, partition_key, pages, rows)


__all__ = [
    "Delete",
    "Mutation",
    "Row",
    "RowStore",
    "SchemaOptions",
    "Upsert",
    "check_pages",
    "require_single_partition",
]
