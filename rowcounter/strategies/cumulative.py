"""
Cumulative (state-based) counter: one row per writer holding its running total.

Nothing is ever deleted, so the partition stays tombstone-free and bounded by
the number of writers. Each increment is a read-modify-write of the writer's
own row, which is only safe while a writer id is used by one caller at a time;
two concurrent increments under the same writer id can lose one of them.
Every client gets a private writer id and issues its operations serially, so
the harness never triggers that race.
"""

from __future__ import annotations

from typing import Optional

from rowcounter.config import get_settings
from rowcounter.domain.models import STATE_TABLE, Consistency, WriterRow
from rowcounter.infrastructure.row_store import RowStore, SchemaOptions
from rowcounter.strategies.abstract import AbstractCounterStrategy, WorkerContext
from rowcounter.strategies.reader import CounterReader
from rowcounter.utils.logging import get_logger
from rowcounter.utils.payload import generate_payload

log = get_logger(__name__)


class CumulativeCounter(AbstractCounterStrategy):
    name: str = "state"
    description: str = "One cumulative row per writer, read-modify-write on each increment."
    table = STATE_TABLE

    def __init__(
        self,
        counter_id: Optional[int] = None,
        consistency: Optional[Consistency] = None,
        extra_payload_size: Optional[int] = None,
        schema_options: Optional[SchemaOptions] = None,
    ) -> None:
        settings = get_settings()
        self.counter_id = settings.counter_id if counter_id is None else counter_id
        self.consistency = consistency or settings.consistency
        self.extra_payload_size = (
            settings.extra_payload_size if extra_payload_size is None else extra_payload_size
        )
        self.schema_options = schema_options or SchemaOptions(
            replication_factor=settings.replication_factor,
            compaction_strategy=settings.compaction_strategy,
            system_config=dict(settings.system_config),
        )
        self.reader = CounterReader(self.table, self.counter_id, self.consistency)

    def setup(self, store: RowStore) -> None:
        store.create_schema(self.table, self.schema_options)

    def current(self, store: RowStore, writer_id: str) -> int:
        rows = store.read(self.table, self.counter_id, self.consistency, clustering_key=writer_id)
        return WriterRow.from_row(rows[0]).value if rows else 0

    def increment(self, store: RowStore, worker: WorkerContext, value: int) -> None:
        writer_id = worker.writer_id
        updated = self.current(store, writer_id) + value
        log.debug(
            "Writing cumulative row",
            extra={"counter_id": self.counter_id, "writer_id": writer_id, "value": updated},
        )
        store.write(
            self.table,
            {
                "id": self.counter_id,
                "writer_id": writer_id,
                "value": updated,
                "extra_payload": generate_payload(self.extra_payload_size),
            },
            self.consistency,
        )

    def read(self, store: RowStore) -> int:
        return self.reader.total(store)


__all__ = ["CumulativeCounter"]
