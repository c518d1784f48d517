"""
Operation-log counter: one append-only row per increment.

Rows live in a single partition keyed by counter id and are told apart by
their operation id, `<worker id>-<sequence>`. Workers never read before they
write and never touch each other's rows, so any number of them can increment
concurrently without coordination.

One worker, the first to increment, is elected aggregator for the whole run.
Its increments fold all live operation rows into the `SUMM` row (see
`rowcounter.strategies.aggregation`), which keeps the partition bounded.
There is no failover: if the aggregator stops, rows simply accumulate and the
total stays correct.

Example for counter 0, workers A and B appending, worker C aggregating:

    A adds 1  -> [A-1: 1]
    B adds 1  -> [A-1: 1, B-1: 1]
    C adds 1  -> [SUMM: 3]                 (hard delete)
                 [A-1: 1 deleted, B-1: 1 deleted, SUMM: 3]   (soft delete)
"""

from __future__ import annotations

from typing import Optional

from rowcounter.config import get_settings
from rowcounter.coordination import AggregatorSlot
from rowcounter.domain.models import OPERATION_TABLE, Consistency, DeletionMode, operation_id
from rowcounter.infrastructure.row_store import RowStore, SchemaOptions
from rowcounter.strategies.abstract import AbstractCounterStrategy, WorkerContext
from rowcounter.strategies.aggregation import Aggregator, FoldResult
from rowcounter.strategies.reader import CounterReader
from rowcounter.utils.logging import get_logger
from rowcounter.utils.payload import generate_payload

log = get_logger(__name__)


class OperationLogCounter(AbstractCounterStrategy):
    """
    Append-log writer plus single-aggregator garbage collection.
    """

    name: str = "operation"
    description: str = "Append-only operation rows folded into a summary row by one elected aggregator."
    table = OPERATION_TABLE

    def __init__(
        self,
        aggregator_slot: Optional[AggregatorSlot[int]] = None,
        counter_id: Optional[int] = None,
        consistency: Optional[Consistency] = None,
        deletion_mode: Optional[DeletionMode] = None,
        extra_payload_size: Optional[int] = None,
        schema_options: Optional[SchemaOptions] = None,
    ) -> None:
        settings = get_settings()
        self.counter_id = settings.counter_id if counter_id is None else counter_id
        self.consistency = consistency or settings.consistency
        self.deletion_mode = deletion_mode or settings.deletion_mode
        self.extra_payload_size = (
            settings.extra_payload_size if extra_payload_size is None else extra_payload_size
        )
        self.schema_options = schema_options or SchemaOptions(
            replication_factor=settings.replication_factor,
            compaction_strategy=settings.compaction_strategy,
            system_config=dict(settings.system_config),
        )
        self.aggregator_slot: AggregatorSlot[int] = aggregator_slot or AggregatorSlot()
        self.aggregator = Aggregator(
            counter_id=self.counter_id,
            consistency=self.consistency,
            deletion_mode=self.deletion_mode,
            extra_payload_size=self.extra_payload_size,
            table=self.table,
        )
        self.reader = CounterReader(self.table, self.counter_id, self.consistency)

    def setup(self, store: RowStore) -> None:
        store.create_schema(self.table, self.schema_options)

    def is_aggregator(self, worker: WorkerContext) -> bool:
        return self.aggregator_slot.is_aggregator(worker.worker_id)

    def append(self, store: RowStore, worker: WorkerContext, value: int) -> str:
        """Insert a fresh operation row and return its operation id."""
        op_id = operation_id(worker.worker_id, worker.sequence.next())
        log.debug(
            "Appending operation row",
            extra={"counter_id": self.counter_id, "operation_id": op_id, "value": value},
        )
        store.write(
            self.table,
            {
                "id": self.counter_id,
                "operation_id": op_id,
                "value": value,
                "extra_payload": generate_payload(self.extra_payload_size),
                "deleted": False,
            },
            self.consistency,
        )
        return op_id

    def fold(self, store: RowStore, value: int) -> FoldResult:
        return self.aggregator.fold(store, value)

    def increment(self, store: RowStore, worker: WorkerContext, value: int) -> None:
        if self.is_aggregator(worker):
            self.fold(store, value)
        else:
            self.append(store, worker, value)

    def read(self, store: RowStore) -> int:
        return self.reader.total(store)


__all__ = ["OperationLogCounter"]
