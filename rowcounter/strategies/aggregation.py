"""
Garbage collection / aggregation for the operation-log counter.

The elected aggregator does not append operation rows. Each of its increments
instead folds every live operation row of the partition into the summary row:

1. read the whole partition,
2. new total = increment + sum of live row values (summary included),
3. retire each live operation row (delete, or mark deleted in soft mode),
4. upsert the summary row with the new total,

with steps 3 and 4 sent as one single-partition atomic batch. A row written
after step 1 is not touched by the batch and is folded by a later round.

Not idempotent: replaying a batch whose outcome was unknown would count the
increment twice. Callers must treat an indeterminate fold as possibly applied.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from rowcounter.domain.models import (
    OPERATION_TABLE,
    SUMMARY_OPERATION_ID,
    Consistency,
    ContributionRow,
    DeletionMode,
    TableSpec,
    live_total,
)
from rowcounter.infrastructure.row_store import Delete, Mutation, RowStore, Upsert
from rowcounter.utils.logging import get_logger
from rowcounter.utils.payload import generate_payload

log = get_logger(__name__)


@dataclass(frozen=True)
class FoldResult:
    total: int
    retired: int


class Aggregator:
    """
    Builds and commits the fold batch for one counter.
    """

    def __init__(
        self,
        counter_id: int,
        consistency: Consistency,
        deletion_mode: DeletionMode = DeletionMode.HARD,
        extra_payload_size: Optional[int] = None,
        table: TableSpec = OPERATION_TABLE,
    ) -> None:
        self.counter_id = counter_id
        self.consistency = consistency
        self.deletion_mode = deletion_mode
        self.extra_payload_size = extra_payload_size
        self.table = table

    def retire(self, row: ContributionRow) -> Mutation:
        """Deletion-policy branch: physical delete or homebrewed tombstone."""
        if self.deletion_mode is DeletionMode.SOFT:
            return Upsert({**row.key(), "deleted": True})
        return Delete(row.key())

    def summary(self, total: int) -> Upsert:
        return Upsert(
            {
                "id": self.counter_id,
                "operation_id": SUMMARY_OPERATION_ID,
                "value": total,
                "extra_payload": generate_payload(self.extra_payload_size),
                "deleted": False,
            }
        )

    def plan(self, rows: Iterable[ContributionRow], increment: int) -> Tuple[List[Mutation], FoldResult]:
        """Compute the batch folding `rows` plus `increment` into the summary row."""
        live = [row for row in rows if row.is_live]
        total = increment + live_total(live)
        mutations: List[Mutation] = [self.retire(row) for row in live if not row.is_summary]
        retired = len(mutations)
        mutations.append(self.summary(total))
        return mutations, FoldResult(total=total, retired=retired)

    def fold(self, store: RowStore, increment: int) -> FoldResult:
        rows = [
            ContributionRow.from_row(r)
            for r in store.read(self.table, self.counter_id, self.consistency)
        ]
        mutations, result = self.plan(rows, increment)
        log.debug(
            "Folding operation rows",
            extra={
                "counter_id": self.counter_id,
                "increment": increment,
                "total": result.total,
                "retired": result.retired,
                "deletion_mode": self.deletion_mode.value,
            },
        )
        store.atomic_batch(self.table, self.counter_id, mutations, self.consistency)
        return result


__all__ = ["Aggregator", "FoldResult"]
