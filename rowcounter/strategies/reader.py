"""
Counter read path shared by both variants.
"""

from __future__ import annotations

from typing import Any, Dict, List

from rowcounter.domain.models import Consistency, ContributionRow, TableSpec, WriterRow, live_total
from rowcounter.infrastructure.row_store import RowStore
from rowcounter.utils.logging import get_logger

log = get_logger(__name__)


class CounterReader:
    """
    Sums the rows of one counter partition.

    Tables with a `deleted` column are summed over non-deleted rows only;
    tables without one are summed over every row. The result is a
    point-in-time observation, nothing more.
    """

    def __init__(self, table: TableSpec, counter_id: int, consistency: Consistency) -> None:
        self.table = table
        self.counter_id = counter_id
        self.consistency = consistency

    @property
    def honours_soft_delete(self) -> bool:
        return "deleted" in self.table.columns

    def rows(self, store: RowStore) -> List[Dict[str, Any]]:
        return store.read(self.table, self.counter_id, self.consistency)

    def total(self, store: RowStore) -> int:
        rows = self.rows(store)
        if self.honours_soft_delete:
            value = live_total(ContributionRow.from_row(r) for r in rows)
        else:
            value = sum(WriterRow.from_row(r).value for r in rows)
        log.debug(
            "Counter read",
            extra={"table": self.table.name, "counter_id": self.counter_id, "value": value, "rows": len(rows)},
        )
        return value


__all__ = ["CounterReader"]
