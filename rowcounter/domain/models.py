"""
Domain models for rowcounter.

Defines the contribution-row schema shared by both counter variants, the
logical table definitions the row store materialises, and the operation
records exchanged with the workload harness.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Literal, Optional

from pydantic import BaseModel, Field

# Operation id of the row holding the folded total; at most one per counter.
SUMMARY_OPERATION_ID = "SUMM"


class Consistency(str, Enum):
    """Replica acknowledgement level requested for a read or write."""

    ONE = "ONE"
    QUORUM = "QUORUM"
    ALL = "ALL"


class DeletionMode(str, Enum):
    """How the aggregator retires folded operation rows."""

    HARD = "hard"
    SOFT = "soft"


@dataclass(frozen=True)
class TableSpec:
    """
    Logical table layout: one partition column, one clustering column.

    Column types are logical (`int`, `bigint`, `text`, `blob`, `boolean`);
    each store backend maps them onto its own type system.
    """

    name: str
    partition_column: str
    clustering_column: str
    columns: Dict[str, str] = field(default_factory=dict)

    @property
    def key_columns(self) -> tuple[str, str]:
        return (self.partition_column, self.clustering_column)


OPERATION_TABLE = TableSpec(
    name="crdt_g_counters",
    partition_column="id",
    clustering_column="operation_id",
    columns={
        "id": "int",
        "operation_id": "text",
        "value": "bigint",
        "extra_payload": "blob",
        "deleted": "boolean",
    },
)

STATE_TABLE = TableSpec(
    name="crdt_g_counters_state",
    partition_column="id",
    clustering_column="writer_id",
    columns={
        "id": "int",
        "writer_id": "text",
        "value": "bigint",
        "extra_payload": "blob",
    },
)


class ContributionRow(BaseModel):
    """
    One row of the operation-based counter.

    Either a single increment keyed by a unique operation id, or the summary
    row keyed by `SUMMARY_OPERATION_ID`. A soft-deleted row may carry no value.
    """

    counter_id: int = Field(..., alias="id", description="Partition key.")
    operation_id: str = Field(..., description="Unique operation token or the summary sentinel.")
    value: Optional[int] = Field(None, description="Increment delta, or the total for the summary row.")
    deleted: bool = Field(False, description="Soft-delete marker.")
    extra_payload: Optional[bytes] = Field(None, description="Inert load-shaping bytes.")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
    }

    @classmethod
    def from_row(cls, row: Dict[str, object]) -> "ContributionRow":
        # A NULL marker comes from rows written without the column.
        return cls.model_validate({**row, "deleted": bool(row.get("deleted"))})

    @property
    def is_summary(self) -> bool:
        return self.operation_id == SUMMARY_OPERATION_ID

    @property
    def is_live(self) -> bool:
        return not self.deleted

    def key(self) -> Dict[str, object]:
        return {"id": self.counter_id, "operation_id": self.operation_id}


class WriterRow(BaseModel):
    """
    One row of the state-based counter: the cumulative contribution of a writer.
    """

    counter_id: int = Field(..., alias="id", description="Partition key.")
    writer_id: str = Field(..., description="Owning writer.")
    value: int = Field(0, description="Cumulative total contributed by the writer.")
    extra_payload: Optional[bytes] = Field(None, description="Inert load-shaping bytes.")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
    }

    @classmethod
    def from_row(cls, row: Dict[str, object]) -> "WriterRow":
        return cls.model_validate({**row, "value": row.get("value") or 0})


def operation_id(worker_id: object, sequence: int) -> str:
    """Build the operation id for a worker's `sequence`-th increment."""
    return f"{worker_id}-{sequence}"


def live_total(rows: Iterable[ContributionRow]) -> int:
    """Sum of values over non-deleted rows; an absent summary row counts as zero."""
    return sum(row.value or 0 for row in rows if row.is_live)


OperationKind = Literal["add", "read"]
OutcomeType = Literal["invoke", "ok", "fail", "info"]


class Operation(BaseModel):
    """
    A harness operation and, once completed, its outcome.

    `type` is `invoke` while pending, then one of `ok`, `fail` (definitely did
    not happen) or `info` (indeterminate: may or may not have happened).
    """

    f: OperationKind
    value: Optional[int] = None
    type: OutcomeType = "invoke"
    worker: Optional[int] = None
    error: Optional[str] = None
    time: float = 0.0

    model_config = {"frozen": True}

    def complete(self, outcome: OutcomeType, **changes: object) -> "Operation":
        return self.model_copy(update={"type": outcome, **changes})


__all__ = [
    "SUMMARY_OPERATION_ID",
    "Consistency",
    "DeletionMode",
    "TableSpec",
    "OPERATION_TABLE",
    "STATE_TABLE",
    "ContributionRow",
    "WriterRow",
    "Operation",
    "operation_id",
    "live_total",
]
