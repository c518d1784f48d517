"""
Domain package for rowcounter.

Exports the contribution-row model, table definitions and operation records
used across strategies, the row store adapters and the workload runner.
"""

from rowcounter.domain.models import (
    OPERATION_TABLE,
    STATE_TABLE,
    SUMMARY_OPERATION_ID,
    Consistency,
    ContributionRow,
    DeletionMode,
    Operation,
    TableSpec,
    WriterRow,
    live_total,
    operation_id,
)

__all__ = [
    "OPERATION_TABLE",
    "STATE_TABLE",
    "SUMMARY_OPERATION_ID",
    "Consistency",
    "ContributionRow",
    "DeletionMode",
    "Operation",
    "TableSpec",
    "WriterRow",
    "live_total",
    "operation_id",
]
