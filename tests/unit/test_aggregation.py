from __future__ import annotations

import pytest

from rowcounter.domain.models import SUMMARY_OPERATION_ID, Consistency, ContributionRow, DeletionMode
from rowcounter.infrastructure.row_store import Delete, Upsert
from rowcounter.strategies.aggregation import Aggregator


def _rows():
    return [
        ContributionRow(id=0, operation_id="1-1", value=2),
        ContributionRow(id=0, operation_id="1-2", value=7, deleted=True),
        ContributionRow(id=0, operation_id="2-1", value=3),
        ContributionRow(id=0, operation_id=SUMMARY_OPERATION_ID, value=10),
    ]


def test_plan_hard_delete_retires_live_operation_rows():
    aggregator = Aggregator(counter_id=0, consistency=Consistency.QUORUM)

    mutations, result = aggregator.plan(_rows(), increment=1)

    assert result.total == 16
    assert result.retired == 2
    assert mutations[:2] == [
        Delete({"id": 0, "operation_id": "1-1"}),
        Delete({"id": 0, "operation_id": "2-1"}),
    ]
    summary = mutations[-1]
    assert isinstance(summary, Upsert)
    assert summary.values["operation_id"] == SUMMARY_OPERATION_ID
    assert summary.values["value"] == 16
    assert summary.values["deleted"] is False


def test_plan_soft_delete_marks_rows_without_touching_values():
    aggregator = Aggregator(counter_id=0, consistency=Consistency.QUORUM, deletion_mode=DeletionMode.SOFT)

    mutations, _ = aggregator.plan(_rows(), increment=0)

    assert mutations[0] == Upsert({"id": 0, "operation_id": "1-1", "deleted": True})
    assert "value" not in mutations[0].values


def test_plan_on_empty_partition_creates_summary():
    aggregator = Aggregator(counter_id=4, consistency=Consistency.ONE)

    mutations, result = aggregator.plan([], increment=5)

    assert result.total == 5
    assert result.retired == 0
    assert len(mutations) == 1
    assert mutations[0].values["id"] == 4


@pytest.mark.parametrize("size,expected", [(None, None), (16, 16)])
def test_summary_carries_extra_payload(size, expected):
    aggregator = Aggregator(counter_id=0, consistency=Consistency.ALL, extra_payload_size=size)
    payload = aggregator.summary(1).values["extra_payload"]
    assert (len(payload) if payload is not None else None) == expected
