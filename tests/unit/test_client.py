from __future__ import annotations

import pytest

from rowcounter.client import CounterClient
from rowcounter.domain.models import OPERATION_TABLE, Operation
from rowcounter.errors import DefiniteFailure, IndeterminateOutcome, MultipageReadError


def _client(strategy, context, store):
    return CounterClient(strategy, context, lambda: store)


def test_add_then_read_ok(operation_counter, context, memory_store):
    with _client(operation_counter, context, memory_store) as client:
        added = client.invoke(Operation(f="add", value=2))
        read = client.invoke(Operation(f="read"))

    assert added.type == "ok"
    assert added.worker == client.worker.worker_id
    assert read.type == "ok"
    assert read.value == 2


def test_clients_get_distinct_worker_ids(operation_counter, context, memory_store):
    first = _client(operation_counter, context, memory_store).open()
    second = _client(operation_counter, context, memory_store).open()
    assert first.worker.worker_id != second.worker.worker_id


def test_setup_runs_once_per_context(make_operation_counter, context, memory_store, faulty_store):
    store = faulty_store()
    counter = make_operation_counter()
    with _client(counter, context, store) as first, _client(counter, context, store) as second:
        assert first.setup() is True
        assert second.setup() is False
    assert store.calls.count("create_schema") == 1
    assert store.closed


def test_definite_failure_is_fail(operation_counter, context, faulty_store):
    store = faulty_store(error=DefiniteFailure("rejected"), fail_on=["write", "read", "atomic_batch"])
    with _client(operation_counter, context, store) as client:
        add = client.invoke(Operation(f="add", value=1))
        read = client.invoke(Operation(f="read"))

    assert add.type == "fail"
    assert add.error == "rejected"
    assert read.type == "fail"


@pytest.mark.parametrize("fail_on", [["write"], ["atomic_batch"]])
def test_indeterminate_add_is_info(operation_counter, context, faulty_store, fail_on):
    store = faulty_store(error=IndeterminateOutcome("timed out"), fail_on=fail_on)
    with _client(operation_counter, context, store) as client:
        # this client is elected on its first add, so both of its adds fold
        results = [client.invoke(Operation(f="add", value=1)) for _ in range(2)]
    other = _client(operation_counter, context, store).open()
    other_result = other.invoke(Operation(f="add", value=1))

    outcomes = [r.type for r in results] + [other_result.type]
    assert "info" in outcomes
    assert "fail" not in outcomes


def test_indeterminate_read_is_fail(operation_counter, context, faulty_store):
    store = faulty_store(error=IndeterminateOutcome("timed out"), fail_on=["read"])
    with _client(operation_counter, context, store) as client:
        result = client.invoke(Operation(f="read"))
    assert result.type == "fail"
    assert result.error == "timed out"


def test_info_add_may_have_been_applied(operation_counter, context, memory_store, faulty_store):
    store = faulty_store(error=IndeterminateOutcome("lost response"), fail_on=["write"], apply_before_raising=True)
    context.aggregator.set_if_absent(99)
    with _client(operation_counter, context, store) as client:
        result = client.invoke(Operation(f="add", value=4))

    assert result.type == "info"
    assert operation_counter.read(memory_store) == 4


def test_multipage_failure_is_fail_for_reads_and_info_for_adds(operation_counter, context, faulty_store):
    error = MultipageReadError(OPERATION_TABLE.name, 0, pages=2, rows=10)
    store = faulty_store(error=error, fail_on=["read"])
    context.aggregator.set_if_absent(1)
    with _client(operation_counter, context, store) as client:
        assert client.worker.worker_id == 1
        add = client.invoke(Operation(f="add", value=1))
        read = client.invoke(Operation(f="read"))

    assert add.type == "info"
    assert read.type == "fail"


def test_add_without_value_is_rejected(operation_counter, context, memory_store):
    with _client(operation_counter, context, memory_store) as client:
        with pytest.raises(ValueError):
            client.invoke(Operation(f="add"))


def test_invoke_requires_open_client(operation_counter, context, memory_store):
    client = _client(operation_counter, context, memory_store)
    with pytest.raises(RuntimeError, match="not open"):
        client.invoke(Operation(f="read"))


def test_cumulative_variant_through_client(cumulative_counter, context, memory_store):
    with _client(cumulative_counter, context, memory_store) as client:
        for _ in range(3):
            assert client.invoke(Operation(f="add", value=2)).type == "ok"
        assert client.invoke(Operation(f="read")).value == 6
    assert memory_store.row_count(cumulative_counter.table, 0) == 1
