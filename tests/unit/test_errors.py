from __future__ import annotations

import logging

import psycopg
import pytest
from psycopg import errors as pg_errors
from psycopg_pool import PoolTimeout

from rowcounter.domain.models import OPERATION_TABLE, Consistency
from rowcounter.errors import (
    DefiniteFailure,
    IndeterminateOutcome,
    MultipageReadError,
    classify_error,
    translate_errors,
)
from rowcounter.infrastructure.memory_store import InMemoryRowStore
from rowcounter.infrastructure.row_store import Delete, SchemaOptions, Upsert

PAGE_SIZE = 3


@pytest.mark.parametrize(
    "exc",
    [
        PoolTimeout("pool exhausted"),
        pg_errors.SerializationFailure("could not serialize"),
        pg_errors.DeadlockDetected("deadlock detected"),
        pg_errors.TransactionIntegrityConstraintViolation("integrity violation at commit"),
        pg_errors.TransactionRollback("rolled back"),
        pg_errors.UndefinedTable("relation does not exist"),
        pg_errors.UniqueViolation("duplicate key"),
    ],
)
def test_rejected_requests_are_definite(exc):
    classified = classify_error(exc)
    assert isinstance(classified, DefiniteFailure)
    assert classified.definite
    assert classified.cause is exc


@pytest.mark.parametrize(
    "exc",
    [
        pg_errors.QueryCanceled("statement timeout"),
        pg_errors.StatementCompletionUnknown("completion unknown"),
        psycopg.OperationalError("server closed the connection unexpectedly"),
        ConnectionResetError("reset by peer"),
    ],
)
def test_unanswered_requests_are_indeterminate(exc):
    classified = classify_error(exc)
    assert isinstance(classified, IndeterminateOutcome)
    assert not classified.definite


def test_translate_errors_chains_the_driver_exception():
    with pytest.raises(IndeterminateOutcome) as info:
        with translate_errors():
            raise pg_errors.AdminShutdown("terminating connection")
    assert isinstance(info.value.__cause__, pg_errors.AdminShutdown)


def test_translate_errors_passes_store_errors_through():
    classified = DefiniteFailure("already classified")
    with pytest.raises(DefiniteFailure) as info:
        with translate_errors():
            raise classified
    assert info.value is classified


def _filled_store(rows: int, fail_on_multipage: bool) -> InMemoryRowStore:
    store = InMemoryRowStore(page_size=PAGE_SIZE, fail_on_multipage=fail_on_multipage)
    store.create_schema(OPERATION_TABLE, SchemaOptions())
    for i in range(rows):
        store.write(OPERATION_TABLE, {"id": 0, "operation_id": f"1-{i}", "value": 1}, Consistency.ONE)
    return store


def test_multipage_read_is_logged_but_returned(caplog):
    store = _filled_store(PAGE_SIZE + 1, fail_on_multipage=False)
    with caplog.at_level(logging.ERROR):
        rows = store.read(OPERATION_TABLE, 0, Consistency.QUORUM)

    assert len(rows) == PAGE_SIZE + 1
    assert "Multipaging detected" in caplog.text


def test_multipage_read_can_be_fatal():
    store = _filled_store(PAGE_SIZE * 2 + 1, fail_on_multipage=True)
    with pytest.raises(MultipageReadError) as info:
        store.read(OPERATION_TABLE, 0, Consistency.QUORUM)
    assert info.value.pages == 3
    assert not info.value.definite


def test_single_page_read_is_silent(caplog):
    store = _filled_store(PAGE_SIZE, fail_on_multipage=True)
    with caplog.at_level(logging.ERROR):
        assert len(store.read(OPERATION_TABLE, 0, Consistency.QUORUM)) == PAGE_SIZE
    assert "Multipaging" not in caplog.text


def test_unconfigured_table_is_definite():
    with pytest.raises(DefiniteFailure, match="unconfigured table"):
        InMemoryRowStore().read(OPERATION_TABLE, 0, Consistency.ONE)


def test_batch_outside_partition_is_rejected_before_applying():
    store = _filled_store(1, fail_on_multipage=False)
    mutations = [
        Delete({"id": 0, "operation_id": "1-0"}),
        Upsert({"id": 1, "operation_id": "SUMM", "value": 1}),
    ]
    with pytest.raises(DefiniteFailure, match="touches partition"):
        store.atomic_batch(OPERATION_TABLE, 0, mutations, Consistency.QUORUM)
    assert store.row_count(OPERATION_TABLE, 0) == 1


def test_mutation_without_clustering_key_is_rejected():
    store = _filled_store(0, fail_on_multipage=False)
    with pytest.raises(DefiniteFailure, match="lacks key columns"):
        store.write(OPERATION_TABLE, {"id": 0, "value": 1}, Consistency.ONE)


def test_partial_upsert_keeps_other_columns():
    store = _filled_store(1, fail_on_multipage=False)
    store.write(OPERATION_TABLE, {"id": 0, "operation_id": "1-0", "deleted": True}, Consistency.ONE)
    row = store.read(OPERATION_TABLE, 0, Consistency.ONE, clustering_key="1-0")[0]
    assert row["value"] == 1
    assert row["deleted"] is True
