"""
Pytest configuration for rowcounter.

Provides fixtures for:
- Fresh in-memory row stores and workload contexts
- A store wrapper that injects failures into selected calls
- Database connection management for integration tests
"""

from __future__ import annotations

import os
from typing import Any, Callable, Dict, Generator, List, Optional, Sequence

import psycopg
import pytest

from rowcounter.config import Settings, get_settings
from rowcounter.coordination import WorkloadContext
from rowcounter.domain.models import Consistency, DeletionMode, TableSpec
from rowcounter.infrastructure.memory_store import InMemoryRowStore
from rowcounter.infrastructure.row_store import Mutation, Row, SchemaOptions
from rowcounter.strategies.cumulative import CumulativeCounter
from rowcounter.strategies.operation_log import OperationLogCounter


@pytest.fixture(autouse=True)
def fresh_settings() -> Generator[None, None, None]:
    """Drop the cached Settings so monkeypatched env vars take effect."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def memory_store() -> InMemoryRowStore:
    return InMemoryRowStore(page_size=1_000)


@pytest.fixture
def context() -> WorkloadContext:
    return WorkloadContext()


@pytest.fixture
def make_operation_counter(context: WorkloadContext) -> Callable[..., OperationLogCounter]:
    def _make(deletion_mode: DeletionMode = DeletionMode.HARD, **kwargs: Any) -> OperationLogCounter:
        kwargs.setdefault("counter_id", 0)
        kwargs.setdefault("consistency", Consistency.QUORUM)
        kwargs.setdefault("extra_payload_size", 0)
        return OperationLogCounter(
            aggregator_slot=context.aggregator, deletion_mode=deletion_mode, **kwargs
        )

    return _make


@pytest.fixture
def operation_counter(
    make_operation_counter: Callable[..., OperationLogCounter], memory_store: InMemoryRowStore
) -> OperationLogCounter:
    counter = make_operation_counter()
    counter.setup(memory_store)
    return counter


@pytest.fixture
def cumulative_counter(memory_store: InMemoryRowStore) -> CumulativeCounter:
    counter = CumulativeCounter(counter_id=0, consistency=Consistency.QUORUM, extra_payload_size=0)
    counter.setup(memory_store)
    return counter


class FaultyStore:
    """
    Delegates to a real store but raises `error` from the named calls.

    Set `apply_before_raising` to emulate a request that reached the store
    but whose response was lost.
    """

    def __init__(
        self,
        inner: InMemoryRowStore,
        error: Optional[Exception] = None,
        fail_on: Sequence[str] = (),
        apply_before_raising: bool = False,
    ) -> None:
        self.inner = inner
        self.error = error
        self.fail_on = set(fail_on)
        self.apply_before_raising = apply_before_raising
        self.calls: List[str] = []
        self.closed = False

    def _maybe_fail(self, call: str, apply: Callable[[], Any]) -> Any:
        self.calls.append(call)
        if call in self.fail_on and self.error is not None:
            if self.apply_before_raising:
                apply()
            raise self.error
        return apply()

    def create_schema(self, table: TableSpec, options: SchemaOptions) -> None:
        self._maybe_fail("create_schema", lambda: self.inner.create_schema(table, options))

    def read(
        self,
        table: TableSpec,
        partition_key: Any,
        consistency: Consistency,
        clustering_key: Optional[Any] = None,
    ) -> List[Row]:
        return self._maybe_fail(
            "read", lambda: self.inner.read(table, partition_key, consistency, clustering_key)
        )

    def write(self, table: TableSpec, values: Dict[str, Any], consistency: Consistency) -> None:
        self._maybe_fail("write", lambda: self.inner.write(table, values, consistency))

    def atomic_batch(
        self,
        table: TableSpec,
        partition_key: Any,
        mutations: Sequence[Mutation],
        consistency: Consistency,
    ) -> None:
        self._maybe_fail(
            "atomic_batch",
            lambda: self.inner.atomic_batch(table, partition_key, mutations, consistency),
        )

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def faulty_store(memory_store: InMemoryRowStore) -> Callable[..., FaultyStore]:
    def _make(**kwargs: Any) -> FaultyStore:
        return FaultyStore(memory_store, **kwargs)

    return _make


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "rowcounter"),
        keyspace="rowcounter_test",
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return (
        f"postgresql://{test_settings.db_user}:{test_settings.db_password}"
        f"@{test_settings.db_host}:{test_settings.db_port}/{test_settings.db_name}"
    )


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False
