"""
Abstract counter strategy interfaces for rowcounter.

Concrete strategies (operation log, cumulative per-writer state) implement the
CounterStrategy protocol so the harness client can drive either variant
through the same increment/read surface. The variant is picked once, when the
workload is built.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from rowcounter.coordination import SequenceCounter
from rowcounter.domain.models import TableSpec
from rowcounter.infrastructure.row_store import RowStore
from rowcounter.strategies.reader import CounterReader


@dataclass
class WorkerContext:
    """
    Per-client state: a stable worker id and that worker's private sequence.
    """

    worker_id: int
    sequence: SequenceCounter = field(default_factory=SequenceCounter)

    @property
    def writer_id(self) -> str:
        return f"client-{self.worker_id}"


@runtime_checkable
class CounterStrategy(Protocol):
    """
    Common interface all counter variants must implement.

    Attributes
    ----------
    name : str
        A short machine-friendly identifier.
    description : str
        A human-friendly summary of the approach.
    table : TableSpec
        The table holding this variant's rows.
    reader : CounterReader
        Read path over `table`.
    """

    name: str
    description: str
    table: TableSpec
    reader: CounterReader

    def setup(self, store: RowStore) -> None:
        """Create the keyspace and table for this variant."""
        ...

    def increment(self, store: RowStore, worker: WorkerContext, value: int) -> None:
        """
        Add `value` to the counter on behalf of `worker`.

        Raises
        ------
        StoreError
            DefiniteFailure, IndeterminateOutcome or MultipageReadError; the
            outcome is never retried here.
        """
        ...

    def read(self, store: RowStore) -> int:
        """Return the counter total currently visible at the configured consistency."""
        ...


class AbstractCounterStrategy(abc.ABC):
    """
    Optional ABC helper for class-based implementations.

    Subclasses should set `name`, `description`, `table` and `reader`, and
    implement `setup`, `increment` and `read`.
    """

    name: str
    description: str
    table: TableSpec
    reader: CounterReader

    @abc.abstractmethod
    def setup(self, store: RowStore) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    def increment(self, store: RowStore, worker: WorkerContext, value: int) -> None:  # pragma: no cover
        raise NotImplementedError

    @abc.abstractmethod
    def read(self, store: RowStore) -> int:  # pragma: no cover - interface only
        raise NotImplementedError


__all__ = [
    "AbstractCounterStrategy",
    "CounterStrategy",
    "WorkerContext",
]
