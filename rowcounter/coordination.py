"""
Shared coordination state for one workload run.

Two primitives are contended across workers:

- AggregatorSlot: a set-if-absent cell electing the single GC operator.
- SchemaGate: runs keyspace/table creation exactly once.

Worker identity and per-worker sequence numbers are plain state objects,
created once per run (WorkloadContext) or per client (SequenceCounter) and
passed in explicitly.
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass, field
from typing import Callable, Generic, Optional, TypeVar

from rowcounter.utils.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")


class AggregatorSlot(Generic[T]):
    """
    Atomic reference that can be set once.

    The first `set_if_absent` call wins; every later call observes the winner.
    There is no reset, release or takeover: if the winner stops issuing
    increments, aggregation stops for the rest of the run while readers keep
    counting the accumulated operation rows individually.
    """

    def __init__(self) -> None:
        self._value: Optional[T] = None
        # Only makes the compare-and-set indivisible; never held across I/O.
        self._cas_lock = threading.Lock()

    def compare_and_set(self, expected: Optional[T], proposed: T) -> bool:
        with self._cas_lock:
            if self._value != expected:
                return False
            self._value = proposed
            return True

    def set_if_absent(self, proposed: T) -> T:
        """
        Set the slot to `proposed` if it is empty and return the slot's value.
        """
        if self.compare_and_set(None, proposed):
            log.info("Aggregator elected", extra={"aggregator": proposed})
            return proposed
        return self._value  # type: ignore[return-value]

    def is_aggregator(self, worker_id: T) -> bool:
        return self.set_if_absent(worker_id) == worker_id

    @property
    def value(self) -> Optional[T]:
        return self._value


class SchemaGate:
    """
    One-time guarded action (mutex + flag).

    Concurrent callers block until the first one finishes; the action runs at
    most once successfully. A failed action leaves the gate open for a retry.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._done = False

    @property
    def done(self) -> bool:
        return self._done

    def run_once(self, action: Callable[[], None]) -> bool:
        """Run `action` unless it already ran; return True if this call ran it."""
        with self._lock:
            if self._done:
                return False
            action()
            self._done = True
            return True


class WorkerIdIssuer:
    """Issues worker ids 1, 2, 3, ... that are never reused within a run."""

    def __init__(self, start: int = 1) -> None:
        self._counter = itertools.count(start)
        self._lock = threading.Lock()

    def next_id(self) -> int:
        with self._lock:
            return next(self._counter)


class SequenceCounter:
    """Strictly increasing sequence owned by a single worker."""

    def __init__(self) -> None:
        self._last = 0

    def next(self) -> int:
        self._last += 1
        return self._last

    @property
    def last(self) -> int:
        return self._last


@dataclass
class WorkloadContext:
    """State shared by every client of one workload run."""

    schema_gate: SchemaGate = field(default_factory=SchemaGate)
    aggregator: AggregatorSlot[int] = field(default_factory=AggregatorSlot)
    worker_ids: WorkerIdIssuer = field(default_factory=WorkerIdIssuer)


__all__ = [
    "AggregatorSlot",
    "SchemaGate",
    "SequenceCounter",
    "WorkerIdIssuer",
    "WorkloadContext",
]
