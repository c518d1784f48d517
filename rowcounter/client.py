"""
Harness-facing counter client.

One client per worker. Lifecycle:

- `open()` acquires a store session and a fresh, never-reused worker id,
- `setup()` creates the schema, exactly once per workload,
- `invoke(op)` runs an `add` or `read` and resolves it to ok / fail / info,
- `close()` releases the store session.

Outcome rules: a DefiniteFailure is `fail`. An indeterminate error (or a
multipage read flagged as fatal) is `info` for `add`, since the increment may
have been applied, and `fail` for `read`, which has no side effects.
"""

from __future__ import annotations

from typing import Callable, Optional

from rowcounter.coordination import WorkloadContext
from rowcounter.domain.models import Operation, OutcomeType
from rowcounter.errors import DefiniteFailure, StoreError
from rowcounter.infrastructure.row_store import RowStore
from rowcounter.strategies.abstract import CounterStrategy, WorkerContext
from rowcounter.utils.logging import get_logger

log = get_logger(__name__)

# Operations that can be reported as failed when their outcome is unknown.
SIDE_EFFECT_FREE = frozenset({"read"})


class CounterClient:
    def __init__(
        self,
        strategy: CounterStrategy,
        context: WorkloadContext,
        store_factory: Callable[[], RowStore],
    ) -> None:
        self.strategy = strategy
        self.context = context
        self._store_factory = store_factory
        self.store: Optional[RowStore] = None
        self.worker: Optional[WorkerContext] = None

    def open(self) -> "CounterClient":
        self.store = self._store_factory()
        self.worker = WorkerContext(worker_id=self.context.worker_ids.next_id())
        log.debug("Client opened", extra={"worker": self.worker.worker_id, "variant": self.strategy.name})
        return self

    def _session(self) -> tuple[RowStore, WorkerContext]:
        if self.store is None or self.worker is None:
            raise RuntimeError("client is not open")
        return self.store, self.worker

    def setup(self) -> bool:
        """Create the schema unless another client already did; True if this call did."""
        store, _ = self._session()
        return self.context.schema_gate.run_once(lambda: self.strategy.setup(store))

    def invoke(self, op: Operation) -> Operation:
        store, worker = self._session()
        op = op.model_copy(update={"worker": worker.worker_id})
        try:
            if op.f == "add":
                if op.value is None:
                    raise ValueError("add operation requires a value")
                self.strategy.increment(store, worker, op.value)
                return op.complete("ok")
            return op.complete("ok", value=self.strategy.read(store))
        except DefiniteFailure as exc:
            log.warning(
                "Operation failed",
                extra={"worker": worker.worker_id, "f": op.f, "error": str(exc)},
            )
            return op.complete("fail", error=str(exc))
        except StoreError as exc:
            outcome: OutcomeType = "fail" if op.f in SIDE_EFFECT_FREE else "info"
            log.warning(
                "Operation outcome unknown",
                extra={"worker": worker.worker_id, "f": op.f, "outcome": outcome, "error": str(exc)},
            )
            return op.complete(outcome, error=str(exc))

    def close(self) -> None:
        if self.store is not None:
            self.store.close()
            self.store = None

    def __enter__(self) -> "CounterClient":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["CounterClient", "SIDE_EFFECT_FREE"]
