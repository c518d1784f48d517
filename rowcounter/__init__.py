"""
rowcounter - a lock-free distributed counter on top of a partitioned row store.

Many workers increment one counter concurrently without locks, consensus or
native counter types. Two variants are provided:

- operation: append-only operation rows, periodically folded into a summary
  row by a single elected aggregator inside one single-partition atomic batch,
- state: one cumulative row per writer.

The package also ships the harness client, a threaded workload runner that
records the operation history, and PostgreSQL / in-memory row store backends.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from rowcounter.client import CounterClient
from rowcounter.config import Settings, get_settings
from rowcounter.coordination import AggregatorSlot, SchemaGate, WorkloadContext
from rowcounter.errors import DefiniteFailure, IndeterminateOutcome, MultipageReadError, StoreError
from rowcounter.orchestrator import RunConfig, available_variants, run_workload
from rowcounter.strategies import CounterStrategy, CumulativeCounter, OperationLogCounter
from rowcounter.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Counter
    "CounterClient",
    "CounterStrategy",
    "CumulativeCounter",
    "OperationLogCounter",
    # Coordination
    "AggregatorSlot",
    "SchemaGate",
    "WorkloadContext",
    # Errors
    "DefiniteFailure",
    "IndeterminateOutcome",
    "MultipageReadError",
    "StoreError",
    # Workload
    "RunConfig",
    "available_variants",
    "run_workload",
    # Logging
    "configure_logging",
    "get_logger",
]
