"""
Strategies package for rowcounter.

This module re-exports the abstract interfaces and the concrete counter
variants so downstream code can import from `rowcounter.strategies` directly.
"""

from rowcounter.strategies.abstract import (
    AbstractCounterStrategy,
    CounterStrategy,
    WorkerContext,
)
from rowcounter.strategies.aggregation import Aggregator, FoldResult
from rowcounter.strategies.cumulative import CumulativeCounter
from rowcounter.strategies.operation_log import OperationLogCounter
from rowcounter.strategies.reader import CounterReader

__all__ = [
    # Abstracts
    "AbstractCounterStrategy",
    "CounterStrategy",
    "WorkerContext",
    # Building blocks
    "Aggregator",
    "CounterReader",
    "FoldResult",
    # Concrete variants
    "CumulativeCounter",
    "OperationLogCounter",
]
