"""
Workload runner: drives concurrent workers against one counter and records history.

Usage (example from CLI):
    from rowcounter.orchestrator import RunConfig, run_workload

    summary = run_workload(RunConfig(variant="operation", workers=5, ops_per_worker=100))
    print(summary["final_value"], summary["within_bounds"])

Every worker owns a CounterClient and issues a random mix of `add 1` and
`read` operations. After all workers finish a fresh client performs a final
read. The history is summarised into the bounds a counter checker would use:
the final value must lie between the sum of acknowledged adds and that sum
plus every indeterminate add.

Outputs are saved to `results/` when persistence is on:
- `results/latest.json` (last run)
- `results/run-<timestamp>.json` (timestamped archive)
"""

from __future__ import annotations

import json
import random
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional

from rowcounter.client import CounterClient
from rowcounter.config import get_settings
from rowcounter.coordination import WorkloadContext
from rowcounter.domain.models import Operation
from rowcounter.errors import StoreError
from rowcounter.infrastructure.db_factory import build_store_factory
from rowcounter.infrastructure.row_store import RowStore
from rowcounter.strategies.abstract import CounterStrategy
from rowcounter.strategies.cumulative import CumulativeCounter
from rowcounter.strategies.operation_log import OperationLogCounter
from rowcounter.utils.logging import get_logger
from rowcounter.utils.profiler import profile_block

log = get_logger(__name__)


def _round_float(value: float, decimals: int = 2) -> float:
    """Round a float to specified decimal places for human-readable output."""
    return round(value, decimals)


def _strategy_factories() -> Dict[str, Callable[[WorkloadContext], CounterStrategy]]:
    """Registry of available counter variants."""
    return {
        "operation": lambda context: OperationLogCounter(aggregator_slot=context.aggregator),
        "state": lambda context: CumulativeCounter(),
    }


def available_variants() -> List[str]:
    """List available counter variant names."""
    return sorted(_strategy_factories().keys())


def build_strategy(name: str, context: WorkloadContext) -> CounterStrategy:
    factories = _strategy_factories()
    if name not in factories:
        raise ValueError(f"Unknown variant '{name}'. Available: {', '.join(factories)}")
    return factories[name](context)


@dataclass
class RunConfig:
    variant: str = "operation"
    workers: Optional[int] = None
    ops_per_worker: Optional[int] = None
    read_ratio: Optional[float] = None
    seed: int = 0
    persist: bool = False
    results_dir: Path | str = "results"


def _run_worker(
    client: CounterClient,
    ops: int,
    read_ratio: float,
    rng: random.Random,
    started: float,
) -> List[Operation]:
    history: List[Operation] = []
    with client:
        client.setup()
        for _ in range(ops):
            if rng.random() < read_ratio:
                op = Operation(f="read")
            else:
                op = Operation(f="add", value=1)
            done = client.invoke(op)
            history.append(done.model_copy(update={"time": time.perf_counter() - started}))
    return history


def summarize_history(history: List[Operation], final: Optional[Operation]) -> dict:
    """
    Reduce a history to outcome counts and the acceptable range for the final read.
    """
    adds = [op for op in history if op.f == "add"]
    reads = [op for op in history if op.f == "read"]
    ok_total = sum(op.value or 0 for op in adds if op.type == "ok")
    info_total = sum(op.value or 0 for op in adds if op.type == "info")

    final_value = final.value if final is not None and final.type == "ok" else None
    return {
        "adds": {
            "ok": sum(1 for op in adds if op.type == "ok"),
            "fail": sum(1 for op in adds if op.type == "fail"),
            "info": sum(1 for op in adds if op.type == "info"),
        },
        "reads": {
            "ok": sum(1 for op in reads if op.type == "ok"),
            "fail": sum(1 for op in reads if op.type == "fail"),
        },
        "lower_bound": ok_total,
        "upper_bound": ok_total + info_total,
        "final_value": final_value,
        "within_bounds": final_value is not None and ok_total <= final_value <= ok_total + info_total,
    }


def _persist_results(payload: dict, results_dir: Path) -> None:
    results_dir.mkdir(parents=True, exist_ok=True)
    latest_path = results_dir / "latest.json"
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    archive_path = results_dir / f"run-{timestamp}.json"

    with latest_path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, sort_keys=True)
    with archive_path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, sort_keys=True)

    log.info("Results persisted", extra={"latest": str(latest_path), "archive": str(archive_path)})


def run_workload(
    config: RunConfig,
    store_factory: Optional[Callable[[], RowStore]] = None,
) -> dict:
    """
    Run one workload and return its summary.

    Parameters
    ----------
    config : RunConfig
        Variant and workload shape; unset fields fall back to settings.
    store_factory : callable | None
        Opens one store session per client. Defaults to the configured backend.

    Returns
    -------
    dict
        Summary with outcome counts, bounds, final value, aggregator identity,
        remaining row count, profiler stats and the full history.
    """
    settings = get_settings()
    workers = config.workers or settings.workload_workers
    ops = config.ops_per_worker if config.ops_per_worker is not None else settings.workload_ops
    read_ratio = config.read_ratio if config.read_ratio is not None else settings.workload_read_ratio

    context = WorkloadContext()
    strategy = build_strategy(config.variant, context)
    # every worker holds a session for the whole run, plus the final reader
    store_factory = store_factory or build_store_factory(settings, sessions=workers + 1)

    log.info(
        f"[WORKLOAD START] {strategy.name}",
        extra={"variant": strategy.name, "workers": workers, "ops_per_worker": ops, "read_ratio": read_ratio},
    )

    history: List[Operation] = []
    failed_workers = 0
    started = time.perf_counter()
    with profile_block(f"workload-{strategy.name}") as stats:
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="worker") as pool:
            futures = [
                pool.submit(
                    _run_worker,
                    CounterClient(strategy, context, store_factory),
                    ops,
                    read_ratio,
                    random.Random(config.seed + index),
                    started,
                )
                for index in range(workers)
            ]
            for future in as_completed(futures):
                try:
                    history.extend(future.result())
                except Exception:  # noqa: BLE001
                    failed_workers += 1
                    log.exception("[WORKER FAILED]", extra={"variant": strategy.name})

    history.sort(key=lambda op: op.time)

    rows_remaining: Optional[int] = None
    with CounterClient(strategy, context, store_factory) as final_client:
        try:
            final_client.setup()
        except StoreError as exc:
            log.error("[FINAL READ FAILED] schema setup", extra={"variant": strategy.name, "error": str(exc)})
            final = Operation(f="read", worker=final_client.worker.worker_id).complete("fail", error=str(exc))
        else:
            final = final_client.invoke(Operation(f="read"))
            try:
                rows_remaining = len(strategy.reader.rows(final_client.store))
            except StoreError:
                log.warning("Could not count remaining rows", exc_info=True)
    final = final.model_copy(update={"time": time.perf_counter() - started})

    summary = summarize_history(history, final)
    duration = stats.duration_seconds
    summary.update(
        {
            "variant": strategy.name,
            "workers": workers,
            "failed_workers": failed_workers,
            "operations": len(history),
            "aggregator": context.aggregator.value,
            "rows_remaining": rows_remaining,
            "duration_seconds": _round_float(duration),
            "throughput_ops_per_sec": _round_float(len(history) / duration) if duration else 0.0,
            "peak_rss_bytes": stats.peak_rss_bytes,
            "cpu_percent": _round_float(stats.cpu_percent, 1) if stats.cpu_percent else None,
        }
    )

    log.info(
        f"[WORKLOAD COMPLETE] {strategy.name}",
        extra={
            "variant": strategy.name,
            "final_value": summary["final_value"],
            "within_bounds": summary["within_bounds"],
            "rows_remaining": rows_remaining,
        },
    )

    if config.persist:
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "settings": {
                "counter_id": settings.counter_id,
                "consistency": settings.consistency.value,
                "deletion_mode": settings.deletion_mode.value,
                "extra_payload_size": settings.extra_payload_size,
                "store_backend": settings.store_backend,
            },
            "summary": summary,
            "history": [op.model_dump() for op in [*history, final]],
        }
        _persist_results(payload, Path(config.results_dir))

    return summary


__all__ = [
    "RunConfig",
    "available_variants",
    "build_strategy",
    "run_workload",
    "summarize_history",
]
