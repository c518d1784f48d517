from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

from rowcounter.domain.models import STATE_TABLE, Consistency
from rowcounter.strategies.abstract import WorkerContext

THREADS = 6
INCREMENTS_PER_THREAD = 40


def test_each_writer_owns_one_cumulative_row(cumulative_counter, memory_store):
    first, second = WorkerContext(worker_id=1), WorkerContext(worker_id=2)

    cumulative_counter.increment(memory_store, first, 2)
    cumulative_counter.increment(memory_store, first, 3)
    cumulative_counter.increment(memory_store, second, 4)

    rows = memory_store.read(STATE_TABLE, 0, Consistency.QUORUM)
    assert {row["writer_id"]: row["value"] for row in rows} == {"client-1": 5, "client-2": 4}
    assert cumulative_counter.read(memory_store) == 9


def test_current_is_zero_for_unknown_writer(cumulative_counter, memory_store):
    assert cumulative_counter.current(memory_store, "client-99") == 0
    assert cumulative_counter.read(memory_store) == 0


def test_rows_stay_bounded_by_writer_count(cumulative_counter, memory_store):
    pool = [WorkerContext(worker_id=i) for i in (1, 2, 3)]
    for step in range(60):
        cumulative_counter.increment(memory_store, pool[step % 3], 1)

    assert memory_store.row_count(STATE_TABLE, 0) == 3
    assert cumulative_counter.read(memory_store) == 60


def test_concurrent_writers_with_private_ids_lose_nothing(cumulative_counter, memory_store):
    barrier = threading.Barrier(THREADS)

    def work(worker_id: int) -> None:
        worker = WorkerContext(worker_id=worker_id)
        barrier.wait()
        for _ in range(INCREMENTS_PER_THREAD):
            cumulative_counter.increment(memory_store, worker, 1)

    with ThreadPoolExecutor(max_workers=THREADS) as pool:
        list(pool.map(work, range(1, THREADS + 1)))

    assert cumulative_counter.read(memory_store) == THREADS * INCREMENTS_PER_THREAD
