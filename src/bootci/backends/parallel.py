r"""
Parallel execution backends.

This module provides:

Classes
    :class:`ThreadBackend`: Thread-based parallelism using ThreadPoolExecutor
    :class:`ProcessBackend`: Process-based parallelism using ProcessPoolExecutor
"""

from __future__ import annotations

import logging
import multiprocessing as mp
import threading
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from typing import Any, Callable, Sequence

from .base import make_blocks, worker_run_chunk

logger = logging.getLogger(__name__)

__all__ = [
    "ThreadBackend",
    "ProcessBackend",
]

# Blocks per worker
_CHUNKS_PER_WORKER = 8


def _prepare_blocks(n_items: int, n_workers: int, chunks_per_worker: int) -> list[tuple[int, int]]:
    """Split ``n_items`` tasks into roughly ``n_workers * chunks_per_worker`` blocks."""
    block_size = max(1, n_items // (n_workers * chunks_per_worker))
    return make_blocks(n_items, block_size)


class ThreadBackend:
    r"""
    Evaluate replicate or jackknife tasks on a thread pool.

    Tasks are grouped into contiguous blocks, each submitted to a
    :class:`concurrent.futures.ThreadPoolExecutor`.
    Effective when the estimator spends its time in NumPy/SciPy code that
    releases the GIL.

    Parameters
    ----------
    n_workers : int
        Thread pool size.
    chunks_per_worker : int, default 8
        Blocks submitted per worker; more blocks balance uneven estimator costs.

    Examples
    --------
    >>> ThreadBackend(n_workers=2).run(abs, [-1, 2, -3])
    [1, 2, 3]
    """

    def __init__(self, n_workers: int, chunks_per_worker: int = _CHUNKS_PER_WORKER):
        if n_workers <= 0:
            raise ValueError("n_workers must be positive")
        self.n_workers = n_workers
        self.chunks_per_worker = chunks_per_worker

    def run(
        self,
        fn: Callable[[Any], Any],
        items: Sequence[Any],
        progress_callback: Callable[[int, int], None] | None = None,
    ) -> list[Any]:
        r"""
        Evaluate tasks in parallel using threads.

        Parameters
        ----------
        fn : callable
            Task function applied to each item.
        items : sequence
            Task inputs.
        progress_callback : callable or None
            Optional callback ``f(completed, total)`` for progress reporting.

        Returns
        -------
        list
            One output per item, aligned with ``items``.
        """
        total = len(items)
        if total == 0:
            return []
        blocks = _prepare_blocks(total, self.n_workers, self.chunks_per_worker)
        results: list[Any] = [None] * total
        completed = 0
        max_workers = min(self.n_workers, len(blocks))

        stop = threading.Event()

        def _work(blk):
            a, b = blk
            out = []
            for item in items[a:b]:
                if stop.is_set():
                    break
                out.append(fn(item))
            return blk, out

        with ThreadPoolExecutor(max_workers=max_workers) as ex:
            futs = [ex.submit(_work, blk) for blk in blocks]
            try:
                for f in as_completed(futs):
                    (i, j), out = f.result()
                    results[i:j] = out
                    completed += j - i
                    if progress_callback:
                        progress_callback(completed, total)  # pragma: no cover
            except BaseException:
                # abandon queued blocks and stop running ones between tasks
                stop.set()
                for f in futs:
                    f.cancel()
                raise

        return results


class ProcessBackend:
    r"""
    Evaluate replicate or jackknife tasks in spawned worker processes.

    Uses :class:`concurrent.futures.ProcessPoolExecutor` with spawn context
    for parallel execution. Required on Windows or when the estimator is
    pure-Python and holds the GIL.

    Parameters
    ----------
    n_workers : int
        Process pool size.
    chunks_per_worker : int, default 8
        Blocks submitted per worker; more blocks balance uneven estimator costs.

    Notes
    -----
    The task function and the items must be pickleable: define estimators at
    module level rather than as lambdas or closures.
    """

    def __init__(self, n_workers: int, chunks_per_worker: int = _CHUNKS_PER_WORKER):
        if n_workers <= 0:
            raise ValueError("n_workers must be positive")
        self.n_workers = n_workers
        self.chunks_per_worker = chunks_per_worker

    def run(
        self,
        fn: Callable[[Any], Any],
        items: Sequence[Any],
        progress_callback: Callable[[int, int], None] | None = None,
    ) -> list[Any]:
        r"""
        Evaluate tasks in parallel using processes.

        Parameters
        ----------
        fn : callable
            Task function applied to each item. Must be pickleable.
        items : sequence
            Task inputs. Must be pickleable.
        progress_callback : callable or None
            Optional callback ``f(completed, total)`` for progress reporting.

        Returns
        -------
        list
            One output per item, aligned with ``items``.
        """
        total = len(items)
        if total == 0:
            return []
        blocks = _prepare_blocks(total, self.n_workers, self.chunks_per_worker)
        results: list[Any] = [None] * total
        completed = 0
        max_workers = min(self.n_workers, len(blocks))

        with ProcessPoolExecutor(
            max_workers=max_workers,
            mp_context=mp.get_context("spawn"),
        ) as ex:
            futs = []
            for i, j in blocks:
                f = ex.submit(worker_run_chunk, fn, list(items[i:j]))
                f.blk = (i, j)  # type: ignore[attr-defined]
                futs.append(f)
            try:
                for f in as_completed(futs):
                    i, j = f.blk  # type: ignore[attr-defined]
                    results[i:j] = f.result()
                    completed += j - i
                    if progress_callback:
                        progress_callback(completed, total)  # pragma: no cover
            except BaseException:
                for f in futs:
                    f.cancel()
                raise

        return results
