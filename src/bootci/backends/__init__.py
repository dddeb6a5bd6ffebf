"""
Execution backends for replicate and jackknife evaluation.

This subpackage provides pluggable execution strategies:

CPU Backends
    :class:`SequentialBackend`: Single-threaded execution
    :class:`ThreadBackend`: Thread-based parallelism
    :class:`ProcessBackend`: Process-based parallelism

Utilities
    :func:`get_backend`: Resolve a backend name into an instance
    :func:`make_blocks`: Chunking helper for parallel work distribution
    :func:`worker_run_chunk`: Top-level worker for process pools
    :func:`is_windows_platform`: Platform detection helper

Protocol
    :class:`ExecutionBackend`: Interface for custom backends
"""

from __future__ import annotations

import logging
import multiprocessing as mp
from typing import Optional

from .base import ExecutionBackend, is_windows_platform, make_blocks, worker_run_chunk
from .parallel import ProcessBackend, ThreadBackend
from .sequential import SequentialBackend

logger = logging.getLogger(__name__)

# Minimum number of tasks before "auto" goes parallel (soft limit)
_PARALLEL_THRESHOLD = 200

VALID_BACKENDS = ("auto", "sequential", "thread", "process")


def get_backend(
    backend: str = "auto",
    n_tasks: int = 0,
    n_workers: Optional[int] = None,
) -> SequentialBackend | ThreadBackend | ProcessBackend:
    r"""
    Resolve a backend name into a configured backend instance.

    Parameters
    ----------
    backend : {"auto", "sequential", "thread", "process"}, default "auto"
        Requested backend.
    n_tasks : int, default 0
        Number of tasks about to run; small jobs under ``"auto"`` stay sequential.
    n_workers : int, optional
        Worker count for parallel backends. Defaults to the CPU count.

    Returns
    -------
    SequentialBackend, ThreadBackend or ProcessBackend

    Notes
    -----
    ``"auto"`` maps to:

    * ``"sequential"`` for fewer than ``_PARALLEL_THRESHOLD`` tasks or a single worker;
    * ``"thread"`` on POSIX-like platforms, where NumPy/SciPy release the GIL;
    * ``"process"`` on Windows, where threads tend to serialize under the GIL.
    """
    if backend not in VALID_BACKENDS:
        raise ValueError(f"backend must be one of {VALID_BACKENDS}, got '{backend}'")
    if n_workers is not None and n_workers <= 0:
        raise ValueError("n_workers must be positive")

    if backend == "auto":
        workers = n_workers if n_workers is not None else mp.cpu_count()
        if workers <= 1 or n_tasks < _PARALLEL_THRESHOLD:
            backend = "sequential"
        else:
            backend = "process" if is_windows_platform() else "thread"
            n_workers = workers

    if backend == "sequential":
        logger.info("Evaluating %d tasks sequentially...", n_tasks)
        return SequentialBackend()

    if n_workers is None:
        n_workers = mp.cpu_count()  # pragma: no cover
    logger.info("Evaluating %d tasks using %s backend with %d workers...", n_tasks, backend, n_workers)
    if backend == "thread":
        return ThreadBackend(n_workers=n_workers)
    return ProcessBackend(n_workers=n_workers)


__all__ = [
    # Protocol
    "ExecutionBackend",
    # CPU Backends
    "SequentialBackend",
    "ThreadBackend",
    "ProcessBackend",
    # Utility Functions
    "get_backend",
    "make_blocks",
    "worker_run_chunk",
    "is_windows_platform",
    "VALID_BACKENDS",
]
