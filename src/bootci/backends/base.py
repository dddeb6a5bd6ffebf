r"""
Base classes and utilities for execution backends.

This module provides:

Protocol
    :class:`ExecutionBackend`: Interface for evaluating independent tasks

Functions
    :func:`make_blocks`: Chunking helper for parallel work distribution
    :func:`worker_run_chunk`: Top-level worker for process-based parallelism

Helpers
    :func:`is_windows_platform`: Platform detection for backend selection
"""

from __future__ import annotations

import sys
from typing import Any, Callable, Protocol, Sequence

__all__ = [
    "ExecutionBackend",
    "make_blocks",
    "worker_run_chunk",
    "is_windows_platform",
]


def is_windows_platform() -> bool:
    """Return True when running on a Windows platform."""
    return sys.platform.startswith("win") or (sys.platform == "cli")


def make_blocks(n: int, block_size: int = 10_000) -> list[tuple[int, int]]:
    r"""
    Partition an integer range :math:`[0, n)` into half-open blocks :math:`(i, j)`.

    Parameters
    ----------
    n : int
        Total number of items.
    block_size : int, default: 10_000
        Target block length.

    Returns
    -------
    list of tuple[int, int]
        List of ``(i, j)`` index pairs covering ``[0, n)``.

    Examples
    --------
    >>> make_blocks(5, block_size=2)
    [(0, 2), (2, 4), (4, 5)]
    """
    if block_size <= 0:
        raise ValueError("block_size must be positive")
    blocks = []
    i = 0
    while i < n:
        j = min(i + block_size, n)
        blocks.append((i, j))
        i = j
    return blocks


def worker_run_chunk(fn: Callable[[Any], Any], items: Sequence[Any]) -> list[Any]:
    r"""
    Evaluate ``fn`` on a small batch of items in a **separate worker**.

    Parameters
    ----------
    fn : callable
        Task function. Must be pickleable when used with a process backend
        (a module-level function or a :func:`functools.partial` of one).
    items : sequence
        Task inputs for this chunk.

    Returns
    -------
    list
        ``[fn(item) for item in items]``.
    """
    return [fn(item) for item in items]


class ExecutionBackend(Protocol):
    r"""
    Protocol defining the interface for execution backends.

    Backends evaluate independent tasks and return the outputs in input
    order, whatever order the tasks complete in. They never touch random
    state, so parallelism cannot change which rows form which replicate.
    """

    def run(
        self,
        fn: Callable[[Any], Any],
        items: Sequence[Any],
        progress_callback: Callable[[int, int], None] | None = None,
    ) -> list[Any]:
        r"""
        Evaluate ``fn`` on every item.

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
