r"""
Sequential execution backend.

This module provides a single-threaded execution strategy that evaluates
tasks one after another with optional progress reporting.
"""

from __future__ import annotations

from typing import Any, Callable, Sequence

__all__ = ["SequentialBackend"]


class SequentialBackend:
    r"""
    Sequential (single-threaded) execution backend.

    Evaluates tasks one at a time on the main thread.
    Suitable for cheap estimators or debugging.

    Examples
    --------
    >>> SequentialBackend().run(abs, [-1, 2, -3])
    [1, 2, 3]
    """

    def run(
        self,
        fn: Callable[[Any], Any],
        items: Sequence[Any],
        progress_callback: Callable[[int, int], None] | None = None,
    ) -> list[Any]:
        r"""
        Evaluate tasks sequentially on a single thread.

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
        results: list[Any] = []
        # Report progress every 1% of tasks
        step = max(1, total // 100)

        for i, item in enumerate(items):
            results.append(fn(item))
            if progress_callback and (((i + 1) % step == 0) or (i + 1 == total)):
                progress_callback(i + 1, total)

        return results
