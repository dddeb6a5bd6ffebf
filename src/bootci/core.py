r"""

bootci.core
===========

End-to-end orchestration of a bootstrap interval analysis.

This module provides:

* :class:`~bootci.core.BootstrapAnalysis`: runs resampling, estimator
  evaluation and the requested interval methods under one
  :class:`~bootci.context.BootstrapContext`.
* :class:`~bootci.core.AnalysisResult`: a lightweight container for outputs.

Execution backends
------------------

Estimator evaluation and the BCa jackknife are dispatched through
:mod:`bootci.backends`. By default (``backend="auto"``) small runs stay
sequential and larger ones **prefer threads**, because NumPy and SciPy
release the Global Interpreter Lock (GIL). Set ``backend="process"`` for
pure-Python estimators that hold the GIL.

Reproducibility
---------------

Replicate composition is fixed by the seed before any estimator runs, so a
given seed yields identical intervals under every backend.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

import pandas as pd

from .context import BootstrapContext, IntervalMethod
from .estimator import BootstrapResults, fit_resamples
from .intervals import DEFAULT_ENGINE, INTERVAL_COLUMNS, IntervalEngine
from .resampling import Bootstraps, as_dataset, bootstraps

logger = logging.getLogger(__name__)  # pragma: no cover
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

_NEEDS_APPARENT = (IntervalMethod.t, IntervalMethod.bca)


@dataclass
class AnalysisResult:
    r"""
    Container for the outcome of a bootstrap interval analysis.

    Attributes
    ----------
    bootstraps : Bootstraps
        The replicates that were evaluated.
    results : BootstrapResults
        Per-replicate estimator output.
    intervals : dict[str, pandas.DataFrame]
        Interval table per requested method (``"percentile"``, ``"t"``, ``"bca"``).
    execution_time : float
        Wall-clock time in seconds.
    metadata : dict
        Freeform metadata. Includes ``"analysis_name"``, ``"timestamp"``,
        ``"seed_entropy"``, ``"times"``, ``"n_failed"`` and ``"methods"``.
    """

    bootstraps: Bootstraps
    results: BootstrapResults
    intervals: dict[str, pd.DataFrame]
    execution_time: float
    metadata: dict[str, Any] = field(default_factory=dict)

    def summary(self) -> pd.DataFrame:
        """All interval tables stacked into one, in method order."""
        if not self.intervals:
            return pd.DataFrame(columns=INTERVAL_COLUMNS)
        return pd.concat(list(self.intervals.values()), ignore_index=True)

    def result_to_string(self) -> str:
        r"""
        Pretty, human-readable summary of the result.

        Returns
        -------
        str
            Multiline textual summary.
        """
        if analysis_name := self.metadata.get("analysis_name"):
            title = f"Bootstrap intervals for '{analysis_name}':"
        else:
            title = "Bootstrap intervals:"
        lines = [
            "=" * 20 + " BOOTSTRAP RESULTS " + "=" * 20,
            title,
            f"  Replicates: {self.bootstraps.times}"
            + (" (+ apparent)" if self.bootstraps.apparent else ""),
            f"  Failed replicates dropped: {self.results.n_failed}",
            f"  Execution time: {self.execution_time:.2f} seconds",
        ]
        for method, table in self.intervals.items():
            lines.append(f"  Method: {method}")
            for row in table.itertuples(index=False):
                term, lower, estimate, upper, alpha, _ = row
                lines.append(
                    f"    {term}: {estimate:.5f}  "
                    f"{int(round((1 - alpha) * 100))}% CI [{lower:.5f}, {upper:.5f}]"
                )
        if self.metadata:
            lines.append("Metadata:")
        for k, v in self.metadata.items():
            lines.append(f"    {k}: {v}")
        lines.append("=" * 20 + " END " + "=" * 20)
        return "\n".join(lines)


class BootstrapAnalysis:
    r"""
    Run a bootstrap interval analysis for one estimator.

    Parameters
    ----------
    estimator : callable
        ``fn(frame, **kwargs)`` returning a ``term``/``estimate``/``std.error``
        table, a mapping or a scalar (see :mod:`bootci.estimator`).
    ctx : BootstrapContext, optional
        Configuration; defaults to :class:`BootstrapContext()`.
    name : str, optional
        Label used in reports. Defaults to the estimator's ``name`` or ``__name__``.
    engine : IntervalEngine, optional
        Interval method registry (defaults to :data:`bootci.intervals.DEFAULT_ENGINE`).

    Examples
    --------
    >>> from bootci.estimators import mean_estimator
    >>> analysis = BootstrapAnalysis(mean_estimator, BootstrapContext(times=2000, seed=1))
    >>> res = analysis.run(pd.DataFrame({"x": [9.1, 10.4, 11.2, 8.7]}), methods=("percentile", "t"))  # doctest: +SKIP
    >>> res.summary()  # doctest: +SKIP
    """

    def __init__(
        self,
        estimator: Callable[..., Any],
        ctx: Optional[BootstrapContext] = None,
        name: Optional[str] = None,
        engine: Optional[IntervalEngine] = None,
    ):
        self.estimator = estimator
        self.ctx = ctx or BootstrapContext()
        self.name = name or getattr(estimator, "name", None) or getattr(estimator, "__name__", "Analysis")
        self.engine = engine or DEFAULT_ENGINE

    def set_seed(self, seed: Optional[int]) -> None:
        r"""
        Set the resampling seed for reproducible analyses.

        Parameters
        ----------
        seed : int or None
            Seed for :class:`numpy.random.SeedSequence`. :data:`None` chooses
            entropy from the OS.
        """
        self.ctx = self.ctx.with_overrides(seed=seed)

    def resample(self, data: Any, *, apparent: Optional[bool] = None) -> Bootstraps:
        """Draw the replicates described by :attr:`ctx`."""
        ctx = self.ctx
        return bootstraps(
            data,
            ctx.times,
            strata=ctx.strata,
            breaks=ctx.breaks,
            pool=ctx.pool,
            apparent=ctx.apparent if apparent is None else apparent,
            seed=ctx.seed,
        )

    def run(
        self,
        data: Any,
        methods: Iterable[str] = ("percentile",),
        *,
        progress_callback: Optional[Callable[[int, int], None]] = None,
        **estimator_kwargs: Any,
    ) -> AnalysisResult:
        r"""
        Resample ``data``, evaluate the estimator and compute intervals.

        Parameters
        ----------
        data : DataFrame or array-like
            Original dataset.
        methods : iterable of str, default ``("percentile",)``
            Interval methods to compute; ``"t"`` and ``"bca"`` force an
            apparent replicate.
        progress_callback : callable, optional
            A function ``f(completed: int, total: int)`` called as replicates finish.
        **estimator_kwargs : Any
            Keyword arguments forwarded to the estimator.

        Returns
        -------
        AnalysisResult
        """
        ctx = self.ctx
        requested = [IntervalMethod(m) for m in methods]
        frame = as_dataset(data)

        apparent = ctx.apparent or any(m in _NEEDS_APPARENT for m in requested)
        if apparent and not ctx.apparent:
            logger.info("Adding an apparent replicate for methods %s", [m.value for m in requested])

        t0 = time.time()
        boots = self.resample(frame, apparent=apparent)
        logger.info("Fitting '%s' on %d bootstrap replicates...", self.name, ctx.times)
        results = fit_resamples(
            boots,
            self.estimator,
            on_error=ctx.on_error,
            max_failure_fraction=ctx.max_failure_fraction,
            backend=ctx.backend,
            n_workers=ctx.n_workers,
            progress_callback=progress_callback,
            **estimator_kwargs,
        )

        intervals: dict[str, pd.DataFrame] = {}
        for method in requested:
            intervals[method.value] = self.engine.compute(
                method.value,
                results,
                ctx,
                dataset=frame,
                estimator=self.estimator,
                extra_args=estimator_kwargs,
            )
        exec_time = time.time() - t0
        logger.info("Computed %d interval table(s) in %.2f seconds", len(intervals), exec_time)

        meta = {
            "analysis_name": self.name,
            "timestamp": time.time(),
            "seed_entropy": boots.seed_entropy,
            "times": ctx.times,
            "alpha": ctx.alpha,
            "n_failed": results.n_failed,
            "methods": [m.value for m in requested],
        }
        return AnalysisResult(
            bootstraps=boots,
            results=results,
            intervals=intervals,
            execution_time=exec_time,
            metadata=meta,
        )


__all__ = [
    "AnalysisResult",
    "BootstrapAnalysis",
]
