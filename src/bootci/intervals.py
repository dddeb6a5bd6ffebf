r"""
bootci.intervals
================
Bootstrap confidence intervals computed from per-replicate estimator results.

This module defines:

- :class:`Interval`: one interval for one term.
- :func:`percentile_interval`: empirical quantiles of the bootstrap distribution.
- :func:`t_interval`: studentized (bootstrap-t) interval.
- :func:`bca_interval`: bias-corrected and accelerated interval.
- :class:`IntervalEngine`: registry that dispatches a method name to its function.

Every method works term by term and returns a :class:`pandas.DataFrame` with
columns ``term``, ``.lower``, ``.estimate``, ``.upper``, ``.alpha`` and
``.method``. Quantiles use linear interpolation between order statistics.

See Also
--------
bootci.estimator.fit_resamples
    Produces the :class:`~bootci.estimator.BootstrapResults` consumed here.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import asdict, dataclass
from typing import Any, Callable, Iterable, Mapping, Optional

import numpy as np
import pandas as pd

from .context import BootstrapContext, Center, IntervalMethod
from .errors import (
    DegenerateJackknife,
    ExtremeQuantile,
    InsufficientReplicates,
    MissingApparentReplicate,
    MissingStandardError,
)
from .estimator import BootstrapResults, ReplicateResult, apply, evaluate_all
from .resampling import APPARENT_ID, Replicate, as_dataset, jackknife
from .utils import interp_quantile, norm_cdf, norm_quantile, z_crit

logger = logging.getLogger(__name__)

__all__ = [
    "INTERVAL_COLUMNS",
    "Interval",
    "intervals_to_frame",
    "percentile_interval",
    "t_interval",
    "bca_interval",
    "bias_correction",
    "acceleration",
    "bca_adjusted_probs",
    "IntervalEngine",
    "build_default_engine",
    "DEFAULT_ENGINE",
]

INTERVAL_COLUMNS = ["term", ".lower", ".estimate", ".upper", ".alpha", ".method"]

_LABELS = {
    IntervalMethod.percentile: "percentile",
    IntervalMethod.t: "student-t",
    IntervalMethod.bca: "BCa",
}


@dataclass(frozen=True)
class Interval:
    r"""
    Confidence interval for one term.

    Attributes
    ----------
    term : str
        Name of the estimated quantity.
    lower, estimate, upper : float
        Bounds and point estimate.
    alpha : float
        Two-sided tail mass (``0.05`` for a 95% interval).
    method : str
        ``"percentile"``, ``"student-t"`` or ``"BCa"``.
    """

    term: str
    lower: float
    estimate: float
    upper: float
    alpha: float
    method: str


def intervals_to_frame(intervals: Iterable[Interval]) -> pd.DataFrame:
    """Render intervals as the ``term``/``.lower``/``.estimate``/``.upper``/``.alpha``/``.method`` table."""
    rows = [{("term" if k == "term" else f".{k}"): v for k, v in asdict(iv).items()} for iv in intervals]
    return pd.DataFrame(rows, columns=INTERVAL_COLUMNS)


def _check_alpha(alpha: float) -> float:
    if not 0.0 < alpha < 1.0:
        raise ValueError("alpha must be in (0,1)")
    return float(alpha)


def _usable(values: np.ndarray, term: str, method: str, min_replicates: int) -> np.ndarray:
    """Drop non-finite values; fail below two, warn below ``min_replicates``."""
    arr = values[np.isfinite(values)]
    if arr.size < 2:
        raise InsufficientReplicates(
            f"{method} interval for term '{term}' needs at least 2 usable replicates, got {arr.size}",
            term=term,
            method=method,
        )
    if arr.size < min_replicates:
        warnings.warn(
            f"Recommend at least {min_replicates} non-missing bootstrap resamples for term '{term}' "
            f"({arr.size} available).",
            UserWarning,
            stacklevel=3,
        )
    return arr


def _apparent_value(apparent: ReplicateResult, term: str, method: str) -> float:
    value = apparent.estimates.get(term)
    if value is None or not np.isfinite(value):
        raise MissingApparentReplicate(
            f"{method} interval for term '{term}' needs a finite apparent estimate",
            method=method,
        )
    return float(value)


def percentile_interval(
    results: BootstrapResults,
    alpha: float = 0.05,
    *,
    center: str = "apparent",
    min_replicates: int = 1000,
) -> pd.DataFrame:
    r"""
    Percentile bootstrap interval.

    For each term the bounds are the :math:`\alpha/2` and :math:`1-\alpha/2`
    empirical quantiles of the non-apparent bootstrap estimates:

    .. math::
       \left[\,Q_{\alpha/2}(\hat\theta^*),\; Q_{1-\alpha/2}(\hat\theta^*)\,\right].

    Parameters
    ----------
    results : BootstrapResults
        Per-replicate estimator output.
    alpha : float, default 0.05
        Two-sided tail mass.
    center : {"apparent", "mean", "median"}, default "apparent"
        Reported ``.estimate``. ``"apparent"`` uses the original-data estimate
        when an apparent replicate exists and falls back to the bootstrap mean.
    min_replicates : int, default 1000
        Warn when fewer usable estimates are available.

    Returns
    -------
    pandas.DataFrame
        Interval table.

    Raises
    ------
    InsufficientReplicates
        If a term has fewer than 2 finite bootstrap estimates.
    """
    alpha = _check_alpha(alpha)
    center = Center(center)
    lo_p, hi_p = alpha / 2.0, 1.0 - alpha / 2.0
    label = _LABELS[IntervalMethod.percentile]
    app = results.apparent

    out = []
    for term in results.terms:
        boot = _usable(results.estimates(term), term, label, min_replicates)
        lo, hi = interp_quantile(boot, (lo_p, hi_p))
        if center is Center.median:
            est = float(np.median(boot))
        elif center is Center.apparent and app is not None and np.isfinite(app.estimates.get(term, np.nan)):
            est = float(app.estimates[term])
        else:
            est = float(np.mean(boot))
        out.append(Interval(term, float(lo), est, float(hi), alpha, label))
    return intervals_to_frame(out)


def t_interval(
    results: BootstrapResults,
    alpha: float = 0.05,
    *,
    min_replicates: int = 1000,
) -> pd.DataFrame:
    r"""
    Studentized (bootstrap-t) interval.

    With apparent estimate :math:`\hat\theta` and standard error :math:`\widehat{se}`,
    each replicate contributes :math:`t_i = (\hat\theta^*_i - \hat\theta)/\widehat{se}^*_i`.
    For the empirical quantiles :math:`t_{lo}, t_{hi}` of :math:`\{t_i\}`,

    .. math::
       \left[\,\hat\theta - t_{hi}\,\widehat{se},\; \hat\theta - t_{lo}\,\widehat{se}\,\right].

    Parameters
    ----------
    results : BootstrapResults
        Per-replicate estimator output, including the apparent replicate and a
        standard error for every term.
    alpha : float, default 0.05
        Two-sided tail mass.
    min_replicates : int, default 1000
        Warn when fewer usable statistics are available.

    Returns
    -------
    pandas.DataFrame
        Interval table.

    Raises
    ------
    MissingApparentReplicate
        If ``results`` has no apparent replicate.
    MissingStandardError
        If any replicate lacks a standard error for a term.
    InsufficientReplicates
        If fewer than 2 finite :math:`t_i` remain for a term.
    """
    alpha = _check_alpha(alpha)
    label = _LABELS[IntervalMethod.t]
    app = results.apparent
    if app is None:
        raise MissingApparentReplicate(
            f"{label} interval requires an apparent replicate; resample with apparent=True",
            method=label,
        )
    lo_p, hi_p = alpha / 2.0, 1.0 - alpha / 2.0

    out = []
    for term in results.terms:
        theta = _apparent_value(app, term, label)
        for r in [app, *results.replicates]:
            if term in r.estimates and r.std_errors.get(term) is None:
                raise MissingStandardError(
                    f"{label} interval needs std.error for term '{term}' on replicate '{r.replicate_id}'",
                    term=term,
                    replicate_id=r.replicate_id,
                )
        se_app = float(app.std_errors[term])

        with np.errstate(divide="ignore", invalid="ignore"):
            t_stats = (results.estimates(term) - theta) / results.std_errors(term)
        t_stats = _usable(t_stats, term, label, min_replicates)
        t_lo, t_hi = interp_quantile(t_stats, (lo_p, hi_p))
        out.append(Interval(term, theta - t_hi * se_app, theta, theta - t_lo * se_app, alpha, label))
    return intervals_to_frame(out)


def bias_correction(boot: np.ndarray, theta: float, term: str = "") -> float:
    r"""
    BCa bias-correction constant :math:`z_0 = \Phi^{-1}\left(\#\{\hat\theta^*_b < \hat\theta\}/B\right)`.

    Raises
    ------
    ExtremeQuantile
        If the apparent estimate lies at or beyond an edge of the bootstrap
        distribution (proportion 0 or 1), which makes :math:`z_0` infinite.
    """
    prop = float(np.mean(boot < theta))
    if prop <= 0.0 or prop >= 1.0:
        raise ExtremeQuantile(
            f"BCa bias correction for term '{term}' is infinite: {prop:.0%} of bootstrap "
            f"estimates fall below the apparent estimate {theta:.6g}",
            term=term,
        )
    return norm_quantile(prop)


def acceleration(jack: np.ndarray, term: str = "") -> float:
    r"""
    BCa acceleration from jackknife estimates.

    .. math::
       a = \frac{\sum_i (\bar\theta_{(\cdot)} - \hat\theta_{(i)})^3}
                {6\left[\sum_i (\bar\theta_{(\cdot)} - \hat\theta_{(i)})^2\right]^{3/2}}

    Raises
    ------
    DegenerateJackknife
        If the jackknife estimates are all identical (zero denominator) or non-finite.
    """
    jack = np.asarray(jack, dtype=float)
    if jack.size < 2 or not np.all(np.isfinite(jack)) or np.all(jack == jack[0]):
        raise DegenerateJackknife(
            f"jackknife estimates for term '{term}' have no spread; BCa acceleration is undefined",
            term=term,
        )
    d = float(np.mean(jack)) - jack
    den = 6.0 * float(np.sum(d**2)) ** 1.5
    if den == 0.0:
        raise DegenerateJackknife(
            f"jackknife estimates for term '{term}' have no spread; BCa acceleration is undefined",
            term=term,
        )
    return float(np.sum(d**3)) / den


def bca_adjusted_probs(z0: float, a: float, alpha: float) -> tuple[float, float]:
    r"""
    BCa-adjusted tail probabilities.

    For :math:`z \in \{\Phi^{-1}(\alpha/2),\, \Phi^{-1}(1-\alpha/2)\}`,

    .. math::
       p(z) = \Phi\!\left(z_0 + \frac{z_0 + z}{1 - a(z_0 + z)}\right).

    With :math:`z_0 = a = 0` the unadjusted tail probabilities
    :math:`(\alpha/2,\, 1-\alpha/2)` are returned as is, so the interval is
    exactly the percentile interval.

    Returns
    -------
    tuple of float
        ``(p_lo, p_hi)``; NaN when :math:`1 - a(z_0+z) \le 0`.
    """
    alpha = _check_alpha(alpha)
    if z0 == 0.0 and a == 0.0:
        return alpha / 2.0, 1.0 - alpha / 2.0

    def _adj(z: float) -> float:
        num = z0 + z
        den = 1.0 - a * num
        if den <= 0.0:
            return float("nan")
        return norm_cdf(z0 + num / den)

    z = z_crit(1.0 - alpha)
    return _adj(-z), _adj(z)


def bca_interval(
    dataset: Any,
    results: BootstrapResults,
    estimator: Callable[..., Any],
    alpha: float = 0.05,
    *,
    extra_args: Optional[Mapping[str, Any]] = None,
    backend: str = "sequential",
    n_workers: Optional[int] = None,
    min_replicates: int = 1000,
) -> pd.DataFrame:
    r"""
    Bias-corrected and accelerated (BCa) bootstrap interval.

    Steps, per term:

    1. bootstrap distribution :math:`\hat\theta^*` as for :func:`percentile_interval`;
    2. bias correction :math:`z_0` (:func:`bias_correction`);
    3. acceleration :math:`a` from leave-one-out estimates (:func:`acceleration`);
       the estimator is re-run once per row of ``dataset``, through the
       execution backends;
    4. adjusted probabilities (:func:`bca_adjusted_probs`) re-indexed into the
       sorted bootstrap distribution with linear interpolation.

    Parameters
    ----------
    dataset : DataFrame or array-like
        The original dataset the replicates were drawn from.
    results : BootstrapResults
        Per-replicate estimator output.
    estimator : callable
        The same estimator that produced ``results``.
    alpha : float, default 0.05
        Two-sided tail mass.
    extra_args : mapping, optional
        Keyword arguments forwarded to the estimator.
    backend : {"auto", "sequential", "thread", "process"}, default "sequential"
        Backend used for the jackknife evaluations.
    n_workers : int, optional
        Worker count for parallel backends.
    min_replicates : int, default 1000
        Warn when fewer usable bootstrap estimates are available.

    Returns
    -------
    pandas.DataFrame
        Interval table; ``.estimate`` is the apparent estimate.

    Raises
    ------
    EstimatorFailure
        If the estimator fails on the original data (when ``results`` has no
        apparent replicate) or on any jackknife fold.
    DegenerateJackknife
        If the dataset has fewer than 2 rows or the jackknife estimates of a
        term are all identical.
    ExtremeQuantile
        If an adjusted probability is not strictly inside :math:`(0, 1)`.
    InsufficientReplicates
        If a term has fewer than 2 finite bootstrap estimates.
    """
    alpha = _check_alpha(alpha)
    label = _LABELS[IntervalMethod.bca]
    frame = as_dataset(dataset)

    folds = jackknife(frame)

    app = results.apparent
    if app is None:
        logger.info("No apparent replicate in results; fitting the estimator on the full dataset")
        whole = Replicate(id=APPARENT_ID, indices=np.arange(len(frame)), data=frame, apparent=True)
        app = apply(estimator, whole, extra_args)

    # per-term checks on the bootstrap distribution before any refit
    prepared = []
    for term in results.terms:
        boot = _usable(results.estimates(term), term, label, min_replicates)
        theta = _apparent_value(app, term, label)
        prepared.append((term, boot, theta, bias_correction(boot, theta, term)))

    jack_results = evaluate_all(folds, estimator, extra_args, backend=backend, n_workers=n_workers)

    out = []
    for term, boot, theta, z0 in prepared:
        jack = np.array([jr.estimates.get(term, np.nan) for jr in jack_results], dtype=float)
        a = acceleration(jack, term)
        p_lo, p_hi = bca_adjusted_probs(z0, a, alpha)
        logger.debug("BCa term '%s': z0=%.6g a=%.6g p=(%.6g, %.6g)", term, z0, a, p_lo, p_hi)

        for p in (p_lo, p_hi):
            if not (0.0 < p < 1.0):
                raise ExtremeQuantile(
                    f"BCa-adjusted quantile for term '{term}' is {p!r}, outside (0, 1) "
                    f"(z0={z0:.4g}, a={a:.4g})",
                    term=term,
                )
        if min(p_lo, 1.0 - p_hi) < 1.0 / boot.size:
            logger.warning(
                "BCa interval for term '%s' uses extreme order statistics (p=%.4g, %.4g) with %d replicates",
                term, p_lo, p_hi, boot.size,
            )
        lo, hi = interp_quantile(boot, (p_lo, p_hi))
        out.append(Interval(term, float(lo), theta, float(hi), alpha, label))
    return intervals_to_frame(out)


IntervalFn = Callable[..., pd.DataFrame]


def _run_percentile(results, ctx, **_):
    return percentile_interval(results, ctx.alpha, center=ctx.center, min_replicates=ctx.min_replicates)


def _run_t(results, ctx, **_):
    return t_interval(results, ctx.alpha, min_replicates=ctx.min_replicates)


def _run_bca(results, ctx, *, dataset=None, estimator=None, extra_args=None):
    if dataset is None or estimator is None:
        raise ValueError("the bca method needs the original dataset and the estimator")
    return bca_interval(
        dataset,
        results,
        estimator,
        ctx.alpha,
        extra_args=extra_args,
        backend=ctx.backend,
        n_workers=ctx.n_workers,
        min_replicates=ctx.min_replicates,
    )


class IntervalEngine:
    r"""
    Registry that dispatches an interval method name to its implementation.

    Parameters
    ----------
    methods : mapping of str to callable, optional
        ``name -> fn(results, ctx, *, dataset, estimator, extra_args)``.

    Notes
    -----
    A structural failure of one method (e.g. a missing apparent replicate) is
    raised as is; the engine never substitutes a different method.

    Examples
    --------
    >>> eng = build_default_engine()
    >>> eng.available()
    ('percentile', 't', 'bca')
    """

    def __init__(self, methods: Optional[Mapping[str, IntervalFn]] = None):
        self._methods: dict[str, IntervalFn] = dict(methods or {})

    def available(self) -> tuple[str, ...]:
        return tuple(self._methods)

    def register(self, name: str, fn: IntervalFn) -> None:
        """Add or replace a method."""
        self._methods[name] = fn

    def compute(
        self,
        method: str,
        results: BootstrapResults,
        ctx: Optional[BootstrapContext] = None,
        *,
        dataset: Any = None,
        estimator: Optional[Callable[..., Any]] = None,
        extra_args: Optional[Mapping[str, Any]] = None,
    ) -> pd.DataFrame:
        r"""
        Compute one interval table.

        Parameters
        ----------
        method : str
            Registered method name (``"percentile"``, ``"t"``, ``"bca"``).
        results : BootstrapResults
            Per-replicate estimator output.
        ctx : BootstrapContext, optional
            Supplies ``alpha``, ``center``, ``min_replicates``, ``backend`` and
            ``n_workers``. Defaults to :class:`BootstrapContext()`.
        dataset, estimator, extra_args :
            Needed by methods that re-fit the estimator (BCa).

        Returns
        -------
        pandas.DataFrame
        """
        key = method.value if isinstance(method, IntervalMethod) else str(method)
        if key not in self._methods:
            raise ValueError(f"unknown interval method '{key}'; available: {self.available()}")
        ctx = ctx or BootstrapContext()
        return self._methods[key](results, ctx, dataset=dataset, estimator=estimator, extra_args=extra_args)


def build_default_engine() -> IntervalEngine:
    r"""
    Construct an :class:`IntervalEngine` with the percentile, t and BCa methods.

    Returns
    -------
    IntervalEngine
    """
    return IntervalEngine(
        {
            IntervalMethod.percentile.value: _run_percentile,
            IntervalMethod.t.value: _run_t,
            IntervalMethod.bca.value: _run_bca,
        }
    )


# Build a default engine at import time
DEFAULT_ENGINE = build_default_engine()
