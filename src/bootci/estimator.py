r"""
bootci.estimator
================
Adapter between caller-supplied estimator functions and the interval engine.

This module defines:

- :class:`ReplicateResult`: normalized estimator output for one replicate.
- :class:`FnEstimator`: a frozen adapter that names an estimator function.
- :class:`BootstrapResults`: the ordered per-replicate results of one run.
- :func:`tidy`: normalizes the many shapes an estimator may return.
- :func:`apply`: evaluates an estimator on one replicate.
- :func:`fit_resamples`: evaluates an estimator on every replicate, optionally
  in parallel, under a configurable failure policy.

An estimator is any callable ``fn(frame, **kwargs)`` whose return value is one of

- a :class:`pandas.DataFrame` with columns ``term``, ``estimate`` and, optionally,
  ``std.error`` (``std_error`` is accepted too);
- a mapping ``{term: estimate}`` or ``{term: (estimate, std_error)}``;
- a :class:`pandas.Series` indexed by term;
- a bare real number (reported under the term ``"estimate"``).
"""

from __future__ import annotations

import logging
import math
import numbers
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, Generic, Iterable, Mapping, Optional, Sequence, TypeVar, Union

import numpy as np
import pandas as pd

from .backends import get_backend
from .context import OnError
from .errors import EstimatorFailure, InsufficientReplicates
from .resampling import APPARENT_ID, Bootstraps, Replicate

logger = logging.getLogger(__name__)

__all__ = [
    "ReplicateResult",
    "FnEstimator",
    "BootstrapResults",
    "tidy",
    "apply",
    "fit_resamples",
    "evaluate_all",
]

_SE_COLUMNS = ("std.error", "std_error")


@dataclass(frozen=True)
class ReplicateResult:
    r"""
    Estimator output for one replicate.

    Attributes
    ----------
    replicate_id : str
        Identifier of the replicate the estimator ran on.
    estimates : dict[str, float]
        Point estimate per term.
    std_errors : dict[str, float or None]
        Standard error per term; :data:`None` when the estimator gave none.
    apparent : bool
        Whether the replicate was the unsampled original dataset.
    """

    replicate_id: str
    estimates: dict[str, float]
    std_errors: dict[str, Optional[float]]
    apparent: bool = False


T = TypeVar("T")


@dataclass(frozen=True)
class FnEstimator(Generic[T]):
    r"""
    Lightweight adapter that binds a human-readable ``name`` to an estimator function.

    Parameters
    ----------
    name : str
        Label used in logs and reports.
    fn : callable
        Function with signature ``fn(frame: DataFrame, **kwargs) -> T``.
    doc : str, optional
        Short description displayed by reports.

    Examples
    --------
    >>> est = FnEstimator("mean", lambda df: float(df["x"].mean()))
    >>> est(pd.DataFrame({"x": [1.0, 2.0, 3.0]}))
    2.0
    """

    name: str
    fn: Callable[..., T]
    doc: str = ""

    def __call__(self, frame: pd.DataFrame, **kwargs: Any) -> T:
        return self.fn(frame, **kwargs)


def _as_float(value: Any, what: str) -> float:
    if isinstance(value, (bool, np.bool_)) or not isinstance(value, (numbers.Real, np.number)):
        raise TypeError(f"{what} must be a real number, got {type(value).__name__}")
    return float(value)


def _as_se(value: Any, term: str) -> Optional[float]:
    if value is None:
        return None
    se = _as_float(value, f"std.error for term '{term}'")
    return se if math.isfinite(se) else None


def _tidy_frame(frame: pd.DataFrame) -> tuple[dict[str, float], dict[str, Optional[float]]]:
    missing = {"term", "estimate"} - set(frame.columns)
    if missing:
        raise ValueError(f"estimator table is missing required columns: {sorted(missing)}")
    terms = [str(t) for t in frame["term"]]
    if len(set(terms)) != len(terms):
        raise ValueError(f"estimator table has duplicate terms: {terms}")
    se_col = next((c for c in _SE_COLUMNS if c in frame.columns), None)

    estimates: dict[str, float] = {}
    std_errors: dict[str, Optional[float]] = {}
    for i, term in enumerate(terms):
        estimates[term] = _as_float(frame["estimate"].iloc[i], f"estimate for term '{term}'")
        std_errors[term] = _as_se(frame[se_col].iloc[i], term) if se_col else None
    return estimates, std_errors


def tidy(obj: Any) -> tuple[dict[str, float], dict[str, Optional[float]]]:
    r"""
    Normalize an estimator's return value into per-term estimates and standard errors.

    Parameters
    ----------
    obj : DataFrame, Series, mapping or real number
        Raw estimator output (see module docstring).

    Returns
    -------
    tuple of dict
        ``(estimates, std_errors)``; missing or non-finite standard errors are :data:`None`.

    Raises
    ------
    TypeError
        If ``obj`` (or one of its values) has an unsupported type.
    ValueError
        If a table lacks ``term``/``estimate`` columns or repeats a term.

    Examples
    --------
    >>> tidy({"slope": (2.0, 0.5), "intercept": 1.0})
    ({'slope': 2.0, 'intercept': 1.0}, {'slope': 0.5, 'intercept': None})
    """
    if isinstance(obj, pd.DataFrame):
        return _tidy_frame(obj)
    if isinstance(obj, pd.Series):
        return (
            {str(k): _as_float(v, f"estimate for term '{k}'") for k, v in obj.items()},
            {str(k): None for k in obj.index},
        )
    if isinstance(obj, Mapping):
        estimates: dict[str, float] = {}
        std_errors: dict[str, Optional[float]] = {}
        for key, value in obj.items():
            term = str(key)
            if isinstance(value, Mapping):
                estimates[term] = _as_float(value.get("estimate"), f"estimate for term '{term}'")
                se = next((value[c] for c in _SE_COLUMNS if c in value), None)
                std_errors[term] = _as_se(se, term)
            elif isinstance(value, (tuple, list)):
                if len(value) != 2:
                    raise ValueError(f"term '{term}' must map to (estimate, std_error), got {len(value)} values")
                estimates[term] = _as_float(value[0], f"estimate for term '{term}'")
                std_errors[term] = _as_se(value[1], term)
            else:
                estimates[term] = _as_float(value, f"estimate for term '{term}'")
                std_errors[term] = None
        return estimates, std_errors
    if isinstance(obj, (numbers.Real, np.number)) and not isinstance(obj, (bool, np.bool_)):
        return {"estimate": float(obj)}, {"estimate": None}
    raise TypeError(
        "estimator must return a DataFrame with 'term'/'estimate' columns, a Series, "
        f"a mapping or a real number; got {type(obj).__name__}"
    )


def apply(
    estimator_fn: Callable[..., Any],
    replicate: Replicate,
    extra_args: Optional[Mapping[str, Any]] = None,
) -> ReplicateResult:
    r"""
    Evaluate ``estimator_fn`` on the analysis set of ``replicate``.

    Parameters
    ----------
    estimator_fn : callable
        ``fn(frame, **extra_args)``.
    replicate : Replicate
        Replicate to evaluate.
    extra_args : mapping, optional
        Keyword arguments forwarded to the estimator.

    Returns
    -------
    ReplicateResult

    Raises
    ------
    EstimatorFailure
        If the estimator raises or returns something :func:`tidy` rejects.
        The original exception is chained as ``__cause__``.
    """
    try:
        raw = estimator_fn(replicate.analysis(), **dict(extra_args or {}))
        estimates, std_errors = tidy(raw)
    except EstimatorFailure:
        raise
    except Exception as exc:  # pylint: disable=broad-exception-caught
        raise EstimatorFailure(replicate.id, repr(exc)) from exc
    return ReplicateResult(
        replicate_id=replicate.id,
        estimates=estimates,
        std_errors=std_errors,
        apparent=replicate.apparent,
    )


def _evaluate(
    estimator_fn: Callable[..., Any],
    extra_args: Mapping[str, Any],
    capture: bool,
    replicate: Replicate,
) -> Union[ReplicateResult, EstimatorFailure]:
    """Top-level task for the execution backends; optionally returns failures instead of raising."""
    try:
        return apply(estimator_fn, replicate, extra_args)
    except EstimatorFailure as failure:
        if capture:
            return failure
        raise


@dataclass
class BootstrapResults:
    r"""
    Ordered per-replicate estimator results of one bootstrap run.

    Attributes
    ----------
    results : list of ReplicateResult
        Successful results in replicate order; the apparent result, if any, is last.
    n_failed : int
        Number of replicates dropped after estimator failures (lenient mode).
    failures : list of EstimatorFailure
        The dropped failures, in replicate order.
    """

    results: list[ReplicateResult]
    n_failed: int = 0
    failures: list[EstimatorFailure] = field(default_factory=list)

    def __post_init__(self) -> None:
        n_apparent = sum(r.apparent for r in self.results)
        if n_apparent > 1:
            raise ValueError(f"at most one apparent result is allowed, got {n_apparent}")

    def __len__(self) -> int:
        return len(self.results)

    @property
    def apparent(self) -> Optional[ReplicateResult]:
        """The apparent (original-data) result, or :data:`None`."""
        return next((r for r in self.results if r.apparent), None)

    @property
    def replicates(self) -> list[ReplicateResult]:
        """Results of the ordinary (non-apparent) bootstrap replicates."""
        return [r for r in self.results if not r.apparent]

    @property
    def terms(self) -> list[str]:
        """Terms in first-seen order across all results."""
        seen: dict[str, None] = {}
        for r in self.results:
            for term in r.estimates:
                seen.setdefault(term, None)
        return list(seen)

    def estimates(self, term: str) -> np.ndarray:
        """Bootstrap estimates of ``term`` (NaN where a replicate lacks it)."""
        return np.array([r.estimates.get(term, np.nan) for r in self.replicates], dtype=float)

    def std_errors(self, term: str) -> np.ndarray:
        """Bootstrap standard errors of ``term`` (NaN where missing)."""
        out = [r.std_errors.get(term) for r in self.replicates]
        return np.array([np.nan if se is None else se for se in out], dtype=float)

    def to_frame(self) -> pd.DataFrame:
        r"""
        Long table with one row per (replicate, term).

        Returns
        -------
        pandas.DataFrame
            Columns ``id``, ``term``, ``estimate``, ``std.error``.
        """
        rows = [
            {
                "id": r.replicate_id,
                "term": term,
                "estimate": est,
                "std.error": np.nan if r.std_errors.get(term) is None else r.std_errors[term],
            }
            for r in self.results
            for term, est in r.estimates.items()
        ]
        return pd.DataFrame(rows, columns=["id", "term", "estimate", "std.error"])

    @classmethod
    def from_frame(cls, frame: pd.DataFrame, apparent_id: str = APPARENT_ID) -> "BootstrapResults":
        r"""
        Rebuild results from a long table such as :meth:`to_frame` produces.

        Parameters
        ----------
        frame : pandas.DataFrame
            Columns ``id``, ``term``, ``estimate`` and optionally ``std.error``.
        apparent_id : str, default "Apparent"
            Identifier marking the apparent replicate.

        Returns
        -------
        BootstrapResults
        """
        if "id" not in frame.columns:
            raise ValueError("results table needs an 'id' column")
        results = []
        for rid, group in frame.groupby("id", sort=False):
            estimates, std_errors = tidy(group.drop(columns="id"))
            results.append(
                ReplicateResult(str(rid), estimates, std_errors, apparent=(str(rid) == apparent_id))
            )
        results.sort(key=lambda r: r.apparent)
        return cls(results)


def fit_resamples(
    boots: Union[Bootstraps, Sequence[Replicate]],
    estimator: Callable[..., Any],
    *,
    on_error: str = "raise",
    max_failure_fraction: float = 0.1,
    backend: str = "auto",
    n_workers: Optional[int] = None,
    progress_callback: Optional[Callable[[int, int], None]] = None,
    **estimator_kwargs: Any,
) -> BootstrapResults:
    r"""
    Evaluate ``estimator`` on every replicate.

    Parameters
    ----------
    boots : Bootstraps or sequence of Replicate
        Replicates to evaluate.
    estimator : callable
        ``fn(frame, **estimator_kwargs)``; must be pickleable for ``backend="process"``.
    on_error : {"raise", "drop"}, default "raise"
        ``"raise"`` aborts on the first failure observed. ``"drop"`` discards
        failed ordinary replicates and records them on the result.
    max_failure_fraction : float, default 0.1
        Largest tolerated share of failed replicates under ``"drop"``.
    backend : {"auto", "sequential", "thread", "process"}, default "auto"
        Execution backend (see :func:`bootci.backends.get_backend`).
    n_workers : int, optional
        Worker count for parallel backends.
    progress_callback : callable, optional
        ``f(completed, total)`` called as replicates finish.
    **estimator_kwargs :
        Forwarded to the estimator.

    Returns
    -------
    BootstrapResults
        Results aligned with the replicate order, regardless of completion order.

    Raises
    ------
    EstimatorFailure
        On any failure under ``"raise"``, and on failure of the apparent
        replicate under either policy.
    InsufficientReplicates
        If more than ``max_failure_fraction`` of the replicates failed under ``"drop"``.
    """
    policy = OnError(on_error)
    replicates = list(boots)
    if not replicates:
        raise ValueError("no replicates to evaluate")

    capture = policy is OnError.drop
    task = partial(_evaluate, estimator, dict(estimator_kwargs), capture)
    runner = get_backend(backend, len(replicates), n_workers)
    outputs = runner.run(task, replicates, progress_callback)

    results: list[ReplicateResult] = []
    failures: list[EstimatorFailure] = []
    for rep, out in zip(replicates, outputs):
        if isinstance(out, EstimatorFailure):
            if rep.apparent:
                raise out
            failures.append(out)
        else:
            results.append(out)

    if failures:
        n_ordinary = sum(not r.apparent for r in replicates)
        frac = len(failures) / n_ordinary
        logger.warning(
            "Dropped %d of %d replicates after estimator failures (first: %s)",
            len(failures), n_ordinary, failures[0].replicate_id,
        )
        if frac > max_failure_fraction:
            raise InsufficientReplicates(
                f"{len(failures)} of {n_ordinary} replicates failed ({frac:.1%}), "
                f"exceeding max_failure_fraction={max_failure_fraction}"
            ) from failures[0]

    return BootstrapResults(results=results, n_failed=len(failures), failures=failures)


def evaluate_all(
    replicates: Iterable[Replicate],
    estimator: Callable[..., Any],
    extra_args: Optional[Mapping[str, Any]] = None,
    *,
    backend: str = "sequential",
    n_workers: Optional[int] = None,
) -> list[ReplicateResult]:
    r"""
    Strictly evaluate ``estimator`` on each replicate (failures always raise).

    Used for jackknife folds, where no replicate may be dropped.
    """
    reps = list(replicates)
    task = partial(_evaluate, estimator, dict(extra_args or {}), False)
    return get_backend(backend, len(reps), n_workers).run(task, reps)
