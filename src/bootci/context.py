r"""
bootci.context
==============
Explicit configuration shared by the resampler, the estimator adapter and the
interval engine.

This module defines:

- :class:`IntervalMethod`, :class:`OnError`, :class:`Center`: string enums for
  the categorical options.
- :class:`BootstrapContext`: a typed configuration object passed explicitly to
  every stage instead of relying on global seeds or execution plans.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Union

import numpy as np

from .utils import make_seed_sequence

__all__ = [
    "IntervalMethod",
    "OnError",
    "Center",
    "BootstrapContext",
]


class IntervalMethod(str, Enum):
    r"""
    Supported bootstrap confidence-interval flavors.

    Attributes
    ----------
    percentile : str
        Empirical quantiles of the bootstrap distribution.
    t : str
        Studentized (bootstrap-t) interval; needs standard errors.
    bca : str
        Bias-corrected and accelerated percentile interval.
    """

    percentile = "percentile"
    t = "t"
    bca = "bca"


class OnError(str, Enum):
    r"""
    Policy for estimator failures on ordinary bootstrap replicates.

    Attributes
    ----------
    raise_ : str
        Abort the run on the first failure (``"raise"``).
    drop : str
        Drop failed replicates, up to :attr:`BootstrapContext.max_failure_fraction`.
    """

    raise_ = "raise"
    drop = "drop"


class Center(str, Enum):
    r"""
    Point estimate reported by the percentile interval.

    Attributes
    ----------
    apparent : str
        The original-data estimate when an apparent replicate exists, else the mean.
    mean : str
        Mean of the bootstrap estimates.
    median : str
        Median of the bootstrap estimates.
    """

    apparent = "apparent"
    mean = "mean"
    median = "median"


_VALID_BACKENDS = ("auto", "sequential", "thread", "process")


@dataclass(slots=True)
class BootstrapContext:
    r"""
    Shared, explicit configuration for a bootstrap interval run.

    Attributes
    ----------
    times : int, default 1000
        Number of bootstrap replicates (the apparent replicate is extra).
    alpha : float, default 0.05
        Two-sided tail mass; ``0.05`` yields 95% intervals.
    apparent : bool, default False
        Append the unsampled original dataset as the last replicate.
    seed : int or numpy.random.SeedSequence, optional
        Seed for the resampler. :data:`None` draws OS entropy.
    strata : str, optional
        Column to stratify the resampling on.
    breaks : int, default 4
        Quantile bins used when a numeric strata column has many distinct values.
    pool : float, default 0.1
        Strata holding less than this share of rows are pooled.
    backend : {"auto", "sequential", "thread", "process"}, default "auto"
        Execution backend for estimator evaluation and the BCa jackknife.
    n_workers : int, optional
        Worker count for parallel backends. Defaults to the CPU count.
    on_error : {"raise", "drop"}, default "raise"
        Failure policy for ordinary replicates (see :class:`OnError`).
    max_failure_fraction : float, default 0.1
        Largest share of replicates that may be dropped when ``on_error="drop"``.
    center : {"apparent", "mean", "median"}, default "apparent"
        Point estimate reported by the percentile method.
    min_replicates : int, default 1000
        Below this many usable estimates the interval engine warns.

    Notes
    -----
    The context is immutable by convention; prefer :meth:`with_overrides`.

    Examples
    --------
    >>> ctx = BootstrapContext(times=2000, seed=1, apparent=True)
    >>> round(ctx.confidence, 2)
    0.95
    """

    times: int = 1000
    alpha: float = 0.05
    apparent: bool = False
    seed: Optional[Union[int, np.random.SeedSequence]] = None
    strata: Optional[str] = None
    breaks: int = 4
    pool: float = 0.1
    backend: str = "auto"
    n_workers: Optional[int] = None
    on_error: OnError = "raise"
    max_failure_fraction: float = 0.1
    center: Center = "apparent"
    min_replicates: int = 1000

    def with_overrides(self, **changes) -> "BootstrapContext":
        r"""
        Return a shallow copy with selected fields replaced.

        Parameters
        ----------
        **changes :
            Field overrides passed to :func:`dataclasses.replace`.

        Returns
        -------
        BootstrapContext
        """
        return replace(self, **changes)

    @property
    def confidence(self) -> float:
        r"""Confidence level :math:`1 - \alpha`."""
        return 1.0 - self.alpha

    def q_bound(self) -> tuple[float, float]:
        r"""
        Tail probabilities :math:`(\alpha/2,\; 1-\alpha/2)`.

        Returns
        -------
        tuple of float
        """
        return self.alpha / 2.0, 1.0 - self.alpha / 2.0

    def seed_sequence(self) -> np.random.SeedSequence:
        r"""Return the :class:`numpy.random.SeedSequence` that drives the resampler."""
        return make_seed_sequence(self.seed)

    def __post_init__(self) -> None:
        r"""
        Validate field ranges.

        Raises
        ------
        ValueError
            If any field is outside its allowed range.
        """
        if self.times < 1:
            raise ValueError("times must be >= 1")
        if not (0.0 < self.alpha < 1.0):
            raise ValueError("alpha must be in (0,1)")
        if self.breaks < 1:
            raise ValueError("breaks must be >= 1")
        if not (0.0 <= self.pool < 1.0):
            raise ValueError("pool must be in [0,1)")
        if self.backend not in _VALID_BACKENDS:
            raise ValueError(f"backend must be one of {_VALID_BACKENDS}, got '{self.backend}'")
        if self.n_workers is not None and self.n_workers <= 0:
            raise ValueError("n_workers must be positive")
        self.on_error = OnError(self.on_error)
        self.center = Center(self.center)
        if not (0.0 <= self.max_failure_fraction < 1.0):
            raise ValueError("max_failure_fraction must be in [0,1)")
        if self.min_replicates < 0:
            raise ValueError("min_replicates must be >= 0")
