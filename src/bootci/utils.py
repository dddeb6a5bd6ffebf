r"""
Numerical helpers shared by the resampler and the interval engine.

Functions
    :func:`z_crit`: Two-sided standard-normal critical value
    :func:`norm_quantile` / :func:`norm_cdf`: Thin wrappers over :data:`scipy.stats.norm`
    :func:`interp_quantile`: Linear-interpolated empirical quantiles
    :func:`make_seed_sequence`: Normalize user seeds into a :class:`numpy.random.SeedSequence`
"""

from __future__ import annotations

from typing import Iterable, Union

import numpy as np
from scipy.stats import norm

__all__ = [
    "z_crit",
    "norm_quantile",
    "norm_cdf",
    "interp_quantile",
    "make_seed_sequence",
]


def z_crit(confidence: float) -> float:
    r"""
    Two-sided critical value :math:`z_{1-\alpha/2}` of the standard normal.

    Parameters
    ----------
    confidence : float
        Confidence level in :math:`(0, 1)`.

    Returns
    -------
    float

    Examples
    --------
    >>> round(z_crit(0.95), 3)
    1.96
    """
    if not 0.0 < confidence < 1.0:
        raise ValueError("confidence must be in (0,1)")
    return float(norm.ppf(0.5 + confidence / 2.0))


def norm_quantile(p: float) -> float:
    r"""Standard normal quantile :math:`\Phi^{-1}(p)`."""
    return float(norm.ppf(p))


def norm_cdf(z: float) -> float:
    r"""Standard normal CDF :math:`\Phi(z)`."""
    return float(norm.cdf(z))


def interp_quantile(values: np.ndarray, probs: Iterable[float]) -> np.ndarray:
    r"""
    Empirical quantiles using linear interpolation between order statistics.

    For a sorted sample :math:`x_{(1)} \le \dots \le x_{(n)}` the quantile at
    probability :math:`p` sits at fractional position :math:`h = (n-1)p` and is
    :math:`x_{(\lfloor h\rfloor+1)} + (h-\lfloor h\rfloor)(x_{(\lfloor h\rfloor+2)}-x_{(\lfloor h\rfloor+1)})`.

    Parameters
    ----------
    values : ndarray
        Sample values; need not be sorted.
    probs : iterable of float
        Probabilities in :math:`[0, 1]`.

    Returns
    -------
    ndarray
        One quantile per probability.

    Examples
    --------
    >>> interp_quantile(np.array([0.0, 1.0, 2.0, 3.0]), [0.5, 0.75])
    array([1.5 , 2.25])
    """
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        raise ValueError("cannot take quantiles of an empty sample")
    return np.quantile(arr, np.asarray(list(probs), dtype=float), method="linear")


def make_seed_sequence(
    seed: Union[int, np.random.SeedSequence, None],
) -> np.random.SeedSequence:
    r"""
    Normalize a user seed into a :class:`numpy.random.SeedSequence`.

    Parameters
    ----------
    seed : int, SeedSequence or None
        :data:`None` draws entropy from the OS.

    Returns
    -------
    numpy.random.SeedSequence
    """
    if isinstance(seed, np.random.SeedSequence):
        return seed
    if seed is not None and not isinstance(seed, (int, np.integer)):
        raise TypeError(f"seed must be an int, SeedSequence or None, got {type(seed).__name__}")
    return np.random.SeedSequence(None if seed is None else int(seed))
