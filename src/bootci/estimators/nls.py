r"""
Nonlinear least-squares estimator.

Wraps :func:`scipy.optimize.curve_fit` so that a parametric curve can be
bootstrapped like any other estimator. A fit that does not converge raises,
which the adapter reports as an
:class:`~bootci.errors.EstimatorFailure` for that replicate.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

import numpy as np
import pandas as pd
from scipy.optimize import curve_fit

__all__ = ["NLSEstimator", "make_nls_estimator"]


@dataclass(frozen=True)
class NLSEstimator:
    r"""
    Nonlinear least-squares fit of ``y = model(x, *params)``.

    Attributes
    ----------
    model : callable
        ``model(x, *params) -> ndarray``. Must be a module-level function to be
        usable with the process backend.
    x, y : str
        Predictor and response columns.
    p0 : sequence of float
        Starting values, one per parameter.
    names : sequence of str, optional
        Term names; defaults to ``p0, p1, ...``.
    fit_kwargs : dict
        Extra keyword arguments for :func:`scipy.optimize.curve_fit`.
    name : str
        Label used in reports.
    """

    model: Callable[..., Any]
    x: str
    y: str
    p0: tuple[float, ...]
    names: tuple[str, ...] = ()
    fit_kwargs: dict[str, Any] = field(default_factory=dict)
    name: str = "nls"

    def __post_init__(self) -> None:
        object.__setattr__(self, "p0", tuple(float(p) for p in self.p0))
        names = tuple(self.names) or tuple(f"p{i}" for i in range(len(self.p0)))
        if len(names) != len(self.p0):
            raise ValueError(f"got {len(names)} names for {len(self.p0)} parameters")
        object.__setattr__(self, "names", names)

    def __call__(self, frame: pd.DataFrame, **kwargs: Any) -> pd.DataFrame:
        xdata = frame[self.x].to_numpy(dtype=float)
        ydata = frame[self.y].to_numpy(dtype=float)
        opts = {**self.fit_kwargs, **kwargs}
        popt, pcov = curve_fit(self.model, xdata, ydata, p0=self.p0, **opts)
        se = np.sqrt(np.diag(pcov))
        se = np.where(np.isfinite(se), se, np.nan)
        return pd.DataFrame({"term": list(self.names), "estimate": popt, "std.error": se})


def make_nls_estimator(
    model: Callable[..., Any],
    x: str,
    y: str,
    p0: Sequence[float],
    names: Optional[Sequence[str]] = None,
    **fit_kwargs: Any,
) -> NLSEstimator:
    r"""
    Build an :class:`NLSEstimator`.

    Examples
    --------
    >>> def hyperbola(x, k, b):
    ...     return k / x + b
    >>> est = make_nls_estimator(hyperbola, "wt", "mpg", p0=(1.0, 1.0), names=("k", "b"))
    >>> est.names
    ('k', 'b')
    """
    return NLSEstimator(model=model, x=x, y=y, p0=tuple(p0), names=tuple(names or ()), fit_kwargs=fit_kwargs)
