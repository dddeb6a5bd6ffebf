r"""
Logistic regression estimator.

Maximum-likelihood fit of

.. math::
   \Pr(y_i = 1 \mid x_i) = \sigma(\beta_0 + x_i^\top \beta),

by :func:`scipy.optimize.minimize` (Newton-CG with the analytic gradient and Hessian). Standard
errors come from the inverse observed information
:math:`(X^\top W X)^{-1}` with :math:`W = \operatorname{diag}(p_i(1-p_i))`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

import numpy as np
import pandas as pd
from scipy.optimize import minimize
from scipy.special import expit

__all__ = ["LogisticEstimator", "logistic_estimator", "INTERCEPT"]

INTERCEPT = "(Intercept)"


def _neg_loglik(beta: np.ndarray, X: np.ndarray, y: np.ndarray) -> tuple[float, np.ndarray]:
    eta = X @ beta
    # log(1 + exp(eta)) computed stably
    nll = float(np.sum(np.logaddexp(0.0, eta) - y * eta))
    grad = X.T @ (expit(eta) - y)
    return nll, grad


def _information(beta: np.ndarray, X: np.ndarray, y: np.ndarray) -> np.ndarray:
    p = expit(X @ beta)
    return X.T @ (X * (p * (1.0 - p))[:, None])


@dataclass(frozen=True)
class LogisticEstimator:
    r"""
    Logistic regression of a 0/1 response on numeric predictors.

    Attributes
    ----------
    predictors : tuple of str
        Predictor columns.
    response : str
        Binary response column (0/1 or boolean).
    intercept : bool, default True
        Include an ``"(Intercept)"`` term.
    maxiter : int, default 200
        Iteration limit for the optimizer.
    options : dict
        Extra Newton-CG options for :func:`scipy.optimize.minimize` (e.g. ``xtol``).
    name : str
        Label used in reports.

    Raises
    ------
    RuntimeError
        When the optimizer does not converge (e.g. under complete separation).
    TypeError
        When called with keyword arguments; optimizer settings belong in ``options``.
    """

    predictors: tuple[str, ...]
    response: str
    intercept: bool = True
    maxiter: int = 200
    options: dict[str, Any] = field(default_factory=dict)
    name: str = "logistic"

    def __post_init__(self) -> None:
        if isinstance(self.predictors, str):
            object.__setattr__(self, "predictors", (self.predictors,))
        else:
            object.__setattr__(self, "predictors", tuple(self.predictors))

    @property
    def terms(self) -> list[str]:
        return ([INTERCEPT] if self.intercept else []) + list(self.predictors)

    def design(self, frame: pd.DataFrame) -> np.ndarray:
        X = frame[list(self.predictors)].to_numpy(dtype=float)
        if self.intercept:
            X = np.column_stack([np.ones(len(frame)), X])
        return X

    def __call__(self, frame: pd.DataFrame, **kwargs: Any) -> pd.DataFrame:
        if kwargs:
            raise TypeError(f"unexpected keyword arguments for {self.name}: {sorted(kwargs)}")
        X = self.design(frame)
        y = frame[self.response].to_numpy(dtype=float)
        if not np.all((y == 0.0) | (y == 1.0)):
            raise ValueError(f"response '{self.response}' must be 0/1")

        res = minimize(
            _neg_loglik,
            np.zeros(X.shape[1]),
            args=(X, y),
            jac=True,
            hess=_information,
            method="Newton-CG",
            options={"maxiter": self.maxiter, **self.options},
        )
        if not res.success:
            raise RuntimeError(f"logistic fit did not converge: {res.message}")

        info = _information(res.x, X, y)
        try:
            cov = np.linalg.inv(info)
            se = np.sqrt(np.clip(np.diag(cov), 0.0, None))
        except np.linalg.LinAlgError:
            se = np.full(X.shape[1], np.nan)
        return pd.DataFrame({"term": self.terms, "estimate": res.x, "std.error": se})


def logistic_estimator(frame: pd.DataFrame, predictors: Sequence[str], response: str) -> pd.DataFrame:
    """Functional form of :class:`LogisticEstimator` for ``fit_resamples(..., predictors=..., response=...)``."""
    return LogisticEstimator(tuple(predictors), response)(frame)
