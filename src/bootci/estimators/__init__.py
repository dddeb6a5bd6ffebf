"""Ready-made estimators for :mod:`bootci`."""

from __future__ import annotations

from .logistic import INTERCEPT, LogisticEstimator, logistic_estimator
from .mean import mean_estimator
from .nls import NLSEstimator, make_nls_estimator

__all__ = [
    "mean_estimator",
    "NLSEstimator",
    "make_nls_estimator",
    "LogisticEstimator",
    "logistic_estimator",
    "INTERCEPT",
]
