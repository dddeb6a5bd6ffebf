"""bootci package public API."""

from .context import BootstrapContext, Center, IntervalMethod, OnError
from .core import AnalysisResult, BootstrapAnalysis
from .errors import (
    BootstrapError,
    DegenerateJackknife,
    EstimatorFailure,
    ExtremeQuantile,
    InsufficientReplicates,
    MissingApparentReplicate,
    MissingStandardError,
)
from .estimator import BootstrapResults, FnEstimator, ReplicateResult, apply, fit_resamples, tidy
from .intervals import (
    DEFAULT_ENGINE,
    IntervalEngine,
    bca_interval,
    percentile_interval,
    t_interval,
)
from .resampling import APPARENT_ID, Bootstraps, Replicate, bootstraps, jackknife, make_strata, resample
from .utils import z_crit

__all__ = [
    "AnalysisResult",
    "BootstrapAnalysis",
    "BootstrapContext",
    "IntervalMethod",
    "OnError",
    "Center",
    "Replicate",
    "Bootstraps",
    "APPARENT_ID",
    "resample",
    "bootstraps",
    "jackknife",
    "make_strata",
    "ReplicateResult",
    "BootstrapResults",
    "FnEstimator",
    "tidy",
    "apply",
    "fit_resamples",
    "percentile_interval",
    "t_interval",
    "bca_interval",
    "IntervalEngine",
    "DEFAULT_ENGINE",
    "BootstrapError",
    "InsufficientReplicates",
    "MissingApparentReplicate",
    "MissingStandardError",
    "DegenerateJackknife",
    "ExtremeQuantile",
    "EstimatorFailure",
    "z_crit",
]

__version__ = "0.1.0"
