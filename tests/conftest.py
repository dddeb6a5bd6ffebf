import multiprocessing as mp

import numpy as np
import pandas as pd
import pytest

from bootci.estimator import BootstrapResults, ReplicateResult


def hyperbola(x, k, b):
    """Module-level curve so NLS estimators stay pickleable."""
    return k / x + b


def make_results(estimates, std_errors=None, apparent=None, apparent_se=None, term="theta"):
    """Build BootstrapResults for a single term from plain arrays."""
    std_errors = [None] * len(estimates) if std_errors is None else std_errors
    results = [
        ReplicateResult(f"Bootstrap{i + 1:04d}", {term: float(e)}, {term: None if s is None else float(s)})
        for i, (e, s) in enumerate(zip(estimates, std_errors))
    ]
    if apparent is not None:
        results.append(ReplicateResult("Apparent", {term: float(apparent)}, {term: apparent_se}, apparent=True))
    return BootstrapResults(results)


@pytest.fixture(autouse=True)
def _stable_seed():
    # Keep global state stable for any code that still touches np.random.*
    np.random.seed(42)


@pytest.fixture(scope="session", autouse=True)
def _set_spawn_start_method():
    try:
        mp.set_start_method("spawn")
    except RuntimeError:
        pass  # already set


@pytest.fixture
def sample_frame():
    """Twenty draws from N(10, 2) in column ``x``."""
    rng = np.random.default_rng(2024)
    return pd.DataFrame({"x": rng.normal(10.0, 2.0, 20)})


@pytest.fixture
def strata_frame():
    """Two-group dataset with unequal group sizes."""
    return pd.DataFrame(
        {
            "x": np.arange(30, dtype=float),
            "group": ["a"] * 20 + ["b"] * 10,
        }
    )


@pytest.fixture
def nls_frame():
    """Noisy hyperbola ``mpg ~ k / wt + b`` in the spirit of the mtcars example."""
    rng = np.random.default_rng(7)
    wt = rng.uniform(1.5, 5.5, 32)
    mpg = 37.0 / wt + 4.0 + rng.normal(0.0, 1.0, wt.size)
    return pd.DataFrame({"wt": wt, "mpg": mpg})


@pytest.fixture
def logistic_frame():
    """Binary response with a clear but non-separable signal."""
    rng = np.random.default_rng(11)
    x = rng.normal(0.0, 1.0, 200)
    p = 1.0 / (1.0 + np.exp(-(0.5 + 1.5 * x)))
    y = (rng.uniform(size=x.size) < p).astype(int)
    return pd.DataFrame({"x": x, "y": y})


@pytest.fixture
def normal_results():
    """1000 bootstrap estimates of ``theta`` with standard errors and an apparent result."""
    rng = np.random.default_rng(5)
    est = rng.normal(0.0, 1.0, 1000)
    se = np.full(est.size, 1.0)
    return make_results(est, se, apparent=0.0, apparent_se=1.0)
