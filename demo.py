from __future__ import annotations
import multiprocessing as mp

import numpy as np
import pandas as pd

from bootci import BootstrapAnalysis, BootstrapContext
from bootci.estimators import LogisticEstimator, make_nls_estimator


def progress(completed: int, total: int):
    step = max(1, total // 10)
    if completed % step == 0 or completed == total:
        print(f"Progress: {completed}/{total} ({100 * completed / total:.0f}%)")


def hyperbola(x, k, b):
    return k / x + b


def make_cars(n: int = 64, seed: int = 7) -> pd.DataFrame:
    """Synthetic fuel-economy data: ``mpg ~ k / wt + b`` plus noise."""
    rng = np.random.default_rng(seed)
    wt = rng.uniform(1.5, 5.5, n)
    mpg = 37.0 / wt + 4.0 + rng.normal(0.0, 1.5, n)
    am = (rng.uniform(size=n) < 1.0 / (1.0 + np.exp(-(6.0 - 2.0 * wt)))).astype(int)
    return pd.DataFrame({"wt": wt, "mpg": mpg, "am": am})


def main():
    cars = make_cars()
    ctx = BootstrapContext(times=2000, seed=1, alpha=0.05, on_error="drop", max_failure_fraction=0.2)

    print("Bootstrapping nonlinear regression mpg ~ k / wt + b…")
    nls = make_nls_estimator(hyperbola, "wt", "mpg", p0=(1.0, 1.0), names=("k", "b"))
    nls_res = BootstrapAnalysis(nls, ctx, name="hyperbola").run(
        cars,
        methods=("percentile", "t", "bca"),
        progress_callback=progress,
    )

    print("Bootstrapping logistic regression am ~ wt…")
    logit = LogisticEstimator(("wt",), "am")
    logit_res = BootstrapAnalysis(logit, ctx.with_overrides(strata="am")).run(
        cars,
        methods=("percentile", "t"),
        progress_callback=progress,
    )

    print(nls_res.result_to_string())
    print("\n")
    print(logit_res.result_to_string())
    print("\n")
    print(pd.concat([nls_res.summary(), logit_res.summary()], ignore_index=True).to_string(index=False))


if __name__ == "__main__":

    try:
        mp.set_start_method("spawn", force=True)
    except RuntimeError:
        pass
    main()
