import numpy as np
import pandas as pd
import pytest

from bootci.context import BootstrapContext
from bootci.errors import (
    DegenerateJackknife,
    EstimatorFailure,
    ExtremeQuantile,
    InsufficientReplicates,
    MissingApparentReplicate,
    MissingStandardError,
)
from bootci.estimator import BootstrapResults, ReplicateResult, fit_resamples
from bootci.estimators import mean_estimator
from bootci.intervals import (
    DEFAULT_ENGINE,
    INTERVAL_COLUMNS,
    IntervalEngine,
    acceleration,
    bca_adjusted_probs,
    bca_interval,
    bias_correction,
    build_default_engine,
    percentile_interval,
    t_interval,
)
from bootci.resampling import bootstraps
from bootci.utils import norm_cdf, z_crit
from conftest import make_results


def column_max(frame):
    return float(frame["x"].max())


def mean_fails_on_full_data(frame):
    if len(frame) == 20:
        raise ValueError("full data rejected")
    return float(frame["x"].mean())


def mean_with_unbounded_se(frame):
    return {"estimate": (float(frame["x"].mean()), np.inf)}


class CountingMean:
    """Column mean that records how often it is refit."""

    def __init__(self):
        self.calls = 0

    def __call__(self, frame):
        self.calls += 1
        return float(frame["x"].mean())


class TestPercentileInterval:
    """Test the percentile method"""

    def test_table_shape(self, normal_results):
        table = percentile_interval(normal_results)
        assert list(table.columns) == INTERVAL_COLUMNS
        assert table["term"].tolist() == ["theta"]
        assert table[".method"].iloc[0] == "percentile"
        assert table[".alpha"].iloc[0] == 0.05

    def test_bounds_are_empirical_quantiles(self, normal_results):
        table = percentile_interval(normal_results)
        lo, hi = np.quantile(normal_results.estimates("theta"), [0.025, 0.975])
        assert table[".lower"].iloc[0] == pytest.approx(lo)
        assert table[".upper"].iloc[0] == pytest.approx(hi)
        assert table[".lower"].iloc[0] <= table[".upper"].iloc[0]

    def test_estimate_is_apparent(self, normal_results):
        table = percentile_interval(normal_results)
        assert table[".estimate"].iloc[0] == 0.0

    @pytest.mark.parametrize("center,fn", [("mean", np.mean), ("median", np.median)])
    def test_other_centers(self, normal_results, center, fn):
        table = percentile_interval(normal_results, center=center)
        assert table[".estimate"].iloc[0] == pytest.approx(fn(normal_results.estimates("theta")))

    def test_no_apparent_falls_back_to_mean(self):
        est = np.linspace(-1.0, 3.0, 1000)
        table = percentile_interval(make_results(est))
        assert table[".estimate"].iloc[0] == pytest.approx(1.0)

    def test_wider_interval_at_smaller_alpha(self, normal_results):
        t90 = percentile_interval(normal_results, alpha=0.10)
        t99 = percentile_interval(normal_results, alpha=0.01)
        assert t99[".lower"].iloc[0] < t90[".lower"].iloc[0]
        assert t99[".upper"].iloc[0] > t90[".upper"].iloc[0]

    def test_one_row_per_term(self):
        results = BootstrapResults(
            [ReplicateResult(f"Bootstrap{i}", {"a": float(i), "b": -float(i)}, {"a": None, "b": None}) for i in range(50)]
        )
        table = percentile_interval(results, min_replicates=0)
        assert table["term"].tolist() == ["a", "b"]
        assert (table[".lower"] <= table[".upper"]).all()

    def test_warns_below_min_replicates(self):
        with pytest.warns(UserWarning, match="Recommend at least 1000"):
            percentile_interval(make_results(np.arange(10.0)))

    def test_non_finite_estimates_dropped(self):
        est = np.r_[np.arange(100.0), np.nan, np.inf]
        table = percentile_interval(make_results(est), min_replicates=0)
        assert table[".upper"].iloc[0] <= 99.0

    def test_insufficient_replicates(self):
        with pytest.raises(InsufficientReplicates, match="theta") as info:
            percentile_interval(make_results([1.0, np.nan, np.nan]), min_replicates=0)
        assert info.value.term == "theta"
        assert info.value.method == "percentile"

    @pytest.mark.parametrize("alpha", [0.0, 1.0, -0.1, 1.5])
    def test_invalid_alpha(self, normal_results, alpha):
        with pytest.raises(ValueError, match="alpha"):
            percentile_interval(normal_results, alpha=alpha)


class TestTInterval:
    """Test the studentized method"""

    def test_bounds_from_t_quantiles(self, normal_results):
        table = t_interval(normal_results)
        t = normal_results.estimates("theta")
        t_lo, t_hi = np.quantile(t, [0.025, 0.975])
        assert table[".lower"].iloc[0] == pytest.approx(-t_hi)
        assert table[".upper"].iloc[0] == pytest.approx(-t_lo)
        assert table[".estimate"].iloc[0] == 0.0
        assert table[".method"].iloc[0] == "student-t"

    def test_scales_with_apparent_std_error(self):
        rng = np.random.default_rng(3)
        est = rng.normal(5.0, 1.0, 1000)
        results = make_results(est, np.ones_like(est), apparent=5.0, apparent_se=2.0)
        table = t_interval(results)
        t_lo, t_hi = np.quantile(est - 5.0, [0.025, 0.975])
        assert table[".lower"].iloc[0] == pytest.approx(5.0 - 2.0 * t_hi)
        assert table[".upper"].iloc[0] == pytest.approx(5.0 - 2.0 * t_lo)

    def test_requires_apparent(self):
        est = np.arange(10.0)
        with pytest.raises(MissingApparentReplicate):
            t_interval(make_results(est, np.ones_like(est)), min_replicates=0)

    def test_requires_std_error_on_replicates(self):
        est = np.arange(10.0)
        se = [1.0] * 9 + [None]
        with pytest.raises(MissingStandardError, match="Bootstrap0010") as info:
            t_interval(make_results(est, se, apparent=4.5, apparent_se=1.0), min_replicates=0)
        assert info.value.term == "theta"
        assert info.value.replicate_id == "Bootstrap0010"

    def test_requires_std_error_on_apparent(self):
        est = np.arange(10.0)
        with pytest.raises(MissingStandardError) as info:
            t_interval(make_results(est, np.ones_like(est), apparent=4.5, apparent_se=None), min_replicates=0)
        assert info.value.replicate_id == "Apparent"

    def test_zero_std_error_replicates_excluded(self):
        est = np.r_[np.linspace(-2.0, 2.0, 999), 0.0]
        se = np.r_[np.ones(999), 0.0]
        table = t_interval(make_results(est, se, apparent=0.0, apparent_se=1.0), min_replicates=0)
        assert np.isfinite(table[".lower"].iloc[0])
        assert np.isfinite(table[".upper"].iloc[0])

    def test_infinite_std_error_is_missing(self, sample_frame):
        boots = bootstraps(sample_frame, times=50, apparent=True, seed=1)
        results = fit_resamples(boots, mean_with_unbounded_se, backend="sequential")
        assert results.apparent.std_errors["estimate"] is None
        with pytest.raises(MissingStandardError):
            t_interval(results, min_replicates=0)


class TestBCaPieces:
    """Test the BCa building blocks"""

    def test_adjusted_probs_reduce_to_percentile(self):
        assert bca_adjusted_probs(0.0, 0.0, 0.05) == (0.025, 0.975)
        assert bca_adjusted_probs(0.0, 0.0, 0.1) == (0.05, 0.95)

    def test_adjusted_probs_without_acceleration(self):
        z0 = 0.2
        p_lo, p_hi = bca_adjusted_probs(z0, 0.0, 0.05)
        assert p_lo == pytest.approx(norm_cdf(2 * z0 - z_crit(0.95)))
        assert p_hi == pytest.approx(norm_cdf(2 * z0 + z_crit(0.95)))

    def test_z_crit(self):
        assert z_crit(0.95) == pytest.approx(1.959964, abs=1e-6)
        with pytest.raises(ValueError):
            z_crit(1.0)

    def test_adjusted_probs_shift_with_bias(self):
        p_lo, p_hi = bca_adjusted_probs(0.2, 0.0, 0.05)
        assert p_lo > 0.025
        assert p_hi > 0.975

    def test_adjusted_probs_nan_when_denominator_nonpositive(self):
        p_lo, p_hi = bca_adjusted_probs(0.0, 1.0, 0.05)
        assert 0.0 < p_lo < 1.0
        assert np.isnan(p_hi)

    def test_bias_correction_centered(self):
        assert bias_correction(np.array([1.0, 2.0, 3.0, 4.0]), 2.5) == pytest.approx(0.0)

    @pytest.mark.parametrize("theta", [0.0, 10.0])
    def test_bias_correction_extreme(self, theta):
        with pytest.raises(ExtremeQuantile, match="theta"):
            bias_correction(np.array([1.0, 2.0, 3.0]), theta, "theta")

    def test_acceleration_symmetric_is_zero(self):
        assert acceleration(np.array([1.0, 2.0, 3.0])) == pytest.approx(0.0)

    def test_acceleration_formula(self):
        jack = np.array([1.0, 2.0, 4.0, 9.0])
        d = jack.mean() - jack
        expected = np.sum(d**3) / (6.0 * np.sum(d**2) ** 1.5)
        assert acceleration(jack) == pytest.approx(expected)

    def test_acceleration_identical_estimates(self):
        with pytest.raises(DegenerateJackknife, match="slope") as info:
            acceleration(np.full(5, 3.0), "slope")
        assert info.value.term == "slope"


class TestBCaInterval:
    """Test the BCa method end to end"""

    @pytest.fixture
    def mean_results(self, sample_frame):
        boots = bootstraps(sample_frame, times=2000, apparent=True, seed=1)
        return fit_resamples(boots, mean_estimator, backend="sequential")

    def test_close_to_percentile_for_mean(self, sample_frame, mean_results):
        bca = bca_interval(sample_frame, mean_results, mean_estimator)
        pct = percentile_interval(mean_results)
        assert bca[".method"].iloc[0] == "BCa"
        assert bca[".estimate"].iloc[0] == pytest.approx(sample_frame["x"].mean())
        assert bca[".lower"].iloc[0] < bca[".estimate"].iloc[0] < bca[".upper"].iloc[0]
        assert bca[".lower"].iloc[0] == pytest.approx(pct[".lower"].iloc[0], abs=0.3)
        assert bca[".upper"].iloc[0] == pytest.approx(pct[".upper"].iloc[0], abs=0.3)

    def test_without_apparent_fits_full_data(self, sample_frame):
        boots = bootstraps(sample_frame, times=1000, seed=1)
        results = fit_resamples(boots, mean_estimator, backend="sequential")
        bca = bca_interval(sample_frame, results, mean_estimator)
        assert bca[".estimate"].iloc[0] == pytest.approx(sample_frame["x"].mean())

    def test_apparent_failure_is_fatal(self, sample_frame):
        boots = bootstraps(sample_frame, times=50, seed=1)
        results = fit_resamples(boots, mean_estimator, backend="sequential")
        with pytest.raises(EstimatorFailure, match="Apparent"):
            bca_interval(sample_frame, results, mean_fails_on_full_data, min_replicates=0)

    def test_thread_jackknife_matches_sequential(self, sample_frame, mean_results):
        seq = bca_interval(sample_frame, mean_results, mean_estimator)
        thr = bca_interval(sample_frame, mean_results, mean_estimator, backend="thread", n_workers=2)
        pd.testing.assert_frame_equal(seq, thr)

    def test_single_row_dataset(self):
        frame = pd.DataFrame({"x": [4.2]})
        results = make_results([4.2, 4.2, 4.2], apparent=4.2, term="estimate")
        with pytest.raises(DegenerateJackknife):
            bca_interval(frame, results, lambda df: float(df["x"].mean()), min_replicates=0)

    def test_identical_jackknife_estimates(self):
        # the maximum survives every leave-one-out fold because it is duplicated
        frame = pd.DataFrame({"x": [1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0, 8.0, 9.0, 10.0, 10.0]})
        boots = bootstraps(frame, times=500, apparent=True, seed=3)
        results = fit_resamples(boots, column_max, backend="sequential")
        with pytest.raises(DegenerateJackknife):
            bca_interval(frame, results, column_max, min_replicates=0)

    def test_extreme_bias(self):
        # every bootstrap estimate sits above the apparent one
        frame = pd.DataFrame({"x": np.arange(10.0)})
        results = make_results(np.linspace(20.0, 30.0, 100), apparent=4.5, term="estimate")
        with pytest.raises(ExtremeQuantile):
            bca_interval(frame, results, lambda df: float(df["x"].mean()), min_replicates=0)

    def test_bootstrap_checks_run_before_jackknife(self):
        frame = pd.DataFrame({"x": np.arange(10.0)})
        est = CountingMean()
        with pytest.raises(ExtremeQuantile):
            bca_interval(frame, make_results(np.linspace(20.0, 30.0, 100), apparent=4.5, term="estimate"), est,
                         min_replicates=0)
        with pytest.raises(InsufficientReplicates):
            bca_interval(frame, make_results([np.nan, 5.0, np.nan], apparent=4.5, term="estimate"), est,
                         min_replicates=0)
        assert est.calls == 0

    def test_symmetric_case_equals_percentile(self):
        # mirrored bootstrap distribution gives z0 = 0; symmetric jackknife gives a = 0
        frame = pd.DataFrame({"x": [-2.0, -1.0, 0.0, 1.0, 2.0]})
        draws = np.random.default_rng(5).exponential(size=500)
        results = make_results(np.r_[draws, -draws], apparent=0.0, term="estimate")
        bca = bca_interval(frame, results, CountingMean(), min_replicates=0)
        pct = percentile_interval(results, min_replicates=0)
        assert bca[".lower"].iloc[0] == pct[".lower"].iloc[0]
        assert bca[".upper"].iloc[0] == pct[".upper"].iloc[0]
        assert bca[".estimate"].iloc[0] == pct[".estimate"].iloc[0]


class TestIntervalEngine:
    """Test method dispatch"""

    def test_available(self):
        assert build_default_engine().available() == ("percentile", "t", "bca")

    def test_compute_uses_context(self, normal_results):
        ctx = BootstrapContext(alpha=0.1, center="median")
        table = DEFAULT_ENGINE.compute("percentile", normal_results, ctx)
        assert table[".alpha"].iloc[0] == 0.1
        assert table[".estimate"].iloc[0] == pytest.approx(np.median(normal_results.estimates("theta")))

    def test_compute_t(self, normal_results):
        table = DEFAULT_ENGINE.compute("t", normal_results)
        assert table[".method"].iloc[0] == "student-t"

    def test_bca_needs_dataset_and_estimator(self, normal_results):
        with pytest.raises(ValueError, match="original dataset"):
            DEFAULT_ENGINE.compute("bca", normal_results)

    def test_unknown_method(self, normal_results):
        with pytest.raises(ValueError, match="unknown interval method"):
            DEFAULT_ENGINE.compute("basic", normal_results)

    def test_structural_error_not_substituted(self):
        est = np.arange(10.0)
        with pytest.raises(MissingApparentReplicate):
            DEFAULT_ENGINE.compute("t", make_results(est, np.ones_like(est)), BootstrapContext(min_replicates=0))

    def test_register_custom_method(self, normal_results):
        engine = IntervalEngine()
        engine.register("custom", lambda results, ctx, **_: pd.DataFrame({"term": results.terms}))
        assert engine.available() == ("custom",)
        assert engine.compute("custom", normal_results)["term"].tolist() == ["theta"]
