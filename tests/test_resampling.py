import numpy as np
import pandas as pd
import pytest

from bootci.errors import DegenerateJackknife
from bootci.resampling import (
    APPARENT_ID,
    Bootstraps,
    as_dataset,
    bootstraps,
    jackknife,
    make_strata,
    resample,
)


class TestAsDataset:
    """Test coercion of tabular input"""

    def test_dataframe_passthrough(self, sample_frame):
        assert as_dataset(sample_frame) is sample_frame

    def test_1d_array_becomes_x(self):
        frame = as_dataset(np.array([1.0, 2.0, 3.0]))
        assert list(frame.columns) == ["x"]
        assert len(frame) == 3

    def test_2d_array_columns(self):
        frame = as_dataset(np.zeros((4, 3)))
        assert list(frame.columns) == ["x0", "x1", "x2"]

    def test_named_series(self):
        frame = as_dataset(pd.Series([1.0, 2.0], name="wt"))
        assert list(frame.columns) == ["wt"]

    def test_empty_dataset_rejected(self):
        with pytest.raises(ValueError, match="at least one row"):
            as_dataset(pd.DataFrame({"x": []}))

    def test_3d_array_rejected(self):
        with pytest.raises(ValueError, match="1-D or 2-D"):
            as_dataset(np.zeros((2, 2, 2)))


class TestResample:
    """Test replicate drawing"""

    def test_times_and_ids(self, sample_frame):
        reps = resample(sample_frame, times=25, seed=1)
        assert len(reps) == 25
        assert reps[0].id == "Bootstrap01"
        assert reps[-1].id == "Bootstrap25"

    def test_zero_padded_ids_for_1000(self, sample_frame):
        boots = bootstraps(sample_frame, times=1000, seed=1)
        assert boots.ids[0] == "Bootstrap0001"
        assert boots.ids[-1] == "Bootstrap1000"

    def test_replicates_match_dataset_size(self, sample_frame):
        for rep in resample(sample_frame, times=10, seed=3):
            assert len(rep) == len(sample_frame)
            assert len(rep.analysis()) == len(sample_frame)
            assert rep.indices.min() >= 0
            assert rep.indices.max() < len(sample_frame)

    def test_apparent_is_last_and_unsampled(self, sample_frame):
        reps = resample(sample_frame, times=5, include_apparent=True, seed=1)
        assert len(reps) == 6
        assert reps[-1].apparent
        assert reps[-1].id == APPARENT_ID
        assert not any(r.apparent for r in reps[:-1])
        np.testing.assert_array_equal(reps[-1].indices, np.arange(len(sample_frame)))
        pd.testing.assert_frame_equal(reps[-1].analysis(), sample_frame.reset_index(drop=True))

    def test_same_seed_same_indices(self, sample_frame):
        a = resample(sample_frame, times=50, seed=123)
        b = resample(sample_frame, times=50, seed=123)
        for ra, rb in zip(a, b):
            np.testing.assert_array_equal(ra.indices, rb.indices)

    def test_different_seed_different_indices(self, sample_frame):
        a = resample(sample_frame, times=5, seed=1)
        b = resample(sample_frame, times=5, seed=2)
        assert any(not np.array_equal(ra.indices, rb.indices) for ra, rb in zip(a, b))

    def test_seed_sequence_accepted(self, sample_frame):
        a = resample(sample_frame, times=5, seed=np.random.SeedSequence(9))
        b = resample(sample_frame, times=5, seed=9)
        for ra, rb in zip(a, b):
            np.testing.assert_array_equal(ra.indices, rb.indices)

    def test_invalid_seed_type(self, sample_frame):
        with pytest.raises(TypeError, match="seed must be"):
            resample(sample_frame, times=5, seed="abc")

    def test_one_row_dataset(self):
        reps = resample(pd.DataFrame({"x": [4.2]}), times=10, include_apparent=True, seed=0)
        assert len(reps) == 11
        for rep in reps:
            np.testing.assert_array_equal(rep.indices, [0])

    def test_times_must_be_positive(self, sample_frame):
        with pytest.raises(ValueError, match="times must be >= 1"):
            resample(sample_frame, times=0)

    def test_unseeded_runs_still_work(self, sample_frame):
        reps = resample(sample_frame, times=3)
        assert len(reps) == 3

    def test_assessment_is_out_of_bag(self, sample_frame):
        rep = resample(sample_frame, times=1, seed=4)[0]
        oob = rep.assessment()
        drawn = set(rep.indices.tolist())
        expected = [i for i in range(len(sample_frame)) if i not in drawn]
        np.testing.assert_allclose(oob["x"].to_numpy(), sample_frame["x"].to_numpy()[expected])

    def test_apparent_assessment_is_full_data(self, sample_frame):
        rep = resample(sample_frame, times=1, include_apparent=True, seed=4)[-1]
        assert len(rep.assessment()) == len(sample_frame)


class TestBootstraps:
    """Test the Bootstraps collection"""

    def test_collection_protocol(self, sample_frame):
        boots = bootstraps(sample_frame, times=4, apparent=True, seed=8)
        assert isinstance(boots, Bootstraps)
        assert len(boots) == 5
        assert boots.times == 4
        assert boots[0].id == "Bootstrap1"
        assert boots.apparent_replicate is boots[-1]
        assert len(boots.non_apparent()) == 4
        assert [r.id for r in boots] == boots.ids

    def test_no_apparent_replicate(self, sample_frame):
        boots = bootstraps(sample_frame, times=4, seed=8)
        assert boots.apparent_replicate is None

    def test_seed_entropy_recorded(self, sample_frame):
        boots = bootstraps(sample_frame, times=2, seed=123)
        assert boots.seed_entropy == 123

    def test_stratified_preserves_group_sizes(self, strata_frame):
        boots = bootstraps(strata_frame, times=20, strata="group", seed=5)
        for rep in boots:
            counts = rep.analysis()["group"].value_counts()
            assert counts["a"] == 20
            assert counts["b"] == 10

    def test_stratified_is_deterministic(self, strata_frame):
        a = bootstraps(strata_frame, times=5, strata="group", seed=5)
        b = bootstraps(strata_frame, times=5, strata="group", seed=5)
        for ra, rb in zip(a, b):
            np.testing.assert_array_equal(ra.indices, rb.indices)

    def test_unknown_strata_column(self, sample_frame):
        with pytest.raises(KeyError, match="not found"):
            bootstraps(sample_frame, times=2, strata="missing")


class TestMakeStrata:
    """Test stratum construction"""

    def test_categorical_levels(self):
        assert make_strata(["a", "a", "b", "b", "b", "c"], pool=0.0).tolist() == [0, 0, 1, 1, 1, 2]

    def test_numeric_quantile_bins(self):
        codes = make_strata(pd.Series(np.arange(100.0)), breaks=4)
        assert np.bincount(codes).tolist() == [25, 25, 25, 25]

    def test_numeric_few_levels_kept(self):
        codes = make_strata(pd.Series([1, 1, 2, 2, 3, 3]), breaks=4, pool=0.0)
        assert codes.tolist() == [0, 0, 1, 1, 2, 2]

    def test_small_strata_pooled(self):
        values = ["a"] * 18 + ["b", "c"]
        assert make_strata(values, pool=0.1).tolist() == [0] * 18 + [1, 1]

    def test_pooled_stratum_merged_when_still_small(self):
        values = ["a"] * 12 + ["b"] * 7 + ["c"]
        assert make_strata(values, pool=0.1).tolist() == [0] * 12 + [1] * 8

    def test_missing_values_rejected(self):
        with pytest.raises(ValueError, match="missing"):
            make_strata(pd.Series([1.0, np.nan, 2.0]))


class TestJackknife:
    """Test leave-one-out folds"""

    def test_fold_count_and_content(self, sample_frame):
        folds = jackknife(sample_frame)
        n = len(sample_frame)
        assert len(folds) == n
        for i, fold in enumerate(folds):
            assert len(fold) == n - 1
            assert i not in fold.indices
            assert not fold.apparent

    def test_fold_ids(self):
        folds = jackknife(pd.DataFrame({"x": np.arange(12.0)}))
        assert folds[0].id == "Jackknife01"
        assert folds[-1].id == "Jackknife12"

    def test_single_row_is_degenerate(self):
        with pytest.raises(DegenerateJackknife):
            jackknife(pd.DataFrame({"x": [1.0]}))
