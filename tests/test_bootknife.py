import dataclasses

import numpy as np
import pytest

from statboot.core.exceptions import InvalidArgument, NumericError
from statboot.core.sampling import boot
from statboot.core.smoothmedian import smoothmedian
from statboot.estimators.base import BootConfig, normalize_alpha
from statboot.estimators.bootstats import bootknife

# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------

def _occurrences(bootsam, n):
    return np.bincount(np.asarray(bootsam, dtype=np.int64).ravel(), minlength=n + 1)[1:]

# ---------------------------------------------------------------------
# Estimates for the mean
# ---------------------------------------------------------------------

def test_mean_estimates(sample_data):
    res = bootknife(sample_data, 500, seed=1)
    n = sample_data.size
    assert res.original[0] == pytest.approx(sample_data.mean())
    assert res.n_boot == 500
    assert res.bootsam.shape == (n, 500)
    assert np.all(_occurrences(res.bootsam, n) == 500)
    assert res.ci_type == "expanded bca"
    assert res.ci_lower[0] < res.original[0] < res.ci_upper[0]
    assert res.std_error[0] == pytest.approx(np.std(res.bootstat[0], ddof=1))
    assert res.bias[0] == pytest.approx(res.bootstat[0].mean() - res.original[0])
    # Balanced resampling reproduces the overall mean exactly.
    assert abs(res.bias[0]) < 1e-9

def test_standard_error_close_to_textbook(sample_data):
    res = bootknife(sample_data, 2000, seed=2, alpha=None)
    textbook = sample_data.std(ddof=1) / np.sqrt(sample_data.size)
    assert res.std_error[0] == pytest.approx(textbook, rel=0.1)

def test_seed_reproducibility(sample_data):
    a = bootknife(sample_data, 200, seed=3)
    b = bootknife(sample_data, 200, seed=3)
    np.testing.assert_array_equal(a.bootsam, b.bootsam)
    np.testing.assert_array_equal(a.ci_lower, b.ci_lower)
    np.testing.assert_array_equal(a.ci_upper, b.ci_upper)

def test_scalar_alpha_gives_expanded_percentile(sample_data):
    res = bootknife(sample_data, 300, alpha=0.05, seed=4)
    assert res.ci_type == "expanded percentile"
    assert res.probs[0, 0] < 0.025
    assert res.probs[0, 1] > 0.975
    assert res.probs[0, 0] + res.probs[0, 1] == pytest.approx(1.0)
    assert res.coverage == pytest.approx(0.95)

def test_no_alpha_gives_no_intervals(sample_data):
    res = bootknife(sample_data, 100, alpha=None, seed=5)
    assert res.ci_type is None
    assert res.probs is None
    assert np.isnan(res.ci_lower).all()
    assert np.isnan(res.ci_upper).all()
    assert res.coverage is None

def test_matrix_data_gives_one_row_per_column(rng):
    X = rng.standard_normal((30, 2)) + np.array([0.0, 5.0])
    res = bootknife(X, 200, seed=6)
    assert res.original.shape == (2,)
    np.testing.assert_allclose(res.original, X.mean(axis=0))
    assert np.all(res.ci_lower < res.ci_upper)

# ---------------------------------------------------------------------
# Other statistics and interval types
# ---------------------------------------------------------------------

def test_median_uses_unexpanded_bca(sample_data):
    res = bootknife(sample_data, 400, "median", seed=7)
    assert res.bootfun == "median"
    assert res.ci_type == "bca"
    assert res.original[0] == np.median(sample_data)

def test_smoothmedian_statistic(sample_data):
    res = bootknife(sample_data, 200, "smoothmedian", alpha=None, seed=8)
    assert res.original[0] == pytest.approx(smoothmedian(sample_data)[0])
    assert np.isfinite(res.std_error[0])

def test_callable_statistic(sample_data):
    res = bootknife(sample_data, 200, np.std, alpha=0.1, seed=9)
    assert res.bootfun == "std"
    assert res.ci_type == "percentile"
    assert res.original[0] == pytest.approx(np.std(sample_data))

def test_failing_jackknife_falls_back_to_bc(sample_data):
    n = sample_data.size

    def full_size_mean(X):
        if X.shape[0] < n:
            raise ValueError("needs the full sample")
        return float(np.mean(X))

    with pytest.warns(RuntimeWarning, match="jackknife"):
        res = bootknife(sample_data, 200, full_size_mean, seed=10)
    assert res.ci_type == "bc"
    assert np.isfinite(res.ci_lower[0])

def test_constant_data_reverts_to_percentile():
    data = np.full(10, 5.0)
    with pytest.warns(RuntimeWarning, match="bias correction"):
        res = bootknife(data, 100, "median", seed=11)
    assert res.ci_type == "percentile"
    assert res.std_error[0] == 0.0
    assert res.ci_lower[0] == 5.0
    assert res.ci_upper[0] == 5.0

def test_resamples_with_nan_statistic_are_dropped(sample_data):
    def needs_max(X):
        return float(np.mean(X)) if 48.0 in X else np.nan

    res = bootknife(sample_data, 300, needs_max, alpha=None, seed=12)
    n_dropped = res.extra["n_dropped"]
    assert 0 < n_dropped < 300
    assert np.isnan(res.bootstat[0]).sum() == n_dropped
    assert np.isfinite(res.std_error[0])

# ---------------------------------------------------------------------
# Strata and user-supplied indices
# ---------------------------------------------------------------------

def test_strata_resample_within_groups(sample_data):
    strata = np.repeat(["a", "b"], 13)
    res = bootknife(sample_data, 100, strata=strata, seed=13)
    assert res.stratified
    assert res.extra["n_strata"] == 2
    first, second = res.bootsam[:13], res.bootsam[13:]
    assert first.min() >= 1 and first.max() <= 13
    assert second.min() >= 14 and second.max() <= 26

def test_single_row_stratum_is_kept_fixed(sample_data):
    strata = np.array([0] * 25 + [1])
    res = bootknife(sample_data, 50, strata=strata, alpha=None, seed=14)
    assert np.all(res.bootsam[25] == 26)

def test_user_bootsam_is_used(sample_data):
    idx = boot(sample_data.size, 60, True, seed=15)
    res = bootknife(sample_data, bootsam=idx, alpha=None)
    np.testing.assert_array_equal(res.bootsam, idx)
    assert res.n_boot == 60
    expected = sample_data[idx.astype(np.intp) - 1].mean(axis=0)
    np.testing.assert_allclose(res.bootstat[0], expected)

@pytest.mark.parametrize("bad", [np.zeros((26, 5)), np.full((26, 5), 27), np.ones((10, 5))])
def test_invalid_bootsam(sample_data, bad):
    with pytest.raises(InvalidArgument, match="bootsam"):
        bootknife(sample_data, bootsam=bad)

# ---------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------

def test_too_few_rows():
    with pytest.raises(InvalidArgument, match="more than one row"):
        bootknife([1.0])

def test_unknown_statistic(sample_data):
    with pytest.raises(InvalidArgument, match="Unknown bootfun"):
        bootknife(sample_data, 10, "mode")

def test_nan_original_statistic(sample_data):
    with pytest.raises(NumericError, match="returned NaN"):
        bootknife(sample_data, 10, lambda X: np.nan)

def test_strata_length_mismatch(sample_data):
    with pytest.raises(InvalidArgument, match="one label per row"):
        bootknife(sample_data, 10, strata=[0, 1])

def test_strata_without_degrees_of_freedom():
    with pytest.raises(InvalidArgument, match="degree of freedom"):
        bootknife([1.0, 2.0, 3.0], 10, strata=[0, 1, 2])

@pytest.mark.parametrize("alpha", [1.5, -0.1, (0.9, 0.1), (0.1, 0.5, 0.9)])
def test_invalid_alpha(sample_data, alpha):
    with pytest.raises(InvalidArgument, match="alpha|ascending"):
        bootknife(sample_data, 10, alpha=alpha)

def test_invalid_nboot(sample_data):
    with pytest.raises(InvalidArgument, match="n_boot"):
        bootknife(sample_data, 0)

# ---------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------

def test_normalize_alpha():
    assert normalize_alpha(None) is None
    assert normalize_alpha(0.05) == (0.05,)
    assert normalize_alpha([0.025, 0.975]) == (0.025, 0.975)

def test_boot_config_defaults_and_validation():
    cfg = BootConfig()
    assert cfg.n_boot == 2000
    assert cfg.unbiased
    with pytest.raises(InvalidArgument, match="n_boot"):
        BootConfig(n_boot=0).validate()
    with pytest.raises(InvalidArgument, match="tol"):
        cfg.with_updates(tol=-1.0)
    with pytest.raises(dataclasses.FrozenInstanceError):
        cfg.n_boot = 10  # type: ignore[misc]

def test_boot_config_make_bootsam():
    cfg = BootConfig(n_boot=30, seed=16)
    idx = cfg.make_bootsam(10)
    assert idx.shape == (10, 30)
    assert np.all(_occurrences(idx, 10) == 30)
    np.testing.assert_array_equal(idx, boot(10, 30, True, seed=16))

def test_boot_config_drives_bootknife(sample_data):
    via_cfg = bootknife(sample_data, boot=BootConfig(n_boot=120, seed=17))
    explicit = bootknife(sample_data, 120, seed=17)
    assert via_cfg.n_boot == 120
    np.testing.assert_array_equal(via_cfg.bootsam, explicit.bootsam)
    np.testing.assert_array_equal(via_cfg.ci_lower, explicit.ci_lower)

# ---------------------------------------------------------------------
# Few or non-finite resamples
# ---------------------------------------------------------------------

def test_single_resample_has_zero_standard_error(sample_data):
    res = bootknife(sample_data, 1, alpha=None, seed=1)
    assert res.n_boot == 1
    assert res.std_error[0] == 0.0
    assert np.isfinite(res.bias[0])

def test_single_column_bootsam(sample_data):
    res = bootknife(sample_data, bootsam=boot(sample_data.size, 1, True, seed=2), alpha=None)
    assert res.std_error[0] == 0.0
    assert res.bias[0] == pytest.approx(res.bootstat[0, 0] - sample_data.mean())

def test_single_resample_left_after_dropping(sample_data):
    def needs_max(X):
        return float(np.mean(X)) if 48.0 in X else np.nan

    n = sample_data.size
    # first column reproduces the data, second repeats row 2 only
    idx = np.column_stack([np.arange(1, n + 1), np.full(n, 2)])
    with pytest.warns(RuntimeWarning, match="bias correction"):
        res = bootknife(sample_data, bootsam=idx, bootfun=needs_max, alpha=(0.025, 0.975))
    assert res.extra["n_dropped"] == 1
    assert res.std_error[0] == 0.0
    assert res.bias[0] == pytest.approx(0.0)

def test_infinite_statistics_are_dropped(sample_data):
    def needs_max(X):
        return float(np.mean(X)) if 48.0 in X else np.inf

    res = bootknife(sample_data, 300, needs_max, alpha=None, seed=12)
    n_dropped = res.extra["n_dropped"]
    assert 0 < n_dropped < 300
    assert np.isinf(res.bootstat[0]).sum() == n_dropped
    assert np.isfinite(res.std_error[0])
    assert np.isfinite(res.bias[0])

def test_infinite_original_statistic(sample_data):
    with pytest.raises(NumericError, match="NaN or Inf"):
        bootknife(sample_data, 10, lambda X: np.inf)

def test_all_resamples_non_finite(sample_data):
    def only_original(X):
        return float(np.mean(X)) if np.array_equal(X, sample_data) else np.nan

    with pytest.raises(NumericError, match="every bootstrap resample"):
        bootknife(sample_data, 20, only_original, alpha=None, seed=3)

# ---------------------------------------------------------------------
# Iterated (double) bootstrap
# ---------------------------------------------------------------------

def test_iterated_bootstrap_pair_alpha(sample_data):
    res = bootknife(sample_data, (80, 40), seed=30)
    assert res.n_boot == 80
    assert res.n_boot_inner == 40
    assert res.ci_type == "calibrated percentile"
    assert np.isfinite(res.bias[0])
    assert np.isfinite(res.std_error[0]) and res.std_error[0] > 0
    assert res.ci_lower[0] < res.original[0] < res.ci_upper[0]
    assert 0.0 <= res.probs[0, 0] < res.probs[0, 1] <= 1.0

def test_iterated_bootstrap_scalar_alpha_is_equal_tailed(sample_data):
    res = bootknife(sample_data, (60, 30), alpha=0.1, seed=31)
    assert res.ci_type == "calibrated percentile"
    assert res.probs[0, 0] + res.probs[0, 1] == pytest.approx(1.0)
    assert res.ci_lower[0] <= res.ci_upper[0]

def test_iterated_bias_correction_for_mean(sample_data):
    # First-level balanced bias is zero, so the corrected bias is minus the
    # second-level bias estimate.
    res = bootknife(sample_data, (50, 20), alpha=None, seed=32)
    mean_bs = res.bootstat[0].mean()
    assert mean_bs == pytest.approx(sample_data.mean())
    assert abs(res.bias[0]) < res.std_error[0]

def test_iterated_standard_error_close_to_single(sample_data):
    single = bootknife(sample_data, 400, alpha=None, seed=33)
    double = bootknife(sample_data, (150, 40), alpha=None, seed=33)
    assert double.std_error[0] == pytest.approx(single.std_error[0], rel=0.4)

def test_iterated_reproducible(sample_data):
    a = bootknife(sample_data, (30, 10), "median", seed=34)
    b = bootknife(sample_data, (30, 10), "median", seed=34)
    np.testing.assert_array_equal(a.ci_lower, b.ci_lower)
    np.testing.assert_array_equal(a.bias, b.bias)

def test_iterated_with_strata(sample_data):
    strata = np.repeat(["a", "b"], 13)
    res = bootknife(sample_data, (40, 20), strata=strata, seed=35)
    assert res.stratified
    assert np.isfinite(res.ci_lower[0]) and np.isfinite(res.ci_upper[0])

def test_iterated_from_config(sample_data):
    cfg = BootConfig(n_boot=30, n_boot_inner=10, seed=36)
    via_cfg = bootknife(sample_data, boot=cfg)
    explicit = bootknife(sample_data, (30, 10), seed=36)
    assert via_cfg.n_boot_inner == 10
    np.testing.assert_array_equal(via_cfg.ci_upper, explicit.ci_upper)

@pytest.mark.parametrize(("nboot", "match"), [
    ((100, 1), "n_boot_inner"),
    ((100, -5), "n_boot_inner"),
    ((100, 2.5), "n_boot_inner"),
    ((10, 20, 30), "outer, inner"),
])
def test_invalid_iterated_sizes(sample_data, nboot, match):
    with pytest.raises(InvalidArgument, match=match):
        bootknife(sample_data, nboot)

# ---------------------------------------------------------------------
# Resampling scheme from the configuration
# ---------------------------------------------------------------------

def test_config_selects_plain_balanced_bootstrap(sample_data):
    cfg = BootConfig(n_boot=30, unbiased=False, seed=40)
    res = bootknife(sample_data, alpha=None, boot=cfg)
    assert not res.unbiased
    np.testing.assert_array_equal(res.bootsam, boot(sample_data.size, 30, False, seed=40))

def test_default_config_uses_bootknife(sample_data):
    res = bootknife(sample_data, 30, alpha=None, seed=41)
    assert res.unbiased
    np.testing.assert_array_equal(res.bootsam, boot(sample_data.size, 30, True, seed=41))
    assert 1 not in res.bootsam[:, 0]
