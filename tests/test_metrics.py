import numpy as np
import pytest

from retail_forecaster_src.metrics_utils import (
    compute_metrics,
    interval_coverage,
    mae,
    mape,
    mase_metric,
    mase_scale,
    me,
    paired_finite,
    rmse,
)


def test_mase_scale_is_seasonal_naive_mae_by_default():
    # Lag-12 differences of 0..23 are all 12
    y_train = np.arange(24, dtype=float)
    assert np.isclose(mase_scale(y_train, m=12), 12.0)
    assert np.isclose(mase_scale(y_train, m=12, d=1, D=0), 1.0)


def test_mase_scale_without_differencing_is_mean_absolute_level():
    assert np.isclose(mase_scale([-2.0, 4.0, 6.0], m=12, d=0, D=0), 4.0)


def test_mase_scale_is_nan_when_undefined():
    assert np.isnan(mase_scale(np.arange(12, dtype=float), m=12))
    assert np.isnan(mase_scale(np.full(30, 5.0), m=12))


def test_mase_metric_divides_mae_by_scale():
    y_train = np.arange(24, dtype=float)
    val = mase_metric([24.0, 25.0], [23.0, 27.0], y_train, m=12)
    assert np.isclose(val, 1.5 / 12.0)


def test_mape_skips_zero_actuals():
    assert np.isclose(mape([0.0, 100.0], [5.0, 110.0]), 10.0)
    assert np.isnan(mape([0.0, 0.0], [1.0, 1.0]))


def test_me_sign_is_actual_minus_forecast():
    assert np.isclose(me([10.0, 10.0], [8.0, 9.0]), 1.5)
    assert np.isclose(mae([10.0, 10.0], [8.0, 11.0]), 1.5)
    assert np.isclose(rmse([0.0, 0.0], [3.0, 4.0]), np.sqrt(12.5))


def test_pairs_are_dropped_together():
    yt, yh = paired_finite([1.0, np.nan, 3.0], [1.0, 2.0, np.nan])
    assert yt.tolist() == [1.0]
    assert yh.tolist() == [1.0]
    with pytest.raises(ValueError):
        paired_finite([1.0, 2.0], [1.0])


def test_interval_coverage_counts_inclusive_hits():
    assert np.isclose(interval_coverage([1.0, 2.0, 3.0], [0.0, 0.0, 0.0], [2.0, 2.0, 2.0]), 2.0 / 3.0)


def test_compute_metrics_schema():
    y_train = np.arange(24, dtype=float)
    y_true = np.array([24.0, 25.0, 26.0])
    y_hat = np.array([23.0, 27.0, 26.0])
    res = compute_metrics(y_true, y_hat, y_train, m=12,
                          intervals={95: (y_hat - 3.0, y_hat + 3.0), 80: (y_hat - 1.0, y_hat + 1.0)})

    assert list(res) == ["n", "ME", "MAE", "RMSE", "MAPE", "MASE", "coverage_80", "coverage_95"]
    assert res["n"] == 3
    assert np.isclose(res["ME"], -1.0 / 3.0)
    assert np.isclose(res["MAE"], 1.0)
    assert np.isclose(res["MASE"], 1.0 / 12.0)
    assert np.isclose(res["coverage_80"], 2.0 / 3.0)
    assert np.isclose(res["coverage_95"], 1.0)
