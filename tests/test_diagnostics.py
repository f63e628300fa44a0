import numpy as np
import pandas as pd

from diagnostics import ResidualDiagnostics, ljung_box_test, series_features, stl_strength
from many_models import ManyModelsTrainer, build_menu
from validation import normalize_panel


def make_ar1_residuals(n=200, phi=0.9, seed=42):
    np.random.seed(seed)
    e = np.random.normal(0, 1, n)
    x = np.zeros(n)
    for i in range(1, n):
        x[i] = phi * x[i - 1] + e[i]
    return x


def make_panel(seed=0):
    np.random.seed(seed)
    t = np.arange(48)
    months = pd.period_range("2014-01", periods=48, freq="M").astype(str)
    seasonal = 500.0 + 3.0 * t + 60.0 * np.sin(2 * np.pi * t / 12) + np.random.normal(0, 2.0, 48)
    flat = 200.0 + np.random.normal(0, 5.0, 48)
    return normalize_panel(pd.concat([
        pd.DataFrame({"state": "NSW", "industry": "Food", "month": months, "value": seasonal}),
        pd.DataFrame({"state": "VIC", "industry": "Food", "month": months, "value": flat}),
    ], ignore_index=True))


def test_ljung_box_detects_autocorrelation():
    lb = ljung_box_test(make_ar1_residuals(), lags=24)
    assert lb.lag == 24
    assert lb.p_value < 0.01
    assert lb.is_significant
    assert "Serial correlation" in lb.interpretation


def test_ljung_box_lag_is_capped_by_length():
    np.random.seed(1)
    lb = ljung_box_test(np.random.normal(0, 1, 10), lags=24)
    assert lb.lag == 5
    assert 0.0 <= lb.p_value <= 1.0


def test_ljung_box_degenerate_inputs():
    assert ljung_box_test(np.array([1.0, 2.0, np.nan])) is None
    flat = ljung_box_test(np.zeros(20))
    assert np.isnan(flat.p_value)
    assert not flat.is_significant


def test_stl_strength_separates_seasonal_and_flat_series():
    panel = make_panel()
    seasonal = panel.loc[panel["state"] == "NSW", "value"].to_numpy()
    strong = stl_strength(seasonal, period=12)
    assert strong["seasonal_strength"] > 0.9
    assert strong["trend_strength"] > 0.9
    assert 0.0 <= strong["seasonal_strength"] <= 1.0

    short = stl_strength(seasonal[:20], period=12)
    assert np.isnan(short["trend_strength"])
    assert np.isnan(short["seasonal_strength"])


def test_series_features_per_key():
    out = series_features(make_panel(), period=12)
    assert list(out.columns) == ["state", "industry", "n_obs", "trend_strength", "seasonal_strength"]
    assert out["state"].tolist() == ["NSW", "VIC"]
    assert out["n_obs"].tolist() == [48, 48]
    assert out.loc[0, "seasonal_strength"] > out.loc[1, "seasonal_strength"]


def test_residual_diagnostics_cover_every_fitted_pair():
    trainer = ManyModelsTrainer(build_menu(select=["drift", "sdrift"]), show_progress=False)
    training = trainer.train(make_panel())
    out = ResidualDiagnostics(lags=12).run(training)

    assert list(out.columns) == ["state", "industry", "model", "n_resid", "resid_mean", "resid_std",
                                 "lb_lag", "lb_stat", "lb_pvalue", "autocorrelated"]
    assert len(out) == 4
    drift = out.loc[(out["state"] == "NSW") & (out["model"] == "drift")].iloc[0]
    assert drift["n_resid"] == 47
    assert drift["lb_lag"] == 12
    # a drift model leaves the seasonal pattern in its residuals
    assert bool(drift["autocorrelated"])
    sdrift = out.loc[(out["state"] == "NSW") & (out["model"] == "sdrift")].iloc[0]
    assert sdrift["n_resid"] == 36
