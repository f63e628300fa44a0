import numpy as np
import pandas as pd
import pytest

from evaluation import AccuracyEvaluator, aggregate_panel, keys_with_actuals
from many_models import Forecaster, ManyModelsTrainer, build_menu
from validation import partition_panel

VALIDATION_MONTHS = pd.period_range("2018-01", periods=12, freq="M")


def panel_rows(state, industry, months, values):
    return pd.DataFrame({"state": state, "industry": industry, "month": months,
                         "value": np.asarray(values, dtype=float)})


def forecast_rows(state, industry, model, months, means, width=1.0):
    means = np.asarray(means, dtype=float)
    return pd.DataFrame({"state": state, "industry": industry, "model": model, "month": months,
                         "mean": means, "lower_80": means - width, "upper_80": means + width})


def make_scenario():
    """NSW/Food covers the whole validation year; NSW/Cafe stops after June."""
    train_months = pd.period_range("2015-01", periods=36, freq="M")
    training = pd.concat([
        panel_rows("NSW", "Food", train_months, 100.0 + np.arange(36)),
        panel_rows("NSW", "Cafe", train_months, 50.0 + np.arange(36)),
    ], ignore_index=True)
    validation = pd.concat([
        panel_rows("NSW", "Food", VALIDATION_MONTHS, 136.0 + np.arange(12)),
        panel_rows("NSW", "Cafe", VALIDATION_MONTHS[:6], 86.0 + np.arange(6)),
    ], ignore_index=True)
    forecasts = pd.concat([
        forecast_rows("NSW", "Food", "drift", VALIDATION_MONTHS, 137.0 + np.arange(12)),
        forecast_rows("NSW", "Cafe", "drift", VALIDATION_MONTHS[:6], 84.0 + np.arange(6)),
        # one month short
        forecast_rows("NSW", "Food", "sdrift", VALIDATION_MONTHS[:11], 136.0 + np.arange(11)),
    ], ignore_index=True)
    return training, validation, forecasts


def test_per_series_scores():
    training, validation, forecasts = make_scenario()
    out = AccuracyEvaluator(levels=(80, 95)).per_series(forecasts, validation, training)

    assert list(out.columns) == ["state", "industry", "model", "n", "ME", "MAE", "RMSE",
                                 "MAPE", "MASE", "coverage_80", "magnitude"]
    assert out[["industry", "model"]].values.tolist() == [["Cafe", "drift"], ["Food", "drift"], ["Food", "sdrift"]]

    food = out.iloc[1]
    assert food["n"] == 12
    assert np.isclose(food["ME"], -1.0)
    assert np.isclose(food["MAE"], 1.0)
    # seasonal naive MAE of a unit-slope series is 12
    assert np.isclose(food["MASE"], 1.0 / 12.0)
    assert np.isclose(food["coverage_80"], 1.0)
    assert np.isclose(food["magnitude"], 117.5)

    cafe = out.iloc[0]
    assert cafe["n"] == 6
    assert np.isclose(cafe["ME"], 2.0)
    assert np.isclose(cafe["coverage_80"], 0.0)


def test_forecasts_without_actuals_are_not_scored():
    training, validation, forecasts = make_scenario()
    extra = forecast_rows("VIC", "Food", "drift", VALIDATION_MONTHS[:3], [1.0, 2.0, 3.0])
    out = AccuracyEvaluator().per_series(pd.concat([forecasts, extra], ignore_index=True), validation, training)
    assert "VIC" not in out["state"].tolist()


def test_keys_with_actuals():
    _, validation, _ = make_scenario()
    assert keys_with_actuals(validation) == {("NSW", "Food"), ("NSW", "Cafe")}
    # Cafe stops after June
    assert keys_with_actuals(validation, horizon=VALIDATION_MONTHS[6:]) == {("NSW", "Food")}

    blank = panel_rows("VIC", "Food", VALIDATION_MONTHS, np.full(12, np.nan))
    assert ("VIC", "Food") not in keys_with_actuals(pd.concat([validation, blank], ignore_index=True))


def test_aggregate_keeps_months_every_key_covers():
    training, validation, forecasts = make_scenario()
    evaluator = AccuracyEvaluator()
    agg = evaluator.aggregated(forecasts, validation, training, by=["state"])

    assert agg["model"].tolist() == ["drift", "sdrift"]
    drift = agg.iloc[0]
    assert drift["state"] == "NSW"
    # Cafe ends after June, so only January..June sum both keys
    assert drift["n_series"] == 2
    assert drift["n"] == 6
    # Food is 1 too high and Cafe 2 too low every month
    assert np.isclose(drift["ME"], 1.0)
    assert np.isclose(drift["MAE"], 1.0)
    assert np.isclose(drift["MAPE"], np.mean(100.0 / (222.0 + 2.0 * np.arange(6))))
    # the summed history rises 2 per month, so its seasonal naive scale is 24
    assert np.isclose(drift["MASE"], 1.0 / 24.0)

    # only Food has sdrift forecasts, eleven of them
    sdrift = agg.iloc[1]
    assert sdrift["n_series"] == 1
    assert sdrift["n"] == 11
    assert np.isclose(sdrift["MAE"], 0.0)


def test_aggregated_series_sums_actuals_and_forecasts():
    _, validation, forecasts = make_scenario()
    series = AccuracyEvaluator().aggregated_series(forecasts, validation, by=["state"])

    assert list(series.columns) == ["state", "model", "month", "value", "mean", "n_series"]
    drift = series.loc[series["model"] == "drift"].reset_index(drop=True)
    assert drift["month"].tolist() == list(VALIDATION_MONTHS[:6])
    assert np.allclose(drift["value"], 222.0 + 2.0 * np.arange(6))
    assert np.allclose(drift["mean"], 221.0 + 2.0 * np.arange(6))


def test_longer_key_does_not_drop_other_keys():
    train_months = pd.period_range("2015-01", periods=36, freq="M")
    long_months = pd.period_range("2018-01", periods=13, freq="M")
    training = pd.concat([
        panel_rows("NSW", "Food", train_months, 100.0 + np.arange(36)),
        panel_rows("NSW", "Cafe", train_months, 50.0 + np.arange(36)),
        panel_rows("VIC", "Food", train_months, 10.0 + np.arange(36)),
    ], ignore_index=True)
    validation = pd.concat([
        panel_rows("NSW", "Food", VALIDATION_MONTHS, 136.0 + np.arange(12)),
        panel_rows("NSW", "Cafe", VALIDATION_MONTHS, 86.0 + np.arange(12)),
        # one month longer than the rest
        panel_rows("VIC", "Food", long_months, 46.0 + np.arange(13)),
    ], ignore_index=True)
    forecasts = pd.concat([
        forecast_rows("NSW", "Food", "drift", VALIDATION_MONTHS, 136.0 + np.arange(12)),
        forecast_rows("NSW", "Cafe", "drift", VALIDATION_MONTHS, 86.0 + np.arange(12)),
        forecast_rows("VIC", "Food", "drift", long_months, 46.0 + np.arange(13)),
    ], ignore_index=True)
    evaluator = AccuracyEvaluator()

    by_state = evaluator.aggregated(forecasts, validation, training, by=["state"])
    assert by_state["state"].tolist() == ["NSW", "VIC"]
    assert by_state["n_series"].tolist() == [2, 1]
    assert by_state["n"].tolist() == [12, 13]

    total = evaluator.aggregated(forecasts, validation, training, by=[])
    assert total.loc[0, "n_series"] == 3
    assert total.loc[0, "n"] == 12


def test_key_ending_before_validation_is_left_out_of_aggregate():
    # A has 36 training and 12 validation months; B stops six months before validation starts
    panel = pd.concat([
        pd.DataFrame({"state": "NSW", "industry": "A",
                      "month": pd.period_range("2015-01", periods=48, freq="M").astype(str),
                      "value": 100.0 + np.arange(48)}),
        pd.DataFrame({"state": "NSW", "industry": "B",
                      "month": pd.period_range("2015-01", periods=30, freq="M").astype(str),
                      "value": 50.0 + np.arange(30)}),
    ], ignore_index=True)
    split = partition_panel(panel, "2017-12")
    assert split.keys_without_validation == [("NSW", "B")]

    trainer = ManyModelsTrainer(build_menu(select=["drift"]), show_progress=False)
    training = trainer.train(split.train, keys=split.keys)
    forecasts = Forecaster(levels=(80, 95)).forecast(training, validation=split.validation).table
    assert set(forecasts["industry"]) == {"A"}

    evaluator = AccuracyEvaluator()
    series = evaluator.aggregated_series(forecasts, split.validation, by=["state"])
    first = series.loc[series["month"] == pd.Period("2018-01", freq="M")].iloc[0]
    a_first = split.validation.loc[(split.validation["industry"] == "A")
                                   & (split.validation["month"] == pd.Period("2018-01", freq="M")), "value"]
    assert np.isclose(first["value"], a_first.iloc[0])
    assert np.isclose(first["value"], 136.0)
    assert first["n_series"] == 1

    agg = evaluator.aggregated(forecasts, split.validation, split.train, by=["state"])
    row = agg.iloc[0]
    assert row["n_series"] == 1
    assert row["n"] == 12
    # A is linear, so its drift forecast is exact
    assert np.isclose(row["MAE"], 0.0)


def test_grand_total_aggregate():
    training, validation, forecasts = make_scenario()
    vic_train = panel_rows("VIC", "Food", pd.period_range("2015-01", periods=36, freq="M"), 10.0 + np.arange(36))
    vic_valid = panel_rows("VIC", "Food", VALIDATION_MONTHS, 46.0 + np.arange(12))
    vic_fc = forecast_rows("VIC", "Food", "drift", VALIDATION_MONTHS, 46.0 + np.arange(12))

    agg = AccuracyEvaluator().aggregated(
        pd.concat([forecasts, vic_fc], ignore_index=True),
        pd.concat([validation, vic_valid], ignore_index=True),
        pd.concat([training, vic_train], ignore_index=True),
        by=[],
    )
    assert list(agg.columns) == ["model", "n_series", "n", "ME", "MAE", "RMSE", "MAPE", "MASE"]
    row = agg.iloc[0]
    assert row["model"] == "drift"
    assert row["n_series"] == 3
    assert row["n"] == 6
    assert np.isclose(row["ME"], 1.0)
    # the summed history rises 3 per month, so its seasonal naive scale is 36
    assert np.isclose(row["MASE"], 1.0 / 36.0)


def test_aggregate_panel_is_explicit():
    _, validation, _ = make_scenario()
    kwargs = dict(time_column="month", value_columns=["value"], key_columns=["state", "industry"])

    by_state = aggregate_panel(validation, by=["state"], **kwargs)
    assert list(by_state.columns) == ["state", "month", "value", "n_series"]
    assert np.isclose(by_state.loc[0, "value"], 136.0 + 86.0)
    assert by_state.loc[0, "n_series"] == 2
    assert by_state.loc[11, "n_series"] == 1

    complete = aggregate_panel(validation, by=["state"], require_complete=True, **kwargs)
    assert len(complete) == 6

    with pytest.raises(ValueError, match="not key columns"):
        aggregate_panel(validation, by=["month"], **kwargs)


def test_summary_weighting():
    per = pd.DataFrame({
        "state": ["NSW", "VIC"],
        "industry": ["Food", "Food"],
        "model": ["drift", "drift"],
        "MASE": [1.0, 2.0],
        "MAPE": [np.nan, 4.0],
        "magnitude": [1.0, 3.0],
    })
    evaluator = AccuracyEvaluator()

    simple = evaluator.summarise(per, weighting="mean")
    assert simple.loc[0, "n_series"] == 2
    assert np.isclose(simple.loc[0, "MASE"], 1.5)
    # non-finite scores are left out
    assert np.isclose(simple.loc[0, "MAPE"], 4.0)

    weighted = evaluator.summarise(per, weighting="magnitude")
    assert np.isclose(weighted.loc[0, "MASE"], (1.0 * 1.0 + 2.0 * 3.0) / 4.0)

    equal = per.assign(magnitude=5.0)
    assert np.isclose(evaluator.summarise(equal, weighting="magnitude").loc[0, "MASE"],
                      evaluator.summarise(equal, weighting="mean").loc[0, "MASE"])

    by_state = evaluator.summarise(per, by=["state"])
    assert by_state["state"].tolist() == ["NSW", "VIC"]

    with pytest.raises(ValueError):
        evaluator.summarise(per, weighting="median")
