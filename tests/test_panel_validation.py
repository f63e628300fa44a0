import numpy as np
import pandas as pd
import pytest

from validation import (
    DataValidationError,
    PanelSchema,
    ValidationSeverity,
    iter_series,
    normalize_panel,
    panel_keys,
    validate_panel,
)


def make_panel(keys=(("NSW", "Food"), ("VIC", "Food")), start="2016-01", periods=24, seed=0):
    np.random.seed(seed)
    frames = []
    for state, industry in keys:
        months = pd.period_range(start, periods=periods, freq="M").astype(str)
        values = 100.0 + np.cumsum(np.random.normal(0.5, 1.0, periods))
        frames.append(pd.DataFrame({"state": state, "industry": industry, "month": months, "value": values}))
    return pd.concat(frames, ignore_index=True)


def test_valid_panel_passes_with_metrics():
    panel = make_panel()
    result = validate_panel(panel)
    assert result.is_valid
    assert not result.has_errors
    assert result.metrics["n_keys"] == 2
    assert result.metrics["first_period"] == "2016-01"
    assert result.metrics["last_period"] == "2017-12"


def test_duplicate_key_month_is_rejected():
    panel = make_panel()
    panel = pd.concat([panel, panel.iloc[[3]]], ignore_index=True)

    with pytest.raises(DataValidationError) as excinfo:
        validate_panel(panel)

    result = excinfo.value.validation_result
    assert result is not None and result.has_errors
    assert any(issue.component == "time" for issue in result.issues)


def test_duplicate_month_in_other_spelling_is_rejected():
    panel = make_panel(keys=(("NSW", "Food"),), periods=3)
    extra = pd.DataFrame({"state": ["NSW"], "industry": ["Food"], "month": ["2016 Feb"], "value": [1.0]})
    with pytest.raises(DataValidationError):
        validate_panel(pd.concat([panel, extra], ignore_index=True))


def test_missing_column_is_critical():
    panel = make_panel().drop(columns="value")
    result = validate_panel(panel, raise_on_error=False)
    assert not result.is_valid
    assert result.get_issues_by_severity(ValidationSeverity.CRITICAL)


def test_series_ending_early_is_reported_not_rejected():
    panel = make_panel()
    short = (panel["state"] == "VIC") & (panel["month"] > "2017-06")
    result = validate_panel(panel.loc[~short])
    assert result.is_valid
    assert result.metrics["n_keys_ending_early"] == 1
    assert any(issue.component == "coverage" for issue in result.issues)


def test_custom_schema_single_key_column():
    schema = PanelSchema(key_columns="region", time_column="date", value_column="sales")
    assert schema.key_columns == ("region",)
    panel = pd.DataFrame({"region": ["a", "a"], "date": ["2020-01", "2020-02"], "sales": [1.0, 2.0]})
    assert validate_panel(panel, schema).is_valid


def test_normalize_panel_sorts_and_converts():
    panel = make_panel().sample(frac=1.0, random_state=1)
    out = normalize_panel(panel)
    assert isinstance(out["month"].dtype, pd.PeriodDtype)
    assert out["value"].dtype == float
    assert out.iloc[0]["state"] == "NSW"
    assert out.iloc[0]["month"] == pd.Period("2016-01", freq="M")
    assert panel_keys(out) == [("NSW", "Food"), ("VIC", "Food")]


def test_iter_series_yields_monthly_indexed_series():
    out = normalize_panel(make_panel())
    pairs = list(iter_series(out))
    assert [key for key, _ in pairs] == [("NSW", "Food"), ("VIC", "Food")]
    key, series = pairs[0]
    assert len(series) == 24
    assert series.index.freqstr == "M"
    assert series.index[0] == pd.Period("2016-01", freq="M")
