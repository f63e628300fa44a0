import numpy as np
import pandas as pd
import pytest

from retail_forecaster_src.parsing_utils import parse_intervals_arg, parse_name_list, parse_range_arg
from retail_forecaster_src.transform_utils import (
    adf_select_D,
    apply_transform,
    back_transform_forecast,
    validate_transform,
)


def log_scale_frame():
    return pd.DataFrame({
        "mean": [np.log(100.0)],
        "se": [0.1],
        "lower_95": [np.log(90.0)],
        "upper_95": [np.log(110.0)],
    })


def test_apply_transform_log_and_identity():
    vals = np.array([1.0, np.e, np.e ** 2])
    assert np.allclose(apply_transform(vals, "log"), [0.0, 1.0, 2.0])
    assert np.allclose(apply_transform(vals, "none"), vals)


def test_log_transform_rejects_non_positive_values():
    with pytest.raises(ValueError):
        apply_transform([1.0, 0.0, 2.0], "log")


def test_unknown_transform_is_rejected():
    with pytest.raises(ValueError):
        validate_transform("boxcox")


def test_back_transform_bias_adjusted_mean():
    out = back_transform_forecast(log_scale_frame(), "log", [95], bias_adjust=True)
    assert np.isclose(out.loc[0, "mean"], 100.0 * (1.0 + 0.01 / 2.0))
    # bounds are transformed quantiles, not bias adjusted
    assert np.isclose(out.loc[0, "lower_95"], 90.0)
    assert np.isclose(out.loc[0, "upper_95"], 110.0)


def test_back_transform_median_without_bias_adjustment():
    out = back_transform_forecast(log_scale_frame(), "log", [95], bias_adjust=False)
    assert np.isclose(out.loc[0, "mean"], 100.0)


def test_back_transform_identity_is_unchanged_copy():
    frame = log_scale_frame()
    out = back_transform_forecast(frame, "none", [95])
    pd.testing.assert_frame_equal(out, frame)
    assert out is not frame


def test_short_series_never_gets_seasonal_difference():
    assert adf_select_D(np.arange(20, dtype=float), s=12) == 0


def test_parse_range_arg_forms():
    assert parse_range_arg("0-2") == [0, 1, 2]
    assert parse_range_arg("2,0") == [0, 2]
    assert parse_range_arg([1, 0, 1]) == [0, 1]
    assert parse_range_arg(1) == [1]
    assert parse_range_arg(None, default="0-1") == [0, 1]
    with pytest.raises(ValueError):
        parse_range_arg("a-b")
    with pytest.raises(ValueError):
        parse_range_arg("")


def test_parse_intervals_and_names():
    assert parse_intervals_arg("95,80,80") == [80, 95]
    assert parse_intervals_arg("", default="90") == [90]
    assert parse_name_list("state, industry,state") == ["state", "industry"]
    assert parse_name_list("") is None
    assert parse_name_list(None) is None
