import numpy as np
import pandas as pd
import pytest

from validation import DataValidationError, EmptyTrainingPanelError, partition_panel


def series_rows(state, industry, start, values):
    months = pd.period_range(start, periods=len(values), freq="M").astype(str)
    return pd.DataFrame({"state": state, "industry": industry, "month": months, "value": values})


def make_panel():
    return pd.concat([
        # 36 training months plus 12 validation months
        series_rows("NSW", "Food", "2015-01", np.arange(48, dtype=float) + 100.0),
        # starts after the cutoff
        series_rows("NSW", "Cafe", "2018-03", np.arange(10, dtype=float) + 50.0),
        # ends at the cutoff
        series_rows("VIC", "Food", "2016-01", np.arange(24, dtype=float) + 80.0),
    ], ignore_index=True)


def test_every_row_lands_in_exactly_one_part():
    panel = make_panel()
    split = partition_panel(panel, "2017-12")

    assert len(split.train) + len(split.validation) == len(panel)
    cutoff = pd.Period("2017-12", freq="M")
    assert (split.train["month"] <= cutoff).all()
    assert (split.validation["month"] > cutoff).all()

    cols = ["state", "industry", "month"]
    overlap = split.train[cols].merge(split.validation[cols], on=cols)
    assert overlap.empty


def test_keys_without_training_or_validation_are_reported():
    split = partition_panel(make_panel(), "2017-12")
    assert split.keys == [("NSW", "Cafe"), ("NSW", "Food"), ("VIC", "Food")]
    assert split.empty_training_keys == [("NSW", "Cafe")]
    assert split.keys_without_validation == [("VIC", "Food")]
    assert split.trainable_keys == [("NSW", "Food"), ("VIC", "Food")]


def test_horizon_lists_validation_months():
    split = partition_panel(make_panel(), "2017-12")
    assert split.horizon[0] == pd.Period("2018-01", freq="M")
    assert split.horizon[-1] == pd.Period("2018-12", freq="M")
    assert len(split.horizon) == 12


def test_cutoff_spellings_are_equivalent():
    a = partition_panel(make_panel(), "2017-12")
    b = partition_panel(make_panel(), "2017 Dec")
    assert a.cutoff == b.cutoff
    pd.testing.assert_frame_equal(a.train, b.train)


def test_cutoff_before_all_data_is_fatal():
    with pytest.raises(EmptyTrainingPanelError) as excinfo:
        partition_panel(make_panel(), "2010-01")
    assert isinstance(excinfo.value, DataValidationError)


def test_cutoff_after_all_data_leaves_empty_validation():
    split = partition_panel(make_panel(), "2030-01")
    assert split.validation.empty
    assert len(split.keys_without_validation) == 3
