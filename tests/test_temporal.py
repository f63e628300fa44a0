import pandas as pd
import pytest

from helpers.temporal import horizon_periods, months_between, to_monthly_period, to_monthly_periods


def test_to_monthly_period_accepts_common_spellings():
    expected = pd.Period("2017-12", freq="M")
    assert to_monthly_period("2017-12") == expected
    assert to_monthly_period("2017 Dec") == expected
    assert to_monthly_period("2017-12-15") == expected
    assert to_monthly_period(pd.Timestamp("2017-12-31")) == expected
    assert to_monthly_period(expected) == expected


def test_to_monthly_period_converts_other_frequencies_to_first_month():
    # A quarter maps onto the month it starts with
    assert to_monthly_period(pd.Period("2017Q4", freq="Q")) == pd.Period("2017-10", freq="M")


def test_to_monthly_period_rejects_garbage():
    with pytest.raises(ValueError):
        to_monthly_period("not a month")


def test_to_monthly_periods_from_strings_and_periods():
    out = to_monthly_periods(["2017-11", "2017-12", "2018-01"])
    assert list(out) == list(pd.period_range("2017-11", periods=3, freq="M"))

    periods = pd.Series(pd.period_range("2020-01", periods=2, freq="M"))
    assert list(to_monthly_periods(periods)) == list(periods)


def test_months_between_is_signed():
    assert months_between("2017-12", "2018-03") == 3
    assert months_between("2018-03", "2017-12") == -3
    assert months_between("2017-12", "2017 Dec") == 0


def test_horizon_periods_follow_last_month():
    out = horizon_periods("2017-12", 3)
    assert [str(p) for p in out] == ["2018-01", "2018-02", "2018-03"]
    assert len(horizon_periods("2017-12", 0)) == 0
