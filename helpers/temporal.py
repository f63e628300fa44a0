# -*- coding: utf-8 -*-
"""
Temporal utilities for monthly panel data.

Functions
---------
- to_monthly_period(value): Coerce a scalar (Period, Timestamp, 'YYYY-MM',
  'YYYY Mon') to a monthly pandas Period.
- to_monthly_periods(values): Vectorised version returning a PeriodIndex.
- months_between(start, end): Signed number of monthly steps from start to end.
- horizon_periods(last_period, steps): The `steps` months following last_period.
"""

from __future__ import annotations

from typing import Iterable, Union

import pandas as pd

PeriodLike = Union[pd.Period, pd.Timestamp, str]

MONTHLY_FREQ = "M"


def to_monthly_period(value: PeriodLike) -> pd.Period:
    """
    Coerce a single month designation to a monthly Period.

    Accepts pandas Periods of any frequency (converted to the month that
    contains their start), Timestamps / datetimes, and strings such as
    '2017-12', '2017 Dec' or '2017-12-01'.

    Raises
    ------
    ValueError
        If the value cannot be interpreted as a month.
    """
    if isinstance(value, pd.Period):
        if value.freqstr.upper().startswith(MONTHLY_FREQ):
            return value
        return value.asfreq(MONTHLY_FREQ, how="start")
    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Cannot interpret {value!r} as a month") from e
    if pd.isna(ts):
        raise ValueError(f"Cannot interpret {value!r} as a month")
    return ts.to_period(MONTHLY_FREQ)


def to_monthly_periods(values: Iterable) -> pd.PeriodIndex:
    """
    Coerce a sequence of month designations to a monthly PeriodIndex.

    - PeriodIndex/Period dtype input is converted with asfreq.
    - Anything else goes through pd.to_datetime first.
    """
    if isinstance(values, pd.Series):
        values = values.array
    if isinstance(getattr(values, "dtype", None), pd.PeriodDtype):
        return pd.PeriodIndex(values).asfreq(MONTHLY_FREQ, how="start")
    values = list(values)
    if values and all(isinstance(v, pd.Period) for v in values):
        return pd.PeriodIndex([to_monthly_period(v) for v in values])
    try:
        stamps = pd.to_datetime(pd.Index(values).astype(str), errors="raise")
    except ValueError:
        # Mixed spellings ('2017-11', '2017 Dec') defeat format inference
        return pd.PeriodIndex([to_monthly_period(v) for v in values])
    return stamps.to_period(MONTHLY_FREQ)


def months_between(start: PeriodLike, end: PeriodLike) -> int:
    """Return the signed number of months from start to end."""
    a = to_monthly_period(start)
    b = to_monthly_period(end)
    return (b.year - a.year) * 12 + (b.month - a.month)


def horizon_periods(last_period: PeriodLike, steps: int) -> pd.PeriodIndex:
    """Monthly periods strictly after last_period, `steps` of them."""
    start = to_monthly_period(last_period) + 1
    return pd.period_range(start=start, periods=max(0, int(steps)), freq=MONTHLY_FREQ)
