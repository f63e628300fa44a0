"""Explicit aggregation of panel-shaped tables across key columns.

Aggregating a panel means summing values over some key columns while keeping
others. Which columns are summed away is always stated by the caller (`by` are
the key columns kept) and logged, so a grouping can never silently include or
drop a dimension.
"""

import logging
from typing import Iterable, Optional, Sequence, Set

import numpy as np
import pandas as pd

from validation import PanelSchema
from validation.panel import Key

logger = logging.getLogger(__name__)


def key_mask(frame: pd.DataFrame, key_columns: Sequence[str], keys: Iterable[Key]) -> pd.Series:
    """Boolean mask of rows whose key tuple is in `keys`."""
    wanted = set(keys)
    if frame.empty or not wanted:
        return pd.Series(False, index=frame.index)
    row_keys = zip(*[frame[c] for c in key_columns])
    return pd.Series([key in wanted for key in row_keys], index=frame.index)


def aggregate_panel(frame: pd.DataFrame,
                    by: Sequence[str],
                    time_column: str,
                    value_columns: Sequence[str],
                    key_columns: Sequence[str],
                    require_complete: bool = False) -> pd.DataFrame:
    """
    Sum value columns over every key column not in `by`.

    Parameters
    ----------
    frame : pd.DataFrame
        Long table with key columns, a time column and value columns
    by : sequence of str
        Key columns to keep; may be empty for a grand total
    time_column : str
        Time column, always kept
    value_columns : sequence of str
        Columns to sum
    key_columns : sequence of str
        All key columns of the table
    require_complete : bool, default=False
        Drop time points where not every key of the group contributes a
        finite value, so a group total is never a partial sum

    Returns
    -------
    pd.DataFrame
        Columns `by`, time column, value columns and n_series (number of keys
        summed at that time point), sorted by group then time

    Raises
    ------
    ValueError
        If `by` names a column that is not a key column
    """
    by = list(by)
    unknown = [c for c in by if c not in key_columns]
    if unknown:
        raise ValueError(f"Aggregation columns {unknown} are not key columns {list(key_columns)}")
    summed_over = [c for c in key_columns if c not in by]
    logger.debug("Aggregating %s: summing over %s, grouped by %s + [%s]",
                 list(value_columns), summed_over, by, time_column)

    data = frame.loc[:, [*key_columns, time_column, *value_columns]].copy()
    finite = np.isfinite(data[list(value_columns)].to_numpy(dtype=float)).all(axis=1)
    data = data.loc[finite]

    group_cols = [*by, time_column]
    grouped = data.groupby(group_cols, sort=True)
    out = grouped[list(value_columns)].sum()
    out["n_series"] = grouped.size()
    out = out.reset_index()

    if require_complete:
        keys_per_group = data.drop_duplicates(list(key_columns))
        if by:
            total = keys_per_group.groupby(by).size().rename("_total").reset_index()
            out = out.merge(total, on=by, how="left")
        else:
            out["_total"] = len(keys_per_group)
        partial = out["n_series"] < out["_total"]
        if partial.any():
            logger.debug("Dropping %d partial time points from aggregate", int(partial.sum()))
        out = out.loc[~partial].drop(columns="_total")

    return out.reset_index(drop=True)


def keys_with_actuals(validation: pd.DataFrame,
                      schema: Optional[PanelSchema] = None,
                      horizon: Optional[pd.PeriodIndex] = None) -> Set[Key]:
    """
    Keys with at least one finite validation value inside the horizon.

    The horizon defaults to every month present in the validation panel. A key
    whose series ends before the horizon begins has no actuals and is not
    returned.
    """
    schema = schema or PanelSchema()
    if validation.empty:
        return set()
    time_col = schema.time_column
    data = validation.loc[np.isfinite(validation[schema.value_column].to_numpy(dtype=float))]
    if horizon is None:
        horizon = pd.PeriodIndex(sorted(validation[time_col].unique()), freq="M")
    data = data.loc[data[time_col].isin(horizon)]
    return set(zip(*[data[c] for c in schema.key_columns]))
