"""STL-based series features.

Trend and seasonal strength (Wang, Smith & Hyndman 2006) summarise how much of
a series' variation is explained by its trend and seasonal components. Both
lie in [0, 1]; values near 1 mean a strong component.
"""

import logging
from typing import Dict, Optional

import numpy as np
import pandas as pd
from statsmodels.tsa.seasonal import STL

from validation import PanelSchema, iter_series

logger = logging.getLogger(__name__)


def _strength(component: np.ndarray, remainder: np.ndarray) -> float:
    var_total = np.var(component + remainder)
    if var_total <= 0:
        return 0.0
    return float(max(0.0, 1.0 - np.var(remainder) / var_total))


def stl_strength(values: np.ndarray, period: int = 12) -> Dict[str, float]:
    """
    Trend and seasonal strength of one series from a robust STL fit.

    Returns NaN strengths when the series is shorter than two full periods.
    """
    y = np.asarray(values, dtype=float)
    y = y[np.isfinite(y)]
    if len(y) < 2 * period:
        return {"trend_strength": float("nan"), "seasonal_strength": float("nan")}
    res = STL(y, period=period, robust=True).fit()
    trend = np.asarray(res.trend)
    seasonal = np.asarray(res.seasonal)
    remainder = np.asarray(res.resid)
    return {
        "trend_strength": _strength(trend, remainder),
        "seasonal_strength": _strength(seasonal, remainder),
    }


def series_features(panel: pd.DataFrame,
                    period: int = 12,
                    schema: Optional[PanelSchema] = None) -> pd.DataFrame:
    """
    STL features for every key of a panel.

    Returns
    -------
    pd.DataFrame
        Key columns, n_obs, trend_strength, seasonal_strength
    """
    schema = schema or PanelSchema()
    rows = []
    for key, series in iter_series(panel, schema):
        row = dict(zip(schema.key_columns, key))
        row["n_obs"] = int(series.notna().sum())
        row.update(stl_strength(series.to_numpy(dtype=float), period=period))
        rows.append(row)
    out = pd.DataFrame(rows, columns=[*schema.key_columns, "n_obs", "trend_strength", "seasonal_strength"])
    logger.info("Computed STL features for %d series", len(out))
    return out
