# retail_forecaster_src/metrics_utils.py

import numpy as np
import pandas as pd
from typing import Dict, List, Mapping, Optional, Tuple, Union
import logging

logger = logging.getLogger(__name__)

ArrayLike = Union[List[float], np.ndarray, pd.Series]

METRIC_COLUMNS = ["ME", "MAE", "RMSE", "MAPE", "MASE"]


def to_1d_array(x: ArrayLike) -> np.ndarray:
    """
    Convert input to 1D numpy array, filtering out non-finite values.

    Parameters
    ----------
    x : Union[List[float], np.ndarray, pd.Series]
        Input data to convert

    Returns
    -------
    np.ndarray
        1D array containing only finite values
    """
    arr = np.asarray(x, dtype=float).ravel()
    return arr[np.isfinite(arr)]


def paired_finite(y_true: ArrayLike, y_hat: ArrayLike) -> Tuple[np.ndarray, np.ndarray]:
    """
    Align actuals and forecasts, keeping positions where both are finite.

    Unlike `to_1d_array`, pairs are dropped together so a missing forecast
    never shifts later actuals onto the wrong month.
    """
    yt = np.asarray(y_true, dtype=float).ravel()
    yh = np.asarray(y_hat, dtype=float).ravel()
    if yt.shape != yh.shape:
        raise ValueError(f"Actuals and forecasts differ in length: {yt.size} vs {yh.size}")
    mask = np.isfinite(yt) & np.isfinite(yh)
    return yt[mask], yh[mask]


def me(y_true: ArrayLike, y_hat: ArrayLike) -> float:
    """Mean error (actual minus forecast); positive values mean under-forecasting."""
    yt, yh = paired_finite(y_true, y_hat)
    if yt.size == 0:
        return float("nan")
    return float(np.mean(yt - yh))


def mae(y_true: ArrayLike, y_hat: ArrayLike) -> float:
    """
    Calculate Mean Absolute Error.

    Returns
    -------
    float
        Mean absolute error, or NaN if no valid data
    """
    yt, yh = paired_finite(y_true, y_hat)
    if yt.size == 0:
        return float("nan")
    return float(np.mean(np.abs(yt - yh)))


def rmse(y_true: ArrayLike, y_hat: ArrayLike) -> float:
    """
    Calculate Root Mean Square Error.

    Returns
    -------
    float
        Root mean square error, or NaN if no valid data
    """
    yt, yh = paired_finite(y_true, y_hat)
    if yt.size == 0:
        return float("nan")
    return float(np.sqrt(np.mean((yt - yh) ** 2)))


def mape(y_true: ArrayLike, y_hat: ArrayLike) -> float:
    """
    Calculate Mean Absolute Percentage Error, in percent.

    Observations with a zero actual are left out of the average since their
    percentage error is undefined.

    Returns
    -------
    float
        MAPE as percentage, or NaN if no pair has a non-zero actual
    """
    yt, yh = paired_finite(y_true, y_hat)
    nz = yt != 0.0
    if not np.any(nz):
        return float("nan")
    return float(np.mean(np.abs((yt[nz] - yh[nz]) / yt[nz])) * 100.0)


def mase_scale(y_train: ArrayLike, m: int = 12, d: int = 0, D: int = 1) -> float:
    """
    In-sample scale used by MASE.

    The training series is differenced D times at lag m and d times at lag 1;
    the scale is the mean absolute value of what remains. With the defaults
    this is the in-sample MAE of the seasonal naive method.

    Parameters
    ----------
    y_train : array-like
        Training observations in time order
    m : int, default=12
        Seasonal period
    d : int, default=0
        Number of lag-1 differences
    D : int, default=1
        Number of lag-m differences

    Returns
    -------
    float
        Scale, or NaN when the series is too short or the scale is zero
    """
    tr = np.asarray(y_train, dtype=float).ravel()
    for _ in range(int(D)):
        if tr.size <= m:
            return float("nan")
        tr = tr[m:] - tr[:-m]
    for _ in range(int(d)):
        if tr.size <= 1:
            return float("nan")
        tr = tr[1:] - tr[:-1]
    tr = tr[np.isfinite(tr)]
    if tr.size == 0:
        return float("nan")
    scale = float(np.mean(np.abs(tr)))
    if not np.isfinite(scale) or scale <= 0.0:
        return float("nan")
    return scale


def mase_metric(y_true: ArrayLike,
                y_hat: ArrayLike,
                y_train: ArrayLike,
                m: int = 12,
                d: int = 0,
                D: int = 1) -> float:
    """
    Calculate Mean Absolute Scaled Error.

    MASE scales the out-of-sample MAE by `mase_scale` of the training series,
    making it comparable across series of different magnitude.

    Notes
    -----
    Values < 1 indicate the forecast beats the in-sample benchmark.
    """
    num = mae(y_true, y_hat)
    if not np.isfinite(num):
        return float("nan")
    scale = mase_scale(y_train, m=m, d=d, D=D)
    if not np.isfinite(scale):
        return float("nan")
    return float(num / scale)


def interval_coverage(y_true: ArrayLike, lower: ArrayLike, upper: ArrayLike) -> float:
    """Share of finite actuals that fall inside [lower, upper]."""
    yt = np.asarray(y_true, dtype=float).ravel()
    lo = np.asarray(lower, dtype=float).ravel()
    hi = np.asarray(upper, dtype=float).ravel()
    mask = np.isfinite(yt) & np.isfinite(lo) & np.isfinite(hi)
    if not np.any(mask):
        return float("nan")
    inside = (yt[mask] >= lo[mask]) & (yt[mask] <= hi[mask])
    return float(np.mean(inside))


def compute_metrics(y_true: ArrayLike,
                    y_hat: ArrayLike,
                    y_train: ArrayLike,
                    m: int = 12,
                    d: int = 0,
                    D: int = 1,
                    intervals: Optional[Mapping[int, Tuple[ArrayLike, ArrayLike]]] = None) -> Dict[str, float]:
    """
    Compute the accuracy measures reported for one forecast.

    Parameters
    ----------
    y_true, y_hat : array-like
        Actuals and point forecasts aligned by month
    y_train : array-like
        Training observations for the MASE scale
    m, d, D : int
        MASE scaling parameters (see `mase_scale`)
    intervals : mapping, optional
        level -> (lower, upper) bounds aligned with y_true

    Returns
    -------
    Dict[str, float]
        n, ME, MAE, RMSE, MAPE, MASE and coverage_<L> for each interval level
    """
    yt, _ = paired_finite(y_true, y_hat)
    res: Dict[str, float] = {
        "n": int(yt.size),
        "ME": me(y_true, y_hat),
        "MAE": mae(y_true, y_hat),
        "RMSE": rmse(y_true, y_hat),
        "MAPE": mape(y_true, y_hat),
        "MASE": mase_metric(y_true, y_hat, y_train, m=m, d=d, D=D),
    }
    for lvl, (lo, hi) in sorted((intervals or {}).items()):
        res[f"coverage_{lvl}"] = interval_coverage(y_true, lo, hi)
    return res
