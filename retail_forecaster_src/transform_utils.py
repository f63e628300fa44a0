# retail_forecaster_src/transform_utils.py

import numpy as np
import pandas as pd
from typing import Iterable, Union
import logging

logger = logging.getLogger(__name__)

VALID_TRANSFORMS = ("none", "log")


def validate_transform(transform: str) -> str:
    """
    Validate a model-menu transform name.

    Raises
    ------
    ValueError
        If the transform is not supported
    """
    if transform not in VALID_TRANSFORMS:
        raise ValueError(f"Invalid transform '{transform}'. Must be one of: {list(VALID_TRANSFORMS)}")
    return transform


def apply_transform(values: Union[np.ndarray, pd.Series], transform: str) -> np.ndarray:
    """
    Map a training series onto the scale a model is fitted on.

    Parameters
    ----------
    values : array-like
        Observations on the original scale
    transform : str
        'none' (identity) or 'log' (natural log)

    Returns
    -------
    np.ndarray
        Transformed observations as float array

    Raises
    ------
    ValueError
        If a log transform is requested for a series with non-positive values
    """
    arr = np.asarray(values, dtype=float)
    validate_transform(transform)
    if transform == "none":
        return arr
    if np.any(arr[np.isfinite(arr)] <= 0):
        raise ValueError("log transform requires strictly positive values")
    return np.log(arr)


def back_transform_forecast(frame: pd.DataFrame,
                            transform: str,
                            levels: Iterable[int],
                            bias_adjust: bool = True) -> pd.DataFrame:
    """
    Return a forecast frame on the original scale of the data.

    The input carries `mean`, `se` and `lower_<L>`/`upper_<L>` columns on the
    fitted scale. For the log transform the interval bounds are mapped through
    exp directly, since quantiles survive a monotone transform. The point
    forecast is the median exp(mu) unless `bias_adjust` is set, in which case
    the mean is approximated by exp(mu) * (1 + se**2 / 2).

    Parameters
    ----------
    frame : pd.DataFrame
        Forecast on the transformed scale
    transform : str
        Transform the model was fitted under
    levels : iterable of int
        Interval levels present in the frame
    bias_adjust : bool, default=True
        Apply the mean correction to the back-transformed point forecast

    Returns
    -------
    pd.DataFrame
        Copy of the frame with mean and bounds on the original scale
    """
    validate_transform(transform)
    out = frame.copy()
    if transform == "none":
        return out

    mu = out["mean"].to_numpy(dtype=float)
    point = np.exp(mu)
    if bias_adjust:
        sigma2 = np.square(out["se"].to_numpy(dtype=float))
        point = point * (1.0 + sigma2 / 2.0)
    out["mean"] = point
    for lvl in levels:
        out[f"lower_{lvl}"] = np.exp(out[f"lower_{lvl}"].to_numpy(dtype=float))
        out[f"upper_{lvl}"] = np.exp(out[f"upper_{lvl}"].to_numpy(dtype=float))
    return out


def safe_adf_pval(series: Union[np.ndarray, pd.Series]) -> float:
    """
    Safely compute ADF test p-value with error handling.

    Returns NaN when fewer than 12 finite observations remain or the test
    cannot be computed (e.g. a constant series).
    """
    from statsmodels.tsa.stattools import adfuller

    s = pd.Series(np.asarray(series, dtype=float)).dropna()
    if len(s) < 12 or float(s.std()) == 0.0:
        return float("nan")
    try:
        return float(adfuller(s)[1])
    except (ValueError, np.linalg.LinAlgError) as e:
        logger.debug("ADF test failed: %s", e)
        return float("nan")


def adf_select_d(series: Union[np.ndarray, pd.Series], alpha: float = 0.05) -> int:
    """
    Select non-seasonal differencing order using ADF test heuristic.

    If the level series is stationary (p < alpha) then d=0, else d=1.
    """
    p_level = safe_adf_pval(series)
    if np.isfinite(p_level) and p_level < alpha:
        return 0
    return 1


def adf_select_D(series: Union[np.ndarray, pd.Series], s: int = 12, alpha: float = 0.05) -> int:
    """
    Select seasonal differencing order using ADF test heuristic.

    One seasonal difference is chosen when the level series looks
    non-stationary but its lag-s difference is stationary; else D=0. Series
    shorter than two full seasons never get a seasonal difference.
    """
    arr = pd.Series(np.asarray(series, dtype=float))
    if len(arr.dropna()) < 2 * s:
        return 0
    p_level = safe_adf_pval(arr)
    p_seasonal = safe_adf_pval(arr.diff(s))

    if (not np.isfinite(p_level) or p_level >= alpha) and np.isfinite(p_seasonal) and p_seasonal < alpha:
        return 1
    return 0
