"""
Fitted models for the many-models trainer.

One FittedModel subclass per model family. Each instance owns the state
estimated for one (key, specification) pair and can forecast any number of
months past the end of its training slice, with normal prediction intervals,
back-transformed to the scale of the data.

Families
--------
- drift: random walk with drift
- seasonal_drift: seasonal naive with drift
- arima: seasonal ARIMA chosen by AIC over an order grid (statsmodels SARIMAX)
- ets: exponential smoothing state space model (statsmodels ETSModel)
"""

import logging
from abc import ABC, abstractmethod
from itertools import product
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import stats
from statsmodels.tsa.exponential_smoothing.ets import ETSModel
from statsmodels.tsa.statespace.sarimax import SARIMAX

from retail_forecaster_src.parsing_utils import parse_range_arg
from retail_forecaster_src.transform_utils import (
    adf_select_D,
    adf_select_d,
    apply_transform,
    back_transform_forecast,
)
from .specs import ModelSpec, register_family

logger = logging.getLogger(__name__)


def z_value(level: float) -> float:
    """Two-sided standard normal quantile for a percentage interval level."""
    return float(stats.norm.ppf(0.5 + float(level) / 200.0))


def normal_bounds(mean: np.ndarray, se: np.ndarray, levels: Iterable[int]) -> Dict[str, np.ndarray]:
    """lower_<L>/upper_<L> arrays of mean +/- z * se for each level."""
    out: Dict[str, np.ndarray] = {}
    for lvl in levels:
        z = z_value(lvl)
        out[f"lower_{lvl}"] = mean - z * se
        out[f"upper_{lvl}"] = mean + z * se
    return out


def _check_keys(params: Dict[str, Any], allowed: Sequence[str]) -> None:
    unknown = sorted(set(params) - set(allowed))
    if unknown:
        raise ValueError(f"unsupported parameters {unknown}; allowed: {sorted(allowed)}")


class FittedModel(ABC):
    """
    Estimated model for one key's training slice.

    Subclasses implement `_fit`, `_forecast_transformed` and `_residuals` on
    the transformed scale; this base class handles input checks, the
    transform and the back-transform.

    Attributes
    ----------
    spec : ModelSpec
        Specification the model was fitted from
    key : tuple
        Series key
    train_start, train_end : pd.Period
        First and last training month
    n_obs : int
        Number of training observations
    """

    family: str = ""

    def __init__(self, spec: ModelSpec, key: Tuple, periods: pd.PeriodIndex, y: np.ndarray):
        self.spec = spec
        self.key = key
        self.train_start = periods[0]
        self.train_end = periods[-1]
        self.n_obs = int(len(y))
        self.y = y

    @classmethod
    def validate_params(cls, params: Dict[str, Any]) -> None:
        """Raise ValueError when params are not usable for this family."""
        _check_keys(params, ())

    @classmethod
    def min_obs(cls, params: Dict[str, Any]) -> int:
        return 2

    @classmethod
    def fit(cls, spec: ModelSpec, key: Tuple, series: pd.Series) -> 'FittedModel':
        """
        Fit the family to one key's training series.

        Parameters
        ----------
        spec : ModelSpec
            Model specification (its family must be this class's family)
        key : tuple
            Series key, kept for reporting
        series : pd.Series
            Training values indexed by a monthly PeriodIndex

        Raises
        ------
        ValueError
            If the series is too short, has gaps, or cannot be transformed
        """
        series = series.sort_index()
        if series.empty:
            raise ValueError("no training observations")
        periods = pd.period_range(series.index[0], series.index[-1], freq="M")
        full = series.reindex(periods)
        n_missing = int(full.isna().sum())
        if n_missing:
            raise ValueError(f"training series has {n_missing} missing months")
        needed = cls.min_obs(spec.params)
        if len(full) < needed:
            raise ValueError(f"{cls.family} needs at least {needed} observations, got {len(full)}")

        y = apply_transform(full.to_numpy(dtype=float), spec.transform)
        model = cls(spec, key, periods, y)
        model._fit(y)
        return model

    @abstractmethod
    def _fit(self, y: np.ndarray) -> None:
        ...

    @abstractmethod
    def _forecast_transformed(self, steps: int, levels: Sequence[int]) -> pd.DataFrame:
        """Forecast on the fitted scale: columns mean, se, lower_<L>, upper_<L>."""
        ...

    @abstractmethod
    def _residuals(self) -> np.ndarray:
        ...

    def forecast(self, steps: int, levels: Sequence[int] = (80, 95), bias_adjust: bool = True) -> pd.DataFrame:
        """
        Forecast the `steps` months after the training end.

        Returns
        -------
        pd.DataFrame
            Columns step, month, mean, lower_<L>, upper_<L> on the data scale
        """
        steps = int(steps)
        if steps < 1:
            raise ValueError(f"steps must be positive, got {steps}")
        levels = list(levels)
        raw = self._forecast_transformed(steps, levels)
        out = back_transform_forecast(raw, self.spec.transform, levels, bias_adjust=bias_adjust)
        out = out.drop(columns=["se"])
        out.insert(0, "month", pd.period_range(self.train_end + 1, periods=steps, freq="M"))
        out.insert(0, "step", np.arange(1, steps + 1))
        return out.reset_index(drop=True)

    def residuals(self) -> np.ndarray:
        """One-step in-sample residuals on the fitted (transformed) scale."""
        return np.asarray(self._residuals(), dtype=float)

    def describe(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "model": self.spec.name,
            "family": self.family,
            "transform": self.spec.transform,
            "n_obs": self.n_obs,
            "train_start": str(self.train_start),
            "train_end": str(self.train_end),
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(key={self.key!r}, model={self.spec.name!r}, n_obs={self.n_obs})"


@register_family("drift")
class DriftModel(FittedModel):
    """Random walk with drift: y_T + h * b, b the average one-step change."""

    def _fit(self, y: np.ndarray) -> None:
        T = len(y)
        self.last = float(y[-1])
        self.slope = float((y[-1] - y[0]) / (T - 1))
        self._resid = np.diff(y) - self.slope
        # one parameter estimated from T - 1 differences
        self.sigma = float(np.sqrt(np.sum(self._resid ** 2) / (T - 2))) if T > 2 else 0.0

    def _forecast_transformed(self, steps: int, levels: Sequence[int]) -> pd.DataFrame:
        h = np.arange(1, steps + 1, dtype=float)
        mean = self.last + h * self.slope
        se = self.sigma * np.sqrt(h * (1.0 + h / (self.n_obs - 1)))
        return pd.DataFrame({"mean": mean, "se": se, **normal_bounds(mean, se, levels)})

    def _residuals(self) -> np.ndarray:
        return self._resid

    def describe(self) -> Dict[str, Any]:
        info = super().describe()
        info.update(slope=self.slope, sigma=self.sigma)
        return info


@register_family("seasonal_drift")
class SeasonalDriftModel(FittedModel):
    """
    Seasonal naive with drift.

    Forecasts repeat the value from the same month of the last observed
    season, shifted by k times the average seasonal change, where k counts
    how many seasons ahead the target month is.
    """

    @classmethod
    def validate_params(cls, params: Dict[str, Any]) -> None:
        _check_keys(params, ("period",))
        period = params.get("period", 12)
        if not isinstance(period, int) or period < 1:
            raise ValueError(f"period must be a positive integer, got {period!r}")

    @classmethod
    def min_obs(cls, params: Dict[str, Any]) -> int:
        return int(params.get("period", 12)) + 2

    def _fit(self, y: np.ndarray) -> None:
        self.period = int(self.spec.params.get("period", 12))
        m = self.period
        diffs = y[m:] - y[:-m]
        self.n_diffs = int(len(diffs))
        self.slope = float(np.mean(diffs))
        self._resid = diffs - self.slope
        self.sigma = float(np.sqrt(np.sum(self._resid ** 2) / (self.n_diffs - 1)))

    def _forecast_transformed(self, steps: int, levels: Sequence[int]) -> pd.DataFrame:
        m = self.period
        T = self.n_obs
        h = np.arange(1, steps + 1)
        k = (h - 1) // m + 1
        base = self.y[T + h - m * k - 1]
        mean = base + k * self.slope
        se = self.sigma * np.sqrt(k * (1.0 + k / self.n_diffs))
        return pd.DataFrame({"mean": mean, "se": se, **normal_bounds(mean, se, levels)})

    def _residuals(self) -> np.ndarray:
        return self._resid

    def describe(self) -> Dict[str, Any]:
        info = super().describe()
        info.update(period=self.period, slope=self.slope, sigma=self.sigma)
        return info


@register_family("arima")
class ArimaModel(FittedModel):
    """
    Seasonal ARIMA selected by AIC.

    Every (p, q, P, Q) in the configured ranges is fitted with SARIMAX and the
    lowest AIC wins. Differencing orders are fixed in the params or chosen by
    an ADF heuristic ('auto'). A constant is included only when the model is
    not differenced. Seasonal terms are dropped for series shorter than two
    full seasons beyond the differencing.
    """

    _ALLOWED = ("p_range", "q_range", "P_range", "Q_range", "d", "D", "s")

    @classmethod
    def validate_params(cls, params: Dict[str, Any]) -> None:
        _check_keys(params, cls._ALLOWED)
        for name in ("p_range", "q_range", "P_range", "Q_range"):
            if name in params:
                parse_range_arg(params[name])
        for name in ("d", "D"):
            value = params.get(name, "auto")
            if value != "auto" and not (isinstance(value, int) and 0 <= value <= 2):
                raise ValueError(f"{name} must be 'auto' or an integer in 0..2, got {value!r}")
        s = params.get("s", 12)
        if not isinstance(s, int) or s < 1:
            raise ValueError(f"s must be a positive integer, got {s!r}")

    @classmethod
    def min_obs(cls, params: Dict[str, Any]) -> int:
        return 8

    def _fit(self, y: np.ndarray) -> None:
        params = self.spec.params
        s = int(params.get("s", 12))
        self.result = None
        if np.ptp(y) == 0.0:
            # SARIMAX cannot estimate a zero innovation variance
            logger.debug("%s %s: constant series, forecasting its level", self.key, self.spec.name)
            self.d, self.D, self.s = 0, 0, 0
            self.order, self.seasonal_order = (0, 0, 0), (0, 0, 0, 0)
            self.aic = np.nan
            self.n_candidates = 0
            return

        d = params.get("d", "auto")
        d = adf_select_d(y) if d == "auto" else int(d)
        D = params.get("D", "auto")
        D = adf_select_D(y, s=s) if D == "auto" else int(D)

        pL = parse_range_arg(params.get("p_range"), default="0-2")
        qL = parse_range_arg(params.get("q_range"), default="0-2")
        PL = parse_range_arg(params.get("P_range"), default="0-1")
        QL = parse_range_arg(params.get("Q_range"), default="0-1")

        seasonal = s > 1 and len(y) - d - D * s >= 2 * s
        if not seasonal:
            if D or max(PL) or max(QL):
                logger.debug("%s %s: series too short for seasonal terms, using non-seasonal grid",
                             self.key, self.spec.name)
            PL, QL, D = [0], [0], 0

        self.d, self.D, self.s = d, D, (s if seasonal else 0)
        trend = "c" if d + D == 0 else "n"

        best = None
        best_aic = np.inf
        tried = 0
        for p, q, P, Q in product(pL, qL, PL, QL):
            tried += 1
            # no seasonal terms at all means no seasonal period
            seasonal_order = (P, D, Q, self.s if (P or D or Q) else 0)
            try:
                res = SARIMAX(
                    y,
                    order=(p, d, q),
                    seasonal_order=seasonal_order,
                    trend=trend,
                    simple_differencing=False,
                ).fit(disp=False)
            except Exception as e:
                # keep the search going; a single bad order is not a failed fit
                logger.debug("SARIMAX(%d,%d,%d)%s failed: %s", p, d, q, seasonal_order, e)
                continue
            aic = float(getattr(res, "aic", np.nan))
            if np.isfinite(aic) and aic < best_aic:
                best, best_aic = res, aic
                self.order = (p, d, q)
                self.seasonal_order = seasonal_order

        if best is None:
            raise ValueError(f"no ARIMA candidate could be fit ({tried} tried)")
        self.result = best
        self.aic = best_aic
        self.n_candidates = tried

    def _forecast_transformed(self, steps: int, levels: Sequence[int]) -> pd.DataFrame:
        if self.result is None:
            mean = np.full(steps, self.y[-1])
            se = np.zeros(steps)
            return pd.DataFrame({"mean": mean, "se": se, **normal_bounds(mean, se, levels)})
        fc = self.result.get_forecast(steps=steps)
        mean = np.asarray(fc.predicted_mean, dtype=float)
        se = np.asarray(fc.se_mean, dtype=float)
        return pd.DataFrame({"mean": mean, "se": se, **normal_bounds(mean, se, levels)})

    def _residuals(self) -> np.ndarray:
        if self.result is None:
            return np.zeros(len(self.y))
        burn = self.d + self.D * self.s
        return np.asarray(self.result.resid, dtype=float)[burn:]

    def describe(self) -> Dict[str, Any]:
        info = super().describe()
        info.update(order=str(self.order), seasonal_order=str(self.seasonal_order), aic=self.aic)
        return info


def _none_if_blank(value: Any) -> Optional[str]:
    if value is None or (isinstance(value, str) and value.lower() in ("", "none", "n")):
        return None
    return value


def _info_criterion(res) -> float:
    """Prefer AICc when available; fall back to AIC."""
    aicc = getattr(res, "aicc", None)
    if aicc is not None and np.isfinite(aicc):
        return float(aicc)
    aic = getattr(res, "aic", None)
    if aic is not None and np.isfinite(aic):
        return float(aic)
    return np.inf


@register_family("ets")
class EtsModel(FittedModel):
    """
    Exponential smoothing (error, trend, seasonal) state space model.

    With `auto: true` every admissible combination of additive/multiplicative
    error, none/additive/damped-additive trend and none/additive/multiplicative
    seasonality is fitted and the lowest AICc kept. Multiplicative components
    are only tried on strictly positive data and seasonal components only with
    at least two full seasons. Otherwise the configured components are fitted
    as given.
    """

    _ALLOWED = ("auto", "error", "trend", "damped_trend", "seasonal", "seasonal_periods")

    @classmethod
    def validate_params(cls, params: Dict[str, Any]) -> None:
        _check_keys(params, cls._ALLOWED)
        if params.get("error", "add") not in ("add", "mul"):
            raise ValueError(f"error must be 'add' or 'mul', got {params.get('error')!r}")
        for name in ("trend", "seasonal"):
            value = _none_if_blank(params.get(name))
            if value not in (None, "add", "mul"):
                raise ValueError(f"{name} must be None, 'add' or 'mul', got {value!r}")
        m = params.get("seasonal_periods", 12)
        if not isinstance(m, int) or m < 1:
            raise ValueError(f"seasonal_periods must be a positive integer, got {m!r}")

    @classmethod
    def min_obs(cls, params: Dict[str, Any]) -> int:
        return 8

    def _candidates(self, y: np.ndarray, m: int) -> List[Dict[str, Any]]:
        params = self.spec.params
        positive = bool(np.all(y > 0))
        seasonal_ok = m > 1 and len(y) >= 2 * m

        if not params.get("auto", False):
            spec = {
                "error": params.get("error", "add"),
                "trend": _none_if_blank(params.get("trend")),
                "seasonal": _none_if_blank(params.get("seasonal")),
            }
            spec["damped_trend"] = bool(params.get("damped_trend", False)) and spec["trend"] is not None
            if not positive and "mul" in (spec["error"], spec["trend"], spec["seasonal"]):
                raise ValueError("multiplicative ETS components require strictly positive data")
            if spec["seasonal"] is not None and not seasonal_ok:
                raise ValueError(f"seasonal ETS needs at least {2 * m} observations, got {len(y)}")
            return [spec]

        errors = ["add", "mul"] if positive else ["add"]
        trends = [(None, False), ("add", False), ("add", True)]
        seasonals: List[Optional[str]] = [None]
        if seasonal_ok:
            seasonals += ["add", "mul"] if positive else ["add"]
        return [
            {"error": e, "trend": t, "damped_trend": damped, "seasonal": sea}
            for e, (t, damped), sea in product(errors, trends, seasonals)
        ]

    def _fit(self, y: np.ndarray) -> None:
        m = int(self.spec.params.get("seasonal_periods", 12))
        candidates = self._candidates(y, m)

        best = None
        best_score = np.inf
        last_error: Optional[Exception] = None
        for cand in candidates:
            try:
                res = ETSModel(
                    y,
                    error=cand["error"],
                    trend=cand["trend"],
                    damped_trend=cand["damped_trend"],
                    seasonal=cand["seasonal"],
                    seasonal_periods=m if cand["seasonal"] is not None else None,
                    initialization_method="estimated",
                ).fit(disp=False)
            except Exception as e:
                logger.debug("ETSModel %s failed for %s: %s", cand, self.key, e)
                last_error = e
                continue
            score = _info_criterion(res)
            if score < best_score:
                best, best_score = res, score
                self.components = cand

        if best is None:
            raise ValueError(f"no ETS candidate could be fit: {last_error}")
        self.result = best
        self.aicc = best_score
        self.seasonal_periods = m

    def _forecast_transformed(self, steps: int, levels: Sequence[int]) -> pd.DataFrame:
        n = self.n_obs
        pred = self.result.get_prediction(start=n, end=n + steps - 1, random_state=0)
        mean = np.asarray(pred.predicted_mean, dtype=float)
        se = np.sqrt(np.asarray(pred.var_pred_mean, dtype=float))
        out = pd.DataFrame({"mean": mean, "se": se})
        for lvl in levels:
            frame = pred.summary_frame(alpha=1.0 - lvl / 100.0)
            out[f"lower_{lvl}"] = frame["pi_lower"].to_numpy(dtype=float)
            out[f"upper_{lvl}"] = frame["pi_upper"].to_numpy(dtype=float)
        return out

    def _residuals(self) -> np.ndarray:
        return self.y - np.asarray(self.result.fittedvalues, dtype=float)

    def describe(self) -> Dict[str, Any]:
        info = super().describe()
        c = self.components
        damped = "d" if c["damped_trend"] else ""
        label = "ETS({},{}{},{})".format(
            "A" if c["error"] == "add" else "M",
            {None: "N", "add": "A", "mul": "M"}[c["trend"]], damped,
            {None: "N", "add": "A", "mul": "M"}[c["seasonal"]],
        )
        info.update(components=label, aicc=self.aicc)
        return info
