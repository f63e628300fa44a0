"""Forecast accuracy evaluation per series and on aggregated series.

Two granularities are supported:
- per series: score each (key, model) forecast against that key's validation
  actuals, then optionally average the scores across keys
- aggregated: sum actuals, forecasts and training series up to a coarser
  grouping first, then score the aggregated series

MASE uses the in-sample error of the training series (seasonal naive by
default) as its scale, so scores are comparable across series.
"""

import logging
from typing import Dict, List, Optional, Sequence, Set, Tuple

import numpy as np
import pandas as pd

from retail_forecaster_src.metrics_utils import METRIC_COLUMNS, compute_metrics
from validation import PanelSchema, iter_series
from validation.panel import Key
from .aggregation import aggregate_panel, key_mask, keys_with_actuals

logger = logging.getLogger(__name__)

WEIGHTINGS = ("mean", "magnitude")


class AccuracyEvaluator:
    """
    Score forecast tables against validation actuals.

    Parameters
    ----------
    period : int, default=12
        Seasonal period of the MASE scale
    d : int, default=0
        Lag-1 differences applied to the training series for the MASE scale
    D : int, default=1
        Lag-`period` differences applied for the MASE scale
    levels : sequence of int, default=(80, 95)
        Interval levels whose coverage is reported when present in the forecasts
    schema : PanelSchema, optional
        Column layout of forecasts and panels
    """

    def __init__(self,
                 period: int = 12,
                 d: int = 0,
                 D: int = 1,
                 levels: Sequence[int] = (80, 95),
                 schema: Optional[PanelSchema] = None):
        if period < 1 or d < 0 or D < 0:
            raise ValueError(f"Invalid MASE scaling: period={period}, d={d}, D={D}")
        self.period = int(period)
        self.d = int(d)
        self.D = int(D)
        self.levels = sorted(int(lvl) for lvl in levels)
        self.schema = schema or PanelSchema()

    def _metric_kwargs(self) -> Dict[str, int]:
        return {"m": self.period, "d": self.d, "D": self.D}

    def _present_levels(self, forecasts: pd.DataFrame) -> List[int]:
        return [lvl for lvl in self.levels
                if f"lower_{lvl}" in forecasts.columns and f"upper_{lvl}" in forecasts.columns]

    def _join_actuals(self, forecasts: pd.DataFrame, validation: pd.DataFrame) -> pd.DataFrame:
        s = self.schema
        actuals = validation.loc[:, [*s.key_columns, s.time_column, s.value_column]]
        return forecasts.merge(actuals, on=[*s.key_columns, s.time_column], how="inner")

    def per_series(self,
                   forecasts: pd.DataFrame,
                   validation: pd.DataFrame,
                   training: pd.DataFrame) -> pd.DataFrame:
        """
        Accuracy of every (key, model) forecast against its actuals.

        Parameters
        ----------
        forecasts : pd.DataFrame
            Forecast table (key columns, model, month, mean, interval bounds)
        validation : pd.DataFrame
            Validation panel with actual values
        training : pd.DataFrame
            Training panel providing each key's MASE scale

        Returns
        -------
        pd.DataFrame
            One row per (key, model) with n, ME, MAE, RMSE, MAPE, MASE,
            coverage_<L> and magnitude (mean absolute training value).
            Keys without validation actuals have no rows.
        """
        s = self.schema
        levels = self._present_levels(forecasts)
        columns = [*s.key_columns, "model", "n", *METRIC_COLUMNS,
                   *[f"coverage_{lvl}" for lvl in levels], "magnitude"]

        joined = self._join_actuals(forecasts, validation)
        forecast_keys = set(zip(*[forecasts[c] for c in s.key_columns])) if not forecasts.empty else set()
        joined_keys = set(zip(*[joined[c] for c in s.key_columns])) if not joined.empty else set()
        missing = forecast_keys - joined_keys
        if missing:
            logger.info("%d forecast keys have no validation actuals and are not scored", len(missing))
        if joined.empty:
            return pd.DataFrame(columns=columns)

        train_series = {key: series for key, series in iter_series(training, s)}
        model_order = {m: i for i, m in enumerate(pd.unique(forecasts["model"]))}

        rows = []
        for (key_model, group) in joined.groupby([*s.key_columns, "model"], sort=False):
            key: Key = tuple(key_model[:-1])
            model = key_model[-1]
            group = group.sort_values(s.time_column)
            y_train = train_series.get(key)
            if y_train is None:
                y_train = pd.Series(dtype=float)
            metrics = compute_metrics(
                group[s.value_column].to_numpy(dtype=float),
                group["mean"].to_numpy(dtype=float),
                y_train.to_numpy(dtype=float),
                intervals={lvl: (group[f"lower_{lvl}"], group[f"upper_{lvl}"]) for lvl in levels},
                **self._metric_kwargs(),
            )
            row = dict(zip(s.key_columns, key))
            row["model"] = model
            row.update(metrics)
            row["magnitude"] = float(np.nanmean(np.abs(y_train.to_numpy(dtype=float)))) if len(y_train) else np.nan
            rows.append(row)

        out = pd.DataFrame(rows, columns=columns)
        out["_order"] = out["model"].map(model_order)
        out = out.sort_values([*s.key_columns, "_order"], kind="mergesort").drop(columns="_order")
        return out.reset_index(drop=True)

    def summarise(self,
                  per_series: pd.DataFrame,
                  by: Optional[Sequence[str]] = None,
                  weighting: str = "mean") -> pd.DataFrame:
        """
        Average per-series scores by model, optionally within coarser groups.

        Parameters
        ----------
        per_series : pd.DataFrame
            Output of `per_series`
        by : sequence of str, optional
            Key columns to group by in addition to model (e.g. ['state'])
        weighting : {'mean', 'magnitude'}
            Simple mean across keys, or mean weighted by each key's magnitude

        Returns
        -------
        pd.DataFrame
            Columns `by`, model, n_series and the averaged metric columns.
            Non-finite scores are left out of each average.
        """
        if weighting not in WEIGHTINGS:
            raise ValueError(f"Unknown weighting '{weighting}'. Must be one of: {list(WEIGHTINGS)}")
        by = list(by or [])
        unknown = [c for c in by if c not in self.schema.key_columns]
        if unknown:
            raise ValueError(f"Summary columns {unknown} are not key columns {list(self.schema.key_columns)}")

        metric_cols = [c for c in per_series.columns if c in METRIC_COLUMNS or c.startswith("coverage_")]
        columns = [*by, "model", "n_series", *metric_cols]
        if per_series.empty:
            return pd.DataFrame(columns=columns)

        rows = []
        for group_key, group in per_series.groupby([*by, "model"], sort=False):
            group_key = group_key if isinstance(group_key, tuple) else (group_key,)
            row = dict(zip([*by, "model"], group_key))
            row["n_series"] = int(len(group))
            weights = group["magnitude"].to_numpy(dtype=float) if weighting == "magnitude" else np.ones(len(group))
            for col in metric_cols:
                vals = group[col].to_numpy(dtype=float)
                ok = np.isfinite(vals) & np.isfinite(weights) & (weights > 0)
                row[col] = float(np.sum(vals[ok] * weights[ok]) / np.sum(weights[ok])) if ok.any() else np.nan
            rows.append(row)

        out = pd.DataFrame(rows, columns=columns)
        if by:
            out = out.sort_values(by, kind="mergesort")
        return out.reset_index(drop=True)

    def _sum_model(self,
                   forecasts: pd.DataFrame,
                   actuals: pd.DataFrame,
                   model: str,
                   by: List[str]) -> Tuple[pd.DataFrame, Set[Key]]:
        """Summed actuals and forecasts of one model, and the keys that entered the sums."""
        s = self.schema
        fc = forecasts.loc[forecasts["model"] == model, [*s.key_columns, s.time_column, "mean"]]
        fc = fc.loc[np.isfinite(fc["mean"].to_numpy(dtype=float))]
        paired = fc.merge(actuals, on=[*s.key_columns, s.time_column], how="inner")
        if paired.empty:
            logger.info("Model %s has no forecasts with validation actuals; no aggregate", model)
            return pd.DataFrame(), set()

        summed = aggregate_panel(paired, by=by, time_column=s.time_column,
                                 value_columns=[s.value_column, "mean"], key_columns=s.key_columns,
                                 require_complete=True)
        n_months = len(paired.drop_duplicates([*by, s.time_column]))
        if len(summed) < n_months:
            logger.info("Model %s: %d of %d aggregate months dropped where not every key has data",
                        model, n_months - len(summed), n_months)
        return summed, set(zip(*[paired[c] for c in s.key_columns]))

    def _actuals(self, validation: pd.DataFrame, forecasts: pd.DataFrame) -> pd.DataFrame:
        s = self.schema
        actuals = validation.loc[:, [*s.key_columns, s.time_column, s.value_column]]
        actuals = actuals.loc[np.isfinite(actuals[s.value_column].to_numpy(dtype=float))]
        missing = set(zip(*[forecasts[c] for c in s.key_columns])) - keys_with_actuals(validation, s)
        if missing:
            logger.info("%d forecast keys have no validation actuals and are left out of aggregates",
                        len(missing))
        return actuals

    def aggregated_series(self,
                          forecasts: pd.DataFrame,
                          validation: pd.DataFrame,
                          by: Sequence[str] = ("state",)) -> pd.DataFrame:
        """
        Summed actuals and point forecasts per (group, model, month).

        Only (key, month) pairs with both a finite actual and a finite forecast
        enter the sums, so a key whose series ends before the validation
        horizon is left out rather than counted as zero. Within a group, months
        where not every summed key has data are dropped, so every aggregate
        month adds up the same keys.

        Returns
        -------
        pd.DataFrame
            Columns `by`, model, month, value, mean and n_series
        """
        s = self.schema
        by = list(by)
        columns = [*by, "model", s.time_column, s.value_column, "mean", "n_series"]
        if validation.empty or forecasts.empty:
            return pd.DataFrame(columns=columns)

        actuals = self._actuals(validation, forecasts)
        frames = []
        for model in pd.unique(forecasts["model"]):
            summed, _ = self._sum_model(forecasts, actuals, model, by)
            if summed.empty:
                continue
            summed["model"] = model
            frames.append(summed.loc[:, columns])
        if not frames:
            return pd.DataFrame(columns=columns)
        return pd.concat(frames, ignore_index=True)

    def aggregated(self,
                   forecasts: pd.DataFrame,
                   validation: pd.DataFrame,
                   training: pd.DataFrame,
                   by: Sequence[str] = ("state",)) -> pd.DataFrame:
        """
        Accuracy of forecasts after summing series up to the `by` grouping.

        Actuals and forecasts are summed as in `aggregated_series`. The MASE
        scale comes from the training series of the same keys, summed over the
        months where every one of them has a value. Interval bounds are not
        aggregated.

        Returns
        -------
        pd.DataFrame
            One row per (group, model) with n_series, n and the metric columns
        """
        s = self.schema
        by = list(by)
        columns = [*by, "model", "n_series", "n", *METRIC_COLUMNS]
        if validation.empty or forecasts.empty:
            return pd.DataFrame(columns=columns)

        actuals = self._actuals(validation, forecasts)
        rows = []
        for model in pd.unique(forecasts["model"]):
            summed, keys = self._sum_model(forecasts, actuals, model, by)
            if summed.empty:
                continue
            history = aggregate_panel(training.loc[key_mask(training, s.key_columns, keys)],
                                      by=by, time_column=s.time_column, value_columns=[s.value_column],
                                      key_columns=s.key_columns, require_complete=True)

            group_iter = summed.groupby(by, sort=True) if by else [((), summed)]
            for group_key, group in group_iter:
                group_key = group_key if isinstance(group_key, tuple) else (group_key,)
                group = group.sort_values(s.time_column)
                if by:
                    hist = history.loc[(history[by] == pd.Series(group_key, index=by)).all(axis=1)]
                else:
                    hist = history
                hist = hist.sort_values(s.time_column)
                metrics = compute_metrics(
                    group[s.value_column].to_numpy(dtype=float),
                    group["mean"].to_numpy(dtype=float),
                    hist[s.value_column].to_numpy(dtype=float),
                    **self._metric_kwargs(),
                )
                row = dict(zip(by, group_key))
                row["model"] = model
                row["n_series"] = int(group["n_series"].max())
                row.update({k: metrics[k] for k in ["n", *METRIC_COLUMNS]})
                rows.append(row)

        out = pd.DataFrame(rows, columns=columns)
        if by and not out.empty:
            out = out.sort_values(by, kind="mergesort")
        return out.reset_index(drop=True)
