"""
Forecaster: turn a TrainingResult into a forecast table.

For each fitted (key, model) pair the forecaster produces point forecasts and
interval bounds on the months it is asked about, normally the key's own
validation months. Forecasts are counted in steps from the key's last training
month, so a key whose validation data starts late still gets forecasts for the
right months.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

import pandas as pd

from helpers.temporal import horizon_periods, months_between, to_monthly_periods
from validation import PanelSchema
from validation.panel import Key, as_key
from .trainer import TrainingResult

logger = logging.getLogger(__name__)


class ForecastError(Exception):
    """Raised when a forecast cannot be produced for a (key, model) pair."""
    pass


class ModelUnavailableError(ForecastError):
    """Raised when no fitted model exists for the requested (key, model) pair."""
    pass


@dataclass
class ForecastResult:
    """Forecast table plus the pairs that could not be forecast."""

    table: pd.DataFrame
    failures: pd.DataFrame = field(default_factory=pd.DataFrame)

    def for_model(self, model: str) -> pd.DataFrame:
        return self.table.loc[self.table["model"] == model].reset_index(drop=True)


class Forecaster:
    """
    Forecast every fitted model of a training run.

    Parameters
    ----------
    levels : sequence of int, default=(80, 95)
        Prediction interval levels in percent
    bias_adjust : bool, default=True
        Mean-correct back-transformed point forecasts of log-scale models
    schema : PanelSchema, optional
        Column layout used for key columns and month in the output
    """

    def __init__(self,
                 levels: Sequence[int] = (80, 95),
                 bias_adjust: bool = True,
                 schema: Optional[PanelSchema] = None):
        self.levels = sorted({int(lvl) for lvl in levels})
        if any(not 0 < lvl < 100 for lvl in self.levels):
            raise ValueError(f"Interval levels must lie strictly between 0 and 100, got {list(levels)}")
        self.bias_adjust = bias_adjust
        self.schema = schema or PanelSchema()

    @property
    def value_columns(self) -> List[str]:
        cols = ["mean"]
        cols += [f"lower_{lvl}" for lvl in self.levels]
        cols += [f"upper_{lvl}" for lvl in self.levels]
        return cols

    @property
    def columns(self) -> List[str]:
        return [*self.schema.key_columns, "model", self.schema.time_column, *self.value_columns]

    def forecast_pair(self,
                      training: TrainingResult,
                      key: Key,
                      model_name: str,
                      timestamps: Optional[Iterable] = None,
                      horizon: Optional[int] = None) -> pd.DataFrame:
        """
        Forecast one (key, model) pair.

        Parameters
        ----------
        training : TrainingResult
            Output of ManyModelsTrainer.train
        key : tuple
            Series key
        model_name : str
            Menu name of the model
        timestamps : iterable of months, optional
            Months to forecast; all must lie after the training end
        horizon : int, optional
            Used when timestamps is None: forecast this many months after the
            training end

        Returns
        -------
        pd.DataFrame
            One row per requested month, columns as `Forecaster.columns`

        Raises
        ------
        ModelUnavailableError
            If the pair was not fitted (failed or never trained)
        ForecastError
            If no months were requested or a month is not after the training end
        """
        key = as_key(key)
        fitted = training.fitted(key, model_name)
        if fitted is None:
            record = training.get(key, model_name)
            reason = record.error if record is not None else "not trained"
            raise ModelUnavailableError(f"No fitted model '{model_name}' for {key}: {reason}")

        if timestamps is not None:
            months = pd.PeriodIndex(sorted(set(to_monthly_periods(timestamps))), freq="M")
        elif horizon is not None:
            months = horizon_periods(fitted.train_end, horizon)
        else:
            raise ForecastError("Either timestamps or horizon is required")
        if len(months) == 0:
            raise ForecastError(f"No months requested for {key} / {model_name}")
        if months[0] <= fitted.train_end:
            raise ForecastError(
                f"Requested month {months[0]} is not after the training end {fitted.train_end} for {key}"
            )

        steps = months_between(fitted.train_end, months[-1])
        fc = fitted.forecast(steps, levels=self.levels, bias_adjust=self.bias_adjust)
        fc = fc.loc[fc["month"].isin(months)].reset_index(drop=True)

        out = pd.DataFrame({col: [val] * len(fc) for col, val in zip(self.schema.key_columns, key)})
        out["model"] = model_name
        out[self.schema.time_column] = fc["month"].array
        for col in self.value_columns:
            out[col] = fc[col].to_numpy(dtype=float)
        return out

    def forecast(self,
                 training: TrainingResult,
                 validation: Optional[pd.DataFrame] = None,
                 horizon: Optional[int] = None) -> ForecastResult:
        """
        Forecast every (key, model) pair of a training run.

        With a validation panel, each key is forecast on exactly its own
        validation months; keys without validation rows are skipped. Without
        one, each key is forecast `horizon` months past its training end.

        Returns
        -------
        ForecastResult
            `table` sorted by key, menu order and month; `failures` lists
            pairs that could not be forecast with the reason
        """
        if validation is None and horizon is None:
            raise ValueError("Provide a validation panel or a forecast horizon")

        requests: Dict[Key, Optional[pd.PeriodIndex]] = {}
        if validation is not None:
            time_col = self.schema.time_column
            if not validation.empty:
                grouped = validation.groupby(list(self.schema.key_columns), sort=True)[time_col]
                for key, months in grouped:
                    requests[as_key(key)] = pd.PeriodIndex(to_monthly_periods(months), freq="M")
            skipped = [k for k in training.keys if k not in requests]
            if skipped:
                logger.info("%d keys have no validation months and are not forecast", len(skipped))
        else:
            requests = {key: None for key in training.keys}

        frames: List[pd.DataFrame] = []
        failures = []
        for key in sorted(requests):
            for name in training.model_names:
                try:
                    frames.append(self.forecast_pair(training, key, name,
                                                     timestamps=requests[key], horizon=horizon))
                except Exception as e:
                    failures.append({**dict(zip(self.schema.key_columns, key)), "model": name,
                                     "error_type": type(e).__name__, "error": str(e)})

        order = {name: i for i, name in enumerate(training.model_names)}
        if frames:
            table = pd.concat(frames, ignore_index=True)
            table = table.sort_values(
                [*self.schema.key_columns, "model", self.schema.time_column],
                key=lambda s: s.map(order) if s.name == "model" else s,
                kind="mergesort",
            ).reset_index(drop=True)
        else:
            table = pd.DataFrame(columns=self.columns)

        failure_frame = pd.DataFrame(failures,
                                     columns=[*self.schema.key_columns, "model", "error_type", "error"])
        for row in failures:
            logger.warning("Forecast failed for %s / %s: %s: %s", tuple(row[c] for c in self.schema.key_columns),
                           row["model"], row["error_type"], row["error"])
        logger.info("Forecast %d rows for %d pairs; %d pairs failed",
                    len(table), len(frames), len(failures))
        return ForecastResult(table=table, failures=failure_frame)
