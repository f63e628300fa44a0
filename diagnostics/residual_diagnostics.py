"""Residual diagnostics for fitted many-models pairs.

For every fitted (key, model) pair the one-step in-sample residuals are
tested for remaining serial correlation with the Ljung-Box test. A small
p-value means the model leaves autocorrelation on the table.

Features:
- Ljung-Box statistic and p-value at a configurable lag, capped by length
- Residual mean and standard deviation
- Table output aligned with the fit status table
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
from statsmodels.stats.diagnostic import acorr_ljungbox

from validation import PanelSchema

logger = logging.getLogger(__name__)


@dataclass
class LjungBoxResult:
    """Ljung-Box test outcome for one residual series."""

    lag: int
    statistic: float
    p_value: float
    significance_level: float = 0.05

    @property
    def is_significant(self) -> bool:
        """True when the test rejects 'no serial correlation'."""
        return bool(np.isfinite(self.p_value) and self.p_value < self.significance_level)

    @property
    def interpretation(self) -> str:
        if self.is_significant:
            return "Serial correlation detected in residuals"
        return "No significant serial correlation in residuals"


def ljung_box_test(residuals: np.ndarray, lags: int = 24, significance_level: float = 0.05) -> Optional[LjungBoxResult]:
    """Ljung-Box test for serial correlation in residuals.

    Parameters
    ----------
    residuals : array-like
        Model residuals; non-finite values are dropped
    lags : int, default 24
        Lag to test; capped at len(residuals) // 2
    significance_level : float, default 0.05
        Level used by `is_significant`

    Returns
    -------
    LjungBoxResult or None
        None when fewer than 4 finite residuals remain
    """
    resid = np.asarray(residuals, dtype=float)
    resid = resid[np.isfinite(resid)]
    lag = min(int(lags), len(resid) // 2)
    if len(resid) < 4 or lag < 1:
        return None
    if float(np.std(resid)) == 0.0:
        return LjungBoxResult(lag=lag, statistic=float("nan"), p_value=float("nan"),
                              significance_level=significance_level)

    lb_result = acorr_ljungbox(resid, lags=[lag], return_df=True)
    return LjungBoxResult(
        lag=lag,
        statistic=float(lb_result["lb_stat"].iloc[-1]),
        p_value=float(lb_result["lb_pvalue"].iloc[-1]),
        significance_level=significance_level,
    )


class ResidualDiagnostics:
    """Residual checks over every fitted pair of a training run."""

    def __init__(self, lags: int = 24, significance_level: float = 0.05,
                 schema: Optional[PanelSchema] = None):
        """Initialize residual diagnostics.

        Parameters
        ----------
        lags : int, default 24
            Ljung-Box lag (two years of monthly data)
        significance_level : float, default 0.05
            Significance level for the test
        schema : PanelSchema, optional
            Column layout used for key columns in the output
        """
        self.lags = lags
        self.significance_level = significance_level
        self.schema = schema or PanelSchema()

    @classmethod
    def from_config(cls, config_manager=None, schema: Optional[PanelSchema] = None) -> 'ResidualDiagnostics':
        """Create diagnostics from the `diagnostics` configuration section."""
        if config_manager is None:
            return cls(schema=schema)
        diag = config_manager.get_diagnostics_config()
        return cls(
            lags=int(diag.get('ljung_box_lag', 24)),
            significance_level=float(diag.get('significance_level', 0.05)),
            schema=schema,
        )

    def run(self, training) -> pd.DataFrame:
        """Test the residuals of every fitted pair.

        Parameters
        ----------
        training : TrainingResult
            Output of ManyModelsTrainer.train

        Returns
        -------
        pd.DataFrame
            Key columns, model, n_resid, resid_mean, resid_std, lb_lag,
            lb_stat, lb_pvalue and autocorrelated (bool)
        """
        key_cols = list(self.schema.key_columns)
        rows: List[Dict[str, Any]] = []
        for record in training.successes():
            resid = record.fitted.residuals()
            finite = resid[np.isfinite(resid)]
            lb = ljung_box_test(finite, lags=self.lags, significance_level=self.significance_level)
            row = dict(zip(key_cols, record.key))
            row.update(
                model=record.model,
                n_resid=int(len(finite)),
                resid_mean=float(np.mean(finite)) if len(finite) else np.nan,
                resid_std=float(np.std(finite, ddof=1)) if len(finite) > 1 else np.nan,
                lb_lag=lb.lag if lb else np.nan,
                lb_stat=lb.statistic if lb else np.nan,
                lb_pvalue=lb.p_value if lb else np.nan,
                autocorrelated=lb.is_significant if lb else False,
            )
            rows.append(row)

        columns = [*key_cols, "model", "n_resid", "resid_mean", "resid_std",
                   "lb_lag", "lb_stat", "lb_pvalue", "autocorrelated"]
        out = pd.DataFrame(rows, columns=columns)
        if not out.empty:
            out = out.sort_values([*key_cols, "model"], kind="mergesort").reset_index(drop=True)
            n_flag = int(out["autocorrelated"].sum())
            logger.info("Residual diagnostics: %d of %d fitted models show serial correlation at lag %d",
                        n_flag, len(out), self.lags)
        return out


def run_residual_diagnostics(training, lags: int = 24, schema: Optional[PanelSchema] = None) -> pd.DataFrame:
    """Convenience wrapper around ResidualDiagnostics.run."""
    return ResidualDiagnostics(lags=lags, schema=schema).run(training)
