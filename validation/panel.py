"""Panel schema and structural validation for the many-models pipeline.

This module describes the long-format panel the pipeline consumes (one row per
key x month observation) and checks the invariants every downstream stage
relies on.

Features:
- PanelSchema describing key, time and value columns
- Structured validation result reporting with severities
- Per-key uniqueness of monthly timestamps
- Normalisation to monthly Periods, float values and sorted rows
- Iteration over per-key series
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

import numpy as np
import pandas as pd

from helpers.temporal import to_monthly_periods

logger = logging.getLogger(__name__)

Key = Tuple[Any, ...]


class ValidationSeverity(Enum):
    """Validation issue severity levels."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass
class ValidationIssue:
    """Individual validation issue."""
    severity: ValidationSeverity
    message: str
    component: str
    details: Optional[Dict[str, Any]] = None


@dataclass
class ValidationResult:
    """Complete validation result with all issues and metrics."""
    is_valid: bool
    issues: List[ValidationIssue]
    metrics: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_errors(self) -> bool:
        """Check if result has any errors or critical issues."""
        return any(issue.severity in [ValidationSeverity.ERROR, ValidationSeverity.CRITICAL]
                   for issue in self.issues)

    @property
    def has_warnings(self) -> bool:
        """Check if result has any warnings."""
        return any(issue.severity == ValidationSeverity.WARNING for issue in self.issues)

    def get_issues_by_severity(self, severity: ValidationSeverity) -> List[ValidationIssue]:
        """Get all issues of a specific severity."""
        return [issue for issue in self.issues if issue.severity == severity]

    def summary(self) -> str:
        """Get a summary string of the validation result."""
        total_issues = len(self.issues)
        errors = len(self.get_issues_by_severity(ValidationSeverity.ERROR))
        criticals = len(self.get_issues_by_severity(ValidationSeverity.CRITICAL))
        warnings = len(self.get_issues_by_severity(ValidationSeverity.WARNING))

        status = "PASS" if self.is_valid and not self.has_errors else "FAIL"
        return f"Validation {status}: {total_issues} issues ({criticals} critical, {errors} error, {warnings} warning)"


class DataValidationError(Exception):
    """Exception raised for structural panel failures."""

    def __init__(self, message: str, validation_result: Optional[ValidationResult] = None):
        super().__init__(message)
        self.validation_result = validation_result


@dataclass(frozen=True)
class PanelSchema:
    """Column layout of a long-format panel."""

    key_columns: Tuple[str, ...] = ("state", "industry")
    time_column: str = "month"
    value_column: str = "value"

    def __post_init__(self):
        if isinstance(self.key_columns, str):
            object.__setattr__(self, "key_columns", (self.key_columns,))
        else:
            object.__setattr__(self, "key_columns", tuple(self.key_columns))
        if not self.key_columns:
            raise ValueError("PanelSchema needs at least one key column")

    @property
    def columns(self) -> List[str]:
        return [*self.key_columns, self.time_column, self.value_column]

    def key_frame(self, keys: List[Key]) -> pd.DataFrame:
        """Build a DataFrame of key columns from a list of key tuples."""
        return pd.DataFrame(list(keys), columns=list(self.key_columns))

    @classmethod
    def from_config(cls, config_manager=None) -> 'PanelSchema':
        """Create a schema from the `data` configuration section."""
        if config_manager is None:
            return cls()
        keys = config_manager.get('data.key_columns', list(cls.key_columns))
        return cls(
            key_columns=tuple(keys),
            time_column=config_manager.get('data.time_column', cls.time_column),
            value_column=config_manager.get('data.value_column', cls.value_column),
        )


def as_key(value: Any) -> Key:
    """Normalise a groupby key to a tuple."""
    return value if isinstance(value, tuple) else (value,)


class PanelValidator:
    """Structural checks for a long-format panel."""

    def __init__(self, schema: Optional[PanelSchema] = None):
        self.schema = schema or PanelSchema()
        self.issues: List[ValidationIssue] = []
        self.metrics: Dict[str, Any] = {}

    def validate(self, panel: pd.DataFrame) -> ValidationResult:
        """Validate a panel against the schema.

        Parameters
        ----------
        panel : pd.DataFrame
            Long-format panel

        Returns
        -------
        ValidationResult
            Validation result; `is_valid` is False on any error
        """
        self.issues = []
        self.metrics = {}

        missing = [c for c in self.schema.columns if c not in panel.columns]
        if missing:
            self.issues.append(ValidationIssue(
                severity=ValidationSeverity.CRITICAL,
                message=f"Panel is missing required columns: {missing}",
                component="schema",
                details={"columns": list(panel.columns)},
            ))
            return self._result()

        self.metrics["n_rows"] = int(len(panel))
        if panel.empty:
            self.issues.append(ValidationIssue(
                severity=ValidationSeverity.CRITICAL,
                message="Panel has no rows",
                component="schema",
            ))
            return self._result()

        key_cols = list(self.schema.key_columns)
        time_col = self.schema.time_column
        value_col = self.schema.value_column

        null_keys = int(panel[key_cols].isna().any(axis=1).sum())
        if null_keys:
            self.issues.append(ValidationIssue(
                severity=ValidationSeverity.ERROR,
                message=f"{null_keys} rows have missing key labels",
                component="keys",
            ))

        try:
            periods = to_monthly_periods(panel[time_col])
        except (TypeError, ValueError) as e:
            self.issues.append(ValidationIssue(
                severity=ValidationSeverity.CRITICAL,
                message=f"Time column '{time_col}' cannot be read as months: {e}",
                component="time",
            ))
            return self._result()

        values = pd.to_numeric(panel[value_col], errors="coerce")
        bad_values = int(values.isna().sum() - panel[value_col].isna().sum())
        if bad_values:
            self.issues.append(ValidationIssue(
                severity=ValidationSeverity.ERROR,
                message=f"{bad_values} values in '{value_col}' are not numeric",
                component="values",
            ))
        n_missing = int(panel[value_col].isna().sum())
        if n_missing:
            self.issues.append(ValidationIssue(
                severity=ValidationSeverity.WARNING,
                message=f"{n_missing} observations have missing values",
                component="values",
            ))
        n_inf = int(np.isinf(values.to_numpy(dtype=float, na_value=np.nan)).sum())
        if n_inf:
            self.issues.append(ValidationIssue(
                severity=ValidationSeverity.ERROR,
                message=f"{n_inf} observations are infinite",
                component="values",
            ))

        frame = panel[key_cols].copy()
        frame["_period"] = periods
        dup_mask = frame.duplicated(subset=key_cols + ["_period"], keep=False)
        if dup_mask.any():
            examples = frame.loc[dup_mask].head(5).astype(str).to_dict("records")
            self.issues.append(ValidationIssue(
                severity=ValidationSeverity.ERROR,
                message=f"{int(dup_mask.sum())} rows share a (key, {time_col}) with another row",
                component="time",
                details={"examples": examples},
            ))

        spans = frame.groupby(key_cols, sort=True, dropna=True)["_period"].agg(["min", "max", "count"])
        self.metrics["n_keys"] = int(len(spans))
        if len(spans):
            last = spans["max"].max()
            self.metrics["first_period"] = str(spans["min"].min())
            self.metrics["last_period"] = str(last)
            ending_early = int((spans["max"] < last).sum())
            self.metrics["n_keys_ending_early"] = ending_early
            if ending_early:
                self.issues.append(ValidationIssue(
                    severity=ValidationSeverity.INFO,
                    message=f"{ending_early} series end before the last panel month {last}",
                    component="coverage",
                ))

        return self._result()

    def _result(self) -> ValidationResult:
        is_valid = not any(issue.severity in [ValidationSeverity.ERROR, ValidationSeverity.CRITICAL]
                           for issue in self.issues)
        return ValidationResult(is_valid=is_valid, issues=list(self.issues), metrics=dict(self.metrics))


def validate_panel(panel: pd.DataFrame,
                   schema: Optional[PanelSchema] = None,
                   raise_on_error: bool = True) -> ValidationResult:
    """Run panel validation and log every issue.

    Raises
    ------
    DataValidationError
        If raise_on_error=True and the panel has errors
    """
    result = PanelValidator(schema).validate(panel)

    for issue in result.issues:
        if issue.severity == ValidationSeverity.CRITICAL:
            logger.critical("CRITICAL [%s]: %s", issue.component, issue.message)
        elif issue.severity == ValidationSeverity.ERROR:
            logger.error("ERROR [%s]: %s", issue.component, issue.message)
        elif issue.severity == ValidationSeverity.WARNING:
            logger.warning("WARNING [%s]: %s", issue.component, issue.message)
        else:
            logger.info("INFO [%s]: %s", issue.component, issue.message)

    if raise_on_error and result.has_errors:
        raise DataValidationError(f"Panel validation failed: {result.summary()}", result)
    return result


def normalize_panel(panel: pd.DataFrame, schema: Optional[PanelSchema] = None) -> pd.DataFrame:
    """
    Return a copy of the panel restricted to schema columns, with monthly
    Period timestamps, float values and rows sorted by key then time.
    """
    schema = schema or PanelSchema()
    out = panel.loc[:, schema.columns].copy()
    out[schema.time_column] = to_monthly_periods(out[schema.time_column])
    out[schema.value_column] = pd.to_numeric(out[schema.value_column], errors="coerce").astype(float)
    out = out.sort_values([*schema.key_columns, schema.time_column], kind="mergesort")
    return out.reset_index(drop=True)


def panel_keys(panel: pd.DataFrame, schema: Optional[PanelSchema] = None) -> List[Key]:
    """Sorted list of distinct keys in the panel."""
    schema = schema or PanelSchema()
    if panel.empty:
        return []
    uniq = panel.loc[:, list(schema.key_columns)].drop_duplicates()
    return sorted(tuple(row) for row in uniq.itertuples(index=False, name=None))


def iter_series(panel: pd.DataFrame, schema: Optional[PanelSchema] = None) -> Iterator[Tuple[Key, pd.Series]]:
    """Yield (key, series) pairs; each series is indexed by its monthly periods."""
    schema = schema or PanelSchema()
    if panel.empty:
        return
    grouped = panel.groupby(list(schema.key_columns), sort=True, observed=True, dropna=True)
    for key, group in grouped:
        group = group.sort_values(schema.time_column)
        series = pd.Series(
            group[schema.value_column].to_numpy(dtype=float),
            index=pd.PeriodIndex(group[schema.time_column], freq="M"),
            name=schema.value_column,
        )
        yield as_key(key), series
