"""
Many-models trainer.

Fits every model specification of a menu to every key's training slice. Each
(key, specification) pair is one task submitted to an executor; results are
gathered as they complete. A task never raises: fitting problems come back as
failed FitRecords so one bad series cannot stop the batch.
"""

import logging
import time
from concurrent.futures import (
    Executor,
    Future,
    ProcessPoolExecutor,
    ThreadPoolExecutor,
    as_completed,
)
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd
from tqdm.auto import tqdm

from validation import PanelSchema, iter_series
from validation.panel import Key
from .fitted import FittedModel
from .specs import FAMILIES, ModelSpec

logger = logging.getLogger(__name__)

NO_TRAINING_DATA = "no training observations"


@dataclass
class FitRecord:
    """Outcome of fitting one specification to one key."""

    key: Key
    model: str
    fitted: Optional[FittedModel] = None
    error: Optional[str] = None
    fit_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.fitted is not None


@dataclass
class TrainingResult:
    """All fit records of a training run, addressed by (key, model name)."""

    records: Dict[Tuple[Key, str], FitRecord] = field(default_factory=dict)
    keys: List[Key] = field(default_factory=list)
    model_names: List[str] = field(default_factory=list)

    def get(self, key: Key, model: str) -> Optional[FitRecord]:
        return self.records.get((key, model))

    def fitted(self, key: Key, model: str) -> Optional[FittedModel]:
        record = self.get(key, model)
        return record.fitted if record is not None else None

    def successes(self) -> List[FitRecord]:
        return [r for r in self.records.values() if r.ok]

    def failures(self) -> List[FitRecord]:
        return [r for r in self.records.values() if not r.ok]

    def to_frame(self, schema: Optional[PanelSchema] = None) -> pd.DataFrame:
        """
        Fit status table: one row per (key, model) in key then menu order.

        Columns are the key columns, model, status ('ok' or 'failed'), error,
        fit_seconds, n_obs, train_end and a details string describing the
        selected model.
        """
        schema = schema or PanelSchema()
        rows = []
        for key in self.keys:
            for name in self.model_names:
                record = self.records.get((key, name))
                if record is None:
                    continue
                row = dict(zip(schema.key_columns, key))
                row.update(model=name, status="ok" if record.ok else "failed",
                           error=record.error or "", fit_seconds=round(record.fit_seconds, 4))
                if record.ok:
                    info = record.fitted.describe()
                    row.update(n_obs=info["n_obs"], train_end=info["train_end"])
                    extra = {k: v for k, v in info.items()
                             if k not in ("key", "model", "transform", "n_obs", "train_start", "train_end")}
                    row["details"] = "; ".join(f"{k}={v}" for k, v in extra.items())
                else:
                    row.update(n_obs=None, train_end=None, details="")
                rows.append(row)
        columns = [*schema.key_columns, "model", "status", "error", "fit_seconds", "n_obs", "train_end", "details"]
        return pd.DataFrame(rows, columns=columns)


class SerialExecutor(Executor):
    """Executor that runs each task inline at submit time."""

    def submit(self, fn, /, *args, **kwargs) -> Future:
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


def make_executor(kind: str = "process", n_workers: int = 1) -> Executor:
    """
    Build the executor a training run should use.

    A single worker always gives a SerialExecutor. Otherwise `kind` selects a
    thread pool or a process pool with `n_workers` workers.
    """
    if n_workers <= 1 or kind == "serial":
        return SerialExecutor()
    if kind == "thread":
        return ThreadPoolExecutor(max_workers=n_workers)
    if kind == "process":
        return ProcessPoolExecutor(max_workers=n_workers)
    raise ValueError(f"Unknown executor kind '{kind}'. Must be one of: serial, thread, process")


def _fit_task(key: Key, spec: ModelSpec, series: pd.Series) -> FitRecord:
    """Fit one specification to one series; errors are returned, not raised."""
    start = time.perf_counter()
    try:
        fitted = FAMILIES[spec.family].fit(spec, key, series)
    except Exception as e:
        return FitRecord(key=key, model=spec.name, error=f"{type(e).__name__}: {e}",
                         fit_seconds=time.perf_counter() - start)
    return FitRecord(key=key, model=spec.name, fitted=fitted, fit_seconds=time.perf_counter() - start)


class ManyModelsTrainer:
    """
    Fit a model menu independently to every key of a training panel.

    Parameters
    ----------
    menu : sequence of ModelSpec
        Specifications to fit; names must be unique
    executor : concurrent.futures.Executor, optional
        Where tasks run. Defaults to a SerialExecutor. The trainer never shuts
        down an executor it was given.
    schema : PanelSchema, optional
        Column layout of the training panel
    show_progress : bool, default=True
        Show a tqdm progress bar over tasks
    """

    def __init__(self,
                 menu: Sequence[ModelSpec],
                 executor: Optional[Executor] = None,
                 schema: Optional[PanelSchema] = None,
                 show_progress: bool = True):
        names = [spec.name for spec in menu]
        if not names:
            raise ValueError("ManyModelsTrainer needs at least one model specification")
        if len(set(names)) != len(names):
            raise ValueError(f"Model names must be unique, got {names}")
        self.menu = list(menu)
        self.executor = executor if executor is not None else SerialExecutor()
        self.schema = schema or PanelSchema()
        self.show_progress = show_progress

    def train(self, train_panel: pd.DataFrame, keys: Optional[Iterable[Key]] = None) -> TrainingResult:
        """
        Fit every specification to every key.

        Parameters
        ----------
        train_panel : pd.DataFrame
            Normalised training panel
        keys : iterable of tuple, optional
            Keys to fit. Defaults to every key in the panel. Keys absent from
            the panel get a failed record per specification.

        Returns
        -------
        TrainingResult
            One record per (key, model name)
        """
        series_by_key = dict(iter_series(train_panel, self.schema))
        keys = sorted(series_by_key) if keys is None else list(keys)
        result = TrainingResult(keys=list(keys), model_names=[spec.name for spec in self.menu])

        for key in keys:
            if key not in series_by_key:
                for spec in self.menu:
                    result.records[(key, spec.name)] = FitRecord(key=key, model=spec.name, error=NO_TRAINING_DATA)

        tasks = [(key, spec) for key in keys if key in series_by_key for spec in self.menu]
        logger.info("Fitting %d models (%d keys x %d specifications) on %s",
                    len(tasks), len(keys), len(self.menu), type(self.executor).__name__)

        future_to_task: Dict[Future, Tuple[Key, ModelSpec]] = {
            self.executor.submit(_fit_task, key, spec, series_by_key[key]): (key, spec)
            for key, spec in tasks
        }

        with tqdm(total=len(future_to_task), desc="Fitting models", disable=not self.show_progress) as pbar:
            for future in as_completed(future_to_task):
                key, spec = future_to_task[future]
                try:
                    record = future.result()
                except Exception as e:
                    record = FitRecord(key=key, model=spec.name, error=f"{type(e).__name__}: {e}")
                result.records[(key, spec.name)] = record
                pbar.update(1)

        failures = result.failures()
        for record in failures:
            logger.warning("Fit failed for %s / %s: %s", record.key, record.model, record.error)
        logger.info("Training complete: %d fitted, %d failed", len(result.records) - len(failures), len(failures))
        return result
