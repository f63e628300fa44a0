"""Train/validation partitioning of a monthly panel at a cutoff month."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import pandas as pd

from helpers.temporal import PeriodLike, to_monthly_period
from .panel import DataValidationError, Key, PanelSchema, normalize_panel, panel_keys

logger = logging.getLogger(__name__)


class EmptyTrainingPanelError(DataValidationError):
    """Raised when a cutoff leaves no training observation for any key."""
    pass


@dataclass
class PanelSplit:
    """Result of splitting a panel at a cutoff month."""

    train: pd.DataFrame
    validation: pd.DataFrame
    cutoff: pd.Period
    schema: PanelSchema
    keys: List[Key] = field(default_factory=list)
    empty_training_keys: List[Key] = field(default_factory=list)
    keys_without_validation: List[Key] = field(default_factory=list)

    @property
    def horizon(self) -> pd.PeriodIndex:
        """All validation months present in the panel, sorted."""
        months = self.validation[self.schema.time_column].unique()
        return pd.PeriodIndex(sorted(months), freq="M")

    @property
    def trainable_keys(self) -> List[Key]:
        empty = set(self.empty_training_keys)
        return [k for k in self.keys if k not in empty]


def partition_panel(panel: pd.DataFrame,
                    cutoff: PeriodLike,
                    schema: Optional[PanelSchema] = None) -> PanelSplit:
    """
    Split a panel into training (month <= cutoff) and validation (month > cutoff).

    Parameters
    ----------
    panel : pd.DataFrame
        Long-format panel described by `schema`
    cutoff : Period, Timestamp or str
        Last month of the training window (e.g. '2017-12' or '2017 Dec')
    schema : PanelSchema, optional
        Column layout; defaults to state/industry/month/value

    Returns
    -------
    PanelSplit
        Training and validation panels plus the keys that lack either part

    Raises
    ------
    EmptyTrainingPanelError
        If no key has a single observation at or before the cutoff

    Notes
    -----
    Every row of the panel lands in exactly one of the two outputs. Keys with
    no training rows are reported in `empty_training_keys` rather than
    dropped silently, since fitting them would fail per key downstream.
    """
    schema = schema or PanelSchema()
    cutoff_period = to_monthly_period(cutoff)
    data = normalize_panel(panel, schema)

    in_train = data[schema.time_column] <= cutoff_period
    train = data.loc[in_train].reset_index(drop=True)
    validation = data.loc[~in_train].reset_index(drop=True)

    keys = panel_keys(data, schema)
    train_keys = set(panel_keys(train, schema))
    valid_keys = set(panel_keys(validation, schema))

    empty_training = [k for k in keys if k not in train_keys]
    without_validation = [k for k in keys if k not in valid_keys]

    if not train_keys:
        raise EmptyTrainingPanelError(
            f"Cutoff {cutoff_period} leaves no training observations for any of {len(keys)} keys"
        )

    if empty_training:
        logger.warning("%d keys have no training observations at cutoff %s: %s",
                       len(empty_training), cutoff_period, empty_training[:5])
    if without_validation:
        logger.info("%d keys have no validation observations after %s",
                    len(without_validation), cutoff_period)

    logger.info("Partitioned %d rows at %s: train=%d, validation=%d, keys=%d",
                len(data), cutoff_period, len(train), len(validation), len(keys))

    return PanelSplit(
        train=train,
        validation=validation,
        cutoff=cutoff_period,
        schema=schema,
        keys=keys,
        empty_training_keys=empty_training,
        keys_without_validation=without_validation,
    )
