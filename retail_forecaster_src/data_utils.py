# retail_forecaster_src/data_utils.py

import pandas as pd
from pathlib import Path
from typing import Optional
import logging

from validation import PanelSchema, normalize_panel, validate_panel

logger = logging.getLogger(__name__)


def load_panel_csv(panel_path: Path, schema: Optional[PanelSchema] = None) -> pd.DataFrame:
    """
    Load a long-format monthly panel from CSV.

    The file must contain one row per (key, month) with the key columns, time
    column and value column named by `schema`. Months may be written as
    '2017-12', '2017 Dec' or a full date; they are converted to monthly
    Periods. Extra columns are ignored.

    Parameters
    ----------
    panel_path : Path
        CSV file to read
    schema : PanelSchema, optional
        Column layout; defaults to state/industry/month/value

    Returns
    -------
    pd.DataFrame
        Normalised panel sorted by key then month

    Raises
    ------
    SystemExit
        If the file doesn't exist, lacks required columns, or holds no rows.
    DataValidationError
        If the panel breaks a structural invariant (e.g. duplicate months per key).
    """
    schema = schema or PanelSchema()
    if not panel_path.exists():
        raise SystemExit(f"Panel CSV not found: {panel_path}")

    logger.info("Loading panel from: %s", panel_path)
    # Keys are labels; read them as strings so codes like '01' survive
    df = pd.read_csv(panel_path, dtype={c: str for c in schema.key_columns})

    missing = [c for c in schema.columns if c not in df.columns]
    if missing:
        raise SystemExit(f"Panel CSV must contain columns {schema.columns}; missing {missing}.")
    if df.empty:
        raise SystemExit("No rows found in panel CSV.")

    result = validate_panel(df, schema)
    logger.info("Panel validation: %s", result.summary())

    panel = normalize_panel(df, schema)
    n_missing = int(panel[schema.value_column].isna().sum())
    if n_missing:
        logger.info("Dropping %d rows with missing values", n_missing)
        panel = panel.dropna(subset=[schema.value_column]).reset_index(drop=True)
    return panel
