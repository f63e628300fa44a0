# retail_forecaster_src/file_utils.py

import pandas as pd
from pathlib import Path
from typing import List, Optional
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)


def ensure_dir(path: Path) -> None:
    """
    Create directory if it doesn't exist, including all parent directories.
    """
    path.mkdir(parents=True, exist_ok=True)


def resolve_path(path_str: str, base_dir: Path) -> Path:
    """
    Resolve a path relative to base_dir unless it is already absolute.

    Examples
    --------
    >>> resolve_path("out", Path("/proj"))
    PosixPath('/proj/out')
    >>> resolve_path("/tmp/out", Path("/proj"))
    PosixPath('/tmp/out')
    """
    p = Path(path_str).expanduser()
    return p if p.is_absolute() else (base_dir / p)


def write_table_csv(df: pd.DataFrame, csv_path: Path, float_format: Optional[str] = None) -> Path:
    """
    Write a result table to CSV, creating parent directories.

    Period columns are written in their 'YYYY-MM' string form.

    Returns
    -------
    Path
        The path written
    """
    ensure_dir(csv_path.parent)
    out = df.copy()
    for col in out.columns:
        if isinstance(out[col].dtype, pd.PeriodDtype):
            out[col] = out[col].astype(str)
    out.to_csv(csv_path, index=False, float_format=float_format)
    logger.info("Wrote %d rows to %s", len(out), csv_path)
    return csv_path


def append_eval_md(eval_md_path: Path, title: str, body: str) -> None:
    """
    Append a section to evaluation markdown file with timestamp.

    Adds an ISO timestamp and formats the body as a level-2 markdown section.
    """
    ensure_dir(eval_md_path.parent)
    ts = datetime.now(timezone.utc).isoformat()
    with eval_md_path.open("a", encoding="utf-8") as f:
        f.write(f"\n\n## {title}  \n")
        f.write(f"_timestamp: {ts}_\n\n")
        f.write(body.strip() + "\n")


def md_table_from_df(df: pd.DataFrame,
                     max_rows: int = 10,
                     columns: Optional[List[str]] = None,
                     float_digits: int = 3) -> str:
    """
    Convert a DataFrame to markdown table format.

    Parameters
    ----------
    df : pd.DataFrame
        DataFrame to convert
    max_rows : int, default=10
        Maximum number of rows to include
    columns : Optional[List[str]]
        Specific columns to include (None for all); unknown names are skipped
    float_digits : int, default=3
        Decimal places for float cells

    Returns
    -------
    str
        Markdown table string, or empty string when there is nothing to show
    """
    if columns is not None:
        keep = [c for c in columns if c in df.columns]
        if keep:
            df = df.loc[:, keep]

    df_disp = df.head(max_rows)
    cols = list(df_disp.columns)
    if not cols:
        return ""

    def fmt(v) -> str:
        if isinstance(v, float):
            return f"{v:.{float_digits}f}"
        return str(v)

    header = "| " + " | ".join(str(c) for c in cols) + " |"
    separator = "| " + " | ".join("---" for _ in cols) + " |"
    rows = ["| " + " | ".join(fmt(v) for v in row) + " |"
            for row in df_disp.itertuples(index=False, name=None)]
    return "\n".join([header, separator] + rows)
