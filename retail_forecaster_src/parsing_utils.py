# retail_forecaster_src/parsing_utils.py

from typing import Iterable, List, Optional, Union
import logging

logger = logging.getLogger(__name__)


def parse_range_arg(value: Union[str, int, Iterable[int], None], default: str = "0-2") -> List[int]:
    """
    Parse a range specification like '0-3' or '0,1,2,3' into a list of integers.

    Model menus use this for the ARIMA order search space. Lists coming
    straight from YAML are accepted as-is.

    Parameters
    ----------
    value : str, int, list of int, optional
        Range specification; None falls back to `default`
    default : str, default="0-2"
        Range used when value is None

    Returns
    -------
    List[int]
        Sorted list of unique non-negative integers

    Raises
    ------
    ValueError
        If the specification cannot be parsed or yields no values

    Examples
    --------
    >>> parse_range_arg("0-3")
    [0, 1, 2, 3]
    >>> parse_range_arg("0,2")
    [0, 2]
    >>> parse_range_arg([1, 0, 1])
    [0, 1]
    """
    if value is None:
        value = default
    if isinstance(value, int):
        out = [value]
    elif isinstance(value, str):
        txt = value.strip()
        try:
            if "-" in txt and "," not in txt:
                a, b = txt.split("-", 1)
                out = list(range(int(a.strip()), int(b.strip()) + 1))
            else:
                out = [int(x.strip()) for x in txt.split(",") if x.strip() != ""]
        except ValueError as e:
            raise ValueError(f"Cannot parse range '{value}'") from e
    else:
        out = [int(x) for x in value]

    out = sorted(set(out))
    if not out or out[0] < 0:
        raise ValueError(f"Range '{value}' must contain non-negative integers")
    return out


def parse_intervals_arg(s: Optional[str], default: str = "80,95") -> List[int]:
    """
    Parse a CLI intervals argument like '80,95' into sorted unique integer coverage levels.

    Parameters
    ----------
    s : str, optional
        CLI intervals argument (e.g., "80,95" or "90")
    default : str, default="80,95"
        Default intervals if s is empty

    Returns
    -------
    List[int]
        Sorted list of unique coverage levels between 1 and 99

    Examples
    --------
    >>> parse_intervals_arg("80,95")
    [80, 95]
    >>> parse_intervals_arg("95,80,80")
    [80, 95]
    """
    txt = (s or default).strip()
    try:
        vals = sorted({int(x.strip()) for x in txt.split(",") if x.strip() != ""})
    except ValueError:
        logger.warning("Could not parse intervals '%s'; using %s", s, default)
        return [int(x) for x in default.split(",")]
    vals = [v for v in vals if 1 <= v < 100]
    return vals or [int(x) for x in default.split(",")]


def parse_name_list(s: Optional[str]) -> Optional[List[str]]:
    """
    Parse a comma-separated list of names, preserving order and dropping blanks.

    Returns None for an empty or missing argument so callers can fall back to
    the configured value.

    Examples
    --------
    >>> parse_name_list("state, industry")
    ['state', 'industry']
    >>> parse_name_list("") is None
    True
    """
    if s is None:
        return None
    names: List[str] = []
    for part in s.split(","):
        part = part.strip()
        if part and part not in names:
            names.append(part)
    return names or None


def validate_log_level(log_level: str) -> str:
    """
    Validate and normalize logging level specification.

    Raises
    ------
    ValueError
        If the logging level is not supported
    """
    valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    level_upper = log_level.upper()
    if level_upper not in valid_levels:
        raise ValueError(f"Invalid log level '{log_level}'. Must be one of: {valid_levels}")
    return level_upper
