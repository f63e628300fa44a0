"""Configuration system for the retail many-models forecaster.

Defaults live in `defaults.py`; YAML files named on the command line or in the
RETAIL_FORECAST_CONFIG environment variable override them.
"""

from .defaults import DEFAULT_CONFIG
from .manager import (
    CONFIG_ENV_VAR,
    ConfigurationError,
    ConfigurationManager,
    get_config,
    reset_config,
)

__all__ = [
    'DEFAULT_CONFIG',
    'CONFIG_ENV_VAR',
    'ConfigurationError',
    'ConfigurationManager',
    'get_config',
    'reset_config',
]
