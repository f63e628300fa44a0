# retail_forecaster_src/config_utils.py

import logging
from typing import Optional, Sequence

from forecast_config import ConfigurationError, get_config, reset_config

logger = logging.getLogger(__name__)

# Global configuration manager, set by initialize_config()
config_manager = None


def initialize_config(config_paths: Optional[Sequence[str]] = None):
    """
    Initializes the global configuration manager.

    Built-in defaults are always available. When `config_paths` is given, those
    YAML files are merged on top; otherwise the RETAIL_FORECAST_CONFIG
    environment variable is consulted. Validation problems are fatal because a
    broken model menu or evaluation section would invalidate the whole run.

    Raises
    ------
    ConfigurationError
        If a file cannot be read or the merged configuration does not validate
    """
    global config_manager
    reset_config()
    config_manager = get_config(list(config_paths) if config_paths else None)
    validation_errors = config_manager.validate_configuration()
    if validation_errors:
        raise ConfigurationError(f"Configuration validation failed: {validation_errors}")
    logger.debug("Configuration ready: %s", config_manager.get_configuration_summary())
    return config_manager


def get_config_value(key_path: str, default=None, args=None, cli_param=None):
    """
    Retrieves a configuration value, providing support for command-line overrides.
    The function prioritizes values in the following order:
    1. CLI argument (if provided)
    2. Configuration file
    3. Default value
    """
    # First priority: CLI argument
    if args is not None and cli_param and hasattr(args, cli_param):
        cli_value = getattr(args, cli_param)
        if cli_value is not None:
            return cli_value

    # Second priority: Configuration file
    if config_manager is not None:
        config_value = config_manager.get(key_path, None)
        if config_value is not None:
            return config_value

    # Third priority: Default value
    return default
