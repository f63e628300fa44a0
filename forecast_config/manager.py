"""Configuration manager backed by built-in defaults and YAML overrides.

Values are addressed with dot notation ('evaluation.period'). Files are
applied in the order given; later files win on conflicting keys.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import yaml

from .defaults import DEFAULT_CONFIG

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "RETAIL_FORECAST_CONFIG"

_FAMILIES = {"drift", "seasonal_drift", "arima", "ets"}
_TRANSFORMS = {"none", "log"}
_EXECUTORS = {"serial", "thread", "process"}
_WEIGHTINGS = {"mean", "magnitude"}


class ConfigurationError(Exception):
    """Raised when a configuration file cannot be read or is malformed."""
    pass


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into a copy of base."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            # Model menus are replaced whole so a file can drop default entries
            if key == "menu":
                merged[key] = copy.deepcopy(value)
            else:
                merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


class ConfigurationManager:
    """Layered configuration: defaults, then each YAML file in order."""

    def __init__(self, config_paths: Optional[Sequence[Union[str, Path]]] = None):
        self.config_paths: List[Path] = [Path(p) for p in (config_paths or [])]
        self.loaded_configs: List[str] = []
        self._config: Dict[str, Any] = copy.deepcopy(DEFAULT_CONFIG)
        for path in self.config_paths:
            self._config = _deep_merge(self._config, self._load_yaml(path))
            self.loaded_configs.append(str(path))

    @staticmethod
    def _load_yaml(path: Path) -> Dict[str, Any]:
        if not path.is_file():
            raise ConfigurationError(f"Configuration file not found: {path}")
        try:
            with path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Top level of {path} must be a mapping")
        logger.info("Loaded configuration file %s", path)
        return data

    def get(self, key_path: str, default: Any = None) -> Any:
        """Return the value at a dot-separated path, or default."""
        node: Any = self._config
        for part in key_path.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return copy.deepcopy(node)

    def as_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self._config)

    def get_model_menu_config(self) -> Dict[str, Any]:
        return self.get("models.menu", {})

    def get_training_config(self) -> Dict[str, Any]:
        return self.get("training", {})

    def get_forecast_config(self) -> Dict[str, Any]:
        return self.get("forecast", {})

    def get_evaluation_config(self) -> Dict[str, Any]:
        return self.get("evaluation", {})

    def get_diagnostics_config(self) -> Dict[str, Any]:
        return self.get("diagnostics", {})

    def validate_configuration(self) -> Dict[str, List[str]]:
        """
        Check the merged configuration for problems.

        Returns
        -------
        Dict[str, List[str]]
            Section name -> list of problems; empty when the configuration is usable
        """
        errors: Dict[str, List[str]] = {}

        def add(section: str, message: str) -> None:
            errors.setdefault(section, []).append(message)

        keys = self.get("data.key_columns")
        if not isinstance(keys, list) or not keys:
            add("data", "key_columns must be a non-empty list")

        menu = self.get_model_menu_config()
        if not isinstance(menu, dict) or not menu:
            add("models", "menu must be a non-empty mapping")
        else:
            for name, entry in menu.items():
                if not isinstance(entry, dict):
                    add("models", f"menu entry '{name}' must be a mapping")
                    continue
                if entry.get("family") not in _FAMILIES:
                    add("models", f"menu entry '{name}' has unknown family {entry.get('family')!r}")
                if entry.get("transform", "none") not in _TRANSFORMS:
                    add("models", f"menu entry '{name}' has unknown transform {entry.get('transform')!r}")

        n_workers = self.get("training.n_workers", 1)
        if not isinstance(n_workers, int) or n_workers < 1:
            add("training", "n_workers must be a positive integer")
        if self.get("training.executor", "process") not in _EXECUTORS:
            add("training", f"executor must be one of {sorted(_EXECUTORS)}")

        levels = self.get("forecast.levels", [])
        if not isinstance(levels, list) or not all(isinstance(v, (int, float)) and 0 < v < 100 for v in levels):
            add("forecast", "levels must be a list of percentages between 0 and 100")

        for name in ("period", "d", "D"):
            value = self.get(f"evaluation.{name}")
            if not isinstance(value, int) or value < 0:
                add("evaluation", f"{name} must be a non-negative integer")
        if self.get("evaluation.weighting", "mean") not in _WEIGHTINGS:
            add("evaluation", f"weighting must be one of {sorted(_WEIGHTINGS)}")

        return errors

    def get_configuration_summary(self) -> Dict[str, Any]:
        return {
            "loaded_configs": list(self.loaded_configs),
            "models": sorted(self.get_model_menu_config()),
            "n_workers": self.get("training.n_workers"),
        }


_config_manager: Optional[ConfigurationManager] = None


def get_config(config_paths: Optional[Sequence[Union[str, Path]]] = None) -> ConfigurationManager:
    """
    Return the process-wide configuration manager, creating it on first use.

    When no paths are given, the os.pathsep-separated list in the
    RETAIL_FORECAST_CONFIG environment variable is used. Passing paths
    always rebuilds the manager.
    """
    global _config_manager
    if config_paths is not None:
        _config_manager = ConfigurationManager(config_paths)
    elif _config_manager is None:
        env_value = os.environ.get(CONFIG_ENV_VAR, "")
        paths = [p for p in env_value.split(os.pathsep) if p.strip()]
        _config_manager = ConfigurationManager(paths)
    return _config_manager


def reset_config() -> None:
    """Forget the cached manager (used by tests and repeated CLI runs)."""
    global _config_manager
    _config_manager = None
