"""
Model specifications and the model menu.

A ModelSpec names one parametrised model family plus the transform it is fitted
under. The menu maps names to specs and is applied independently to every key
of a panel. Families register their FittedModel implementation with
`register_family` so menu entries can be checked when the menu is built.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Type

from forecast_config import DEFAULT_CONFIG
from retail_forecaster_src.transform_utils import VALID_TRANSFORMS

logger = logging.getLogger(__name__)

# family name -> FittedModel subclass
FAMILIES: Dict[str, Type] = {}


def register_family(name: str) -> Callable[[Type], Type]:
    """Class decorator adding a FittedModel subclass to the family registry."""
    def decorator(cls: Type) -> Type:
        FAMILIES[name] = cls
        cls.family = name
        return cls
    return decorator


@dataclass(frozen=True)
class ModelSpec:
    """Immutable description of one model in the menu."""

    name: str
    family: str
    transform: str = "none"
    params: Dict[str, Any] = field(default_factory=dict, hash=False)

    def describe(self) -> str:
        inner = f"{self.family}, transform={self.transform}"
        if self.params:
            inner += ", " + ", ".join(f"{k}={v}" for k, v in sorted(self.params.items()))
        return f"{self.name}({inner})"


# the menu shipped in the built-in configuration
DEFAULT_MENU: Dict[str, Dict[str, Any]] = DEFAULT_CONFIG["models"]["menu"]


def make_spec(name: str, entry: Mapping[str, Any]) -> ModelSpec:
    """
    Build and check one ModelSpec from a menu entry.

    Raises
    ------
    ValueError
        If the family or transform is unknown, or the family rejects the params
    """
    if not isinstance(entry, Mapping):
        raise ValueError(f"Menu entry '{name}' must be a mapping, got {type(entry).__name__}")
    family = entry.get("family")
    if family not in FAMILIES:
        raise ValueError(f"Menu entry '{name}': unknown family {family!r}. Known: {sorted(FAMILIES)}")
    transform = entry.get("transform", "none") or "none"
    if transform not in VALID_TRANSFORMS:
        raise ValueError(f"Menu entry '{name}': unknown transform {transform!r}. Known: {list(VALID_TRANSFORMS)}")
    params = dict(entry.get("params") or {})
    try:
        FAMILIES[family].validate_params(params)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Menu entry '{name}': {e}") from e
    return ModelSpec(name=str(name), family=family, transform=transform, params=params)


def build_menu(menu_config: Optional[Mapping[str, Mapping[str, Any]]] = None,
               select: Optional[Iterable[str]] = None) -> List[ModelSpec]:
    """
    Build the model menu from configuration.

    Parameters
    ----------
    menu_config : mapping, optional
        name -> {family, transform, params}; defaults to DEFAULT_MENU
    select : iterable of str, optional
        Subset of names to keep, in the order given

    Returns
    -------
    List[ModelSpec]
        Specs in menu (or selection) order

    Raises
    ------
    ValueError
        On an empty menu, an invalid entry or an unknown selected name
    """
    menu_config = DEFAULT_MENU if menu_config is None else menu_config
    if not menu_config:
        raise ValueError("Model menu is empty")

    specs = {name: make_spec(name, entry) for name, entry in menu_config.items()}

    if select is not None:
        names = list(select)
        unknown = [n for n in names if n not in specs]
        if unknown:
            raise ValueError(f"Unknown model names {unknown}. Menu has: {list(specs)}")
        chosen = [specs[n] for n in names]
    else:
        chosen = list(specs.values())

    for spec in chosen:
        logger.debug("Menu: %s", spec.describe())
    return chosen
