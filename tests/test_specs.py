import dataclasses

import pytest

from forecast_config import DEFAULT_CONFIG
from many_models import DEFAULT_MENU, FAMILIES, ModelSpec, build_menu, make_spec


def test_all_families_are_registered():
    assert {"drift", "seasonal_drift", "arima", "ets"} <= set(FAMILIES)
    assert FAMILIES["drift"].family == "drift"


def test_default_menu_order_and_contents():
    menu = build_menu()
    assert [spec.name for spec in menu] == list(DEFAULT_MENU)
    ar = next(spec for spec in menu if spec.name == "ar")
    assert ar.family == "arima"
    assert ar.transform == "log"


def test_select_keeps_requested_order():
    menu = build_menu(select=["sdrift", "drift"])
    assert [spec.name for spec in menu] == ["sdrift", "drift"]


def test_select_unknown_name_is_rejected():
    with pytest.raises(ValueError, match="Unknown model names"):
        build_menu(select=["drift", "prophet"])


def test_empty_menu_is_rejected():
    with pytest.raises(ValueError):
        build_menu({})


@pytest.mark.parametrize("entry", [
    {"family": "prophet"},
    {"family": "drift", "transform": "boxcox"},
    {"family": "drift", "params": {"period": 12}},
    {"family": "seasonal_drift", "params": {"period": 0}},
    {"family": "arima", "params": {"d": 5}},
    {"family": "arima", "params": {"p_range": "x"}},
    {"family": "ets", "params": {"trend": "exp"}},
])
def test_invalid_entries_are_rejected(entry):
    with pytest.raises(ValueError):
        make_spec("bad", entry)


def test_spec_from_yaml_style_entry():
    spec = make_spec("ar_small", {"family": "arima", "transform": "none",
                                  "params": {"p_range": [0, 1], "q_range": "0", "d": 1, "D": 0}})
    assert spec == ModelSpec("ar_small", "arima", "none", {"p_range": [0, 1], "q_range": "0", "d": 1, "D": 0})
    assert "ar_small(arima" in spec.describe()


def test_spec_is_immutable():
    spec = make_spec("drift", {"family": "drift"})
    with pytest.raises(dataclasses.FrozenInstanceError):
        spec.name = "other"


def test_default_menu_is_the_configured_menu():
    assert DEFAULT_MENU == DEFAULT_CONFIG["models"]["menu"]
    ar = next(spec for spec in build_menu() if spec.name == "ar")
    assert ar.params["p_range"] == "0-2"
    ets = {spec.name: spec for spec in build_menu(select=["ets_auto", "ets_fixed"])}
    assert ets["ets_auto"].params["seasonal_periods"] == 12
    assert ets["ets_fixed"].params["seasonal_periods"] == 12
