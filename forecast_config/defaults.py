"""Built-in configuration defaults.

YAML files loaded by the ConfigurationManager are deep-merged on top of this
mapping, so a project file only needs to name the values it changes.
"""

DEFAULT_CONFIG = {
    "data": {
        "key_columns": ["state", "industry"],
        "time_column": "month",
        "value_column": "value",
    },
    "partition": {
        "cutoff": "2017-12",
    },
    "models": {
        # name -> {family, transform, params}
        "menu": {
            "drift": {"family": "drift", "transform": "none", "params": {}},
            "sdrift": {"family": "seasonal_drift", "transform": "none", "params": {"period": 12}},
            "ar": {
                "family": "arima",
                "transform": "log",
                "params": {
                    "p_range": "0-2",
                    "q_range": "0-2",
                    "P_range": "0-1",
                    "Q_range": "0-1",
                    "d": "auto",
                    "D": "auto",
                    "s": 12,
                },
            },
            "ets_auto": {"family": "ets", "transform": "none", "params": {"auto": True, "seasonal_periods": 12}},
            "ets_fixed": {
                "family": "ets",
                "transform": "none",
                "params": {
                    "error": "mul",
                    "trend": "add",
                    "damped_trend": True,
                    "seasonal": "mul",
                    "seasonal_periods": 12,
                },
            },
        },
    },
    "training": {
        "n_workers": 1,
        "executor": "process",
        "show_progress": True,
    },
    "forecast": {
        "levels": [80, 95],
        "bias_adjust": True,
    },
    "evaluation": {
        "period": 12,
        "d": 0,
        "D": 1,
        "aggregate_by": ["state"],
        "weighting": "mean",
    },
    "diagnostics": {
        "enabled": True,
        "ljung_box_lag": 24,
        "stl_period": 12,
    },
}
