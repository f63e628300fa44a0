# retail_forecaster_src/__init__.py

"""
Retail Many-Models Forecaster - command-line layer and shared utilities

This package holds the CLI workflow and the small utility modules the
pipeline packages (validation, many_models, evaluation, diagnostics) share.

Key Components
--------------
- config_utils: Configuration access with CLI override support
- data_utils: Panel CSV loading and validation
- parsing_utils: Command-line argument and range parsing
- transform_utils: Log transform, back-transform and ADF differencing heuristics
- metrics_utils: ME, MAE, RMSE, MAPE, MASE and interval coverage
- file_utils: CSV and markdown output helpers
- main: Main entry point and workflow orchestration

Usage
-----
    # Command-line usage
    python -m retail_forecaster_src.main --panel-csv data/retail.csv --cutoff 2017-12

    # Programmatic usage
    from retail_forecaster_src import metrics_utils
"""

__version__ = "1.0.0"
__author__ = "Retail Forecaster Development Team"

# Import key functions for easy access
from .config_utils import initialize_config, get_config_value
from .data_utils import load_panel_csv
from .metrics_utils import compute_metrics, mase_metric, mape

__all__ = [
    # Core functionality
    "initialize_config",
    "get_config_value",
    "load_panel_csv",
    "compute_metrics",
    "mase_metric",
    "mape",
    # Version info
    "__version__",
    "__author__"
]
