#!/usr/bin/env python3
"""
Many-models forecasting and evaluation on a monthly retail turnover panel.

Usage
-----
    python forecast_retail.py --help
    python forecast_retail.py --panel-csv data/retail.csv --cutoff 2017-12
    python forecast_retail.py --panel-csv data/retail.csv --models drift,sdrift --workers 4

Module Structure
----------------
- validation/: panel schema checks and cutoff partitioning
- many_models/: model menu, fitted model families, trainer and forecaster
- evaluation/: per-series and aggregated accuracy
- diagnostics/: residual Ljung-Box tests and STL features
- forecast_config/: YAML configuration manager
- retail_forecaster_src/: CLI workflow and shared utilities
"""

from retail_forecaster_src.main import main

if __name__ == "__main__":
    main()
