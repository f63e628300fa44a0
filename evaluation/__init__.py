"""Forecast accuracy evaluation for the retail many-models forecaster.

This package scores forecast tables against validation actuals:
- Per-series MASE / MAPE (plus ME, MAE, RMSE and interval coverage)
- Summaries across keys by simple or magnitude-weighted mean
- Aggregated scoring after explicit summation over key columns
- Exclusion of keys without validation actuals from aggregated sums
"""

from .aggregation import (
    aggregate_panel,
    keys_with_actuals,
    key_mask,
)

from .accuracy import (
    AccuracyEvaluator,
    WEIGHTINGS,
)

__all__ = [
    # Aggregation
    'aggregate_panel',
    'keys_with_actuals',
    'key_mask',

    # Accuracy
    'AccuracyEvaluator',
    'WEIGHTINGS',
]

# Version info
__version__ = '1.0.0'
