"""Model and series diagnostics for the retail many-models forecaster.

This package provides:
- Ljung-Box residual diagnostics for every fitted (key, model) pair
- STL trend and seasonal strength features per series
"""

from .residual_diagnostics import (
    LjungBoxResult,
    ResidualDiagnostics,
    ljung_box_test,
    run_residual_diagnostics,
)

from .features import (
    stl_strength,
    series_features,
)

__all__ = [
    # Residual diagnostics
    'LjungBoxResult',
    'ResidualDiagnostics',
    'ljung_box_test',
    'run_residual_diagnostics',

    # Series features
    'stl_strength',
    'series_features',
]

# Version info
__version__ = '1.0.0'
