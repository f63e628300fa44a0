"""Many-models fitting and forecasting.

This package fits a menu of model specifications independently to every key
of a monthly panel and forecasts each fitted pair:
- ModelSpec / build_menu for the configured model menu
- FittedModel families (drift, seasonal_drift, arima, ets)
- ManyModelsTrainer fanning (key, specification) tasks out to an executor
- Forecaster producing point forecasts and intervals per key
"""

from .specs import (
    ModelSpec,
    FAMILIES,
    DEFAULT_MENU,
    register_family,
    make_spec,
    build_menu,
)

from .fitted import (
    FittedModel,
    DriftModel,
    SeasonalDriftModel,
    ArimaModel,
    EtsModel,
)

from .trainer import (
    FitRecord,
    TrainingResult,
    SerialExecutor,
    ManyModelsTrainer,
    make_executor,
)

from .forecaster import (
    ForecastError,
    ModelUnavailableError,
    ForecastResult,
    Forecaster,
)

__all__ = [
    # Specifications
    'ModelSpec',
    'FAMILIES',
    'DEFAULT_MENU',
    'register_family',
    'make_spec',
    'build_menu',

    # Fitted models
    'FittedModel',
    'DriftModel',
    'SeasonalDriftModel',
    'ArimaModel',
    'EtsModel',

    # Training
    'FitRecord',
    'TrainingResult',
    'SerialExecutor',
    'ManyModelsTrainer',
    'make_executor',

    # Forecasting
    'ForecastError',
    'ModelUnavailableError',
    'ForecastResult',
    'Forecaster',
]

# Version info
__version__ = '1.0.0'
