"""Panel validation and train/validation partitioning.

This package provides the structural layer of the many-models pipeline:
- PanelSchema describing key, time and value columns
- Panel validation with severities (duplicate months, missing columns)
- Normalisation and per-key series iteration
- Cutoff-based partitioning with reporting of keys lacking training data
"""

from .panel import (
    PanelSchema,
    PanelValidator,
    ValidationSeverity,
    ValidationIssue,
    ValidationResult,
    DataValidationError,
    validate_panel,
    normalize_panel,
    panel_keys,
    iter_series,
    as_key,
)

from .partition import (
    PanelSplit,
    EmptyTrainingPanelError,
    partition_panel,
)

__all__ = [
    # Panel structure
    'PanelSchema',
    'PanelValidator',
    'ValidationSeverity',
    'ValidationIssue',
    'ValidationResult',
    'DataValidationError',
    'validate_panel',
    'normalize_panel',
    'panel_keys',
    'iter_series',
    'as_key',

    # Partitioning
    'PanelSplit',
    'EmptyTrainingPanelError',
    'partition_panel',
]

# Version info
__version__ = '1.0.0'
