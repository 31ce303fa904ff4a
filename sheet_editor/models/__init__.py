"""Domain models for the spreadsheet editor core.

This package contains the data classes shared by the document store, the
extension registry and the three rule engines.
"""

from .cell_range import CellRange, cell_key, column_letter, parse_cell_key
from .config_models import DatabaseConfig, EditorConfig, StorageConfig
from .document import CellChange, ChangeResult, Chart, Comment, Document, Rejection, UndoSnapshot
from .error_record import ErrorRecord
from .rules import (
    Condition,
    ConditionalFormatRule,
    ConditionType,
    DataValidationRule,
    ErrorPolicy,
    FilterSpec,
    FilterType,
    ValidationResult,
    ValidationSpec,
    ValidationType,
)

__all__ = [
    # Ranges / keys
    "CellRange",
    "cell_key",
    "parse_cell_key",
    "column_letter",
    # Configuration models
    "DatabaseConfig",
    "EditorConfig",
    "StorageConfig",
    # Document models
    "Document",
    "Comment",
    "Chart",
    "UndoSnapshot",
    "CellChange",
    "Rejection",
    "ChangeResult",
    "ErrorRecord",
    # Rule models
    "Condition",
    "ConditionType",
    "ConditionalFormatRule",
    "DataValidationRule",
    "ErrorPolicy",
    "FilterSpec",
    "FilterType",
    "ValidationResult",
    "ValidationSpec",
    "ValidationType",
]
