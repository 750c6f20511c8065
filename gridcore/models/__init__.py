"""Domain models for the gridcore row lifecycle and validation engine.

Value types shared by the services: columns, rows, validation rules, batch
options and results, progress snapshots, events and the grid state aggregate.
"""

from .column import ColumnDefinition, ColumnSchema, ColumnType, SpecialColumnType, validate_schema
from .events import (
    DataImported,
    EventKind,
    FilterApplied,
    GridCleared,
    GridEvent,
    HistoryRestored,
    RowAdded,
    RowDeleted,
    RowModified,
    SearchCompleted,
    SortApplied,
    ValidationCompleted,
)
from .grid_state import GridSnapshot, GridState
from .options import ExportOptions, ImportMode, ImportOptions, ValidationOptions
from .processing_result import ExportResult, ImportResult, RowOperationResult, ValidationSummary
from .progress import ExportProgress, ImportProgress, ValidationProgress
from .result import ErrorKind, Result, ResultAccessError
from .row import GridRow
from .search import (
    FilterDefinition,
    FilterLogic,
    FilterOperator,
    NavigationDirection,
    SearchCriteria,
    SearchResult,
    SortCriteria,
    SortDirection,
)
from .validation import (
    CrossValidationResult,
    CrossValidationRule,
    RowValidationRule,
    RuleOutcome,
    ValidationError,
    ValidationRule,
    ValidationRuleSet,
    ValidationSeverity,
)

__all__ = [
    # Result
    "ErrorKind",
    "Result",
    "ResultAccessError",
    # Columns / rows
    "ColumnDefinition",
    "ColumnSchema",
    "ColumnType",
    "SpecialColumnType",
    "validate_schema",
    "GridRow",
    # Validation
    "CrossValidationResult",
    "CrossValidationRule",
    "RowValidationRule",
    "RuleOutcome",
    "ValidationError",
    "ValidationRule",
    "ValidationRuleSet",
    "ValidationSeverity",
    # Batch
    "ExportOptions",
    "ImportMode",
    "ImportOptions",
    "ValidationOptions",
    "ExportResult",
    "ImportResult",
    "RowOperationResult",
    "ValidationSummary",
    "ExportProgress",
    "ImportProgress",
    "ValidationProgress",
    # Search / filter / sort
    "FilterDefinition",
    "FilterLogic",
    "FilterOperator",
    "NavigationDirection",
    "SearchCriteria",
    "SearchResult",
    "SortCriteria",
    "SortDirection",
    # State / events
    "GridSnapshot",
    "GridState",
    "DataImported",
    "EventKind",
    "FilterApplied",
    "GridCleared",
    "GridEvent",
    "HistoryRestored",
    "RowAdded",
    "RowDeleted",
    "RowModified",
    "SearchCompleted",
    "SortApplied",
    "ValidationCompleted",
]
