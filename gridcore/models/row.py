from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .cell import is_row_empty
from .validation import ValidationError, ValidationSeverity

"""GridRow model: one logical row of the grid.

``data`` maps canonical column names to values (special columns excluded).
``row_index`` always equals the row's position in the store.
"""

__all__ = [
    "GridRow",
]


@dataclass
class GridRow:
    data: dict[str, Any]
    row_index: int = 0
    validation_errors: list[ValidationError] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return is_row_empty(self.data)

    @property
    def is_valid(self) -> bool:
        return not any(e.severity is ValidationSeverity.ERROR for e in self.validation_errors)

    @property
    def has_warnings(self) -> bool:
        return any(e.severity is ValidationSeverity.WARNING for e in self.validation_errors)

    def get(self, column_name: str, default: Any = None) -> Any:
        return self.data.get(column_name, default)

    def snapshot(self) -> dict[str, Any]:
        """Shallow copy of the row data."""
        return dict(self.data)
