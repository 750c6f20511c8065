from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .result import ErrorKind, Result

"""Column definition model.

A column declares its value type, constraints and an optional special role.
Special columns (checkbox, delete-row, validation alerts, row number) are
virtual: their values are never stored in row data.
"""

__all__ = [
    "ColumnType",
    "SpecialColumnType",
    "ColumnDefinition",
    "ColumnSchema",
    "validate_schema",
]


class ColumnType(str, Enum):
    STRING = "string"
    INTEGER = "integer"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    DATE = "date"
    OBJECT = "object"


class SpecialColumnType(str, Enum):
    NONE = "none"
    CHECKBOX = "checkbox"
    DELETE_ROW = "delete_row"
    VALID_ALERTS = "valid_alerts"
    ROW_NUMBER = "row_number"


@dataclass(frozen=True)
class ColumnDefinition:
    name: str
    data_type: ColumnType = ColumnType.STRING
    required: bool = False
    read_only: bool = False
    default_value: Any = None
    max_length: int | None = None
    display_format: str | None = None  # 日付/数値の書式
    validation_pattern: str | None = None  # 正規表現
    special_type: SpecialColumnType = SpecialColumnType.NONE
    display_name: str | None = None

    @property
    def header(self) -> str:
        return self.display_name or self.name

    @property
    def is_special(self) -> bool:
        return self.special_type is not SpecialColumnType.NONE

    def blank_value(self) -> Any:
        """Empty value for this column's type ("" for strings, None otherwise)."""
        return "" if self.data_type is ColumnType.STRING else None

    def missing_value(self) -> Any:
        """Value used when an input row omits this column."""
        if self.default_value is not None:
            return self.default_value
        return self.blank_value()

    # factories
    @classmethod
    def text(cls, name: str, *, required: bool = False, max_length: int | None = None,
             pattern: str | None = None, **kwargs: Any) -> ColumnDefinition:
        return cls(name, ColumnType.STRING, required=required, max_length=max_length,
                   validation_pattern=pattern, **kwargs)

    @classmethod
    def numeric(cls, name: str, *, required: bool = False, **kwargs: Any) -> ColumnDefinition:
        return cls(name, ColumnType.INTEGER, required=required, **kwargs)

    @classmethod
    def decimal(cls, name: str, *, required: bool = False, **kwargs: Any) -> ColumnDefinition:
        return cls(name, ColumnType.DECIMAL, required=required, **kwargs)

    @classmethod
    def boolean(cls, name: str, **kwargs: Any) -> ColumnDefinition:
        return cls(name, ColumnType.BOOLEAN, **kwargs)

    @classmethod
    def date(cls, name: str, *, display_format: str | None = "%Y-%m-%d", **kwargs: Any) -> ColumnDefinition:
        return cls(name, ColumnType.DATE, display_format=display_format, **kwargs)

    @classmethod
    def checkbox(cls, name: str = "Selected") -> ColumnDefinition:
        return cls(name, ColumnType.BOOLEAN, special_type=SpecialColumnType.CHECKBOX)

    @classmethod
    def delete_row(cls, name: str = "Delete") -> ColumnDefinition:
        return cls(name, ColumnType.OBJECT, read_only=True, special_type=SpecialColumnType.DELETE_ROW)

    @classmethod
    def valid_alerts(cls, name: str = "ValidationAlerts") -> ColumnDefinition:
        return cls(name, ColumnType.STRING, read_only=True, special_type=SpecialColumnType.VALID_ALERTS)

    @classmethod
    def row_number(cls, name: str = "RowNumber") -> ColumnDefinition:
        return cls(name, ColumnType.INTEGER, read_only=True, special_type=SpecialColumnType.ROW_NUMBER)


class ColumnSchema:
    """Ordered column list with case-insensitive lookup."""

    def __init__(self, columns: Iterable[ColumnDefinition]) -> None:
        self._columns = tuple(columns)
        self._by_key = {c.name.casefold(): c for c in self._columns}

    def __iter__(self) -> Iterator[ColumnDefinition]:
        return iter(self._columns)

    def __len__(self) -> int:
        return len(self._columns)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.casefold() in self._by_key

    @property
    def columns(self) -> tuple[ColumnDefinition, ...]:
        return self._columns

    @property
    def data_columns(self) -> tuple[ColumnDefinition, ...]:
        """Columns whose values live in row data (special columns excluded)."""
        return tuple(c for c in self._columns if not c.is_special)

    @property
    def names(self) -> list[str]:
        return [c.name for c in self.data_columns]

    def get(self, name: str) -> ColumnDefinition | None:
        return self._by_key.get(name.casefold())

    def canonical_name(self, name: str) -> str | None:
        col = self.get(name)
        return col.name if col is not None else None

    def special(self, special_type: SpecialColumnType) -> ColumnDefinition | None:
        for c in self._columns:
            if c.special_type is special_type:
                return c
        return None


def validate_schema(columns: Iterable[ColumnDefinition] | None) -> Result[tuple[ColumnDefinition, ...]]:
    """Check a column list: non-empty, unique names, at most one of each singleton role."""
    if columns is None:
        return Result.failure("columns must not be None", ErrorKind.NULL_INPUT)
    cols = tuple(columns)
    if not cols:
        return Result.failure("at least one column is required", ErrorKind.INVALID_ARGUMENT)
    seen: set[str] = set()
    for c in cols:
        if not c.name or not c.name.strip():
            return Result.failure("column name must not be blank", ErrorKind.INVALID_ARGUMENT)
        key = c.name.casefold()
        if key in seen:
            return Result.failure(f"duplicate column name: {c.name}", ErrorKind.INVALID_ARGUMENT)
        seen.add(key)
        if c.max_length is not None and c.max_length <= 0:
            return Result.failure(f"max_length must be positive: {c.name}", ErrorKind.INVALID_ARGUMENT)
    for role in (SpecialColumnType.DELETE_ROW, SpecialColumnType.VALID_ALERTS):
        if sum(1 for c in cols if c.special_type is role) > 1:
            return Result.failure(f"at most one {role.value} column is allowed", ErrorKind.INVALID_ARGUMENT)
    if not any(not c.is_special for c in cols):
        return Result.failure("at least one data column is required", ErrorKind.INVALID_ARGUMENT)
    return Result.success(cols)
