from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

import numpy as np
import pandas as pd

from ..models.cell import is_blank
from ..models.column import ColumnDefinition, ColumnType

"""Type coercion for import and value formatting for export.

Import coercion never fails hard: an unparseable value falls back to the
column's missing value and the caller is told so (``ok=False``) to record a
warning.
"""

__all__ = [
    "to_python",
    "convert_for_import",
    "format_for_export",
    "display_text",
    "parse_date",
]

TRUE_STRINGS = {"true", "1", "yes", "y", "on", "t"}
FALSE_STRINGS = {"false", "0", "no", "n", "off", "f"}
DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%d.%m.%Y", "%m/%d/%Y", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S")


def to_python(value: Any) -> Any:
    """Unwrap numpy / pandas scalars into plain Python values; NA becomes None."""
    if value is None or value is pd.NaT or value is pd.NA:
        return None
    if isinstance(value, pd.Timestamp):
        return None if pd.isna(value) else value.to_pydatetime()
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and value != value:  # NaN
        return None
    return value


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"not an integer: {value}")
        return int(value)
    text = str(value).strip().replace(",", "")
    d = Decimal(text)
    if d != d.to_integral_value():
        raise ValueError(f"not an integer: {value}")
    return int(d)


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        d = value
    elif isinstance(value, bool):
        d = Decimal(int(value))
    else:
        # float は str 経由 (0.1 -> Decimal("0.1"))
        d = Decimal(str(value).strip().replace(",", ""))
    if not d.is_finite():
        raise ValueError(f"not a finite decimal: {value}")
    return d


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    text = str(value).strip().lower()
    if text in TRUE_STRINGS:
        return True
    if text in FALSE_STRINGS:
        return False
    raise ValueError(f"not a boolean: {value}")


def parse_date(value: Any, display_format: str | None = None) -> datetime | date:
    if isinstance(value, (datetime, date)):
        return value
    text = str(value).strip()
    formats = (display_format,) + DATE_FORMATS if display_format else DATE_FORMATS
    for fmt in formats:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return datetime.fromisoformat(text)


def convert_for_import(value: Any, column: ColumnDefinition) -> tuple[Any, bool]:
    """Coerce ``value`` to the column type. Returns (value, ok)."""
    value = to_python(value)
    if is_blank(value):
        return column.missing_value(), True
    try:
        if column.data_type is ColumnType.STRING:
            return str(value), True
        if column.data_type is ColumnType.INTEGER:
            return _to_int(value), True
        if column.data_type is ColumnType.DECIMAL:
            return _to_decimal(value), True
        if column.data_type is ColumnType.BOOLEAN:
            return _to_bool(value), True
        if column.data_type is ColumnType.DATE:
            return parse_date(value, column.display_format), True
        return value, True
    except (ValueError, TypeError, OverflowError, InvalidOperation):
        return column.missing_value(), False


def format_for_export(
    value: Any,
    column: ColumnDefinition,
    *,
    date_format: str | None = None,
    number_format: str | None = None,
    bool_as_text: bool = False,
) -> Any:
    value = to_python(value)
    if value is None:
        return None
    if isinstance(value, bool):
        return ("true" if value else "false") if bool_as_text else value
    if isinstance(value, (datetime, date)):
        fmt = date_format or column.display_format
        return value.strftime(fmt) if fmt else value
    if isinstance(value, (int, float, Decimal)) and number_format:
        return number_format.format(value)
    return value


def display_text(value: Any, column: ColumnDefinition | None = None) -> str:
    """Text form used for search and text comparison."""
    value = to_python(value)
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        fmt = column.display_format if column is not None else None
        return value.strftime(fmt) if fmt else value.isoformat()
    return str(value)
