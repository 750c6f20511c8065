from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from ..models.cell import is_blank
from ..models.column import ColumnSchema
from ..models.result import ErrorKind, Result
from ..models.row import GridRow
from ..models.search import SortCriteria, SortDirection
from .coercion import to_python

"""Sort engine: computes a stable row order for one or more sort criteria.

Empty rows always stay at the end in their original relative order, so the
trailing empty row survives any sort.
"""

__all__ = [
    "sort_order",
]


def _sort_key(value: Any) -> tuple[int, Any]:
    # blank < number < date < text
    value = to_python(value)
    if is_blank(value):
        return (0, 0)
    if isinstance(value, bool):
        return (1, int(value))
    if isinstance(value, (int, float, Decimal)):
        return (1, value)
    if isinstance(value, datetime):
        return (2, value.replace(tzinfo=None))
    if isinstance(value, date):
        return (2, datetime(value.year, value.month, value.day))
    return (3, str(value).casefold())


def sort_order(
    rows: Sequence[GridRow],
    schema: ColumnSchema,
    criteria: Sequence[SortCriteria],
) -> Result[list[int]]:
    """Return ``order`` where ``order[new_index] == old_index``."""
    if not criteria:
        return Result.failure("at least one sort criterion is required", ErrorKind.INVALID_ARGUMENT)
    names: list[tuple[str, bool]] = []
    for c in criteria:
        col = schema.get(c.column_name)
        if col is None or col.is_special:
            return Result.failure(f"unknown sort column: {c.column_name}", ErrorKind.INVALID_ARGUMENT)
        names.append((col.name, c.direction is SortDirection.DESCENDING))

    filled = [r.row_index for r in rows if not r.is_empty]
    empty = [r.row_index for r in rows if r.is_empty]
    # 優先度の低いキーから順に安定ソート
    for name, descending in reversed(names):
        filled.sort(key=lambda i: _sort_key(rows[i].data.get(name)), reverse=descending)
    return Result.success(filled + empty)
