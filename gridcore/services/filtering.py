from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from ..models.cell import is_blank
from ..models.column import ColumnDefinition, ColumnSchema, ColumnType
from ..models.result import ErrorKind, Result
from ..models.row import GridRow
from ..models.search import FilterDefinition, FilterLogic, FilterOperator, FilterResult
from .coercion import display_text, parse_date, to_python

logger = logging.getLogger(__name__)

"""Filter engine: computes the visible row subset without touching row data.

Values are compared numerically when both sides are numbers, chronologically
when both are dates, and as text otherwise (case-insensitive unless the filter
asks for case sensitivity).
"""

__all__ = [
    "apply_filters",
]

Predicate = Callable[[Any], bool]


def _number(value: Any) -> float | None:
    value = to_python(value)
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return None


def _as_datetime(value: Any, column: ColumnDefinition) -> datetime | None:
    value = to_python(value)
    if is_blank(value):
        return None
    if not isinstance(value, (datetime, date)):
        # 文字列の日付は DATE 列のときだけ解釈する
        if column.data_type is not ColumnType.DATE:
            return None
        try:
            value = parse_date(value, column.display_format)
        except (ValueError, TypeError):
            return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    return datetime(value.year, value.month, value.day)


def _compare(left: Any, right: Any, case_sensitive: bool, column: ColumnDefinition) -> int:
    ld, rd = _as_datetime(left, column), _as_datetime(right, column)
    if ld is not None and rd is not None:
        return (ld > rd) - (ld < rd)
    ln, rn = _number(left), _number(right)
    if ln is not None and rn is not None:
        return (ln > rn) - (ln < rn)
    lt, rt = display_text(left, column), display_text(right, column)
    if not case_sensitive:
        lt, rt = lt.casefold(), rt.casefold()
    return (lt > rt) - (lt < rt)


def _text(value: Any, case_sensitive: bool, column: ColumnDefinition) -> str:
    text = display_text(value, column)
    return text if case_sensitive else text.casefold()


def _build_predicate(f: FilterDefinition, column: ColumnDefinition) -> Result[Predicate]:
    op, target, cs = f.operator, f.value, f.case_sensitive

    def text(v: Any) -> str:
        return _text(v, cs, column)

    if op is FilterOperator.IS_NULL:
        return Result.success(lambda v: to_python(v) is None)
    if op is FilterOperator.IS_NOT_NULL:
        return Result.success(lambda v: to_python(v) is not None)
    if op is FilterOperator.IS_EMPTY:
        return Result.success(is_blank)
    if op is FilterOperator.IS_NOT_EMPTY:
        return Result.success(lambda v: not is_blank(v))
    if op is FilterOperator.EQUALS:
        return Result.success(lambda v: not is_blank(v) and _compare(v, target, cs, column) == 0)
    if op is FilterOperator.NOT_EQUALS:
        return Result.success(lambda v: is_blank(v) or _compare(v, target, cs, column) != 0)
    if op is FilterOperator.GREATER_THAN:
        return Result.success(lambda v: not is_blank(v) and _compare(v, target, cs, column) > 0)
    if op is FilterOperator.GREATER_THAN_OR_EQUAL:
        return Result.success(lambda v: not is_blank(v) and _compare(v, target, cs, column) >= 0)
    if op is FilterOperator.LESS_THAN:
        return Result.success(lambda v: not is_blank(v) and _compare(v, target, cs, column) < 0)
    if op is FilterOperator.LESS_THAN_OR_EQUAL:
        return Result.success(lambda v: not is_blank(v) and _compare(v, target, cs, column) <= 0)

    if op in (FilterOperator.CONTAINS, FilterOperator.NOT_CONTAINS,
              FilterOperator.STARTS_WITH, FilterOperator.ENDS_WITH):
        if target is None:
            return Result.failure(f"{op.value} filter requires a value", ErrorKind.INVALID_ARGUMENT)
        needle = str(target) if cs else str(target).casefold()
        if op is FilterOperator.CONTAINS:
            return Result.success(lambda v: needle in text(v))
        if op is FilterOperator.NOT_CONTAINS:
            return Result.success(lambda v: needle not in text(v))
        if op is FilterOperator.STARTS_WITH:
            return Result.success(lambda v: text(v).startswith(needle))
        return Result.success(lambda v: text(v).endswith(needle))

    if op in (FilterOperator.IN, FilterOperator.NOT_IN):
        if target is None or isinstance(target, str):
            return Result.failure(f"{op.value} filter requires a collection", ErrorKind.INVALID_ARGUMENT)
        candidates = list(target)

        def contained(v: Any) -> bool:
            return not is_blank(v) and any(_compare(v, c, cs, column) == 0 for c in candidates)

        if op is FilterOperator.IN:
            return Result.success(contained)
        return Result.success(lambda v: not contained(v))

    if op is FilterOperator.BETWEEN:
        try:
            low, high = target
        except (TypeError, ValueError):
            return Result.failure("between filter requires (low, high)", ErrorKind.INVALID_ARGUMENT)
        return Result.success(
            lambda v: not is_blank(v)
            and _compare(v, low, cs, column) >= 0
            and _compare(v, high, cs, column) <= 0
        )

    if op is FilterOperator.REGEX:
        try:
            pattern = re.compile(str(target), 0 if cs else re.IGNORECASE)
        except re.error as e:
            return Result.failure(f"invalid filter pattern: {e}", ErrorKind.INVALID_ARGUMENT, cause=e)
        return Result.success(lambda v: pattern.search(display_text(v, column)) is not None)

    return Result.failure(f"unsupported filter operator: {op}", ErrorKind.INVALID_ARGUMENT)


def apply_filters(
    rows: Sequence[GridRow],
    schema: ColumnSchema,
    filters: Sequence[FilterDefinition],
    logic: FilterLogic = FilterLogic.AND,
) -> Result[FilterResult]:
    """Return the ascending indices of rows passing ``filters``.

    Disabled filters are ignored; with no enabled filter every row is visible.
    """
    if filters is None:
        return Result.failure("filters must not be None", ErrorKind.NULL_INPUT)
    compiled: list[tuple[str, Predicate]] = []
    for f in filters:
        if not f.enabled:
            continue
        column = schema.get(f.column_name)
        if column is None:
            return Result.failure(f"unknown column: {f.column_name}", ErrorKind.INVALID_ARGUMENT)
        predicate = _build_predicate(f, column)
        if predicate.is_failure:
            return predicate  # type: ignore[return-value]
        compiled.append((column.name, predicate.value))

    if not compiled:
        indices = tuple(range(len(rows)))
    else:
        combine = all if logic is FilterLogic.AND else any
        try:
            indices = tuple(
                row.row_index for row in rows
                if combine(pred(row.data.get(name)) for name, pred in compiled)
            )
        except Exception as e:
            logger.warning("filter evaluation failed: %s", e)
            return Result.failure(f"filter evaluation failed: {e}", ErrorKind.INVALID_ARGUMENT, cause=e)
    logger.debug("filters applied count=%d visible=%d/%d", len(compiled), len(indices), len(rows))
    return Result.success(FilterResult(indices, len(rows), tuple(filters), logic))
