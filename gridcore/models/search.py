from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

"""Search, filter and sort value types."""

__all__ = [
    "SearchCriteria",
    "SearchMatch",
    "SearchResult",
    "NavigationDirection",
    "FilterOperator",
    "FilterLogic",
    "FilterDefinition",
    "FilterResult",
    "SortDirection",
    "SortCriteria",
]


@dataclass(frozen=True)
class SearchCriteria:
    text: str
    columns: tuple[str, ...] | None = None  # None = 全データ列
    case_sensitive: bool = False
    use_regex: bool = False
    whole_word: bool = False
    max_results: int | None = None
    only_visible_rows: bool = False


@dataclass(frozen=True)
class SearchMatch:
    row_index: int
    column_name: str
    value: Any


@dataclass(frozen=True)
class SearchResult:
    criteria: SearchCriteria
    matches: tuple[SearchMatch, ...] = ()
    elapsed_seconds: float = 0.0
    truncated: bool = False

    @property
    def matching_row_indices(self) -> list[int]:
        return sorted({m.row_index for m in self.matches})

    @property
    def match_count(self) -> int:
        return len(self.matches)

    @property
    def has_matches(self) -> bool:
        return bool(self.matches)


class NavigationDirection(str, Enum):
    FIRST = "first"
    PREVIOUS = "previous"
    NEXT = "next"
    LAST = "last"


class FilterOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    GREATER_THAN = "gt"
    GREATER_THAN_OR_EQUAL = "gte"
    LESS_THAN = "lt"
    LESS_THAN_OR_EQUAL = "lte"
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"
    IN = "in"
    NOT_IN = "not_in"
    BETWEEN = "between"
    REGEX = "regex"


class FilterLogic(str, Enum):
    AND = "and"
    OR = "or"


@dataclass(frozen=True)
class FilterDefinition:
    column_name: str
    operator: FilterOperator
    value: Any = None  # IN/NOT_IN は iterable, BETWEEN は (low, high)
    case_sensitive: bool = False
    enabled: bool = True


@dataclass(frozen=True)
class FilterResult:
    row_indices: tuple[int, ...]
    total_rows: int
    filters: tuple[FilterDefinition, ...] = field(default_factory=tuple)
    logic: FilterLogic = FilterLogic.AND

    @property
    def visible_rows(self) -> int:
        return len(self.row_indices)


class SortDirection(str, Enum):
    ASCENDING = "asc"
    DESCENDING = "desc"


@dataclass(frozen=True)
class SortCriteria:
    column_name: str
    direction: SortDirection = SortDirection.ASCENDING
