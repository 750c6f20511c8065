from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

"""Change-notification events published to subscribers (e.g. a UI layer).

Every event carries the grid state version it was published at.
"""

__all__ = [
    "EventKind",
    "GridEvent",
    "RowAdded",
    "RowDeleted",
    "RowModified",
    "ValidationCompleted",
    "FilterApplied",
    "DataImported",
    "GridCleared",
    "SortApplied",
    "SearchCompleted",
    "HistoryRestored",
]


class EventKind(str, Enum):
    ROW_ADDED = "row_added"
    ROW_DELETED = "row_deleted"
    ROW_MODIFIED = "row_modified"
    VALIDATION_COMPLETED = "validation_completed"
    FILTER_APPLIED = "filter_applied"
    DATA_IMPORTED = "data_imported"
    GRID_CLEARED = "grid_cleared"
    SORT_APPLIED = "sort_applied"
    SEARCH_COMPLETED = "search_completed"
    HISTORY_RESTORED = "history_restored"


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, kw_only=True)
class GridEvent:
    kind: EventKind = field(init=False)
    version: int
    timestamp: datetime = field(default_factory=_now)


@dataclass(frozen=True, kw_only=True)
class RowAdded(GridEvent):
    kind: EventKind = field(default=EventKind.ROW_ADDED, init=False)
    row_index: int
    data: dict[str, Any]
    validation_error_count: int = 0


@dataclass(frozen=True, kw_only=True)
class RowDeleted(GridEvent):
    kind: EventKind = field(default=EventKind.ROW_DELETED, init=False)
    row_index: int
    data: dict[str, Any]


@dataclass(frozen=True, kw_only=True)
class RowModified(GridEvent):
    kind: EventKind = field(default=EventKind.ROW_MODIFIED, init=False)
    row_index: int
    old_data: dict[str, Any]
    new_data: dict[str, Any]
    validation_error_count: int = 0


@dataclass(frozen=True, kw_only=True)
class ValidationCompleted(GridEvent):
    kind: EventKind = field(default=EventKind.VALIDATION_COMPLETED, init=False)
    total_rows: int
    rows_with_errors: int
    total_errors: int


@dataclass(frozen=True, kw_only=True)
class FilterApplied(GridEvent):
    kind: EventKind = field(default=EventKind.FILTER_APPLIED, init=False)
    filter_count: int
    visible_rows: int  # 表示対象行数 (フィルタ解除時は全行)
    total_rows: int


@dataclass(frozen=True, kw_only=True)
class DataImported(GridEvent):
    kind: EventKind = field(default=EventKind.DATA_IMPORTED, init=False)
    mode: str
    imported_rows: int
    failed_rows: int


@dataclass(frozen=True, kw_only=True)
class GridCleared(GridEvent):
    kind: EventKind = field(default=EventKind.GRID_CLEARED, init=False)
    removed_rows: int


@dataclass(frozen=True, kw_only=True)
class SortApplied(GridEvent):
    kind: EventKind = field(default=EventKind.SORT_APPLIED, init=False)
    columns: tuple[str, ...]


@dataclass(frozen=True, kw_only=True)
class SearchCompleted(GridEvent):
    kind: EventKind = field(default=EventKind.SEARCH_COMPLETED, init=False)
    text: str
    match_count: int


@dataclass(frozen=True, kw_only=True)
class HistoryRestored(GridEvent):
    kind: EventKind = field(default=EventKind.HISTORY_RESTORED, init=False)
    action: str  # "undo" / "redo"
    description: str
    row_count: int
