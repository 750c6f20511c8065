from __future__ import annotations

import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any

from .column import ColumnSchema
from .row import GridRow
from .search import FilterDefinition, FilterLogic, SearchResult
from .validation import ValidationError

"""Grid state aggregate and its immutable snapshot.

Owned by a single writer (the grid facade). Readers on other threads take a
``GridSnapshot`` and never touch the mutable state directly.
"""

__all__ = [
    "GridState",
    "GridSnapshot",
]


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class GridSnapshot:
    id: str
    version: int
    columns: tuple[str, ...]
    rows: tuple[Mapping[str, Any], ...]
    checkbox_states: Mapping[int, bool]
    filtered_row_indices: tuple[int, ...] | None
    validation_errors: tuple[ValidationError, ...]
    last_modified: datetime

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def visible_rows(self) -> list[Mapping[str, Any]]:
        if self.filtered_row_indices is None:
            return list(self.rows)
        return [self.rows[i] for i in self.filtered_row_indices]


@dataclass
class GridState:
    schema: ColumnSchema
    rows: list[GridRow] = field(default_factory=list)
    checkbox_states: dict[int, bool] = field(default_factory=dict)
    filtered_row_indices: list[int] | None = None  # None = 全行表示
    active_filters: tuple[FilterDefinition, ...] = ()
    filter_logic: FilterLogic = FilterLogic.AND
    search_result: SearchResult | None = None
    validation_errors: list[ValidationError] = field(default_factory=list)
    version: int = 1
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=_now)
    last_modified: datetime = field(default_factory=_now)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def is_filtered(self) -> bool:
        return self.filtered_row_indices is not None

    @property
    def visible_row_count(self) -> int:
        if self.filtered_row_indices is None:
            return len(self.rows)
        return len(self.filtered_row_indices)

    def visible_row_indices(self) -> list[int]:
        if self.filtered_row_indices is None:
            return list(range(len(self.rows)))
        return list(self.filtered_row_indices)

    def checked_row_indices(self) -> list[int]:
        return sorted(i for i, checked in self.checkbox_states.items() if checked)

    def bump_version(self) -> int:
        self.version += 1
        self.last_modified = _now()
        return self.version

    # 行構造の変化に合わせてチェック状態の添字をずらす
    def row_inserted(self, index: int, count: int = 1) -> None:
        self.checkbox_states = {
            (i + count if i >= index else i): v for i, v in self.checkbox_states.items()
        }

    def row_removed(self, index: int) -> None:
        shifted: dict[int, bool] = {}
        for i, v in self.checkbox_states.items():
            if i == index:
                continue
            shifted[i - 1 if i > index else i] = v
        self.checkbox_states = shifted

    def rows_reordered(self, order: Sequence[int]) -> None:
        """``order[new_index] == old_index``."""
        position = {old: new for new, old in enumerate(order)}
        self.checkbox_states = {position[i]: v for i, v in self.checkbox_states.items() if i in position}

    def reset_view(self) -> None:
        """Drop filters, search and per-row view state."""
        self.filtered_row_indices = None
        self.active_filters = ()
        self.filter_logic = FilterLogic.AND
        self.search_result = None
        self.checkbox_states = {}
        self.validation_errors = []

    def snapshot(self) -> GridSnapshot:
        return GridSnapshot(
            id=self.id,
            version=self.version,
            columns=tuple(self.schema.names),
            rows=tuple(MappingProxyType(r.snapshot()) for r in self.rows),
            checkbox_states=MappingProxyType(dict(self.checkbox_states)),
            filtered_row_indices=(
                tuple(self.filtered_row_indices) if self.filtered_row_indices is not None else None
            ),
            validation_errors=tuple(self.validation_errors),
            last_modified=self.last_modified,
        )
