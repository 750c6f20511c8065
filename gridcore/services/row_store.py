from __future__ import annotations

import dataclasses
from collections.abc import Mapping, Sequence
from typing import Any

from ..models.grid_state import GridState
from ..models.row import GridRow

"""Row store: ordered row collection on top of the grid state.

Keeps ``row_index`` equal to position after every structural change and keeps
checkbox states aligned with the rows they belong to.
"""

__all__ = [
    "RowStore",
]


class RowStore:
    def __init__(self, state: GridState) -> None:
        self.state = state

    @property
    def rows(self) -> list[GridRow]:
        return self.state.rows

    def __len__(self) -> int:
        return len(self.state.rows)

    def __getitem__(self, index: int) -> GridRow:
        return self.state.rows[index]

    def in_range(self, index: int) -> bool:
        return 0 <= index < len(self.state.rows)

    # --- data shaping -------------------------------------------------
    def create_empty_data(self) -> dict[str, Any]:
        return {c.name: c.blank_value() for c in self.state.schema.data_columns}

    def normalize(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """Map keys to canonical column names and fill missing columns.

        Unknown keys pass through unchanged; virtual special columns are dropped.
        """
        schema = self.state.schema
        out: dict[str, Any] = {}
        extras: dict[str, Any] = {}
        for key, value in data.items():
            col = schema.get(str(key))
            if col is None:
                extras[key] = value
            elif not col.is_special:
                out[col.name] = value
        for col in schema.data_columns:
            if col.name not in out:
                out[col.name] = col.missing_value()
        ordered = {c.name: out[c.name] for c in schema.data_columns}
        ordered.update(extras)
        return ordered

    # --- queries ------------------------------------------------------
    def data_end(self) -> int:
        """Index just past the last non-empty row."""
        for i in range(len(self.state.rows) - 1, -1, -1):
            if not self.state.rows[i].is_empty:
                return i + 1
        return 0

    def non_empty_count(self) -> int:
        return sum(1 for r in self.state.rows if not r.is_empty)

    def last_row_is_empty(self) -> bool:
        return bool(self.state.rows) and self.state.rows[-1].is_empty

    # --- mutation -----------------------------------------------------
    def _reindex(self, start: int = 0) -> None:
        for i in range(start, len(self.state.rows)):
            row = self.state.rows[i]
            row.row_index = i
            if any(e.row_index not in (None, i) for e in row.validation_errors):
                row.validation_errors = [
                    dataclasses.replace(e, row_index=i) if e.row_index is not None else e for e in row.validation_errors
                ]

    def insert(self, index: int, data: dict[str, Any]) -> GridRow:
        row = GridRow(data=data, row_index=index)
        self.state.rows.insert(index, row)
        self.state.row_inserted(index)
        self._reindex(index)
        return row

    def append_empty(self) -> GridRow:
        return self.insert(len(self.state.rows), self.create_empty_data())

    def remove(self, index: int) -> GridRow:
        row = self.state.rows.pop(index)
        self.state.row_removed(index)
        self._reindex(index)
        return row

    def replace(self, index: int, data: dict[str, Any]) -> dict[str, Any]:
        row = self.state.rows[index]
        old = row.data
        row.data = data
        row.validation_errors = []
        return old

    def clear(self) -> int:
        removed = len(self.state.rows)
        self.state.rows.clear()
        self.state.checkbox_states = {}
        return removed

    def reorder(self, order: Sequence[int]) -> None:
        """Apply a permutation; ``order[new_index] == old_index``."""
        if sorted(order) != list(range(len(self.state.rows))):
            raise ValueError("order must be a permutation of the current row indices")
        self.state.rows[:] = [self.state.rows[i] for i in order]
        self.state.rows_reordered(order)
        self._reindex()

