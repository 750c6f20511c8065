from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from ..models.grid_state import GridState
from ..models.row import GridRow
from ..models.validation import ValidationError

logger = logging.getLogger(__name__)

"""Bounded undo/redo history of grid states.

Callers save the current state before a change they may want to revert.
``undo`` swaps the current state for the most recent saved one and keeps
the current state on the redo stack; saving a new state clears redo.
When the undo stack is full the oldest entry is dropped.
"""

__all__ = [
    "HistoryEntry",
    "HistorySummary",
    "GridHistory",
]


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class HistoryEntry:
    description: str
    version: int
    rows: tuple[tuple[dict[str, Any], tuple[ValidationError, ...]], ...]
    checkbox_states: dict[int, bool]
    validation_errors: tuple[ValidationError, ...]
    saved_at: datetime = field(default_factory=_now)

    @classmethod
    def capture(cls, state: GridState, description: str = "") -> HistoryEntry:
        return cls(
            description=description,
            version=state.version,
            rows=tuple((r.snapshot(), tuple(r.validation_errors)) for r in state.rows),
            checkbox_states=dict(state.checkbox_states),
            validation_errors=tuple(state.validation_errors),
        )

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def apply_to(self, state: GridState) -> None:
        """Replace rows and row-level state; filters and search are recomputed by the caller."""
        state.rows[:] = [
            GridRow(data=dict(data), row_index=i, validation_errors=list(errors))
            for i, (data, errors) in enumerate(self.rows)
        ]
        state.checkbox_states = dict(self.checkbox_states)
        state.validation_errors = list(self.validation_errors)


@dataclass(frozen=True)
class HistorySummary:
    max_depth: int
    undo_count: int
    redo_count: int
    undo_descriptions: tuple[str, ...]  # 新しい順
    redo_descriptions: tuple[str, ...]

    @property
    def can_undo(self) -> bool:
        return self.undo_count > 0

    @property
    def can_redo(self) -> bool:
        return self.redo_count > 0


class GridHistory:
    def __init__(self, max_depth: int = 50) -> None:
        if max_depth < 1:
            raise ValueError(f"max_depth must be >= 1: {max_depth}")
        self.max_depth = max_depth
        self._undo: deque[HistoryEntry] = deque(maxlen=max_depth)
        self._redo: deque[HistoryEntry] = deque(maxlen=max_depth)

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    def save(self, state: GridState, description: str = "") -> int:
        """Push the current state; returns the undo depth."""
        if len(self._undo) == self.max_depth:
            logger.debug("history full; dropping oldest entry version=%d", self._undo[0].version)
        self._undo.append(HistoryEntry.capture(state, description))
        self._redo.clear()
        return len(self._undo)

    def undo(self, state: GridState) -> HistoryEntry | None:
        """Restore the latest saved state into ``state``; returns the restored entry."""
        if not self._undo:
            return None
        entry = self._undo.pop()
        self._redo.append(HistoryEntry.capture(state, entry.description))
        entry.apply_to(state)
        return entry

    def redo(self, state: GridState) -> HistoryEntry | None:
        if not self._redo:
            return None
        entry = self._redo.pop()
        self._undo.append(HistoryEntry.capture(state, entry.description))
        entry.apply_to(state)
        return entry

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()

    def summary(self) -> HistorySummary:
        return HistorySummary(
            max_depth=self.max_depth,
            undo_count=len(self._undo),
            redo_count=len(self._redo),
            undo_descriptions=tuple(e.description for e in reversed(self._undo)),
            redo_descriptions=tuple(e.description for e in reversed(self._redo)),
        )
