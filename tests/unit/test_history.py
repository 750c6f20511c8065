from __future__ import annotations

import pytest

from gridcore.models.events import EventKind
from gridcore.models.result import ErrorKind
from gridcore.models.search import FilterDefinition, FilterOperator
from gridcore.services.grid import DataGrid
from gridcore.services.history import GridHistory


def _names(g: DataGrid) -> list[str]:
    return [row["Name"] for row in g.rows()]


def test_undo_and_redo_restore_rows(grid: DataGrid, events):
    grid.add_row({"Name": "A"})
    grid.save_state("before B")
    grid.add_row({"Name": "B"})
    grid.set_checkbox(1, True)

    version = grid.version
    assert grid.undo().value == version + 1
    assert _names(grid) == ["A", ""]
    assert grid.state.checked_row_indices() == []
    assert events[-1].kind is EventKind.HISTORY_RESTORED
    assert (events[-1].action, events[-1].description) == ("undo", "before B")

    grid.redo()
    assert _names(grid) == ["A", "B", ""]
    assert grid.state.checked_row_indices() == [1]
    assert grid.manager.invariants_hold()


def test_restore_keeps_row_errors_and_refreshes_filters(grid: DataGrid):
    grid.add_row({"Age": 5})  # Name 未入力
    grid.save_state()
    grid.update_cell(0, "Name", "Bob")
    grid.apply_filters([FilterDefinition("Name", FilterOperator.IS_EMPTY)])

    grid.undo()

    assert grid.rows()[0] == {"Name": "", "Age": 5}
    assert [e.column_name for e in grid.row_errors(0).value] == ["Name"]
    assert grid.state.visible_row_indices() == [0, 1]


def test_nothing_to_undo_or_redo(grid: DataGrid):
    version = grid.version
    assert grid.undo().kind is ErrorKind.INVALID_ARGUMENT
    assert grid.redo().kind is ErrorKind.INVALID_ARGUMENT
    assert grid.version == version


def test_saving_clears_redo(grid: DataGrid):
    grid.save_state("one")
    grid.add_row({"Name": "A"})
    grid.undo()
    assert grid.history_summary().can_redo
    grid.save_state("two")
    summary = grid.history_summary()
    assert not summary.can_redo
    assert summary.undo_descriptions == ("two",)


def test_history_is_bounded(people_columns):
    g = DataGrid.initialize(people_columns, history_depth=2).value
    for name in ("A", "B", "C"):
        g.save_state(f"before {name}")
        g.add_row({"Name": name})
    summary = g.history_summary()
    assert summary.undo_count == 2
    assert summary.undo_descriptions == ("before C", "before B")
    g.undo()
    g.undo()
    assert _names(g) == ["A", ""]
    assert not g.history_summary().can_undo


def test_clear_history(grid: DataGrid):
    grid.save_state()
    grid.clear_history()
    assert grid.history_summary().undo_count == 0


def test_invalid_history_depth(people_columns):
    assert DataGrid.initialize(people_columns, history_depth=0).kind is ErrorKind.INVALID_ARGUMENT
    with pytest.raises(ValueError):
        GridHistory(0)
