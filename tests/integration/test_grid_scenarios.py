from __future__ import annotations

import threading
from pathlib import Path

from gridcore.adapters.tabular import read_rows, write_rows
from gridcore.config.loader import load_config
from gridcore.models.events import EventKind
from gridcore.models.options import ExportOptions, ImportMode, ImportOptions
from gridcore.models.result import ErrorKind
from gridcore.models.search import FilterDefinition, FilterOperator, SearchCriteria, SortCriteria
from gridcore.services.batch import CancellationToken
from gridcore.services.grid import DataGrid


def test_editing_session(write_config: Path):
    """Typing into the trailing row, then filtering, searching and sorting keep the grid consistent."""
    grid = DataGrid.from_config(load_config(write_config)).value
    events = []
    grid.subscribe(events.append)

    grid.update_cell(0, "Id", 3)
    grid.update_cell(0, "Name", "Carol")
    grid.update_cell(1, "Id", 1)
    grid.update_cell(1, "Name", "Alice")
    grid.add_row({"Id": 2, "Name": "Bob", "Email": "bob@example.com"})
    assert grid.row_count == 4
    assert grid.rows()[-1]["Id"] is None

    grid.apply_filters([FilterDefinition("Id", FilterOperator.GREATER_THAN_OR_EQUAL, 2)])
    grid.search(SearchCriteria("o", only_visible_rows=True))
    assert grid.state.search_result.matching_row_indices == [0, 2]

    grid.sort([SortCriteria("Id")])
    assert [r["Name"] for r in grid.rows()] == ["Alice", "Bob", "Carol", ""]
    assert grid.state.visible_row_indices() == [1, 2]
    assert grid.state.search_result.matching_row_indices == [1, 2]

    versions = [e.version for e in events]
    assert versions == sorted(versions)
    assert events[-1].kind is EventKind.SORT_APPLIED
    assert grid.validate_all().value.is_valid


def test_export_import_round_trip(temp_workdir: Path, write_config: Path):
    cfg = load_config(write_config)
    source = DataGrid.from_config(cfg).value
    source.import_rows(
        [
            {"Id": 1, "Name": "Alice", "Age": 30, "Email": "alice@example.com"},
            {"Id": 2, "Name": "Bob", "Age": None, "Email": None},
        ],
        cfg.import_options(),
    )
    exported = source.export_rows().value
    target_file = write_rows(temp_workdir / "out" / "people.csv", exported.rows, exported.columns)

    target = DataGrid.from_config(cfg).value
    result = target.import_rows(read_rows(target_file), cfg.import_options()).value
    assert result.imported_rows == 2
    assert target.rows()[:2] == source.rows()[:2]


def test_merge_from_file(temp_workdir: Path, write_config: Path):
    cfg = load_config(write_config)
    grid = DataGrid.from_config(cfg).value
    grid.import_rows([{"Id": 1, "Name": "Alice"}, {"Id": 2, "Name": "Bob"}], cfg.import_options())
    update = temp_workdir / "data" / "update.csv"
    update.write_text("Id,Name,Age\n2,Bobby,41\n3,Cleo,22\n", encoding="utf-8")

    result = grid.import_rows(read_rows(update), cfg.import_options(ImportMode.MERGE)).value
    assert (result.updated_rows, result.imported_rows) == (1, 2)
    assert [(r["Id"], r["Name"], r["Age"]) for r in grid.rows()[:3]] == [
        (1, "Alice", None), (2, "Bobby", 41), (3, "Cleo", 22),
    ]


def test_background_import_can_be_cancelled(people_columns):
    grid = DataGrid.initialize(people_columns, batch_size=100).value
    token = CancellationToken()
    first_chunk = threading.Event()
    release = threading.Event()

    def sink(snapshot):
        if not first_chunk.is_set():
            first_chunk.set()
            release.wait(timeout=5)

    rows = [{"Name": f"n{i}"} for i in range(1000)]
    with grid:
        future = grid.submit(grid.import_rows, rows, None, sink, token)
        assert first_chunk.wait(timeout=5)
        token.cancel()
        release.set()
        result = future.result(timeout=10)

    assert result.kind is ErrorKind.CANCELLED
    assert result.partial.imported_rows == 100
    assert grid.row_count == 101


def test_background_operations_run_in_order(people_columns):
    grid = DataGrid.initialize(people_columns).value
    with grid:
        f1 = grid.submit(grid.import_rows, [{"Name": "a"}, {"Name": "b"}])
        f2 = grid.submit(grid.export_rows, ExportOptions())
        assert f1.result(timeout=10).is_success
        assert [r["Name"] for r in f2.result(timeout=10).value.rows] == ["a", "b"]


def test_import_options_from_config_stop_on_error(write_config: Path):
    grid = DataGrid.from_config(load_config(write_config)).value
    r = grid.import_rows(
        [{"Id": 1, "Name": "a"}, {"Id": "x", "Name": None}, {"Id": 3, "Name": "c"}],
        ImportOptions(stop_on_error=True, batch_size=1),
    )
    assert r.kind is ErrorKind.BATCH
    assert r.partial.imported_rows == 1
    assert grid.row_count == 2
