from __future__ import annotations

import time

from gridcore.models.column import ColumnDefinition, ColumnType
from gridcore.models.options import ExportOptions, ImportOptions, ValidationOptions
from gridcore.models.search import FilterDefinition, FilterOperator, SearchCriteria, SortCriteria
from gridcore.services.grid import DataGrid

"""Performance smoke test: 10k rows through import / validate / view / export.

Thresholds are lenient so CI stays stable; batch timing stats are checked for
presence rather than speed.
"""

ROWS = 10_000


def _grid() -> DataGrid:
    return DataGrid.initialize([
        ColumnDefinition("Id", ColumnType.INTEGER, required=True),
        ColumnDefinition("Name", required=True, max_length=40),
        ColumnDefinition("Score", ColumnType.DECIMAL),
    ]).value


def test_ten_thousand_rows_pipeline():
    grid = _grid()
    source = [{"Id": str(i), "Name": f"name-{i}", "Score": f"{i % 100}.5"} for i in range(ROWS)]

    start = time.perf_counter()
    imported = grid.import_rows(source, ImportOptions(batch_size=1000)).value
    validated = grid.validate_all(ValidationOptions(batch_size=1000)).value
    grid.apply_filters([FilterDefinition("Score", FilterOperator.GREATER_THAN, 50)])
    grid.search(SearchCriteria("name-99"))
    grid.sort([SortCriteria("Score")])
    exported = grid.export_rows(ExportOptions(only_visible_rows=True)).value
    elapsed = time.perf_counter() - start

    assert imported.imported_rows == ROWS
    assert imported.total_batches == 10
    assert imported.p95_batch_seconds > 0
    assert validated.is_valid
    assert exported.exported_rows == 5000
    assert elapsed < 30, f"pipeline too slow: {elapsed:.3f}s"
    throughput = ROWS / elapsed
    assert throughput > 300  # extremely lenient


def test_validate_all_with_single_row_batches_stays_linear():
    grid = _grid()
    grid.import_rows([{"Id": i, "Name": f"n{i}"} for i in range(6000)], ImportOptions(batch_size=1000))

    start = time.perf_counter()
    summary = grid.validate_all(ValidationOptions(batch_size=1)).value
    elapsed = time.perf_counter() - start

    assert summary.total_batches == 6000
    assert summary.valid_rows == 6000
    assert elapsed < 10, f"validate-all too slow: {elapsed:.3f}s"
