from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta

import pytest

from gridcore.models.error_record import BatchErrorRecord
from gridcore.models.events import EventKind, RowAdded
from gridcore.models.processing_result import BatchStatsAccumulator, ImportResult
from gridcore.models.progress import ExportProgress, ImportProgress, ValidationProgress
from gridcore.services.grid import DataGrid
from gridcore.services.notifier import ChangeNotifier

START = datetime(2024, 1, 1, tzinfo=UTC)


class TestProgress:
    def test_derived_values(self):
        p = ImportProgress(
            total_rows=1000, processed_rows=250, start_time=START, elapsed_seconds=5.0,
            successful_rows=200, failed_rows=50,
        )
        assert p.percentage_complete == 25.0
        assert p.processing_rate == 50.0
        assert p.success_rate == 80.0
        assert p.estimated_time_remaining == timedelta(seconds=15)
        assert p.estimated_completion == START + timedelta(seconds=20)
        assert not p.is_complete

    def test_no_estimate_at_start_or_end(self):
        assert ImportProgress(10, 0, START, 0.0).estimated_time_remaining is None
        done = ExportProgress(10, 10, START, 1.0, exported_rows=9, skipped_rows=1)
        assert done.estimated_completion is None
        assert done.is_complete
        assert done.success_rate == 90.0

    def test_empty_operation_is_complete(self):
        p = ValidationProgress(0, 0, START, 0.0)
        assert p.percentage_complete == 100.0
        assert p.processing_rate == 0.0
        assert p.error_rate == 0.0

    def test_validation_rates(self):
        p = ValidationProgress(10, 4, START, 1.0, valid_rows=3, rows_with_errors=1, rows_with_warnings=2)
        assert p.success_rate == 75.0
        assert p.error_rate == 25.0
        assert p.warning_rate == 50.0


class TestBatchStats:
    def test_empty(self):
        assert BatchStatsAccumulator().get_stats() == (0, 0.0, 0.0)

    def test_single_batch(self):
        acc = BatchStatsAccumulator()
        acc.add_batch_time(0.4)
        assert acc.get_stats() == (1, 0.4, 0.4)

    def test_p95(self):
        acc = BatchStatsAccumulator()
        for t in range(1, 21):
            acc.add_batch_time(float(t))
        count, avg, p95 = acc.get_stats()
        assert count == 20
        assert avg == pytest.approx(10.5)
        assert 18.0 < p95 <= 20.0


def test_import_result_throughput():
    r = ImportResult(10, 8, 2, 0, 0, START, START, 2.0)
    assert r.throughput_rows_per_sec == 4.0
    assert not r.is_complete_success


def test_error_record_json_line():
    rec = BatchErrorRecord.create("import", 3, "MALFORMED_ROW", "bad row")
    data = json.loads(rec.to_json_line())
    assert list(data) == ["timestamp", "operation", "row", "column", "error_type", "message"]
    assert data["timestamp"].endswith("Z")
    assert data["column"] is None


class TestNotifier:
    def test_ordered_delivery_and_unsubscribe(self):
        notifier = ChangeNotifier()
        seen = []
        unsubscribe = notifier.subscribe(lambda e: seen.append(("a", e.version)))
        notifier.subscribe(lambda e: seen.append(("b", e.version)))
        notifier.publish(RowAdded(version=2, row_index=0, data={}))
        unsubscribe()
        notifier.publish(RowAdded(version=3, row_index=0, data={}))
        assert seen == [("a", 2), ("b", 2), ("b", 3)]
        assert notifier.subscriber_count == 1

    def test_raising_subscriber_is_isolated(self):
        notifier = ChangeNotifier()
        seen = []

        def bad(_):
            raise RuntimeError("listener bug")

        notifier.subscribe(bad)
        notifier.subscribe(seen.append)
        notifier.publish(RowAdded(version=2, row_index=0, data={}))
        assert [e.kind for e in seen] == [EventKind.ROW_ADDED]


class TestSnapshot:
    def test_snapshot_is_detached_and_read_only(self, grid: DataGrid):
        grid.add_row({"Name": "A", "Age": 1})
        snap = grid.snapshot()
        grid.modify_row(0, {"Name": "B"})
        assert snap.rows[0]["Name"] == "A"
        assert snap.version == grid.version - 1
        assert snap.columns == ("Name", "Age")
        with pytest.raises(TypeError):
            snap.rows[0]["Name"] = "C"

    def test_snapshot_carries_view_state(self, grid: DataGrid):
        grid.add_row({"Name": "A"})
        grid.set_checkbox(0, True)
        snap = grid.snapshot()
        assert snap.checkbox_states == {0: True}
        assert snap.filtered_row_indices is None
        assert snap.row_count == 2
