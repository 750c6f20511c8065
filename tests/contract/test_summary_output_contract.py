from __future__ import annotations

import re

from gridcore.models.options import ImportOptions
from gridcore.services.grid import DataGrid
from gridcore.services.summary import render_import_summary

"""SUMMARY line contract: fixed key order, plain numbers."""

SUMMARY_RE = re.compile(
    r"^SUMMARY rows=\d+ imported=\d+ updated=\d+ failed=\d+ skipped=\d+"
    r"( invalid_rows=\d+ errors=\d+)? elapsed_sec=[0-9.]+ throughput_rps=[0-9.]+$"
)


def test_summary_line_format(people_columns):
    grid = DataGrid.initialize(people_columns).value
    imported = grid.import_rows([{"Name": "a"}, {"Age": 2}], ImportOptions(batch_size=1)).value
    validated = grid.validate_all().value

    assert SUMMARY_RE.match(render_import_summary(imported))
    line = render_import_summary(imported, validated)
    assert SUMMARY_RE.match(line)
    assert "rows=2 imported=1 updated=0 failed=1 skipped=0 invalid_rows=0 errors=0" in line
    assert "e-" not in line  # 指数表記なし
