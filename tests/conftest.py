# Shared pytest fixtures
from __future__ import annotations
import tempfile
from pathlib import Path

import pytest

from gridcore.models.column import ColumnDefinition, ColumnType
from gridcore.services.grid import DataGrid


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """minimum_rows: 1
batch_size: 2
columns:
  - name: Id
    type: integer
    required: true
    unique: true
  - name: Name
    type: string
    required: true
    max_length: 20
  - name: Age
    type: integer
    min: 0
    max: 150
  - name: Email
    type: string
    pattern: "[^@]+@[^@]+"
  - name: Selected
    special: checkbox
import:
  mode: replace
  key_columns: [Id]
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "grid.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def people_columns() -> list[ColumnDefinition]:
    return [
        ColumnDefinition("Name", ColumnType.STRING, required=True),
        ColumnDefinition("Age", ColumnType.INTEGER),
    ]


@pytest.fixture()
def grid(people_columns) -> DataGrid:
    g = DataGrid.initialize(people_columns, minimum_rows=1).value
    yield g
    g.close()


@pytest.fixture()
def events(grid: DataGrid) -> list:
    received: list = []
    grid.subscribe(received.append)
    return received
