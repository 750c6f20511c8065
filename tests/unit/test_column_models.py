from __future__ import annotations

import math

import numpy as np
import pandas as pd

from gridcore.models.cell import CellKind, cell_kind, is_blank, is_row_empty
from gridcore.models.column import (
    ColumnDefinition,
    ColumnSchema,
    ColumnType,
    SpecialColumnType,
    validate_schema,
)
from gridcore.models.result import ErrorKind


class TestColumnDefinition:
    def test_blank_and_missing_values(self):
        text = ColumnDefinition("Name")
        age = ColumnDefinition("Age", ColumnType.INTEGER)
        country = ColumnDefinition("Country", default_value="JP")
        assert text.blank_value() == ""
        assert age.blank_value() is None
        assert country.missing_value() == "JP"
        assert age.missing_value() is None

    def test_special_factories(self):
        assert ColumnDefinition.checkbox().special_type is SpecialColumnType.CHECKBOX
        assert ColumnDefinition.delete_row().read_only
        assert ColumnDefinition.valid_alerts().is_special
        assert not ColumnDefinition.text("A").is_special


class TestValidateSchema:
    def test_accepts_valid_schema(self):
        r = validate_schema([ColumnDefinition("A"), ColumnDefinition.checkbox()])
        assert r.is_success
        assert len(r.value) == 2

    def test_rejects_empty_and_none(self):
        assert validate_schema([]).kind is ErrorKind.INVALID_ARGUMENT
        assert validate_schema(None).kind is ErrorKind.NULL_INPUT

    def test_rejects_duplicate_names_case_insensitive(self):
        r = validate_schema([ColumnDefinition("Name"), ColumnDefinition("name")])
        assert r.is_failure and "duplicate" in r.message

    def test_rejects_second_delete_row_column(self):
        r = validate_schema([
            ColumnDefinition("A"),
            ColumnDefinition.delete_row("Del1"),
            ColumnDefinition.delete_row("Del2"),
        ])
        assert r.is_failure

    def test_rejects_only_special_columns(self):
        assert validate_schema([ColumnDefinition.checkbox()]).is_failure


def test_schema_lookup_is_case_insensitive():
    schema = ColumnSchema([ColumnDefinition("Name"), ColumnDefinition.checkbox("Sel")])
    assert schema.canonical_name("NAME") == "Name"
    assert "sel" in schema
    assert schema.names == ["Name"]  # special columns are not data columns


class TestCells:
    def test_is_blank(self):
        assert is_blank(None)
        assert is_blank("   ")
        assert is_blank(float("nan"))
        assert is_blank(pd.NA)
        assert is_blank(pd.NaT)
        assert not is_blank(0)
        assert not is_blank(False)
        assert not is_blank("x")

    def test_cell_kind(self):
        assert cell_kind(None) is CellKind.NULL
        assert cell_kind(True) is CellKind.BOOLEAN
        assert cell_kind(np.int64(3)) is CellKind.INTEGER
        assert cell_kind(math.pi) is CellKind.DECIMAL
        assert cell_kind(pd.Timestamp("2024-01-01")) is CellKind.DATE
        assert cell_kind("a") is CellKind.STRING
        assert cell_kind(object()) is CellKind.OPAQUE

    def test_is_row_empty(self):
        assert is_row_empty({"a": "", "b": None})
        assert not is_row_empty({"a": "", "b": 0})


def test_typed_factories():
    assert ColumnDefinition.text("A", required=True, max_length=5).max_length == 5
    assert ColumnDefinition.numeric("N").data_type is ColumnType.INTEGER
    assert ColumnDefinition.decimal("D").data_type is ColumnType.DECIMAL
    assert ColumnDefinition.boolean("B").data_type is ColumnType.BOOLEAN
    assert ColumnDefinition.date("When").display_format == "%Y-%m-%d"
    assert ColumnDefinition.row_number().special_type is SpecialColumnType.ROW_NUMBER


def test_grid_row_flags():
    from gridcore.models.row import GridRow
    from gridcore.models.validation import ValidationError, ValidationSeverity

    row = GridRow({"Name": "x"}, 0, [ValidationError("Name", "odd", severity=ValidationSeverity.WARNING)])
    assert row.is_valid and row.has_warnings and not row.is_empty
    row.validation_errors.append(ValidationError("Name", "bad"))
    assert not row.is_valid
    assert GridRow({"Name": " "}, 1).is_empty
