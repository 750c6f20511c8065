from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import numpy as np
import pandas as pd
import pytest

from gridcore.models.column import ColumnDefinition, ColumnType
from gridcore.services.coercion import convert_for_import, display_text, format_for_export, to_python

INT = ColumnDefinition("N", ColumnType.INTEGER)
DEC = ColumnDefinition("D", ColumnType.DECIMAL)
BOOL = ColumnDefinition("B", ColumnType.BOOLEAN)
DATE = ColumnDefinition.date("When")
TEXT = ColumnDefinition("T")


class TestToPython:
    def test_unwraps_numpy_and_pandas(self):
        assert to_python(np.int64(4)) == 4 and type(to_python(np.int64(4))) is int
        assert to_python(np.float64(1.5)) == 1.5
        assert to_python(pd.NA) is None
        assert to_python(pd.NaT) is None
        assert to_python(float("nan")) is None
        assert to_python(pd.Timestamp("2024-03-01")) == datetime(2024, 3, 1)


class TestConvertForImport:
    @pytest.mark.parametrize("raw,expected", [("42", 42), (" 1,000 ", 1000), (7.0, 7), ("3.0", 3)])
    def test_integer(self, raw, expected):
        assert convert_for_import(raw, INT) == (expected, True)

    def test_integer_rejects_fraction_and_falls_back(self):
        assert convert_for_import("1.5", INT) == (None, False)
        assert convert_for_import("abc", INT) == (None, False)

    def test_fallback_uses_default_value(self):
        col = ColumnDefinition("N", ColumnType.INTEGER, default_value=0)
        assert convert_for_import("x", col) == (0, False)

    def test_decimal_bool_and_text(self):
        assert convert_for_import("2.5", DEC) == (Decimal("2.5"), True)
        assert convert_for_import("yes", BOOL) == (True, True)
        assert convert_for_import("0", BOOL) == (False, True)
        assert convert_for_import("maybe", BOOL) == (None, False)
        assert convert_for_import(12, TEXT) == ("12", True)

    def test_decimal_keeps_precision(self):
        assert convert_for_import(0.1, DEC) == (Decimal("0.1"), True)
        assert convert_for_import("1,234.50", DEC) == (Decimal("1234.50"), True)
        assert convert_for_import("nan", DEC) == (None, False)

    def test_dates(self):
        assert convert_for_import("2024-05-06", DATE) == (datetime(2024, 5, 6), True)
        assert convert_for_import("06.05.2024", DATE) == (datetime(2024, 5, 6), True)
        assert convert_for_import(date(2024, 1, 2), DATE) == (date(2024, 1, 2), True)
        assert convert_for_import("someday", DATE) == (None, False)

    def test_blank_input_gives_missing_value(self):
        assert convert_for_import("  ", TEXT) == ("", True)
        assert convert_for_import(None, INT) == (None, True)


class TestExportFormatting:
    def test_dates_use_option_then_column_format(self):
        d = datetime(2024, 5, 6, 7, 8)
        assert format_for_export(d, DATE) == "2024-05-06"
        assert format_for_export(d, DATE, date_format="%d/%m/%Y") == "06/05/2024"

    def test_numbers_and_bools(self):
        assert format_for_export(3.14159, DEC, number_format="{:.2f}") == "3.14"
        assert format_for_export(True, BOOL) is True
        assert format_for_export(True, BOOL, bool_as_text=True) == "true"
        assert format_for_export(None, TEXT) is None

    def test_display_text(self):
        assert display_text(None) == ""
        assert display_text(False) == "false"
        assert display_text(datetime(2024, 1, 2), DATE) == "2024-01-02"
        assert display_text(5) == "5"
