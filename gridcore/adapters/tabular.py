from __future__ import annotations

from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

import pandas as pd

from gridcore.services.coercion import to_python

"""Tabular source adapters (pandas).

Turns CSV / Excel / JSON files and DataFrames into plain row dicts for
``DataGrid.import_rows`` and writes exported rows back out. Values are
unwrapped from numpy / pandas types; NA cells become ``None``.

CSV cells are read as text so that column typing is left to import coercion
(leading zeros etc. survive).
"""

__all__ = [
    "SourceFormatError",
    "MissingColumnsError",
    "SUPPORTED_SUFFIXES",
    "rows_from_dataframe",
    "dataframe_from_rows",
    "read_rows",
    "write_rows",
]

SUPPORTED_SUFFIXES = (".csv", ".xlsx", ".json")


class SourceFormatError(Exception):
    """Raised for unsupported or unreadable source files."""


class MissingColumnsError(Exception):
    """Raised when expected columns are missing from the source header."""


def rows_from_dataframe(df: pd.DataFrame) -> list[dict[str, Any]]:
    """Convert a DataFrame into row dicts, skipping rows where every cell is NA."""
    columns = [str(c).strip() for c in df.columns]
    rows: list[dict[str, Any]] = []
    for raw in df.itertuples(index=False, name=None):
        values = [to_python(v) for v in raw]
        if all(v is None for v in values):
            continue
        rows.append(dict(zip(columns, values, strict=False)))
    return rows


def dataframe_from_rows(rows: Sequence[dict[str, Any]], columns: Sequence[str] | None = None) -> pd.DataFrame:
    if columns is None:
        return pd.DataFrame(list(rows))
    return pd.DataFrame(list(rows), columns=list(columns))


def read_rows(
    path: Path,
    *,
    sheet: str | int = 0,
    expected_columns: Iterable[str] | None = None,
    keep_na_strings: list[str] | None = None,
) -> list[dict[str, Any]]:
    """Read ``path`` into row dicts.

    ``keep_na_strings`` lists strings (e.g. "NA") that must stay text instead
    of being read as missing values.
    """
    if not path.exists():
        raise SourceFormatError(f"source file not found: {path}")
    suffix = path.suffix.lower()
    if keep_na_strings:
        import pandas._libs.parsers as parsers

        na_values: list[str] | None = list(parsers.STR_NA_VALUES - set(keep_na_strings))
        keep_default_na = False
    else:
        na_values = None
        keep_default_na = True
    try:
        if suffix == ".csv":
            df = pd.read_csv(path, dtype=str, keep_default_na=keep_default_na, na_values=na_values)
        elif suffix == ".xlsx":
            df = pd.read_excel(
                path, sheet_name=sheet, engine="openpyxl",
                keep_default_na=keep_default_na, na_values=na_values,
            )
        elif suffix == ".json":
            df = pd.read_json(path, orient="records", dtype=False)
        else:
            raise SourceFormatError(f"unsupported source format: {path.suffix} (expected one of {SUPPORTED_SUFFIXES})")
    except (ValueError, OSError) as e:
        raise SourceFormatError(f"cannot read {path}: {e}") from e

    if expected_columns is not None:
        header = {str(c).strip().casefold() for c in df.columns}
        missing = sorted(c for c in expected_columns if c.casefold() not in header)
        if missing:
            raise MissingColumnsError(f"{path.name} missing columns: {missing}")
    return rows_from_dataframe(df)


def write_rows(path: Path, rows: Sequence[dict[str, Any]], columns: Sequence[str] | None = None) -> Path:
    """Write rows to ``path``; the format follows the suffix."""
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise SourceFormatError(f"unsupported target format: {path.suffix}")
    df = dataframe_from_rows(rows, columns)
    path.parent.mkdir(parents=True, exist_ok=True)
    if suffix == ".csv":
        df.to_csv(path, index=False)
    elif suffix == ".xlsx":
        df.to_excel(path, index=False, engine="openpyxl")
    else:
        df.to_json(path, orient="records", date_format="iso", force_ascii=False)
    return path
