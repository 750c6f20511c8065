from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

import numpy as np
import pandas as pd

"""Cell value classification and the emptiness predicate."""

__all__ = [
    "CellKind",
    "cell_kind",
    "is_blank",
    "is_row_empty",
]


class CellKind(str, Enum):
    NULL = "null"
    STRING = "string"
    INTEGER = "integer"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    DATE = "date"
    OPAQUE = "opaque"


def _is_na(value: Any) -> bool:
    # pd.NA / NaN / NaT; 配列は対象外
    try:
        return bool(pd.api.types.is_scalar(value) and pd.isna(value))
    except (TypeError, ValueError):
        return False


def cell_kind(value: Any) -> CellKind:
    if value is None or _is_na(value):
        return CellKind.NULL
    # bool は int のサブクラスなので先に判定
    if isinstance(value, (bool, np.bool_)):
        return CellKind.BOOLEAN
    if isinstance(value, (int, np.integer)):
        return CellKind.INTEGER
    if isinstance(value, (float, Decimal, np.floating)):
        return CellKind.DECIMAL
    if isinstance(value, (datetime, date, pd.Timestamp, np.datetime64)):
        return CellKind.DATE
    if isinstance(value, str):
        return CellKind.STRING
    return CellKind.OPAQUE


def is_blank(value: Any) -> bool:
    """True for None, NA values and empty/whitespace-only strings."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return _is_na(value)


def is_row_empty(data: Mapping[str, Any]) -> bool:
    return all(is_blank(v) for v in data.values())
