from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .result import ErrorKind, Result

"""Options for batch import, export and validate-all."""

__all__ = [
    "ImportMode",
    "ImportOptions",
    "ExportOptions",
    "ValidationOptions",
]

DEFAULT_BATCH_SIZE = 1000


class ImportMode(str, Enum):
    REPLACE = "replace"  # 既存行を破棄して置換
    APPEND = "append"
    MERGE = "merge"  # キー一致で更新、なければ追加
    UPDATE = "update"  # キー一致のみ更新


def _check_common(batch_size: int, timeout: float | None) -> Result[None]:
    if batch_size <= 0:
        return Result.failure(f"batch_size must be positive: {batch_size}", ErrorKind.INVALID_ARGUMENT)
    if timeout is not None and timeout <= 0:
        return Result.failure(f"timeout must be positive: {timeout}", ErrorKind.INVALID_ARGUMENT)
    return Result.success(None)


@dataclass(frozen=True)
class ImportOptions:
    mode: ImportMode = ImportMode.REPLACE
    validate: bool = True
    stop_on_error: bool = False
    skip_invalid_rows: bool = True  # False なら検証エラー付きで取り込む
    batch_size: int = DEFAULT_BATCH_SIZE
    timeout: float | None = None  # seconds
    key_columns: tuple[str, ...] = ()

    def validate_options(self) -> Result[None]:
        check = _check_common(self.batch_size, self.timeout)
        if check.is_failure:
            return check
        if self.mode in (ImportMode.MERGE, ImportMode.UPDATE) and not self.key_columns:
            return Result.failure(f"{self.mode.value} import requires key_columns", ErrorKind.INVALID_ARGUMENT)
        return Result.success(None)


@dataclass(frozen=True)
class ExportOptions:
    only_valid_rows: bool = False
    only_visible_rows: bool = False
    only_checked_rows: bool = False
    include_empty_rows: bool = False
    columns: tuple[str, ...] | None = None  # None = all data columns
    include_validation_alerts: bool = False
    date_format: str | None = None
    number_format: str | None = None  # e.g. "{:.2f}"
    bool_as_text: bool = False
    batch_size: int = DEFAULT_BATCH_SIZE
    timeout: float | None = None

    def validate_options(self) -> Result[None]:
        return _check_common(self.batch_size, self.timeout)


@dataclass(frozen=True)
class ValidationOptions:
    only_visible_rows: bool = False
    skip_empty_rows: bool = True
    include_cross_rules: bool = True
    batch_size: int = DEFAULT_BATCH_SIZE
    timeout: float | None = None

    def validate_options(self) -> Result[None]:
        return _check_common(self.batch_size, self.timeout)
