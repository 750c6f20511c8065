from __future__ import annotations

import statistics
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .validation import ValidationError

"""Result payloads for row operations and batch operations.

Batch results carry chunk timing statistics (count / mean / p95) gathered by
``BatchStatsAccumulator`` for performance monitoring.
"""

__all__ = [
    "RowOperationResult",
    "ImportResult",
    "ExportResult",
    "ValidationSummary",
    "BatchStatsAccumulator",
]


@dataclass(frozen=True)
class RowOperationResult:
    """Outcome of a single add / delete / modify."""
    row_index: int  # 対象行 (削除時は削除前の位置)
    row_count: int  # 操作後の総行数
    version: int  # 操作後の状態バージョン
    validation_errors: tuple[ValidationError, ...] = ()
    appended_empty_rows: int = 0  # 不変条件の修復で追加された空行

    @property
    def is_valid(self) -> bool:
        return not any(not e.is_warning for e in self.validation_errors)


@dataclass(frozen=True)
class ImportResult:
    total_rows: int
    imported_rows: int  # 追加 + 更新
    failed_rows: int
    skipped_rows: int
    updated_rows: int
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    errors: tuple[ValidationError, ...] = ()
    total_batches: int = 0
    avg_batch_seconds: float = 0.0
    p95_batch_seconds: float = 0.0

    @property
    def throughput_rows_per_sec(self) -> float:
        if self.elapsed_seconds <= 0:
            return 0.0
        return self.imported_rows / self.elapsed_seconds

    @property
    def is_complete_success(self) -> bool:
        return self.failed_rows == 0


@dataclass(frozen=True)
class ExportResult:
    rows: list[dict[str, Any]]
    total_rows: int  # 走査対象の行数
    exported_rows: int
    skipped_rows: int
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    columns: tuple[str, ...] = ()
    total_batches: int = 0
    avg_batch_seconds: float = 0.0
    p95_batch_seconds: float = 0.0


@dataclass(frozen=True)
class ValidationSummary:
    total_rows: int
    valid_rows: int
    rows_with_errors: int
    rows_with_warnings: int
    total_errors: int
    total_warnings: int
    elapsed_seconds: float
    errors: tuple[ValidationError, ...] = ()
    global_errors: tuple[ValidationError, ...] = field(default_factory=tuple)
    total_batches: int = 0
    avg_batch_seconds: float = 0.0
    p95_batch_seconds: float = 0.0

    @property
    def is_valid(self) -> bool:
        return self.rows_with_errors == 0 and not self.global_errors

    @property
    def error_rate(self) -> float:
        if self.total_rows <= 0:
            return 0.0
        return self.rows_with_errors * 100.0 / self.total_rows


class BatchStatsAccumulator:
    """Accumulates per-chunk timings and summarizes them."""

    def __init__(self) -> None:
        self.batch_times: list[float] = []

    def add_batch_time(self, elapsed_seconds: float) -> None:
        self.batch_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Return (total_batches, avg_batch_seconds, p95_batch_seconds)."""
        if not self.batch_times:
            return (0, 0.0, 0.0)
        count = len(self.batch_times)
        avg = statistics.mean(self.batch_times)
        if count == 1:
            p95 = self.batch_times[0]
        else:
            # 20 分位の 19 番目 = p95
            p95 = statistics.quantiles(self.batch_times, n=20, method="inclusive")[18]
        return (count, avg, p95)
