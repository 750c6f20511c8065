from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

"""Progress snapshots emitted once per chunk by batch operations.

Snapshots are immutable. Derived values are computed from the counts and the
elapsed time; the completion estimate is a linear extrapolation and is advisory.
"""

__all__ = [
    "ImportProgress",
    "ExportProgress",
    "ValidationProgress",
]


@dataclass(frozen=True)
class _ProgressBase:
    total_rows: int
    processed_rows: int
    start_time: datetime
    elapsed_seconds: float
    current_operation: str = ""

    @property
    def percentage_complete(self) -> float:
        if self.total_rows <= 0:
            return 100.0
        return min(100.0, self.processed_rows * 100.0 / self.total_rows)

    @property
    def processing_rate(self) -> float:
        """Rows per second."""
        if self.elapsed_seconds <= 0:
            return 0.0
        return self.processed_rows / self.elapsed_seconds

    @property
    def estimated_time_remaining(self) -> timedelta | None:
        if self.processed_rows <= 0 or self.total_rows <= self.processed_rows:
            return None
        per_row = self.elapsed_seconds / self.processed_rows
        return timedelta(seconds=per_row * (self.total_rows - self.processed_rows))

    @property
    def estimated_completion(self) -> datetime | None:
        remaining = self.estimated_time_remaining
        if remaining is None:
            return None
        return self.start_time + timedelta(seconds=self.elapsed_seconds) + remaining

    @property
    def is_complete(self) -> bool:
        return self.processed_rows >= self.total_rows


@dataclass(frozen=True)
class ImportProgress(_ProgressBase):
    successful_rows: int = 0
    failed_rows: int = 0
    skipped_rows: int = 0

    @property
    def success_rate(self) -> float:
        if self.processed_rows <= 0:
            return 0.0
        return self.successful_rows * 100.0 / self.processed_rows


@dataclass(frozen=True)
class ExportProgress(_ProgressBase):
    exported_rows: int = 0
    skipped_rows: int = 0

    @property
    def success_rate(self) -> float:
        if self.processed_rows <= 0:
            return 0.0
        return self.exported_rows * 100.0 / self.processed_rows


@dataclass(frozen=True)
class ValidationProgress(_ProgressBase):
    valid_rows: int = 0
    rows_with_errors: int = 0
    rows_with_warnings: int = 0
    total_errors: int = 0
    total_warnings: int = 0

    @property
    def success_rate(self) -> float:
        if self.processed_rows <= 0:
            return 0.0
        return self.valid_rows * 100.0 / self.processed_rows

    @property
    def error_rate(self) -> float:
        if self.processed_rows <= 0:
            return 0.0
        return self.rows_with_errors * 100.0 / self.processed_rows

    @property
    def warning_rate(self) -> float:
        if self.processed_rows <= 0:
            return 0.0
        return self.rows_with_warnings * 100.0 / self.processed_rows
