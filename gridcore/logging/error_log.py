from __future__ import annotations

import threading
from datetime import UTC, datetime
from pathlib import Path

from gridcore.models.error_record import BatchErrorRecord

"""Batch error log buffering.

- JSON Lines, fixed keys per ``BatchErrorRecord``
- one ``logs/errors-YYYYMMDD-HHMMSS.log`` (UTC) per buffer, created on first flush
- records are buffered in memory and appended on ``flush()``
"""

__all__ = [
    "BatchErrorRecord",
    "ErrorLogBuffer",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    """In-memory buffer of error records; ``flush()`` writes JSON Lines.

    ``append`` may be called from the background batch worker, so the record
    list is guarded by a lock.
    """
    def __init__(self, logs_dir: Path | None = None) -> None:
        self._records: list[BatchErrorRecord] = []
        self._file_path: Path | None = None
        self._logs_dir = logs_dir or LOGS_DIR
        self._lock = threading.Lock()

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"errors-{stamp}.log"
        return self._file_path

    def append(self, record: BatchErrorRecord) -> None:
        with self._lock:
            self._records.append(record)

    def __len__(self) -> int:
        return len(self._records)

    def flush(self) -> Path | None:
        """Append buffered records to the log file. Returns None when nothing was written."""
        with self._lock:
            if not self._records:
                return None
            records = list(self._records)
            self._records.clear()
        fp = self.file_path
        fp.parent.mkdir(parents=True, exist_ok=True)
        with fp.open("a", encoding="utf-8") as f:
            for r in records:
                f.write(r.to_json_line() + "\n")
        return fp
