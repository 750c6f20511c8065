from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""BatchErrorRecord: one failed row (or batch-level failure) as a JSON Lines entry.

Keys are fixed: timestamp / operation / row / column / error_type / message.
``row=-1`` marks a batch-level error that is not tied to a specific row.
"""

__all__ = [
    "BatchErrorRecord",
]


@dataclass(frozen=True)
class BatchErrorRecord:
    timestamp: str  # ISO8601 UTC ('Z' suffix)
    operation: str  # import / export / validate
    row: int  # ソース行番号 (0 始まり)。不明なら -1
    column: str | None
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(operation: str, row: int, error_type: str, message: str,
               column: str | None = None) -> BatchErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return BatchErrorRecord(
            timestamp=ts,
            operation=operation,
            row=row,
            column=column,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
