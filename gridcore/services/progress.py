from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Progress display for batch operations with tqdm (TTY only).

A ``ProgressTracker`` is a progress sink: the batch coordinator calls it with
one snapshot per chunk and the bar advances to ``processed_rows``. In non-TTY
environments (CI, pipes) no bar is created.
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class ProgressTracker:
    """Single tqdm bar driven by progress snapshots."""

    def __init__(self, total_rows: int, *, description: str = "Processing rows") -> None:
        self.total_rows = total_rows
        self.description = description
        self.processed_rows = 0
        self.snapshots = 0

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_rows,
                desc=description,
                unit="row",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def __call__(self, snapshot: Any) -> None:
        self.update(snapshot)

    def update(self, snapshot: Any) -> None:
        """Advance the bar to ``snapshot.processed_rows``."""
        self.snapshots += 1
        delta = max(0, snapshot.processed_rows - self.processed_rows)
        self.processed_rows = max(self.processed_rows, snapshot.processed_rows)
        if self.enabled and self.pbar is not None:
            self.pbar.update(delta)
            postfix: dict[str, Any] = {}
            failed = getattr(snapshot, "failed_rows", None)
            if failed is None:
                failed = getattr(snapshot, "rows_with_errors", None)
            if failed is not None:
                postfix["failed"] = failed
            if postfix:
                self.pbar.set_postfix(**postfix)

    def close(self) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
