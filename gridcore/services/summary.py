from __future__ import annotations

from ..models.processing_result import ImportResult, ValidationSummary

"""SUMMARY line rendering for batch results.

Format:
SUMMARY rows={total} imported={imported} updated={updated} failed={failed}
skipped={skipped} invalid_rows={invalid} errors={errors} elapsed_sec={elapsed}
throughput_rps={throughput}
"""

__all__ = [
    "format_number",
    "render_import_summary",
    "render_validation_summary",
]


def format_number(value: float) -> str:
    """Integers without decimals, small values without scientific notation."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def render_import_summary(result: ImportResult, validation: ValidationSummary | None = None) -> str:
    """Render one SUMMARY line for an import (optionally followed by validate-all).

    >>> from datetime import datetime, timezone
    >>> t = datetime(2024, 1, 1, tzinfo=timezone.utc)
    >>> r = ImportResult(total_rows=10, imported_rows=8, failed_rows=2, skipped_rows=0,
    ...                  updated_rows=0, start_time=t, end_time=t, elapsed_seconds=2.0)
    >>> render_import_summary(r)
    'SUMMARY rows=10 imported=8 updated=0 failed=2 skipped=0 elapsed_sec=2 throughput_rps=4'
    """
    parts = [
        f"SUMMARY rows={result.total_rows}",
        f"imported={result.imported_rows}",
        f"updated={result.updated_rows}",
        f"failed={result.failed_rows}",
        f"skipped={result.skipped_rows}",
    ]
    if validation is not None:
        parts.append(f"invalid_rows={validation.rows_with_errors}")
        parts.append(f"errors={validation.total_errors}")
    parts.append(f"elapsed_sec={format_number(result.elapsed_seconds)}")
    parts.append(f"throughput_rps={format_number(result.throughput_rows_per_sec)}")
    return " ".join(parts)


def render_validation_summary(summary: ValidationSummary) -> str:
    return (
        f"SUMMARY rows={summary.total_rows} "
        f"valid={summary.valid_rows} "
        f"invalid_rows={summary.rows_with_errors} "
        f"warning_rows={summary.rows_with_warnings} "
        f"errors={summary.total_errors} "
        f"warnings={summary.total_warnings} "
        f"elapsed_sec={format_number(summary.elapsed_seconds)}"
    )
