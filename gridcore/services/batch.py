from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from ..models.column import ColumnDefinition, SpecialColumnType
from ..models.error_record import BatchErrorRecord
from ..models.events import DataImported, ValidationCompleted
from ..models.grid_state import GridState
from ..models.options import ExportOptions, ImportMode, ImportOptions, ValidationOptions
from ..models.processing_result import (
    BatchStatsAccumulator,
    ExportResult,
    ImportResult,
    ValidationSummary,
)
from ..models.progress import ExportProgress, ImportProgress, ValidationProgress
from ..models.result import ErrorKind, Result
from ..models.validation import ValidationError, ValidationSeverity
from .coercion import convert_for_import, format_for_export
from .notifier import ChangeNotifier
from .row_manager import SmartRowManager
from .validation_engine import ValidationEngine

logger = logging.getLogger(__name__)

"""Batch operation coordinator: chunked import, export and validate-all.

Each operation walks its rows in chunks of ``batch_size``:
- cancellation and timeout are checked before every chunk, never mid-row
- exactly one progress snapshot is delivered per processed chunk
- progress sinks are best-effort (a raising sink is logged and ignored)

Cancelled / timed-out / stopped operations return a failure whose
``partial`` holds the result accumulated so far.
"""

__all__ = [
    "CancellationToken",
    "BatchCoordinator",
    "ProgressSink",
    "ErrorSink",
]

ProgressSink = Callable[[Any], None]
ErrorSink = Callable[[BatchErrorRecord], None]
ChunkSink = Callable[[list[dict[str, Any]]], None]


class CancellationToken:
    """Cooperative cancellation flag shared between caller and worker."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


def _chunks(n: int, size: int) -> Iterable[tuple[int, int]]:
    for start in range(0, n, size):
        yield start, min(start + size, n)


def _key_marker(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().casefold()
    return value


class _Clock:
    """Elapsed time and deadline for one batch operation."""

    def __init__(self, timeout: float | None) -> None:
        self.start_time = datetime.now(UTC)
        self._started = time.monotonic()
        self._timeout = timeout

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self._started

    def stop_reason(self, token: CancellationToken | None) -> ErrorKind | None:
        if token is not None and token.is_cancelled:
            return ErrorKind.CANCELLED
        if self._timeout is not None and self.elapsed > self._timeout:
            return ErrorKind.TIMEOUT
        return None


class BatchCoordinator:
    def __init__(
        self,
        state: GridState,
        manager: SmartRowManager,
        engine: ValidationEngine,
        notifier: ChangeNotifier,
        error_sink: ErrorSink | None = None,
    ) -> None:
        self.state = state
        self.manager = manager
        self.store = manager.store
        self.engine = engine
        self.notifier = notifier
        self.error_sink = error_sink

    # --- helpers ------------------------------------------------------
    def _emit(self, sink: ProgressSink | None, snapshot: Any) -> None:
        if sink is None:
            return
        try:
            sink(snapshot)
        except Exception:
            logger.exception("progress sink raised")

    def _record(self, operation: str, row: int, error_type: str, message: str, column: str | None = None) -> None:
        if self.error_sink is None:
            return
        try:
            self.error_sink(BatchErrorRecord.create(operation, row, error_type, message, column))
        except Exception:
            logger.exception("error sink raised")

    def coerce_row(self, raw: Mapping[str, Any]) -> tuple[dict[str, Any], list[ValidationError], set[str]]:
        """Normalize and type-coerce one source row.

        Returns (data, coercion warnings, canonical names of the columns present in the source).
        """
        schema = self.state.schema
        present = {c.name for c in (schema.get(str(k)) for k in raw.keys()) if c is not None and not c.is_special}
        data = self.store.normalize(raw)
        warnings: list[ValidationError] = []
        for col in schema.data_columns:
            if col.name not in present:
                continue
            original = data[col.name]
            value, ok = convert_for_import(original, col)
            if not ok:
                logger.warning("coercion fallback column=%s value=%r", col.name, original)
                warnings.append(ValidationError(
                    col.name,
                    f"Could not convert '{original}' to {col.data_type.value}; default used",
                    original,
                    severity=ValidationSeverity.WARNING,
                ))
            data[col.name] = value
        return data, warnings, present

    def _key_index(self, key_columns: Sequence[str]) -> dict[tuple[Any, ...], int]:
        index: dict[tuple[Any, ...], int] = {}
        for row in self.state.rows:
            if row.is_empty:
                continue
            key = tuple(_key_marker(row.data.get(k)) for k in key_columns)
            index.setdefault(key, row.row_index)  # 最初の一致を優先
        return index

    # --- import -------------------------------------------------------
    def import_rows(
        self,
        source: Sequence[Any] | None,
        options: ImportOptions | None = None,
        progress: ProgressSink | None = None,
        token: CancellationToken | None = None,
    ) -> Result[ImportResult]:
        options = options or ImportOptions()
        check = options.validate_options()
        if check.is_failure:
            return check  # type: ignore[return-value]
        if source is None:
            return Result.failure("import source must not be None", ErrorKind.NULL_INPUT)

        schema = self.state.schema
        key_columns: list[str] = []
        for name in options.key_columns:
            canonical = schema.canonical_name(name)
            if canonical is None:
                return Result.failure(f"unknown key column: {name}", ErrorKind.INVALID_ARGUMENT)
            key_columns.append(canonical)

        rows = list(source)
        total = len(rows)
        clock = _Clock(options.timeout)
        stats = BatchStatsAccumulator()
        imported = failed = skipped = updated = 0
        errors: list[ValidationError] = []
        mutated = False

        if options.mode is ImportMode.REPLACE:
            self.store.clear()
            self.state.validation_errors = []
            mutated = True
        key_index = self._key_index(key_columns) if key_columns else {}

        def build() -> ImportResult:
            count, avg, p95 = stats.get_stats()
            return ImportResult(
                total_rows=total,
                imported_rows=imported,
                failed_rows=failed,
                skipped_rows=skipped,
                updated_rows=updated,
                start_time=clock.start_time,
                end_time=datetime.now(UTC),
                elapsed_seconds=clock.elapsed,
                errors=tuple(errors),
                total_batches=count,
                avg_batch_seconds=avg,
                p95_batch_seconds=p95,
            )

        def finish() -> None:
            self.manager.ensure_invariants()
            if mutated:
                version = self.manager.commit()
                self.notifier.publish(DataImported(
                    version=version, mode=options.mode.value, imported_rows=imported, failed_rows=failed,
                ))

        stopped: tuple[ErrorKind, str] | None = None
        for start, end in _chunks(total, options.batch_size):
            reason = clock.stop_reason(token)
            if reason is not None:
                stopped = (reason, f"import {reason.value.lower()} after {start} of {total} rows")
                break
            chunk_started = time.perf_counter()
            for i in range(start, end):
                raw = rows[i]
                if not isinstance(raw, Mapping):
                    failed += 1
                    message = f"row {i}: expected a mapping, got {type(raw).__name__}"
                    errors.append(ValidationError("Row", message, raw, i, severity=ValidationSeverity.ERROR))
                    self._record("import", i, "MALFORMED_ROW", message)
                    if options.stop_on_error:
                        stopped = (ErrorKind.BATCH, f"import stopped on error at row {i}")
                        break
                    continue

                data, row_errors, present = self.coerce_row(raw)
                target: int | None = None
                key: tuple[Any, ...] = ()
                if key_columns:
                    key = tuple(_key_marker(data.get(k)) for k in key_columns)
                    target = key_index.get(key)
                if options.mode not in (ImportMode.MERGE, ImportMode.UPDATE):
                    target = None
                elif target is None and options.mode is ImportMode.UPDATE:
                    skipped += 1
                    continue
                if target is not None:
                    # 一致した行: 取り込み元にある列だけ上書きした結果を検証
                    candidate = self.store[target].snapshot()
                    candidate.update({k: data[k] for k in present})
                else:
                    candidate = data
                if options.validate:
                    row_errors.extend(self.engine.validate_row(candidate, None, schema.data_columns))
                has_error = any(e.severity is ValidationSeverity.ERROR for e in row_errors)
                if has_error:
                    errors.extend(
                        ValidationError(e.column_name, e.message, e.attempted_value, i, e.rule_name, e.severity)
                        for e in row_errors
                    )
                    if options.skip_invalid_rows:
                        failed += 1
                        first = next(e for e in row_errors if e.severity is ValidationSeverity.ERROR)
                        self._record("import", i, "VALIDATION_FAILED", first.message, first.column_name)
                        if options.stop_on_error:
                            stopped = (ErrorKind.BATCH, f"import stopped on error at row {i}")
                            break
                        continue

                if target is not None:
                    self.store.replace(target, candidate)
                    self.store[target].validation_errors = [
                        ValidationError(e.column_name, e.message, e.attempted_value, target, e.rule_name, e.severity)
                        for e in row_errors
                    ]
                    updated += 1
                    imported += 1
                    mutated = True
                    continue
                index = self.store.data_end()
                row = self.store.insert(index, data)
                row.validation_errors = [
                    ValidationError(e.column_name, e.message, e.attempted_value, index, e.rule_name, e.severity)
                    for e in row_errors
                ]
                if key_columns:
                    key_index.setdefault(key, index)
                imported += 1
                mutated = True

            self.manager.ensure_invariants()
            stats.add_batch_time(time.perf_counter() - chunk_started)
            processed = imported + failed + skipped
            self._emit(progress, ImportProgress(
                total_rows=total,
                processed_rows=processed,
                start_time=clock.start_time,
                elapsed_seconds=clock.elapsed,
                current_operation="import",
                successful_rows=imported,
                failed_rows=failed,
                skipped_rows=skipped,
            ))
            if stopped is not None:
                break

        finish()
        result = build()
        if stopped is not None:
            kind, message = stopped
            logger.warning("%s imported=%d failed=%d", message, imported, failed)
            if kind is not ErrorKind.BATCH:
                self._record("import", -1, kind.value, message)
            return Result.failure(message, kind, errors=errors, partial=result)
        logger.info(
            "import completed mode=%s total=%d imported=%d failed=%d skipped=%d",
            options.mode.value, total, imported, failed, skipped,
        )
        return Result.success(result)

    # --- export -------------------------------------------------------
    def _export_columns(self, options: ExportOptions) -> Result[list[ColumnDefinition]]:
        schema = self.state.schema
        if options.columns is None:
            return Result.success(list(schema.data_columns))
        cols: list[ColumnDefinition] = []
        for name in options.columns:
            col = schema.get(name)
            if col is None or col.is_special:
                return Result.failure(f"unknown export column: {name}", ErrorKind.INVALID_ARGUMENT)
            cols.append(col)
        return Result.success(cols)

    def export_rows(
        self,
        options: ExportOptions | None = None,
        progress: ProgressSink | None = None,
        token: CancellationToken | None = None,
        sink: ChunkSink | None = None,
    ) -> Result[ExportResult]:
        """Export rows as plain dicts.

        With ``sink`` each chunk is handed over as soon as it is built and the
        returned result carries no rows; otherwise rows accumulate in the result.
        """
        options = options or ExportOptions()
        check = options.validate_options()
        if check.is_failure:
            return check  # type: ignore[return-value]
        resolved = self._export_columns(options)
        if resolved.is_failure:
            return resolved  # type: ignore[return-value]
        columns = resolved.value
        alerts_col = self.state.schema.special(SpecialColumnType.VALID_ALERTS)
        alerts_name = alerts_col.name if alerts_col is not None else "ValidationAlerts"
        header = tuple(c.name for c in columns) + ((alerts_name,) if options.include_validation_alerts else ())

        indices = self.state.visible_row_indices() if options.only_visible_rows else list(range(len(self.store)))
        total = len(indices)
        clock = _Clock(options.timeout)
        stats = BatchStatsAccumulator()
        out_rows: list[dict[str, Any]] = []
        exported = skipped = 0

        def build() -> ExportResult:
            count, avg, p95 = stats.get_stats()
            return ExportResult(
                rows=out_rows,
                total_rows=total,
                exported_rows=exported,
                skipped_rows=skipped,
                start_time=clock.start_time,
                end_time=datetime.now(UTC),
                elapsed_seconds=clock.elapsed,
                columns=header,
                total_batches=count,
                avg_batch_seconds=avg,
                p95_batch_seconds=p95,
            )

        for start, end in _chunks(total, options.batch_size):
            reason = clock.stop_reason(token)
            if reason is not None:
                message = f"export {reason.value.lower()} after {start} of {total} rows"
                logger.warning(message)
                return Result.failure(message, reason, partial=build())
            chunk_started = time.perf_counter()
            chunk: list[dict[str, Any]] = []
            for idx in indices[start:end]:
                row = self.store[idx]
                if (row.is_empty and not options.include_empty_rows) \
                        or (options.only_checked_rows and not self.state.checkbox_states.get(idx, False)) \
                        or (options.only_valid_rows and not row.is_valid):
                    skipped += 1
                    continue
                item = {
                    c.name: format_for_export(
                        row.data.get(c.name), c,
                        date_format=options.date_format,
                        number_format=options.number_format,
                        bool_as_text=options.bool_as_text,
                    )
                    for c in columns
                }
                if options.include_validation_alerts:
                    item[alerts_name] = self.engine.format_errors(row.validation_errors)
                chunk.append(item)
                exported += 1
            if sink is not None:
                try:
                    sink(chunk)
                except Exception as e:
                    logger.exception("export sink raised")
                    self._record("export", -1, "SINK_FAILED", str(e))
                    return Result.failure(f"export sink failed: {e}", ErrorKind.FATAL, cause=e, partial=build())
            else:
                out_rows.extend(chunk)
            stats.add_batch_time(time.perf_counter() - chunk_started)
            self._emit(progress, ExportProgress(
                total_rows=total,
                processed_rows=end,
                start_time=clock.start_time,
                elapsed_seconds=clock.elapsed,
                current_operation="export",
                exported_rows=exported,
                skipped_rows=skipped,
            ))

        logger.info("export completed total=%d exported=%d skipped=%d", total, exported, skipped)
        return Result.success(build())

    # --- validate-all -------------------------------------------------
    def validate_all(
        self,
        options: ValidationOptions | None = None,
        progress: ProgressSink | None = None,
        token: CancellationToken | None = None,
    ) -> Result[ValidationSummary]:
        options = options or ValidationOptions()
        check = options.validate_options()
        if check.is_failure:
            return check  # type: ignore[return-value]
        schema = self.state.schema
        candidates = self.state.visible_row_indices() if options.only_visible_rows else list(range(len(self.store)))
        if options.skip_empty_rows:
            candidates = [i for i in candidates if not self.store[i].is_empty]
        total = len(candidates)
        clock = _Clock(options.timeout)
        stats = BatchStatsAccumulator()
        counts = {"valid": 0, "errors": 0, "warnings": 0, "error_count": 0, "warning_count": 0}
        global_errors: tuple[ValidationError, ...] = ()

        def tally(rows: Iterable[int], sign: int = 1) -> None:
            # 差分集計: sign=-1 で既存の集計から取り除く
            for i in rows:
                errs = self.store[i].validation_errors
                n_err = sum(1 for e in errs if not e.is_warning)
                n_warn = len(errs) - n_err
                counts["error_count"] += sign * n_err
                counts["warning_count"] += sign * n_warn
                if n_err:
                    counts["errors"] += sign
                else:
                    counts["valid"] += sign
                if n_warn:
                    counts["warnings"] += sign

        def build(done: Sequence[int]) -> ValidationSummary:
            count, avg, p95 = stats.get_stats()
            all_errors = [e for i in done for e in self.store[i].validation_errors]
            return ValidationSummary(
                total_rows=total,
                valid_rows=counts["valid"],
                rows_with_errors=counts["errors"],
                rows_with_warnings=counts["warnings"],
                total_errors=counts["error_count"] + len(global_errors),
                total_warnings=counts["warning_count"],
                elapsed_seconds=clock.elapsed,
                errors=tuple(all_errors),
                global_errors=global_errors,
                total_batches=count,
                avg_batch_seconds=avg,
                p95_batch_seconds=p95,
            )

        done: list[int] = []
        for start, end in _chunks(total, options.batch_size):
            reason = clock.stop_reason(token)
            if reason is not None:
                message = f"validation {reason.value.lower()} after {start} of {total} rows"
                logger.warning(message)
                if done:
                    self.manager.commit()
                return Result.failure(message, reason, partial=build(done))
            chunk_started = time.perf_counter()
            chunk = candidates[start:end]
            for idx in chunk:
                row = self.store[idx]
                row.validation_errors = self.engine.validate_row(row.data, idx, schema.data_columns)
                done.append(idx)
            tally(chunk)
            stats.add_batch_time(time.perf_counter() - chunk_started)
            self._emit(progress, ValidationProgress(
                total_rows=total,
                processed_rows=end,
                start_time=clock.start_time,
                elapsed_seconds=clock.elapsed,
                current_operation="validate",
                valid_rows=counts["valid"],
                rows_with_errors=counts["errors"],
                rows_with_warnings=counts["warnings"],
                total_errors=counts["error_count"],
                total_warnings=counts["warning_count"],
            ))

        if options.include_cross_rules and self.engine.cross_rules:
            dataset = self.engine.validate_dataset(
                [self.store[i].data for i in candidates], row_indices=candidates,
            )
            global_errors = dataset.global_errors
            touched = list(dataset.row_errors)
            tally(touched, -1)
            for idx, errs in dataset.row_errors.items():
                self.store[idx].validation_errors.extend(errs)
            tally(touched)

        summary = build(done)
        self.state.validation_errors = list(summary.global_errors) + list(summary.errors)
        for e in summary.global_errors + summary.errors:
            if not e.is_warning:
                row = e.row_index if e.row_index is not None else -1
                self._record("validate", row, "VALIDATION_ERROR", e.message, e.column_name)
        version = self.manager.commit()
        self.notifier.publish(ValidationCompleted(
            version=version,
            total_rows=summary.total_rows,
            rows_with_errors=summary.rows_with_errors,
            total_errors=summary.total_errors,
        ))
        logger.info(
            "validation completed rows=%d valid=%d with_errors=%d errors=%d",
            summary.total_rows, summary.valid_rows, summary.rows_with_errors, summary.total_errors,
        )
        return Result.success(summary)
