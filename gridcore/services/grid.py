from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Mapping, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from typing import TYPE_CHECKING, Any

from ..models.column import ColumnDefinition, ColumnSchema, validate_schema
from ..models.events import (
    FilterApplied,
    GridEvent,
    HistoryRestored,
    SearchCompleted,
    SortApplied,
    ValidationCompleted,
)
from ..models.grid_state import GridSnapshot, GridState
from ..models.options import ExportOptions, ImportOptions, ValidationOptions
from ..models.processing_result import ExportResult, ImportResult, RowOperationResult, ValidationSummary
from ..models.result import ErrorKind, Result
from ..models.search import (
    FilterDefinition,
    FilterLogic,
    NavigationDirection,
    SearchCriteria,
    SearchMatch,
    SearchResult,
    SortCriteria,
)
from ..models.validation import (
    CrossValidationRule,
    RowValidationRule,
    ValidationError,
    ValidationRule,
    ValidationRuleSet,
)
from .batch import BatchCoordinator, CancellationToken, ErrorSink, ProgressSink
from .filtering import apply_filters
from .history import GridHistory, HistorySummary
from .notifier import ChangeNotifier
from .row_manager import ConfirmationCallback, SmartRowManager
from .search import SearchEngine
from .sorting import sort_order
from .validation_engine import ValidationEngine

if TYPE_CHECKING:
    from ..config.loader import GridConfig

logger = logging.getLogger(__name__)

"""DataGrid facade: the single owner of a grid's state.

Composes the row manager, validation engine, batch coordinator and the
search / filter / sort engines. Every mutation and view computation runs
under one re-entrant lock, so there is exactly one writer at a time. Batch
operations can be pushed to a single background worker with ``submit``;
readers on other threads use ``snapshot()``.
"""

__all__ = [
    "DataGrid",
]


class DataGrid:
    def __init__(
        self,
        columns: Sequence[ColumnDefinition],
        engine: ValidationEngine,
        *,
        minimum_rows: int = 1,
        batch_size: int = 1000,
        timeout: float | None = None,
        error_sink: ErrorSink | None = None,
        history_depth: int = 50,
    ) -> None:
        self._lock = threading.RLock()
        self.history = GridHistory(history_depth)
        self._executor: ThreadPoolExecutor | None = None
        self.state = GridState(schema=ColumnSchema(columns))
        self.engine = engine
        self.notifier = ChangeNotifier()
        self.search_engine = SearchEngine()
        self.batch_size = batch_size
        self.timeout = timeout
        self.manager = SmartRowManager(
            self.state, engine, self.notifier, minimum_rows, on_structure_changed=self._refresh_view,
        )
        self.batch = BatchCoordinator(self.state, self.manager, engine, self.notifier, error_sink)
        self.manager.ensure_invariants()

    @classmethod
    def initialize(
        cls,
        columns: Iterable[ColumnDefinition] | None,
        rule_set: ValidationRuleSet | None = None,
        *,
        minimum_rows: int = 1,
        batch_size: int = 1000,
        timeout: float | None = None,
        error_sink: ErrorSink | None = None,
        history_depth: int = 50,
    ) -> Result[DataGrid]:
        """Validate configuration and build a grid.

        Without ``rule_set`` the rules are derived from the column constraints.
        """
        if minimum_rows < 0:
            return Result.failure(f"minimum_rows must be >= 0: {minimum_rows}", ErrorKind.INVALID_ARGUMENT)
        if batch_size <= 0:
            return Result.failure(f"batch_size must be positive: {batch_size}", ErrorKind.INVALID_ARGUMENT)
        if timeout is not None and timeout <= 0:
            return Result.failure(f"timeout must be positive: {timeout}", ErrorKind.INVALID_ARGUMENT)
        if history_depth < 1:
            return Result.failure(f"history_depth must be >= 1: {history_depth}", ErrorKind.INVALID_ARGUMENT)
        checked = validate_schema(columns)
        if checked.is_failure:
            return checked  # type: ignore[return-value]
        cols = checked.value
        rules = rule_set if rule_set is not None else ValidationRuleSet.from_columns(cols)
        grid = cls(
            cols,
            ValidationEngine(rules),
            minimum_rows=minimum_rows,
            batch_size=batch_size,
            timeout=timeout,
            error_sink=error_sink,
            history_depth=history_depth,
        )
        logger.info(
            "grid initialized id=%s columns=%d minimum_rows=%d batch_size=%d",
            grid.state.id, len(cols), minimum_rows, batch_size,
        )
        return Result.success(grid)

    @classmethod
    def from_config(cls, config: GridConfig, error_sink: ErrorSink | None = None) -> Result[DataGrid]:
        return cls.initialize(
            config.columns,
            config.build_rule_set(),
            minimum_rows=config.minimum_rows,
            batch_size=config.batch_size,
            timeout=config.timeout_seconds,
            error_sink=error_sink,
        )

    # --- read access --------------------------------------------------
    @property
    def version(self) -> int:
        return self.state.version

    @property
    def row_count(self) -> int:
        with self._lock:
            return len(self.state.rows)

    @property
    def columns(self) -> ColumnSchema:
        return self.state.schema

    @property
    def minimum_rows(self) -> int:
        return self.manager.minimum_rows

    def rows(self) -> list[dict[str, Any]]:
        with self._lock:
            return [r.snapshot() for r in self.state.rows]

    def get_row(self, row_index: int) -> Result[dict[str, Any]]:
        with self._lock:
            if not self.manager.store.in_range(row_index):
                return Result.failure(f"row index {row_index} out of range", ErrorKind.OUT_OF_RANGE)
            return Result.success(self.state.rows[row_index].snapshot())

    def row_errors(self, row_index: int) -> Result[list[ValidationError]]:
        with self._lock:
            if not self.manager.store.in_range(row_index):
                return Result.failure(f"row index {row_index} out of range", ErrorKind.OUT_OF_RANGE)
            return Result.success(list(self.state.rows[row_index].validation_errors))

    def snapshot(self) -> GridSnapshot:
        with self._lock:
            return self.state.snapshot()

    def subscribe(self, callback: Callable[[GridEvent], None]) -> Callable[[], None]:
        return self.notifier.subscribe(callback)

    # --- rules --------------------------------------------------------
    def add_validation_rule(self, column_name: str, rule: ValidationRule) -> Result[None]:
        with self._lock:
            if column_name not in self.state.schema:
                return Result.failure(f"unknown column: {column_name}", ErrorKind.INVALID_ARGUMENT)
            return self.engine.add_rule(column_name, rule)

    def add_row_rule(self, rule: RowValidationRule) -> Result[None]:
        with self._lock:
            return self.engine.add_row_rule(rule)

    def add_cross_rule(self, rule: CrossValidationRule) -> Result[None]:
        with self._lock:
            return self.engine.add_cross_rule(rule)

    # --- row lifecycle ------------------------------------------------
    def add_row(self, data: Mapping[str, Any] | None, insert_index: int | None = None,
                validate: bool = True) -> Result[RowOperationResult]:
        with self._lock:
            return self.manager.add_row(data, insert_index, validate)

    def delete_row(self, row_index: int, require_confirmation: bool = False,
                   confirmation_callback: ConfirmationCallback | None = None) -> Result[RowOperationResult]:
        with self._lock:
            return self.manager.delete_row(row_index, require_confirmation, confirmation_callback)

    def modify_row(self, row_index: int, new_data: Mapping[str, Any] | None,
                   validate: bool = True) -> Result[RowOperationResult]:
        with self._lock:
            return self.manager.modify_row(row_index, new_data, validate)

    def update_cell(self, row_index: int, column_name: str, value: Any,
                    validate: bool = True) -> Result[RowOperationResult]:
        with self._lock:
            return self.manager.update_cell(row_index, column_name, value, validate)

    def clear(self) -> Result[RowOperationResult]:
        with self._lock:
            self.search_engine.clear()
            return self.manager.clear_rows()

    def ensure_invariants(self) -> Result[int]:
        """Repair structural invariants; a no-op (no version bump) when they already hold."""
        with self._lock:
            appended = self.manager.ensure_invariants()
            if appended:
                self.manager.commit()
            return Result.success(appended)

    def set_checkbox(self, row_index: int, checked: bool) -> Result[None]:
        with self._lock:
            if not self.manager.store.in_range(row_index):
                return Result.failure(f"row index {row_index} out of range", ErrorKind.OUT_OF_RANGE)
            if checked:
                self.state.checkbox_states[row_index] = True
            else:
                self.state.checkbox_states.pop(row_index, None)
            self.state.bump_version()
            return Result.success(None)

    def validate_row(self, row_index: int) -> Result[list[ValidationError]]:
        with self._lock:
            if not self.manager.store.in_range(row_index):
                return Result.failure(f"row index {row_index} out of range", ErrorKind.OUT_OF_RANGE)
            row = self.state.rows[row_index]
            row.validation_errors = self.engine.validate_row(row.data, row_index, self.state.schema.data_columns)
            n_errors = sum(1 for e in row.validation_errors if not e.is_warning)
            version = self.state.bump_version()
            self.notifier.publish(ValidationCompleted(
                version=version, total_rows=1, rows_with_errors=1 if n_errors else 0, total_errors=n_errors,
            ))
            return Result.success(list(row.validation_errors))

    # --- history ------------------------------------------------------
    def save_state(self, description: str = "") -> Result[int]:
        """Push the current rows onto the undo history; returns the undo depth."""
        with self._lock:
            depth = self.history.save(self.state, description)
            logger.debug("history saved version=%d depth=%d", self.state.version, depth)
            return Result.success(depth)

    def _restore(self, action: str) -> Result[int]:
        with self._lock:
            step = self.history.undo if action == "undo" else self.history.redo
            entry = step(self.state)
            if entry is None:
                logger.warning("%s rejected: history is empty", action)
                return Result.failure(f"nothing to {action}", ErrorKind.INVALID_ARGUMENT)
            self.manager.ensure_invariants()
            version = self.manager.commit()
            self.notifier.publish(HistoryRestored(
                version=version, action=action, description=entry.description, row_count=len(self.state.rows),
            ))
            logger.info("%s restored saved_version=%d version=%d", action, entry.version, version)
            return Result.success(version)

    def undo(self) -> Result[int]:
        """Restore the most recently saved state; returns the new version."""
        return self._restore("undo")

    def redo(self) -> Result[int]:
        return self._restore("redo")

    def clear_history(self) -> None:
        with self._lock:
            self.history.clear()

    def history_summary(self) -> HistorySummary:
        with self._lock:
            return self.history.summary()

    # --- batch --------------------------------------------------------
    def _with_defaults(self, options: Any, factory: Callable[..., Any]) -> Any:
        if options is None:
            return factory(batch_size=self.batch_size, timeout=self.timeout)
        return options

    def import_rows(
        self,
        source: Sequence[Any] | None,
        options: ImportOptions | None = None,
        progress: ProgressSink | None = None,
        token: CancellationToken | None = None,
    ) -> Result[ImportResult]:
        with self._lock:
            return self.batch.import_rows(source, self._with_defaults(options, ImportOptions), progress, token)

    def export_rows(
        self,
        options: ExportOptions | None = None,
        progress: ProgressSink | None = None,
        token: CancellationToken | None = None,
        sink: Callable[[list[dict[str, Any]]], None] | None = None,
    ) -> Result[ExportResult]:
        with self._lock:
            return self.batch.export_rows(self._with_defaults(options, ExportOptions), progress, token, sink)

    def validate_all(
        self,
        options: ValidationOptions | None = None,
        progress: ProgressSink | None = None,
        token: CancellationToken | None = None,
    ) -> Result[ValidationSummary]:
        with self._lock:
            return self.batch.validate_all(self._with_defaults(options, ValidationOptions), progress, token)

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future[Any]:
        """Run ``fn`` on the grid's background worker (one at a time, in order)."""
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="gridcore-batch")
            return self._executor.submit(fn, *args, **kwargs)

    def close(self) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)

    def __enter__(self) -> DataGrid:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    # --- view: search / filter / sort ---------------------------------
    def _refresh_view(self) -> None:
        # 行構造が変わったらフィルタと検索を再計算
        state = self.state
        if state.active_filters:
            refreshed = apply_filters(state.rows, state.schema, state.active_filters, state.filter_logic)
            state.filtered_row_indices = list(refreshed.value.row_indices) if refreshed.is_success else None
        elif state.filtered_row_indices is not None:
            state.filtered_row_indices = None
        if self.search_engine.result is not None:
            self.search_engine.refresh(state.rows, state.schema, state.filtered_row_indices)
            state.search_result = self.search_engine.result

    def search(self, criteria: SearchCriteria) -> Result[SearchResult]:
        with self._lock:
            result = self.search_engine.search(
                self.state.rows, self.state.schema, criteria, self.state.filtered_row_indices,
            )
            if result.is_success:
                self.state.search_result = result.value
                self.notifier.publish(SearchCompleted(
                    version=self.state.version, text=criteria.text, match_count=result.value.match_count,
                ))
            return result

    def navigate(self, direction: NavigationDirection) -> Result[SearchMatch]:
        with self._lock:
            return self.search_engine.navigate(direction)

    @property
    def current_match(self) -> SearchMatch | None:
        return self.search_engine.current_match

    def clear_search(self) -> None:
        with self._lock:
            self.search_engine.clear()
            self.state.search_result = None

    def apply_filters(self, filters: Sequence[FilterDefinition],
                      logic: FilterLogic = FilterLogic.AND) -> Result[list[int]]:
        with self._lock:
            result = apply_filters(self.state.rows, self.state.schema, filters, logic)
            if result.is_failure:
                return result  # type: ignore[return-value]
            active = tuple(f for f in filters if f.enabled)
            self.state.active_filters = active
            self.state.filter_logic = logic
            self.state.filtered_row_indices = list(result.value.row_indices) if active else None
            if self.search_engine.result is not None:
                self.search_engine.refresh(self.state.rows, self.state.schema, self.state.filtered_row_indices)
            version = self.state.bump_version()
            self.notifier.publish(FilterApplied(
                version=version,
                filter_count=len(active),
                visible_rows=self.state.visible_row_count,
                total_rows=len(self.state.rows),
            ))
            return Result.success(self.state.visible_row_indices())

    def clear_filters(self) -> Result[None]:
        with self._lock:
            self.state.active_filters = ()
            self.state.filter_logic = FilterLogic.AND
            self.state.filtered_row_indices = None
            version = self.state.bump_version()
            self.notifier.publish(FilterApplied(
                version=version, filter_count=0, visible_rows=len(self.state.rows), total_rows=len(self.state.rows),
            ))
            return Result.success(None)

    def sort(self, criteria: Sequence[SortCriteria]) -> Result[list[int]]:
        """Reorder rows; returns the applied order (``order[new] == old``)."""
        with self._lock:
            order = sort_order(self.state.rows, self.state.schema, criteria)
            if order.is_failure:
                return order
            self.manager.store.reorder(order.value)
            version = self.manager.commit()
            self.notifier.publish(SortApplied(
                version=version, columns=tuple(c.column_name for c in criteria),
            ))
            return order
