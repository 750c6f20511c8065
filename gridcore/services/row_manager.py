from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from ..models.column import SpecialColumnType
from ..models.events import GridCleared, RowAdded, RowDeleted, RowModified
from ..models.grid_state import GridState
from ..models.processing_result import RowOperationResult
from ..models.result import ErrorKind, Result
from ..models.validation import ValidationError
from .notifier import ChangeNotifier
from .row_store import RowStore
from .validation_engine import ValidationEngine

logger = logging.getLogger(__name__)

"""Smart row manager: add / delete / modify with structural invariants.

After every successful operation:
- the grid has at least ``minimum_rows`` rows
- the last row is empty (there is always a row to type into)
- the state version has been bumped exactly once

Failed operations leave rows and version untouched.
"""

__all__ = [
    "SmartRowManager",
    "ConfirmationCallback",
]

ConfirmationCallback = Callable[[int, Mapping[str, Any]], bool]


class SmartRowManager:
    def __init__(
        self,
        state: GridState,
        engine: ValidationEngine,
        notifier: ChangeNotifier,
        minimum_rows: int = 1,
        on_structure_changed: Callable[[], None] | None = None,
    ) -> None:
        if minimum_rows < 0:
            raise ValueError(f"minimum_rows must be >= 0: {minimum_rows}")
        self.state = state
        self.store = RowStore(state)
        self.engine = engine
        self.notifier = notifier
        self.minimum_rows = minimum_rows
        self._on_structure_changed = on_structure_changed

    # --- invariants ---------------------------------------------------
    def ensure_invariants(self) -> int:
        """Append empty rows until both invariants hold. Returns rows appended."""
        appended = 0
        while len(self.store) < self.minimum_rows or not self.store.last_row_is_empty():
            self.store.append_empty()
            appended += 1
        if appended:
            logger.debug("invariants repaired appended=%d rows=%d", appended, len(self.store))
        return appended

    def invariants_hold(self) -> bool:
        return len(self.store) >= self.minimum_rows and self.store.last_row_is_empty()

    def _validate(self, data: Mapping[str, Any], row_index: int) -> list[ValidationError]:
        return self.engine.validate_row(data, row_index, self.state.schema.data_columns)

    def commit(self) -> int:
        """Refresh dependent view state and bump the version once."""
        if self._on_structure_changed is not None:
            self._on_structure_changed()
        return self.state.bump_version()

    def _result(self, row_index: int, errors: list[ValidationError], appended: int) -> RowOperationResult:
        return RowOperationResult(
            row_index=row_index,
            row_count=len(self.store),
            version=self.state.version,
            validation_errors=tuple(errors),
            appended_empty_rows=appended,
        )

    # --- operations ---------------------------------------------------
    def add_row(
        self,
        data: Mapping[str, Any] | None,
        insert_index: int | None = None,
        validate: bool = True,
    ) -> Result[RowOperationResult]:
        if data is None:
            return Result.failure("row data must not be None", ErrorKind.NULL_INPUT)
        normalized = self.store.normalize(data)
        # 既定位置は末尾の空行の手前
        index = insert_index
        if index is None or not 0 <= index <= len(self.store):
            index = self.store.data_end()
        errors = self._validate(normalized, index) if validate else []
        row = self.store.insert(index, normalized)
        row.validation_errors = errors
        appended = self.ensure_invariants()
        version = self.commit()
        logger.debug("row added index=%d errors=%d version=%d", index, len(errors), version)
        self.notifier.publish(RowAdded(
            version=version, row_index=index, data=row.snapshot(), validation_error_count=len(errors),
        ))
        return Result.success(self._result(index, errors, appended))

    def delete_row(
        self,
        row_index: int,
        require_confirmation: bool = False,
        confirmation_callback: ConfirmationCallback | None = None,
    ) -> Result[RowOperationResult]:
        if not self.store.in_range(row_index):
            return Result.failure(
                f"row index {row_index} out of range (0..{len(self.store) - 1})", ErrorKind.OUT_OF_RANGE,
            )
        row = self.store[row_index]
        if not row.is_empty and self.store.non_empty_count() <= self.minimum_rows:
            logger.warning("delete rejected index=%d minimum_rows=%d", row_index, self.minimum_rows)
            return Result.failure(
                f"cannot delete row {row_index}: minimum of {self.minimum_rows} non-empty row(s) required",
                ErrorKind.MINIMUM_ROW_VIOLATION,
            )
        # コールバック未指定なら自動承認
        if require_confirmation and confirmation_callback is not None:
            try:
                confirmed = bool(confirmation_callback(row_index, row.snapshot()))
            except Exception:
                logger.exception("confirmation callback raised index=%d", row_index)
                confirmed = False
            if not confirmed:
                return Result.failure(f"deletion of row {row_index} cancelled", ErrorKind.CANCELLED)
        removed = self.store.remove(row_index)
        appended = self.ensure_invariants()
        version = self.commit()
        logger.debug("row deleted index=%d version=%d", row_index, version)
        self.notifier.publish(RowDeleted(version=version, row_index=row_index, data=removed.snapshot()))
        return Result.success(self._result(row_index, [], appended))

    def modify_row(
        self,
        row_index: int,
        new_data: Mapping[str, Any] | None,
        validate: bool = True,
    ) -> Result[RowOperationResult]:
        if not self.store.in_range(row_index):
            return Result.failure(
                f"row index {row_index} out of range (0..{len(self.store) - 1})", ErrorKind.OUT_OF_RANGE,
            )
        if new_data is None:
            return Result.failure("row data must not be None", ErrorKind.NULL_INPUT)
        normalized = self.store.normalize(new_data)
        errors = self._validate(normalized, row_index) if validate else []
        old = self.store.replace(row_index, normalized)
        self.store[row_index].validation_errors = errors
        appended = self.ensure_invariants()
        version = self.commit()
        self.notifier.publish(RowModified(
            version=version,
            row_index=row_index,
            old_data=dict(old),
            new_data=dict(normalized),
            validation_error_count=len(errors),
        ))
        return Result.success(self._result(row_index, errors, appended))

    def update_cell(
        self,
        row_index: int,
        column_name: str,
        value: Any,
        validate: bool = True,
    ) -> Result[RowOperationResult]:
        if not self.store.in_range(row_index):
            return Result.failure(
                f"row index {row_index} out of range (0..{len(self.store) - 1})", ErrorKind.OUT_OF_RANGE,
            )
        col = self.state.schema.get(column_name)
        if col is None:
            return Result.failure(f"unknown column: {column_name}", ErrorKind.INVALID_ARGUMENT)
        if col.special_type is SpecialColumnType.CHECKBOX:
            return Result.failure(
                f"column '{col.name}' holds checkbox state; use set_checkbox", ErrorKind.INVALID_ARGUMENT,
            )
        if col.read_only or col.is_special:
            return Result.failure(f"column '{col.name}' is read-only", ErrorKind.READ_ONLY)
        data = self.store[row_index].snapshot()
        data[col.name] = value
        return self.modify_row(row_index, data, validate=validate)

    def clear_rows(self) -> Result[RowOperationResult]:
        removed = self.store.clear()
        self.state.reset_view()
        appended = self.ensure_invariants()
        version = self.commit()
        logger.info("grid cleared removed=%d version=%d", removed, version)
        self.notifier.publish(GridCleared(version=version, removed_rows=removed))
        return Result.success(self._result(0, [], appended))
