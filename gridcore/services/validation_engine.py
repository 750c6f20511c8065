from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from ..models.column import ColumnDefinition
from ..models.result import ErrorKind, Result
from ..models.validation import (
    CrossValidationRule,
    RowValidationRule,
    RuleOutcome,
    ValidationError,
    ValidationRule,
    ValidationRuleSet,
)

logger = logging.getLogger(__name__)

"""Validation rule engine.

Evaluates per-cell rules, row rules and cross-row rules. A rule that raises
never aborts validation: the fault is turned into an error outcome naming the
rule. Evaluation order is deterministic (schema column order, then priority
descending, then insertion order).
"""

__all__ = [
    "ValidationEngine",
    "DatasetValidation",
]


@dataclass(frozen=True)
class DatasetValidation:
    """Cross-rule outcome over the full dataset."""
    global_errors: tuple[ValidationError, ...] = ()
    row_errors: dict[int, list[ValidationError]] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.global_errors and not self.row_errors


class ValidationEngine:
    def __init__(self, rule_set: ValidationRuleSet | None = None) -> None:
        self.rule_set = rule_set if rule_set is not None else ValidationRuleSet()

    # --- registration -------------------------------------------------
    def add_rule(self, column_name: str, rule: ValidationRule) -> Result[None]:
        if not column_name or not column_name.strip():
            return Result.failure("column name must not be blank", ErrorKind.INVALID_ARGUMENT)
        if rule is None:
            return Result.failure("rule must not be None", ErrorKind.NULL_INPUT)
        if not self.rule_set.add(column_name, rule):
            return Result.failure(
                f"rule '{rule.name}' already registered for column '{column_name}'",
                ErrorKind.INVALID_ARGUMENT,
            )
        logger.debug("rule added column=%s rule=%s priority=%d", column_name, rule.name, rule.priority)
        return Result.success(None)

    def add_row_rule(self, rule: RowValidationRule) -> Result[None]:
        if any(r.name == rule.name for r in self.rule_set.row_rules):
            return Result.failure(f"row rule '{rule.name}' already registered", ErrorKind.INVALID_ARGUMENT)
        self.rule_set.row_rules.append(rule)
        return Result.success(None)

    def add_cross_rule(self, rule: CrossValidationRule) -> Result[None]:
        if any(r.name == rule.name for r in self.rule_set.cross_rules):
            return Result.failure(f"cross rule '{rule.name}' already registered", ErrorKind.INVALID_ARGUMENT)
        self.rule_set.cross_rules.append(rule)
        return Result.success(None)

    def get_rules(self, column_name: str) -> list[ValidationRule]:
        return self.rule_set.rules_for(column_name)

    def has_rules(self, column_name: str) -> bool:
        return bool(self.rule_set.rules_for(column_name))

    @property
    def cross_rules(self) -> list[CrossValidationRule]:
        return list(self.rule_set.cross_rules)

    # --- evaluation ---------------------------------------------------
    def validate_cell(self, value: Any, rule: ValidationRule) -> RuleOutcome:
        if not rule.enabled:
            return RuleOutcome.success(rule.name)
        try:
            return rule.evaluate(value)
        except Exception as e:
            logger.warning("validation rule raised rule=%s error=%s", rule.name, e)
            return RuleOutcome.error(f"Validation rule '{rule.name}' failed: {e}", rule.name)

    def _ordered(self, column_name: str) -> list[ValidationRule]:
        # sorted は安定ソートなので同一優先度は登録順
        rules = [r for r in self.rule_set.rules_for(column_name) if r.enabled]
        return sorted(rules, key=lambda r: -r.priority)

    def validate_value(self, column_name: str, value: Any, row_index: int | None = None) -> list[ValidationError]:
        errors: list[ValidationError] = []
        for rule in self._ordered(column_name):
            err = self.validate_cell(value, rule).to_error(column_name, value, row_index)
            if err is not None:
                errors.append(err)
        return errors

    def validate_row(
        self,
        row: Mapping[str, Any],
        row_index: int | None,
        columns: Iterable[ColumnDefinition],
    ) -> list[ValidationError]:
        errors: list[ValidationError] = []
        for col in columns:
            if col.is_special:
                continue
            errors.extend(self.validate_value(col.name, row.get(col.name), row_index))
        row_rules = sorted((r for r in self.rule_set.row_rules if r.enabled), key=lambda r: -r.priority)
        for rule in row_rules:
            try:
                outcome = rule.evaluate(row)
            except Exception as e:
                logger.warning("row rule raised rule=%s error=%s", rule.name, e)
                outcome = RuleOutcome.error(f"Validation rule '{rule.name}' failed: {e}", rule.name)
            err = outcome.to_error(rule.column_name, None, row_index)
            if err is not None:
                errors.append(err)
        return errors

    def validate_dataset(
        self,
        all_rows: Sequence[Mapping[str, Any]],
        cross_rules: Iterable[CrossValidationRule] | None = None,
        row_indices: Sequence[int] | None = None,
    ) -> DatasetValidation:
        """Run cross rules over ``all_rows``.

        ``row_indices`` maps positions in ``all_rows`` back to grid row indices
        when the caller passes a subset; by default positions are the indices.
        """
        rules = list(cross_rules) if cross_rules is not None else self.rule_set.cross_rules
        global_errors: list[ValidationError] = []
        row_errors: dict[int, list[ValidationError]] = {}
        rows = list(all_rows)
        for rule in rules:
            if not rule.enabled:
                continue
            try:
                outcome = rule.evaluate(rows)
            except Exception as e:
                logger.warning("cross rule raised rule=%s error=%s", rule.name, e)
                global_errors.append(ValidationError(
                    rule.column_name, f"Cross-validation rule '{rule.name}' failed: {e}", rule_name=rule.name,
                ))
                continue
            if outcome.is_valid:
                continue
            if outcome.global_message and not outcome.row_errors:
                global_errors.append(ValidationError(rule.column_name, outcome.global_message, rule_name=rule.name))
            for pos, message in outcome.row_errors.items():
                index = row_indices[pos] if row_indices is not None else pos
                value = rows[pos].get(rule.column_name) if 0 <= pos < len(rows) else None
                row_errors.setdefault(index, []).append(
                    ValidationError(rule.column_name, message, value, index, rule.name)
                )
        return DatasetValidation(tuple(global_errors), row_errors)

    @staticmethod
    def format_errors(
        errors: Sequence[ValidationError],
        max_errors: int = 10,
        template: str = "{column}: {message}",
    ) -> str:
        """Render errors as one line each; overflow is summarized."""
        lines = [template.format(column=e.column_name, message=e.message) for e in errors[:max_errors]]
        if len(errors) > max_errors:
            lines.append(f"... and {len(errors) - max_errors} more")
        return "\n".join(lines)
