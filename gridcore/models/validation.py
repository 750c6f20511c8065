from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .cell import is_blank
from .column import ColumnDefinition

"""Validation value types: errors, rule outcomes, rules and rule sets.

Rule sets are explicit values passed to the engine at initialization. There is
no process-wide registry of rules.
"""

__all__ = [
    "ValidationSeverity",
    "ValidationError",
    "RuleOutcome",
    "ValidationRule",
    "RowValidationRule",
    "CrossValidationResult",
    "CrossValidationRule",
    "ValidationRuleSet",
]


class ValidationSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class ValidationError:
    column_name: str
    message: str
    attempted_value: Any = None
    row_index: int | None = None
    rule_name: str | None = None
    severity: ValidationSeverity = ValidationSeverity.ERROR

    @property
    def is_warning(self) -> bool:
        return self.severity is ValidationSeverity.WARNING


@dataclass(frozen=True)
class RuleOutcome:
    """Outcome of a single rule evaluation. A warning is valid but carries a message."""
    is_valid: bool
    message: str | None = None
    severity: ValidationSeverity = ValidationSeverity.ERROR
    rule_name: str | None = None

    @classmethod
    def success(cls, rule_name: str | None = None) -> RuleOutcome:
        return cls(True, rule_name=rule_name)

    @classmethod
    def error(cls, message: str, rule_name: str | None = None) -> RuleOutcome:
        return cls(False, message, ValidationSeverity.ERROR, rule_name)

    @classmethod
    def warning(cls, message: str, rule_name: str | None = None) -> RuleOutcome:
        return cls(True, message, ValidationSeverity.WARNING, rule_name)

    @property
    def has_message(self) -> bool:
        return self.message is not None and (not self.is_valid or self.severity is ValidationSeverity.WARNING)

    def to_error(self, column_name: str, value: Any, row_index: int | None) -> ValidationError | None:
        if not self.has_message:
            return None
        return ValidationError(
            column_name=column_name,
            message=self.message or "",
            attempted_value=value,
            row_index=row_index,
            rule_name=self.rule_name,
            severity=self.severity,
        )


def _as_outcome(raw: RuleOutcome | bool, error_message: str, rule_name: str) -> RuleOutcome:
    if isinstance(raw, RuleOutcome):
        if raw.rule_name is None:
            return RuleOutcome(raw.is_valid, raw.message, raw.severity, rule_name)
        return raw
    if raw:
        return RuleOutcome.success(rule_name)
    return RuleOutcome.error(error_message, rule_name)


@dataclass(frozen=True)
class ValidationRule:
    """Single-cell rule. ``validator`` returns a RuleOutcome or a bool."""
    name: str
    validator: Callable[[Any], RuleOutcome | bool]
    error_message: str = "Validation failed"
    priority: int = 0  # 大きいほど先に評価
    enabled: bool = True

    def evaluate(self, value: Any) -> RuleOutcome:
        return _as_outcome(self.validator(value), self.error_message, self.name)

    @classmethod
    def create(cls, name: str, predicate: Callable[[Any], bool], error_message: str,
               priority: int = 0) -> ValidationRule:
        return cls(name, predicate, error_message, priority)

    @classmethod
    def required(cls, error_message: str = "Field is required", priority: int = 100) -> ValidationRule:
        return cls("Required", lambda v: not is_blank(v), error_message, priority)

    @classmethod
    def max_length(cls, max_length: int, error_message: str | None = None,
                   priority: int = 50) -> ValidationRule:
        msg = error_message or f"Maximum length is {max_length} characters"
        return cls(
            "MaxLength",
            lambda v: is_blank(v) or len(str(v)) <= max_length,
            msg,
            priority,
        )

    @classmethod
    def pattern(cls, regex: str, error_message: str = "Invalid format",
                priority: int = 40) -> ValidationRule:
        compiled = re.compile(regex)
        return cls(
            "Pattern",
            lambda v: is_blank(v) or compiled.fullmatch(str(v)) is not None,
            error_message,
            priority,
        )

    @classmethod
    def value_range(cls, minimum: float | None = None, maximum: float | None = None,
                    error_message: str | None = None, priority: int = 30) -> ValidationRule:
        msg = error_message or f"Value must be between {minimum} and {maximum}"

        def check(v: Any) -> bool:
            if is_blank(v):
                return True
            n = float(v)
            if minimum is not None and n < minimum:
                return False
            return maximum is None or n <= maximum

        return cls("Range", check, msg, priority)


@dataclass(frozen=True)
class RowValidationRule:
    """Rule over a whole row mapping; errors are reported under ``column_name``."""
    name: str
    validator: Callable[[Mapping[str, Any]], RuleOutcome | bool]
    error_message: str = "Row validation failed"
    column_name: str = "Row"
    priority: int = 0
    enabled: bool = True

    def evaluate(self, row: Mapping[str, Any]) -> RuleOutcome:
        return _as_outcome(self.validator(row), self.error_message, self.name)


@dataclass(frozen=True)
class CrossValidationResult:
    is_valid: bool
    global_message: str | None = None
    row_errors: Mapping[int, str] = field(default_factory=dict)

    @classmethod
    def success(cls) -> CrossValidationResult:
        return cls(True)

    @classmethod
    def error(cls, message: str) -> CrossValidationResult:
        return cls(False, message)

    @classmethod
    def with_row_errors(cls, row_errors: Mapping[int, str], message: str | None = None) -> CrossValidationResult:
        return cls(not row_errors, message, dict(row_errors))


@dataclass(frozen=True)
class CrossValidationRule:
    """Rule over the full dataset (list of row mappings, by row index)."""
    name: str
    validator: Callable[[list[Mapping[str, Any]]], CrossValidationResult | bool]
    error_message: str = "Cross-row validation failed"
    column_name: str = "Dataset"
    enabled: bool = True

    def evaluate(self, rows: list[Mapping[str, Any]]) -> CrossValidationResult:
        raw = self.validator(rows)
        if isinstance(raw, CrossValidationResult):
            return raw
        return CrossValidationResult.success() if raw else CrossValidationResult.error(self.error_message)

    @classmethod
    def unique(cls, column_name: str, error_message: str | None = None) -> CrossValidationRule:
        """Every non-blank value of ``column_name`` appears at most once."""
        msg = error_message or f"Duplicate value in {column_name}"
        key = column_name.casefold()

        def check(rows: list[Mapping[str, Any]]) -> CrossValidationResult:
            first_seen: dict[Any, int] = {}
            errors: dict[int, str] = {}
            for i, row in enumerate(rows):
                value = next((v for k, v in row.items() if k.casefold() == key), None)
                if is_blank(value):
                    continue
                marker = value.casefold() if isinstance(value, str) else value
                if marker in first_seen:
                    errors[first_seen[marker]] = msg
                    errors[i] = msg
                else:
                    first_seen[marker] = i
            return CrossValidationResult.with_row_errors(errors, msg if errors else None)

        return cls(f"Unique:{column_name}", check, msg, column_name)


class ValidationRuleSet:
    """Per-column rules (case-insensitive keys, insertion order) plus row and cross rules."""

    def __init__(self) -> None:
        self._columns: dict[str, tuple[str, list[ValidationRule]]] = {}
        self.row_rules: list[RowValidationRule] = []
        self.cross_rules: list[CrossValidationRule] = []

    def add(self, column_name: str, rule: ValidationRule) -> bool:
        """Add a rule; returns False when the column already has a rule of that name."""
        key = column_name.casefold()
        _, rules = self._columns.setdefault(key, (column_name, []))
        if any(r.name == rule.name for r in rules):
            return False
        rules.append(rule)
        return True

    def rules_for(self, column_name: str) -> list[ValidationRule]:
        entry = self._columns.get(column_name.casefold())
        return list(entry[1]) if entry else []

    def __len__(self) -> int:
        return sum(len(rules) for _, rules in self._columns.values()) + len(self.row_rules) + len(self.cross_rules)

    @classmethod
    def from_columns(cls, columns: Iterable[ColumnDefinition]) -> ValidationRuleSet:
        """Derive Required / MaxLength / Pattern rules from column constraints."""
        rule_set = cls()
        for col in columns:
            if col.is_special:
                continue
            if col.required:
                rule_set.add(col.name, ValidationRule.required(f"{col.header} is required"))
            if col.max_length is not None:
                rule_set.add(col.name, ValidationRule.max_length(col.max_length))
            if col.validation_pattern:
                rule_set.add(col.name, ValidationRule.pattern(col.validation_pattern,
                                                              f"{col.header} has an invalid format"))
        return rule_set
