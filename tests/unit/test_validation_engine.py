from __future__ import annotations

from gridcore.models.column import ColumnDefinition, ColumnType
from gridcore.models.result import ErrorKind
from gridcore.models.validation import (
    CrossValidationResult,
    CrossValidationRule,
    RowValidationRule,
    RuleOutcome,
    ValidationRule,
    ValidationRuleSet,
    ValidationSeverity,
)
from gridcore.services.validation_engine import ValidationEngine

COLUMNS = [
    ColumnDefinition("Name", ColumnType.STRING),
    ColumnDefinition("Age", ColumnType.INTEGER),
]


def _raise(_):
    raise RuntimeError("kaboom")


class TestRuleRegistration:
    def test_add_and_get_rules_preserve_insertion_order(self):
        engine = ValidationEngine()
        engine.add_rule("Name", ValidationRule.required())
        engine.add_rule("name", ValidationRule.max_length(5))
        assert [r.name for r in engine.get_rules("NAME")] == ["Required", "MaxLength"]
        assert engine.has_rules("Name")
        assert not engine.has_rules("Age")

    def test_duplicate_rule_name_is_rejected(self):
        engine = ValidationEngine()
        assert engine.add_rule("Name", ValidationRule.required()).is_success
        dup = engine.add_rule("Name", ValidationRule.required())
        assert dup.is_failure and dup.kind is ErrorKind.INVALID_ARGUMENT

    def test_blank_column_name_is_rejected(self):
        assert ValidationEngine().add_rule(" ", ValidationRule.required()).is_failure


class TestValidateCell:
    def test_raising_rule_becomes_error_with_rule_name(self):
        engine = ValidationEngine()
        outcome = engine.validate_cell("x", ValidationRule("Boom", _raise))
        assert not outcome.is_valid
        assert outcome.message == "Validation rule 'Boom' failed: kaboom"
        assert outcome.rule_name == "Boom"

    def test_disabled_rule_passes(self):
        rule = ValidationRule("Never", lambda v: False, enabled=False)
        assert ValidationEngine().validate_cell("x", rule).is_valid

    def test_warning_is_valid_with_message(self):
        rule = ValidationRule("Soft", lambda v: RuleOutcome.warning("looks odd"))
        outcome = ValidationEngine().validate_cell("x", rule)
        assert outcome.is_valid
        assert outcome.severity is ValidationSeverity.WARNING
        assert outcome.message == "looks odd"


class TestValidateRow:
    def test_priority_then_insertion_order(self):
        engine = ValidationEngine()
        engine.add_rule("Name", ValidationRule("Low", lambda v: False, "low", priority=1))
        engine.add_rule("Name", ValidationRule("HighA", lambda v: False, "high-a", priority=10))
        engine.add_rule("Name", ValidationRule("HighB", lambda v: False, "high-b", priority=10))
        engine.add_rule("Age", ValidationRule("AgeRule", lambda v: False, "age"))
        errors = engine.validate_row({"Name": "x", "Age": 1}, 3, COLUMNS)
        assert [e.message for e in errors] == ["high-a", "high-b", "low", "age"]
        assert all(e.row_index == 3 for e in errors)

    def test_deterministic_across_runs(self):
        engine = ValidationEngine(ValidationRuleSet.from_columns([
            ColumnDefinition("Name", required=True, max_length=3),
            ColumnDefinition("Age", ColumnType.INTEGER),
        ]))
        row = {"Name": "toolong", "Age": None}
        first = engine.validate_row(row, 0, COLUMNS)
        second = engine.validate_row(row, 0, COLUMNS)
        assert first == second
        assert [e.rule_name for e in first] == ["MaxLength"]

    def test_throwing_rule_does_not_abort_row(self):
        engine = ValidationEngine()
        engine.add_rule("Name", ValidationRule("Boom", _raise, priority=5))
        engine.add_rule("Name", ValidationRule.required())
        errors = engine.validate_row({"Name": "", "Age": 1}, 0, COLUMNS)
        assert [e.rule_name for e in errors] == ["Required", "Boom"]

    def test_row_rules_run_after_cell_rules(self):
        engine = ValidationEngine()
        engine.add_rule("Name", ValidationRule.required())
        engine.add_row_rule(RowValidationRule(
            "AdultNamed", lambda row: not (row.get("Age") or 0) < 18, "must be adult",
        ))
        errors = engine.validate_row({"Name": "", "Age": 10}, 0, COLUMNS)
        assert [e.column_name for e in errors] == ["Name", "Row"]


class TestValidateDataset:
    def test_unique_rule_flags_every_duplicate(self):
        engine = ValidationEngine()
        engine.add_cross_rule(CrossValidationRule.unique("Name"))
        rows = [{"Name": "a"}, {"Name": "b"}, {"Name": "A"}, {"Name": ""}]
        result = engine.validate_dataset(rows)
        assert set(result.row_errors) == {0, 2}
        assert not result.global_errors

    def test_row_indices_map_positions_back(self):
        engine = ValidationEngine()
        engine.add_cross_rule(CrossValidationRule.unique("Name"))
        result = engine.validate_dataset([{"Name": "x"}, {"Name": "x"}], row_indices=[4, 9])
        assert set(result.row_errors) == {4, 9}

    def test_global_failure_and_raising_rule(self):
        engine = ValidationEngine()
        engine.add_cross_rule(CrossValidationRule("Total", lambda rows: CrossValidationResult.error("too few")))
        engine.add_cross_rule(CrossValidationRule("Boom", _raise))
        result = engine.validate_dataset([{"Name": "x"}])
        messages = [e.message for e in result.global_errors]
        assert messages == ["too few", "Cross-validation rule 'Boom' failed: kaboom"]
        assert not result.is_valid


def test_format_errors_truncates():
    engine = ValidationEngine()
    engine.add_rule("Name", ValidationRule.required("Name is required"))
    errors = engine.validate_row({"Name": ""}, 0, COLUMNS) * 3
    text = ValidationEngine.format_errors(errors, max_errors=2)
    assert text.splitlines() == ["Name: Name is required", "Name: Name is required", "... and 1 more"]
