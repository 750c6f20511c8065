from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from gridcore.models.column import ColumnDefinition, ColumnType, SpecialColumnType
from gridcore.models.options import ImportMode, ImportOptions
from gridcore.models.validation import CrossValidationRule, ValidationRule, ValidationRuleSet

"""Grid configuration loader.

Responsibilities:
- Load a YAML grid config (columns, row limits, batch defaults, import options)
- Validate it against ``grid_config_schema.json`` (shipped with the package)
- Apply defaults (minimum_rows=1, batch_size=1000, no timeout, replace mode)
"""

__all__ = [
    "ConfigError",
    "GridConfig",
    "ImportSettings",
    "load_config",
    "parse_config",
]

SCHEMA_PATH = Path(__file__).parent / "grid_config_schema.json"


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class ImportSettings:
    mode: ImportMode = ImportMode.REPLACE
    key_columns: tuple[str, ...] = ()
    validate: bool = True
    stop_on_error: bool = False
    skip_invalid_rows: bool = True


@dataclass(frozen=True)
class GridConfig:
    columns: tuple[ColumnDefinition, ...]
    minimum_rows: int = 1
    batch_size: int = 1000
    timeout_seconds: float | None = None
    import_settings: ImportSettings = field(default_factory=ImportSettings)
    unique_columns: tuple[str, ...] = ()  # 重複禁止列 (cross rule)
    ranges: dict[str, tuple[float | None, float | None]] = field(default_factory=dict)

    def build_rule_set(self) -> ValidationRuleSet:
        """Rules implied by the column settings: required/max_length/pattern, ranges, uniqueness."""
        rule_set = ValidationRuleSet.from_columns(self.columns)
        for name, (low, high) in self.ranges.items():
            rule_set.add(name, ValidationRule.value_range(low, high))
        for name in self.unique_columns:
            rule_set.cross_rules.append(CrossValidationRule.unique(name))
        return rule_set

    def import_options(self, mode: ImportMode | None = None) -> ImportOptions:
        s = self.import_settings
        return ImportOptions(
            mode=mode or s.mode,
            validate=s.validate,
            stop_on_error=s.stop_on_error,
            skip_invalid_rows=s.skip_invalid_rows,
            batch_size=self.batch_size,
            timeout=self.timeout_seconds,
            key_columns=s.key_columns,
        )


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Raise ConfigError when ``data`` violates the packaged JSON schema."""
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        location = "/".join(str(p) for p in e.absolute_path)
        suffix = f" (at {location})" if location else ""
        raise ConfigError(f"config validation failed: {e.message}{suffix}") from e


def _column(raw: dict[str, Any]) -> ColumnDefinition:
    return ColumnDefinition(
        name=raw["name"],
        data_type=ColumnType(raw.get("type", "string")),
        required=raw.get("required", False),
        read_only=raw.get("read_only", False),
        default_value=raw.get("default"),
        max_length=raw.get("max_length"),
        display_format=raw.get("format"),
        validation_pattern=raw.get("pattern"),
        special_type=SpecialColumnType(raw.get("special", "none")),
        display_name=raw.get("display_name"),
    )


def parse_config(data: dict[str, Any]) -> GridConfig:
    _validate_config_schema(data)
    columns = tuple(_column(c) for c in data["columns"])
    names = {c.name.casefold() for c in columns}
    for c in columns:
        if c.validation_pattern:
            try:
                re.compile(c.validation_pattern)
            except re.error as e:
                raise ConfigError(f"invalid pattern for column {c.name}: {e}") from e
    imp = data.get("import", {})
    for key in imp.get("key_columns", []):
        if key.casefold() not in names:
            raise ConfigError(f"unknown key column: {key}")
    mode = ImportMode(imp.get("mode", "replace"))
    if mode in (ImportMode.MERGE, ImportMode.UPDATE) and not imp.get("key_columns"):
        raise ConfigError(f"import mode '{mode.value}' requires key_columns")
    ranges = {
        c["name"]: (c.get("min"), c.get("max"))
        for c in data["columns"]
        if "min" in c or "max" in c
    }
    return GridConfig(
        columns=columns,
        minimum_rows=data.get("minimum_rows", 1),
        batch_size=data.get("batch_size", 1000),
        timeout_seconds=data.get("timeout_seconds"),
        import_settings=ImportSettings(
            mode=mode,
            key_columns=tuple(imp.get("key_columns", [])),
            validate=imp.get("validate", True),
            stop_on_error=imp.get("stop_on_error", False),
            skip_invalid_rows=imp.get("skip_invalid_rows", True),
        ),
        unique_columns=tuple(c["name"] for c in data["columns"] if c.get("unique")),
        ranges=ranges,
    )


def load_config(path: Path) -> GridConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")
    return parse_config(data)
