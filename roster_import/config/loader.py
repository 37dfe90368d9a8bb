from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    CatalogConfig,
    ConditionalRuleConfig,
    DateConfig,
    ImportConfig,
    MatchingConfig,
    ValidationConfig,
)

"""Config loader.

Responsibilities:
- Load YAML (config/import.yml by default)
- Validate it against the packaged JSON schema (import_schema.json)
- Apply defaults and build the frozen ImportConfig dataclass

Every failure surfaces as ConfigError so the CLI can map it to exit code 1.
"""

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "load_config",
]

DEFAULT_CONFIG_PATH = Path("config/import.yml")
SCHEMA_PATH = Path(__file__).with_name("import_schema.json")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the packaged JSON schema.

    Raises:
        ConfigError: schema file missing or unreadable, or data does not conform
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        where = "/".join(str(p) for p in e.absolute_path)
        suffix = f" (at {where})" if where else ""
        raise ConfigError(f"config validation failed: {e.message}{suffix}") from e


def _constant_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> ImportConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping, got {type(data).__name__}")

    _validate_config_schema(data)

    matching_raw = data.get("matching") or {}
    dates_raw = data.get("dates") or {}
    validation_raw = data.get("validation") or {}
    catalog_raw = data.get("catalog") or {}
    schema_raw = data.get("schema") or {}

    multi_value = catalog_raw.get("multi_value")
    return ImportConfig(
        source_file=data["source_file"],
        schema_file=data["schema_file"],
        catalog_file=data["catalog_file"],
        output_file=data.get("output_file", "output/records.json"),
        header_row=data.get("header_row", 1),
        sheet=data.get("sheet"),
        constants={
            k: _constant_text(v) for k, v in (data.get("constants") or {}).items() if v is not None
        },
        column_overrides=dict(data.get("column_overrides") or {}),
        corrections={f: dict(m) for f, m in (data.get("corrections") or {}).items()},
        correction_policy=data.get("correction_policy", "editable"),
        always_required=tuple(schema_raw.get("always_required", ())),
        null_sentinels=frozenset(s.strip().upper() for s in data.get("null_sentinels") or ()),
        matching=MatchingConfig(
            fuzzy_threshold=float(matching_raw.get("fuzzy_threshold", 0.5)),
            suggestion_threshold=float(matching_raw.get("suggestion_threshold", 0.4)),
        ),
        dates=DateConfig(
            order=dates_raw.get("order"),
            auto_detect=bool(dates_raw.get("auto_detect", False)),
        ),
        validation=ValidationConfig(
            phone_min_digits=validation_raw.get("phone_min_digits", 8),
            phone_country=validation_raw.get("phone_country", "DK").upper(),
            conditional_rules=tuple(
                ConditionalRuleConfig(field=r["field"], when_present=r["when_present"])
                for r in validation_raw.get("conditional_rules", ())
            ),
        ),
        catalog=CatalogConfig(
            field_domains=dict(catalog_raw.get("field_domains") or {}),
            multi_value=tuple(multi_value) if multi_value is not None else None,
        ),
    )
