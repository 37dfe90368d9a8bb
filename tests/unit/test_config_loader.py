from __future__ import annotations

from pathlib import Path

import pytest

from roster_import.config.loader import ConfigError, load_config

MINIMAL = """source_file: ./data/employees.csv
schema_file: ./data/schema.json
catalog_file: ./data/catalog.json
"""


def _write(temp_workdir: Path, text: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(text, encoding="utf-8")
    return cfg


def test_load_sample_config(write_config: Path):
    cfg = load_config(write_config)
    assert cfg.source_file == "./data/employees.csv"
    assert cfg.output_file == "./output/records.json"
    assert cfg.constants == {"cellPhoneCountryCode": "DK"}
    assert cfg.column_overrides == {"Notes": "ignore"}
    assert cfg.corrections == {"departments": {"Kichen": "Kitchen"}}
    assert cfg.dates.order == "DD/MM/YYYY"
    assert cfg.dates.auto_detect is False


def test_defaults(temp_workdir: Path):
    cfg = load_config(_write(temp_workdir, MINIMAL))
    assert cfg.header_row == 1
    assert cfg.sheet is None
    assert cfg.correction_policy == "editable"
    assert cfg.matching.fuzzy_threshold == 0.5
    assert cfg.matching.suggestion_threshold == 0.4
    assert cfg.validation.phone_min_digits == 8
    assert cfg.validation.phone_country == "DK"
    assert cfg.catalog.multi_value is None
    assert cfg.null_sentinels == frozenset()


def test_optional_sections(temp_workdir: Path):
    text = MINIMAL + """constants:
  isSupervisor: true
  phone: 12345678
  gender: null
null_sentinels: ["n/a", " null "]
schema:
  always_required: [departments]
validation:
  phone_country: se
  conditional_rules:
    - field: ssn
      when_present: birthDate
catalog:
  multi_value: [departments]
  field_domains:
    supervisorId: supervisors
correction_policy: permanent
"""
    cfg = load_config(_write(temp_workdir, text))
    assert cfg.constants == {"isSupervisor": "true", "phone": "12345678"}
    assert cfg.null_sentinels == frozenset({"N/A", "NULL"})
    assert cfg.always_required == ("departments",)
    assert cfg.validation.conditional_rules[0].when_present == "birthDate"
    assert cfg.validation.phone_country == "SE"
    assert cfg.catalog.multi_value == ("departments",)
    assert cfg.catalog.field_domains == {"supervisorId": "supervisors"}
    assert cfg.correction_policy == "permanent"


def test_missing_file(temp_workdir: Path):
    with pytest.raises(ConfigError, match="config file not found"):
        load_config(temp_workdir / "config" / "nope.yml")


def test_invalid_yaml(temp_workdir: Path):
    with pytest.raises(ConfigError, match="invalid yaml"):
        load_config(_write(temp_workdir, "source_file: [unclosed"))


def test_root_must_be_mapping(temp_workdir: Path):
    with pytest.raises(ConfigError, match="must be a mapping"):
        load_config(_write(temp_workdir, "- a\n- b\n"))


@pytest.mark.parametrize(
    ("extra", "where"),
    [
        ("dates:\n  order: YYYY/MM/DD\n", "dates/order"),
        ("correction_policy: sometimes\n", "correction_policy"),
        ("matching:\n  fuzzy_threshold: 2\n", "matching/fuzzy_threshold"),
        ("unknown_key: 1\n", ""),
    ],
)
def test_schema_violations(temp_workdir: Path, extra: str, where: str):
    with pytest.raises(ConfigError, match="config validation failed") as exc:
        load_config(_write(temp_workdir, MINIMAL + extra))
    if where:
        assert f"(at {where})" in str(exc.value)


def test_required_keys(temp_workdir: Path):
    with pytest.raises(ConfigError, match="'catalog_file' is a required property"):
        load_config(_write(temp_workdir, "source_file: a.csv\nschema_file: s.json\n"))
