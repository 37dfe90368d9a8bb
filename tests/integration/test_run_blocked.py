from __future__ import annotations

import json
from pathlib import Path

from roster_import.cli import main as cli_main
from roster_import.config.loader import load_config
from roster_import.services.orchestrator import process

"""Runs that stop and wait for user input; nothing is written to output/."""


def test_blocked_on_unmapped_required_field(temp_workdir: Path, write_config: Path, sample_config_yaml: str):
    text = sample_config_yaml.replace("  Notes: ignore\n", "  Notes: ignore\n  Email: ignore\n")
    write_config.write_text(text, encoding="utf-8")
    result = process(load_config(write_config))
    assert not result.is_complete
    assert result.phase == "mapping"
    assert result.reason == "required field(s) not mapped: email"
    assert not (temp_workdir / "output").exists()


def test_blocked_on_uncorrected_values(write_config: Path, sample_config_yaml: str, capsys):
    text = sample_config_yaml.replace("    Kichen: Kitchen\n", "    Kichen: Kitchn\n")
    write_config.write_text(text, encoding="utf-8")
    assert cli_main(["--config", str(write_config)]) == 2
    out = capsys.readouterr().out
    assert "WARN corrections: invalid correction for departments:Kichen: 'Kitchn'" in out
    assert "WARN departments: 'Kichen' not found in catalog, rows=1 (suggestion: 'Kitchen' 0.86)" in out
    assert out.splitlines()[-1].endswith("patterns=1 corrected=0 errors=0 warnings=0 phase=bulk-correction")


def test_blocked_on_ambiguous_dates(write_config: Path, sample_config_yaml: str):
    write_config.write_text(sample_config_yaml.replace("  order: DD/MM/YYYY\n", "  order: null\n"), encoding="utf-8")
    result = process(load_config(write_config))
    assert result.phase == "date-disambiguation"
    assert result.corrected == 1
    assert "03/04/2024" in result.reason


def test_blocked_on_validation_errors_writes_report(temp_workdir: Path, write_config: Path, write_inputs: Path):
    csv = (write_inputs / "employees.csv").read_text(encoding="utf-8")
    csv = csv.replace("bo@example.com", "bo@example").replace("11223344", "1122")
    (write_inputs / "employees.csv").write_text(csv, encoding="utf-8")

    result = process(load_config(write_config))
    assert result.phase == "individual-correction"
    assert (result.errors, result.warnings) == (1, 1)
    assert not (temp_workdir / "output").exists()

    entries = [json.loads(line) for line in result.report_path.read_text(encoding="utf-8").splitlines()]
    assert [(e["row"], e["field"], e["severity"]) for e in entries] == [
        (2, "email", "error"),
        (3, "cellPhone", "warning"),
    ]


def test_inspect_data_prints_mapping(write_config: Path, capsys):
    assert cli_main(["--config", str(write_config), "--inspect-data"]) == 0
    out = capsys.readouterr().out
    assert "FILE: ./data/employees.csv" in out
    assert "'Hire Date' -> hiredFrom [mapped/fuzzy 1.0]" in out
    assert "'Notes' -> - [ignored/manual 1.0]" in out


def test_phone_from_another_country_blocks(write_config: Path, write_inputs: Path):
    csv = (write_inputs / "employees.csv").read_text(encoding="utf-8")
    (write_inputs / "employees.csv").write_text(csv.replace("11223344", "+46701234567"), encoding="utf-8")

    result = process(load_config(write_config))
    assert result.phase == "individual-correction"
    assert (result.errors, result.warnings) == (1, 0)
    [entry] = [json.loads(line) for line in result.report_path.read_text(encoding="utf-8").splitlines()]
    assert (entry["row"], entry["field"], entry["severity"]) == (3, "cellPhone", "error")
    assert "+46" in entry["message"]
