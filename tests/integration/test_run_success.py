from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

import pandas as pd

from roster_import.cli import main as cli_main
from roster_import.config.loader import load_config
from roster_import.services.orchestrator import process

"""End to end: spreadsheet + schema + catalog -> corrected records JSON."""


def _make_excel_file(path: Path, rows: list[list[object]]) -> None:
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        pd.DataFrame(rows).to_excel(writer, sheet_name="Staff", index=False, header=False)


def test_cli_writes_corrected_records(temp_workdir: Path, write_config: Path):
    assert cli_main(["--config", str(write_config)]) == 0
    out = json.loads((temp_workdir / "output" / "records.json").read_text(encoding="utf-8"))

    records = out["records"]
    assert [r["row"] for r in records] == [1, 2, 3]
    assert records[0] == {
        "row": 1,
        "firstName": "Ann",
        "lastName": "Lee",
        "email": "ann@example.com",
        "cellPhone": "12345678",
        "departments": "Kitchen",
        "hiredFrom": "2024-03-15",
        "cellPhoneCountryCode": "DK",
    }
    assert records[1]["departments"] == "Kitchen"
    assert records[1]["hiredFrom"] == "2024-01-10"
    assert records[2]["hiredFrom"] == "2024-04-03"
    assert all("Notes" not in r for r in records)

    payload = out["payload"]
    assert [p["departments"] for p in payload] == [[1], [1], [2, 1]]
    assert payload[0]["cellPhoneCountryCode"] == "DK"


def test_process_result_counts(write_config: Path):
    result = process(load_config(write_config))
    assert result.is_complete
    assert result.phase == "complete"
    assert (result.rows, result.headers, result.mapped) == (3, 7, 6)
    assert (result.patterns, result.corrected, result.errors, result.warnings) == (0, 1, 0, 0)
    assert result.report_path is None
    assert result.output_path == Path("./output/records.json")
    report = {entry["column"]: entry["status"] for entry in result.mapping_report}
    assert report["Notes"] == "ignored"
    assert report["Mobile"] == "mapped"


def test_date_order_detected_from_data(write_config: Path, sample_config_yaml: str):
    text = sample_config_yaml.replace("  order: DD/MM/YYYY\n", "  auto_detect: true\n")
    write_config.write_text(text, encoding="utf-8")
    result = process(load_config(write_config))
    assert result.is_complete
    out = json.loads(Path("output/records.json").read_text(encoding="utf-8"))
    assert out["records"][2]["hiredFrom"] == "2024-04-03"


def test_excel_source_with_nested_and_expanded_fields(temp_workdir: Path, write_inputs: Path):
    _make_excel_file(write_inputs / "staff.xlsx", [
        ["Email", "First name", "Last name", "Employee groups", "Account number", "Registration number", "Hire date"],
        ["ann@example.com", "Ann", "Lee", "Chef, Waiter", 1234567, 9, datetime(2024, 3, 15)],
    ])
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(
        "source_file: ./data/staff.xlsx\n"
        "schema_file: ./data/schema.json\n"
        "catalog_file: ./data/catalog.json\n"
        "output_file: ./output/staff.json\n",
        encoding="utf-8",
    )
    assert cli_main(["--config", str(cfg)]) == 0
    out = json.loads((temp_workdir / "output" / "staff.json").read_text(encoding="utf-8"))
    [payload] = out["payload"]
    assert payload["employeeGroups"] == [8, 7]
    assert payload["bankAccount"] == {"accountNumber": "1234567", "registrationNumber": "9"}
    assert payload["hiredFrom"] == "2024-03-15"


def test_repeated_header_column_is_left_unmapped(write_config: Path, write_inputs: Path):
    source = write_inputs / "employees.csv"
    lines = source.read_text(encoding="utf-8").splitlines()
    lines = [lines[0] + ",Email"] + [line + ",other@example.com" for line in lines[1:]]
    source.write_text("\n".join(lines) + "\n", encoding="utf-8")

    result = process(load_config(write_config))
    assert result.is_complete
    assert (result.headers, result.mapped) == (8, 6)
    report = {entry["column"]: entry["status"] for entry in result.mapping_report}
    assert report["Email"] == "mapped"
    assert report["Email (2)"] == "unmapped"
    out = json.loads(Path("output/records.json").read_text(encoding="utf-8"))
    assert out["records"][0]["email"] == "ann@example.com"
