# Shared pytest fixtures
from __future__ import annotations

import json
import tempfile
from pathlib import Path

import pytest

from roster_import.logging.init import reset_logging
from roster_import.services.reference_catalog import ReferenceCatalog
from roster_import.services.schema_registry import SchemaRegistry


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        monkeypatch.delenv("ROSTER_IMPORT_CONFIG", raising=False)
        yield p


@pytest.fixture()
def schema_document() -> dict:
    return {
        "$schema": "http://json-schema.org/draft-07/schema#",
        "type": "object",
        "portalId": 4711,
        "required": ["firstName", "lastName", "email"],
        "readOnly": ["id"],
        "unique": ["id", "email", "ssn"],
        "properties": {
            "id": {"type": "integer", "description": "Employee id"},
            "firstName": {"type": "string", "description": "First name"},
            "lastName": {"type": "string", "description": "Last name"},
            "email": {"type": "string", "format": "email", "description": "Email"},
            "cellPhone": {"type": "string", "description": "Mobile phone"},
            "cellPhoneCountryCode": {"type": "string", "description": "Mobile country code"},
            "departments": {"type": "array", "description": "Departments"},
            "employeeGroups": {"type": "array", "description": "Employee groups"},
            "gender": {"type": "string", "enum": ["Male", "Female"], "description": "Gender"},
            "hiredFrom": {"type": "string", "format": "date", "description": "Hired from"},
            "birthDate": {"$ref": "#/definitions/BirthDate"},
            "bankAccount": {"$ref": "#/definitions/BankAccount"},
            "ssn": {"type": "string", "description": "Social security number"},
            "custom_123": {"type": "string", "description": "Shoe size"},
        },
        "definitions": {
            "BirthDate": {"type": "string", "description": "Birth date"},
            "BankAccount": {
                "type": "object",
                "properties": {
                    "accountNumber": {"type": "string", "description": "Account number"},
                    "registrationNumber": {"type": "string", "description": "Registration number"},
                },
            },
        },
    }


@pytest.fixture()
def catalog_document() -> dict:
    return {
        "departments": [{"id": 1, "name": "Kitchen"}, {"id": 2, "name": "Bar"}],
        "employeeGroups": {"paging": {"offset": 0}, "data": [{"id": 7, "name": "Waiter"}, {"id": 8, "name": "Chef"}]},
    }


@pytest.fixture()
def catalog(catalog_document: dict) -> ReferenceCatalog:
    return ReferenceCatalog.from_document(catalog_document)


@pytest.fixture()
def registry(schema_document: dict, catalog: ReferenceCatalog) -> SchemaRegistry:
    return SchemaRegistry.load(schema_document, catalog=catalog)


SOURCE_CSV = (
    "First Name,Last Name,Email,Department,Hire Date,Mobile,Notes\n"
    "Ann,Lee,ann@example.com,Kitchen,15/03/2024,12345678,x\n"
    "Bo,Berg,bo@example.com,Kichen,2024-01-10,87654321,\n"
    'Cy,Dahl,cy@example.com,"Bar, Kitchen",03/04/2024,11223344,\n'
)


@pytest.fixture()
def write_inputs(temp_workdir: Path, schema_document: dict, catalog_document: dict) -> Path:
    data = temp_workdir / "data"
    (data / "schema.json").write_text(json.dumps(schema_document), encoding="utf-8")
    (data / "catalog.json").write_text(json.dumps(catalog_document), encoding="utf-8")
    (data / "employees.csv").write_text(SOURCE_CSV, encoding="utf-8")
    return data


@pytest.fixture()
def sample_config_yaml() -> str:
    return """source_file: ./data/employees.csv
schema_file: ./data/schema.json
catalog_file: ./data/catalog.json
output_file: ./output/records.json
constants:
  cellPhoneCountryCode: DK
column_overrides:
  Notes: ignore
corrections:
  departments:
    Kichen: Kitchen
dates:
  order: DD/MM/YYYY
"""


@pytest.fixture()
def write_config(temp_workdir: Path, write_inputs: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg
