from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ..excel.reader import SheetHeaderError, UnsupportedFileError, load_parsed_sheet
from ..logging.error_log import ValidationReportBuffer
from ..models.column_mapping import IGNORE
from ..models.config_models import ImportConfig
from ..models.import_result import STATUS_BLOCKED, STATUS_COMPLETE, ImportResult
from ..models.record import Record, UnknownFieldError
from ..models.validation_error import ValidationError
from .column_mapper import DuplicateFieldMapping, MappingSet, auto_map, build_records
from .reference_catalog import CatalogError, ReferenceCatalog
from .schema_registry import SchemaRegistry, SchemaUnavailable
from .session import ImportSession
from .validation import DEFAULT_CONDITIONAL_RULES, ConditionalRule, missing_required_fields
from .workflow import (
    CorrectionWorkflow,
    InvalidCorrection,
    Phase,
    UnresolvedCategoricalValue,
    ValidationBlocked,
)

"""Non-interactive import run.

Drives the engine end to end from an ImportConfig:

1. load the catalog and schema documents (JSON files)
2. read the spreadsheet and auto-map its headers, then apply column_overrides
3. stop when required fields have neither a column nor a constant
4. build records and run the correction workflow with the configured
   corrections and date order
5. write the validation report (logs/) and, when everything is resolved, the
   final records JSON

A run that needs user input ends ``blocked``; only unreadable inputs raise
ProcessingError.
"""

__all__ = [
    "ProcessingError",
    "process",
    "build_payload",
]

logger = logging.getLogger(__name__)

IGNORE_OVERRIDE = "ignore"
MAX_LOGGED_FINDINGS = 10


class ProcessingError(Exception):
    """Fatal problem with the run's inputs (files, schema, catalog, mapping)."""


def _read_json(path: Path, what: str) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ProcessingError(f"{what} file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ProcessingError(f"{what} file is not valid JSON: {path}: {e}") from e


def load_catalog(config: ImportConfig) -> ReferenceCatalog:
    document = _read_json(Path(config.catalog_file), "catalog")
    try:
        return ReferenceCatalog.from_document(
            document,
            multi_value=config.catalog.multi_value,
            field_domains=config.catalog.field_domains,
        )
    except CatalogError as e:
        raise ProcessingError(f"catalog: {e}") from e


def load_registry(config: ImportConfig, catalog: ReferenceCatalog) -> SchemaRegistry:
    document = _read_json(Path(config.schema_file), "schema")
    try:
        return SchemaRegistry.load(document, catalog=catalog, always_required=config.always_required)
    except SchemaUnavailable as e:
        raise ProcessingError(f"schema: {e}") from e


def apply_overrides(mapping: MappingSet, overrides: dict[str, str]) -> None:
    for column, target in overrides.items():
        if column not in mapping.columns():
            logger.warning(f"column_overrides: no column named '{column}' in the sheet")
            continue
        value = IGNORE if target.strip().lower() == IGNORE_OVERRIDE else target
        try:
            mapping.set_mapping(column, value, replace=True)
        except (UnknownFieldError, DuplicateFieldMapping) as e:
            raise ProcessingError(f"column_overrides: {e}") from e


def build_payload(record: Record, registry: SchemaRegistry, catalog: ReferenceCatalog) -> dict[str, Any]:
    """Submission shape: nested objects, catalog names replaced by ids."""
    payload = record.to_payload(nest=registry.object_parents())
    for name, raw in record.values.items():
        if name not in payload:
            continue
        domain = catalog.domain_for_field(name)
        if domain is None:
            continue
        ids = catalog.resolve_ids(domain, raw)
        payload[name] = ids if catalog.domain(domain).multi_value else (ids[0] if ids else None)
    return payload


def _write_output(path: Path, records: Sequence[Record], registry: SchemaRegistry, catalog: ReferenceCatalog) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    document = {
        "records": [{"row": r.row_index, **r.to_dict()} for r in records],
        "payload": [build_payload(r, registry, catalog) for r in records],
    }
    path.write_text(json.dumps(document, ensure_ascii=False, indent=2), encoding="utf-8")
    return path


def _log_findings(findings: Sequence[ValidationError]) -> None:
    for e in findings[:MAX_LOGGED_FINDINGS]:
        log = logger.error if e.is_blocking else logger.warning
        log(f"row {e.row_index} {e.field}: {e.message}")
    if len(findings) > MAX_LOGGED_FINDINGS:
        logger.info(f"... {len(findings) - MAX_LOGGED_FINDINGS} more finding(s) in the validation report")


def process(config: ImportConfig) -> ImportResult:
    """Run one import end to end.

    Raises:
        ProcessingError: an input file is missing or unusable
    """
    start = datetime.now(UTC)
    catalog = load_catalog(config)
    registry = load_registry(config, catalog)

    source = Path(config.source_file)
    if not source.exists():
        raise ProcessingError(f"source file not found: {source}")
    try:
        sheet = load_parsed_sheet(source, config.sheet, config.header_row, config.null_sentinels)
    except (SheetHeaderError, UnsupportedFileError, ValueError) as e:
        raise ProcessingError(f"source: {e}") from e
    logger.info(f"read {source.name}: headers={len(sheet.headers)} rows={len(sheet.rows)}")

    mapping = auto_map(sheet.headers, registry, threshold=config.matching.fuzzy_threshold)
    apply_overrides(mapping, config.column_overrides)
    for column in mapping.unmapped_columns():
        logger.info(f"column '{column}' is not mapped")

    rules = DEFAULT_CONDITIONAL_RULES + tuple(
        ConditionalRule(r.field, r.when_present) for r in config.validation.conditional_rules
    )
    base = dict(
        rows=len(sheet.rows),
        headers=len(sheet.headers),
        mapped=len(mapping.bound_fields()),
        start_time=start,
        mapping_report=mapping.report(),
    )

    def finish(status: str, phase: str, **kw: Any) -> ImportResult:
        end = datetime.now(UTC)
        values = dict(patterns=0, corrected=0, errors=0, warnings=0)
        values.update(kw)
        return ImportResult(
            status=status,
            phase=phase,
            end_time=end,
            elapsed_seconds=(end - start).total_seconds(),
            **base,
            **values,
        )

    missing = missing_required_fields(mapping, config.constants, registry, rules)
    if missing:
        reason = f"required field(s) not mapped: {', '.join(missing)}"
        logger.warning(reason)
        return finish(STATUS_BLOCKED, "mapping", reason=reason)

    try:
        records = build_records(sheet.headers, sheet.rows, mapping, config.constants, registry)
    except UnknownFieldError as e:
        raise ProcessingError(f"constants: {e}") from e

    session = ImportSession(
        registry=registry,
        catalog=catalog,
        date_order=config.dates.order,
        policy=config.correction_policy,
        auto_detect_dates=config.dates.auto_detect,
        suggestion_threshold=config.matching.suggestion_threshold,
        rules=rules,
        phone_min_digits=config.validation.phone_min_digits,
        phone_country=config.validation.phone_country,
    )
    workflow = CorrectionWorkflow(session, records, config.constants)

    for pattern in workflow.patterns:
        replacement = config.corrections.get(pattern.field, {}).get(pattern.invalid_name)
        if replacement is None:
            continue
        try:
            workflow.choose(pattern.key, replacement)
        except InvalidCorrection as e:
            logger.warning(f"corrections: {e}")

    try:
        workflow.proceed()
    except UnresolvedCategoricalValue as e:
        for p in e.patterns:
            hint = f" (suggestion: {p.suggestion!r} {p.confidence:.2f})" if p.suggestion else ""
            logger.warning(f"{p.field}: {p.invalid_name!r} not found in catalog, rows={p.count}{hint}")
        return finish(
            STATUS_BLOCKED,
            workflow.phase.value,
            reason=str(e),
            patterns=len(e.patterns),
        )

    if workflow.phase is Phase.DATE_DISAMBIGUATION:
        ambiguity = workflow.ambiguity
        sample = ", ".join(ambiguity.values[:5])
        reason = f"ambiguous dates need dates.order (DD/MM/YYYY or MM/DD/YYYY): {sample}"
        logger.warning(reason)
        return finish(STATUS_BLOCKED, workflow.phase.value, reason=reason, corrected=workflow.applied)

    findings = workflow.errors
    report = ValidationReportBuffer()
    report.extend(findings)
    report_path = report.flush()
    _log_findings(findings)
    counts = dict(
        corrected=workflow.applied,
        errors=sum(1 for e in findings if e.is_blocking),
        warnings=sum(1 for e in findings if not e.is_blocking),
        report_path=report_path,
    )

    try:
        workflow.complete()
    except ValidationBlocked as e:
        return finish(STATUS_BLOCKED, workflow.phase.value, reason=str(e), **counts)

    output = _write_output(Path(config.output_file), workflow.final_records(), registry, catalog)
    logger.info(f"wrote {len(records)} record(s) to {output}")
    return finish(STATUS_COMPLETE, workflow.phase.value, output_path=output, **counts)
