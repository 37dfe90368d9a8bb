from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date

from ..models.field_definition import FieldDefinition
from ..models.record import Record
from ..models.validation_error import (
    CONDITIONAL_REQUIRED,
    DUPLICATE_VALUE,
    ENUM_VIOLATION,
    MISSING_REQUIRED_FIELD,
    Severity,
    ValidationError,
)
from .column_mapper import MappingSet
from .phone import CONFIDENT, DEFAULT_COUNTRY, is_scientific_notation, parse_phone
from .reference_catalog import ReferenceCatalog
from .schema_registry import SchemaRegistry

"""Validation engine: records vs. the runtime schema.

Rules run in a fixed order for every record (required presence, conditional
requirement, format, enumerated values), followed by the cross-record
uniqueness pass. Findings are returned, never raised; only the up-front
``ensure_required_mapped`` check raises.

Read-only fields are validated like any other field: read-only on the remote
side does not stop a value being supplied on creation.

Phone values that pass the digit checks are parsed per country: against the
row's country code field when the schema has one (a blank country code is left
to the conditional rule), otherwise by detection with ``phone_country`` as
the fallback, where a low-confidence guess is a warning.
"""

__all__ = [
    "ConditionalRule",
    "DEFAULT_CONDITIONAL_RULES",
    "EMAIL_PATTERN",
    "ISO_DATE_PATTERN",
    "PHONE_COUNTRY_FIELDS",
    "MissingRequiredField",
    "validate",
    "missing_required_fields",
    "ensure_required_mapped",
    "has_blocking_errors",
    "summarize",
    "value_of",
]

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
PHONE_CLEANUP_PATTERN = re.compile(r"[\s\-\(\)\.]")
DEFAULT_PHONE_MIN_DIGITS = 8

# phone field -> field holding its country code
PHONE_COUNTRY_FIELDS = {"cellPhone": "cellPhoneCountryCode", "phone": "phoneCountryCode"}


@dataclass(frozen=True)
class ConditionalRule:
    """``field`` is required on every row where ``when_present`` has a value."""
    field: str
    when_present: str
    message: str | None = None

    def describe(self) -> str:
        return self.message or f"{self.field} is required when {self.when_present} is provided"


DEFAULT_CONDITIONAL_RULES: tuple[ConditionalRule, ...] = (
    ConditionalRule("cellPhoneCountryCode", "cellPhone"),
    ConditionalRule("phoneCountryCode", "phone"),
    ConditionalRule("bankAccount.registrationNumber", "bankAccount.accountNumber"),
)


class MissingRequiredField(Exception):
    """Required fields have neither a column binding nor a constant."""

    def __init__(self, fields: Sequence[str]) -> None:
        self.fields = list(fields)
        super().__init__(f"required field(s) not mapped: {', '.join(self.fields)}")


def value_of(record: Record, name: str, constants: Mapping[str, str] | None = None) -> str:
    """Record value, falling back to a user constant."""
    value = record.get(name)
    if value.strip() == "" and constants:
        value = str(constants.get(name) or "")
    return value


def _is_supplied(record: Record, f: FieldDefinition, constants: Mapping[str, str] | None) -> bool:
    if value_of(record, f.name, constants).strip():
        return True
    # 展開済みの親フィールドは leaf のどれかに値があれば満たされる
    return any(value_of(record, sub, constants).strip() for sub in f.sub_fields)


def _applicable_rules(rules: Iterable[ConditionalRule], registry: SchemaRegistry) -> list[ConditionalRule]:
    return [r for r in rules if r.field in registry and r.when_present in registry]


def validate(
    records: Sequence[Record],
    registry: SchemaRegistry,
    constants: Mapping[str, str] | None = None,
    *,
    catalog: ReferenceCatalog | None = None,
    rules: Iterable[ConditionalRule] = DEFAULT_CONDITIONAL_RULES,
    phone_min_digits: int = DEFAULT_PHONE_MIN_DIGITS,
    phone_country: str = DEFAULT_COUNTRY,
) -> list[ValidationError]:
    """Validate a batch of records and return every finding.

    Args:
        records: Mapped records
        registry: Loaded schema
        constants: Field -> constant applied to every record
        catalog: When given, catalog-backed fields are checked against it
        rules: Conditional requirement table
        phone_min_digits: Shorter phone numbers are reported as warnings
        phone_country: Country assumed for phone numbers without one

    Returns:
        Findings ordered by record, then rule; uniqueness findings last
    """
    active_rules = _applicable_rules(rules, registry)
    required = [registry.field(name) for name in registry.required_fields()]
    errors: list[ValidationError] = []

    for record in records:
        errors.extend(_check_required(record, required, constants))
        errors.extend(_check_conditional(record, registry, active_rules, constants))
        for f in registry.fields():
            value = value_of(record, f.name, constants).strip()
            if not value:
                continue
            format_errors = _check_format(record.row_index, f, value, phone_min_digits)
            errors.extend(format_errors)
            if f.is_phone and not format_errors:
                errors.extend(_check_phone_country(record, registry, f, value, constants, phone_country))
            errors.extend(_check_allowed_values(record.row_index, f, value, catalog))

    errors.extend(_check_unique(records, registry, constants))
    logger.debug(
        f"validate records={len(records)} errors={sum(1 for e in errors if e.is_blocking)} "
        f"warnings={sum(1 for e in errors if not e.is_blocking)}"
    )
    return errors


def _check_required(
    record: Record,
    required: Sequence[FieldDefinition],
    constants: Mapping[str, str] | None,
) -> list[ValidationError]:
    return [
        ValidationError(
            field=f.name,
            row_index=record.row_index,
            value="",
            message=f"{f.name} is required",
            code=MISSING_REQUIRED_FIELD,
        )
        for f in required
        if not _is_supplied(record, f, constants)
    ]


def _check_conditional(
    record: Record,
    registry: SchemaRegistry,
    rules: Sequence[ConditionalRule],
    constants: Mapping[str, str] | None,
) -> list[ValidationError]:
    errors = []
    for rule in rules:
        if not value_of(record, rule.when_present, constants).strip():
            continue
        target = registry.field(rule.field)
        # already reported by the required rule
        if target.is_required or _is_supplied(record, target, constants):
            continue
        errors.append(
            ValidationError(
                field=rule.field,
                row_index=record.row_index,
                value="",
                message=rule.describe(),
                code=CONDITIONAL_REQUIRED,
            )
        )
    return errors


def _check_format(row_index: int, f: FieldDefinition, value: str, phone_min_digits: int) -> list[ValidationError]:
    if f.is_email and not EMAIL_PATTERN.match(value):
        return [ValidationError(f.name, row_index, value, f"{f.name} is not a valid email address")]
    if f.is_phone:
        digits = PHONE_CLEANUP_PATTERN.sub("", value)
        if digits.startswith("+"):
            digits = digits[1:]
        if not digits.isdigit():
            if is_scientific_notation(value):
                message = f"{f.name} looks like Excel scientific notation ({value}); format the column as text"
            else:
                message = f"{f.name} must contain digits only"
            return [ValidationError(f.name, row_index, value, message)]
        if len(digits) < phone_min_digits:
            return [
                ValidationError(
                    f.name,
                    row_index,
                    value,
                    f"{f.name} has only {len(digits)} digits (expected at least {phone_min_digits})",
                    severity=Severity.WARNING,
                )
            ]
    if f.is_date and not _is_iso_date(value):
        return [ValidationError(f.name, row_index, value, f"{f.name} must be a date in YYYY-MM-DD format")]
    return []


def _check_phone_country(
    record: Record,
    registry: SchemaRegistry,
    f: FieldDefinition,
    value: str,
    constants: Mapping[str, str] | None,
    default_country: str,
) -> list[ValidationError]:
    country_field = PHONE_COUNTRY_FIELDS.get(f.name)
    if country_field is not None and country_field in registry:
        country = value_of(record, country_field, constants).strip()
        if not country:
            return []
        result = parse_phone(value, country)
    else:
        result = parse_phone(value, default_country=default_country)
    if not result.is_valid:
        return [ValidationError(f.name, record.row_index, value, f"{f.name}: {result.error}")]
    if result.confidence < CONFIDENT:
        return [
            ValidationError(
                f.name,
                record.row_index,
                value,
                f"{f.name} parsed as {result.region}: {result.display()}, check the country",
                severity=Severity.WARNING,
            )
        ]
    return []


def _is_iso_date(value: str) -> bool:
    if not ISO_DATE_PATTERN.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def _check_allowed_values(
    row_index: int,
    f: FieldDefinition,
    value: str,
    catalog: ReferenceCatalog | None,
) -> list[ValidationError]:
    domain = catalog.domain_for_field(f.name) if catalog is not None else None
    if domain is not None:
        invalid = [name for name in catalog.split_values(domain, value) if not catalog.contains(domain, name)]
        if not invalid:
            return []
        listed = ", ".join(f'"{name}"' for name in invalid)
        return [
            ValidationError(
                f.name, row_index, value, f"{f.name}: {listed} not found in {domain}", code=ENUM_VIOLATION
            )
        ]
    if f.enum_options and value not in f.option_names:
        allowed = ", ".join(f.option_names)
        return [
            ValidationError(
                f.name, row_index, value, f"{f.name} must be one of: {allowed}", code=ENUM_VIOLATION
            )
        ]
    return []


def _check_unique(
    records: Sequence[Record],
    registry: SchemaRegistry,
    constants: Mapping[str, str] | None,
) -> list[ValidationError]:
    errors = []
    for name in registry.unique_fields():
        seen: dict[str, list[Record]] = {}
        for record in records:
            value = value_of(record, name, constants).strip()
            if value:
                seen.setdefault(value.casefold(), []).append(record)
        for group in seen.values():
            if len(group) < 2:
                continue
            rows = ", ".join(str(r.row_index) for r in group)
            for record in group:
                errors.append(
                    ValidationError(
                        field=name,
                        row_index=record.row_index,
                        value=value_of(record, name, constants),
                        message=f"{name} must be unique across all records (duplicate found in rows {rows})",
                        code=DUPLICATE_VALUE,
                    )
                )
    return errors


def missing_required_fields(
    mapping: MappingSet,
    constants: Mapping[str, str] | None,
    registry: SchemaRegistry,
    rules: Iterable[ConditionalRule] = DEFAULT_CONDITIONAL_RULES,
) -> list[str]:
    """Required fields with neither a column binding nor a non-blank constant.

    A conditionally-required field counts once its trigger field is bound.
    """
    supplied = set(mapping.bound_fields())
    supplied.update(name for name, value in (constants or {}).items() if str(value or "").strip())

    def covered(f: FieldDefinition) -> bool:
        return f.name in supplied or any(sub in supplied for sub in f.sub_fields)

    missing = [f.name for f in registry.fields() if f.is_required and not covered(f)]
    for rule in _applicable_rules(rules, registry):
        if rule.when_present in supplied and not covered(registry.field(rule.field)) and rule.field not in missing:
            missing.append(rule.field)
    return missing


def ensure_required_mapped(
    mapping: MappingSet,
    constants: Mapping[str, str] | None,
    registry: SchemaRegistry,
    rules: Iterable[ConditionalRule] = DEFAULT_CONDITIONAL_RULES,
) -> None:
    missing = missing_required_fields(mapping, constants, registry, rules)
    if missing:
        raise MissingRequiredField(missing)


def has_blocking_errors(errors: Iterable[ValidationError]) -> bool:
    return any(e.is_blocking for e in errors)


def summarize(errors: Iterable[ValidationError]) -> dict[str, object]:
    """Counts per severity and per code."""
    by_code: dict[str, int] = {}
    counts = {Severity.ERROR: 0, Severity.WARNING: 0}
    for e in errors:
        counts[e.severity] += 1
        by_code[e.code] = by_code.get(e.code, 0) + 1
    return {
        "errors": counts[Severity.ERROR],
        "warnings": counts[Severity.WARNING],
        "by_code": dict(sorted(by_code.items())),
    }
