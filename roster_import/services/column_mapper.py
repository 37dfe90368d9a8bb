from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping, Sequence

from ..models.column_mapping import IGNORE, ColumnMapping, MatchKind
from ..models.record import Record, UnknownFieldError
from .schema_registry import SchemaRegistry

"""Column auto-mapping: spreadsheet headers -> schema fields.

Two passes, both deterministic:

1. exact pass over every field in schema order: a header equal to the field
   name (trimmed, case-insensitive) is bound immediately
2. fuzzy pass over the fields still unbound, in schema order: a header that
   contains one of the field's alias patterns scores
   ``len(pattern) / len(header)``; the best header is bound when its score
   exceeds the threshold

Headers and fields are consumed as soon as they are bound, so the result is
injective. Nothing here blocks on missing required fields; that is reported
by the validation engine.
"""

__all__ = [
    "AUTO_MAPPING_RULES",
    "FUZZY_THRESHOLD",
    "DuplicateFieldMapping",
    "MappingSet",
    "auto_map",
    "build_records",
    "normalize_header",
    "unique_headers",
]

logger = logging.getLogger(__name__)

FUZZY_THRESHOLD = 0.5

# Field name -> header variations seen in customer spreadsheets
AUTO_MAPPING_RULES: dict[str, tuple[str, ...]] = {
    "firstName": (
        "first name", "first", "forename", "given name", "fname", "firstname",
        "prenom", "vorname", "fornavn", "etunimi",
    ),
    "lastName": (
        "last name", "last", "surname", "family name", "lname", "lastname",
        "nom", "nachname", "efternavn", "sukunimi",
    ),
    "userName": (
        "email", "username", "login", "user email", "e-mail", "mail",
        "email address", "login email", "work email",
    ),
    "email": (
        "email", "e-mail", "mail", "email address", "work email",
    ),
    "cellPhoneCountryCode": (
        "mobile country code", "cell country code", "phone country code",
        "country code mobile", "country code cell", "phone country",
        "country code", "iso country", "iso code", "country iso",
        "land", "pais", "pays",
    ),
    "cellPhone": (
        "mobile", "cell phone", "cell", "mobile phone", "cellular",
        "mobile number", "cell number", "gsm",
    ),
    "phone": (
        "phone", "telephone", "phone number", "tel", "work phone",
        "office phone", "landline",
    ),
    "hiredFrom": (
        "hire date", "start date", "employment date", "date hired",
        "start of employment", "employment start", "join date",
        "hired from", "hiredate", "startdate", "hired date", "start or hired date",
    ),
    "birthDate": (
        "birth date", "date of birth", "birthday", "born", "dob",
        "birth day", "date born",
    ),
    "street1": (
        "address", "street", "street address", "address line 1",
        "street1", "home address", "residential address", "street 1",
    ),
    "city": ("city", "town", "municipality", "place", "location"),
    "zip": (
        "zip", "zip code", "postal code", "postcode", "zip-code",
        "postal", "post code",
    ),
    "gender": ("gender", "sex", "male/female", "m/f"),
    "ssn": (
        "ssn", "social security", "social security number", "social",
        "national id", "personal number", "cpr", "tax id", "taxid",
    ),
    "salaryIdentifier": (
        "salary identifier", "salary id", "salaryid", "salary number",
        "payroll identifier", "pay id", "payroll id", "payid", "payrollid",
        "payroll number", "employee id", "emp id", "employeeid", "staff id", "worker id",
    ),
    "jobTitle": (
        "job title", "title", "position", "role", "job role",
        "job position", "position title", "work title", "function",
        "designation", "rank", "post",
    ),
    "payrollId": (
        "payroll identifier", "pay id", "payroll id", "payid", "payrollid",
        "payroll number", "employee number", "emp number", "staff number", "worker number",
    ),
    "departments": (
        "departments", "department", "dept", "depts",
        "department name", "department names", "work area", "work areas",
        "division", "divisions",
    ),
    "employeeGroups": (
        "employee groups", "employee group", "groups", "group",
        "employee roles", "employee role", "job roles",
        "team", "teams", "category", "categories",
    ),
    "employeeTypeId": (
        "employee type", "employment type", "type", "job type",
        "position type", "contract type", "employment status",
        "worker type", "staff type", "employment category",
    ),
    "wageValidFrom": (
        "wage valid from", "salary valid from", "rate valid from",
        "pay rate valid from", "hourly rate valid from", "rate from",
        "rate start date", "wage start date", "pay start date",
        "valid from date", "effective date", "pay effective date",
        "wage effective date", "rate effective", "pay from",
    ),
    "supervisorId": (
        "supervisor", "supervisor name", "manager", "manager name",
        "reports to", "reporting to", "line manager", "team lead",
        "team leader", "boss", "superior", "supervisor id",
    ),
    "isSupervisor": (
        "is supervisor", "issupervisor", "supervisor flag", "is manager",
        "manager flag", "is team lead", "is team leader", "supervisor status",
        "makes supervisor", "set as supervisor",
    ),
    "contractRule": (
        "contract rule", "contractrule", "contract", "contracted hours",
        "hours per week", "weekly hours", "work hours", "working hours contract",
        "hour contract", "employment contract", "contract hours",
    ),
    "salaryPeriod": (
        "salary period", "salaryperiod", "pay period", "payment period",
        "fixed salary period", "fixed salary - period", "wage period",
        "salary type", "period type", "payment frequency",
    ),
    "salaryHours": (
        "salary hours", "salaryhours", "expected hours", "fixed salary hours",
        "fixed salary - expected hours", "contracted hours", "monthly hours",
        "weekly hours salary", "hours per period", "work hours salary",
    ),
    "salaryAmount": (
        "salary amount", "salaryamount", "fixed salary", "fixed salary amount",
        "fixed salary - amount", "monthly salary", "base salary", "salary",
        "wage amount", "fixed wage", "gross salary", "pay amount",
    ),
}

_WS_RE = re.compile(r"\s+")


class DuplicateFieldMapping(Exception):
    """Two columns would be bound to the same field."""

    def __init__(self, field: str, columns: Sequence[str]) -> None:
        self.field = field
        self.columns = list(columns)
        joined = " and ".join(repr(c) for c in self.columns)
        super().__init__(f"field '{field}' is mapped from more than one column: {joined}")


def normalize_header(value: str) -> str:
    return _WS_RE.sub(" ", (value or "").strip()).casefold()


def unique_headers(headers: Iterable[str]) -> list[str]:
    """Column names that can key a mapping.

    Blank headers become ``Column <n>`` (1-based position); a repeated name
    gets the first free `` (2)``, `` (3)`` ... suffix, so the result never
    repeats even when a suffixed name is already present.
    """
    result: list[str] = []
    used: set[str] = set()
    for i, h in enumerate(headers, start=1):
        base = h or f"Column {i}"
        name = base
        n = 1
        while name in used:
            n += 1
            name = f"{base} ({n})"
        if name != base:
            logger.warning(f"duplicate header {base!r} at column {i} renamed to {name!r}")
        used.add(name)
        result.append(name)
    return result


class MappingSet:
    """Ordered column -> target bindings with the injectivity invariant.

    Column names must be unique; auto_map and build_records pass headers
    through unique_headers first.
    """

    def __init__(self, mappings: Iterable[ColumnMapping], registry: SchemaRegistry | None = None) -> None:
        self._mappings: dict[str, ColumnMapping] = {}
        for m in mappings:
            if m.excel_column in self._mappings:
                raise ValueError(f"duplicate column header: {m.excel_column!r}")
            self._mappings[m.excel_column] = m
        self._registry = registry
        self.validate()

    def __iter__(self):
        return iter(self._mappings.values())

    def __len__(self) -> int:
        return len(self._mappings)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MappingSet):
            return NotImplemented
        return list(self._mappings.values()) == list(other._mappings.values())

    def columns(self) -> list[str]:
        return list(self._mappings)

    def get(self, column: str) -> ColumnMapping:
        try:
            return self._mappings[column]
        except KeyError:
            raise KeyError(f"unknown column: {column}") from None

    def target_of(self, column: str) -> str | None:
        return self.get(column).target

    def column_for(self, field_name: str) -> str | None:
        for m in self._mappings.values():
            if m.target == field_name:
                return m.excel_column
        return None

    def bound_fields(self) -> list[str]:
        return [m.target for m in self._mappings.values() if m.is_bound]

    def unmapped_columns(self) -> list[str]:
        return [m.excel_column for m in self._mappings.values() if m.status == "unmapped"]

    def set_mapping(self, column: str, target: str | None, *, replace: bool = False) -> ColumnMapping:
        """Manually bind ``column`` to ``target`` (field name, IGNORE or None).

        Raises DuplicateFieldMapping when the field is already bound to
        another column, unless ``replace`` is set, in which case the other
        column becomes unmapped.
        """
        current = self.get(column)
        if target not in (None, IGNORE):
            if self._registry is not None and target not in self._registry:
                raise UnknownFieldError([target])
            other = self.column_for(target)
            if other is not None and other != column:
                if not replace:
                    raise DuplicateFieldMapping(target, [other, column])
                self._mappings[other] = ColumnMapping(excel_column=other)
                logger.debug(f"mapping: unbound '{other}' from '{target}'")
        if target is None:
            updated = ColumnMapping(excel_column=column)
        else:
            updated = ColumnMapping(excel_column=column, target=target, match=MatchKind.MANUAL, score=1.0)
        self._mappings[column] = updated
        logger.debug(f"mapping: '{column}' {current.status} -> {updated.status} ({target})")
        self.validate()
        return updated

    def validate(self) -> None:
        """Re-check injectivity over bound (non-ignored) targets."""
        seen: dict[str, str] = {}
        for m in self._mappings.values():
            if not m.is_bound:
                continue
            if m.target in seen:
                raise DuplicateFieldMapping(m.target, [seen[m.target], m.excel_column])
            seen[m.target] = m.excel_column

    def report(self) -> list[dict[str, object]]:
        return [
            {
                "column": m.excel_column,
                "target": m.target if m.is_bound else None,
                "status": m.status,
                "match": m.match.value,
                "score": round(m.score, 4),
            }
            for m in self._mappings.values()
        ]


def _patterns_for(field_name: str, display_name: str, aliases: Mapping[str, Sequence[str]]) -> list[str]:
    patterns = [normalize_header(p) for p in aliases.get(field_name, ())]
    label = normalize_header(display_name)
    if label and label not in patterns:
        patterns.append(label)
    return [p for p in patterns if p]


def auto_map(
    headers: Sequence[str],
    registry: SchemaRegistry,
    aliases: Mapping[str, Sequence[str]] = AUTO_MAPPING_RULES,
    threshold: float = FUZZY_THRESHOLD,
) -> MappingSet:
    """Bind headers to schema fields without user input.

    Repeated headers are renamed by unique_headers and mapped like any other.
    """
    raw = list(headers)
    headers = unique_headers(raw)
    # blank headers stay unmapped under their generated name
    normalized = {h: normalize_header(h) if normalize_header(r) else "" for r, h in zip(raw, headers)}
    bound: dict[str, ColumnMapping] = {}
    used_fields: set[str] = set()

    # exact pass
    for f in registry.fields():
        key = f.name.casefold()
        for h in headers:
            if h in bound or not normalized[h]:
                continue
            if normalized[h] == key:
                bound[h] = ColumnMapping(excel_column=h, target=f.name, match=MatchKind.EXACT, score=1.0)
                used_fields.add(f.name)
                logger.debug(f"auto-map exact: '{h}' -> {f.name}")
                break

    # fuzzy pass
    for f in registry.fields():
        if f.name in used_fields:
            continue
        patterns = _patterns_for(f.name, f.display_name, aliases)
        if not patterns:
            continue
        best_header: str | None = None
        best_score = 0.0
        for h in headers:
            header = normalized[h]
            if h in bound or not header:
                continue
            for p in patterns:
                if p in header:
                    score = len(p) / len(header)
                    if score > best_score:
                        best_header, best_score = h, score
        if best_header is not None and best_score > threshold:
            bound[best_header] = ColumnMapping(
                excel_column=best_header, target=f.name, match=MatchKind.FUZZY, score=best_score
            )
            used_fields.add(f.name)
            logger.debug(f"auto-map fuzzy: '{best_header}' -> {f.name} score={best_score:.3f}")

    mappings = MappingSet(
        (bound.get(h) or ColumnMapping(excel_column=h) for h in headers),
        registry=registry,
    )
    logger.info(f"auto-map headers={len(headers)} mapped={len(mappings.bound_fields())}")
    return mappings


def build_records(
    headers: Sequence[str],
    rows: Iterable[Sequence[str]],
    mapping: MappingSet,
    constants: Mapping[str, str] | None,
    registry: SchemaRegistry,
) -> list[Record]:
    """Apply column bindings and user constants to raw rows.

    Constants are trimmed, blank constants are ignored, and a constant never
    overrides a field that is mapped from a column.
    """
    headers = unique_headers(headers)
    positions = [
        (i, mapping.get(h).target) for i, h in enumerate(headers) if mapping.get(h).is_bound
    ]
    mapped_fields = {target for _, target in positions}
    fixed = {
        name: str(value).strip()
        for name, value in (constants or {}).items()
        if value is not None and str(value).strip() != "" and name not in mapped_fields
    }
    unknown = [name for name in fixed if name not in registry]
    if unknown:
        raise UnknownFieldError(unknown)

    records = []
    for row_number, row in enumerate(rows, start=1):
        values = {target: (row[i] if i < len(row) else "") for i, target in positions}
        values.update(fixed)
        records.append(Record.create(row_number, values, registry))
    logger.debug(f"build_records rows={len(records)} fields={len(mapped_fields) + len(fixed)}")
    return records
