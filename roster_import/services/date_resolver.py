from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from ..models.record import Record
from .schema_registry import SchemaRegistry

"""Date format resolution for date-role fields.

A value is ambiguous when its plausible interpretations (years 1900-2100,
real calendar dates) name more than one distinct day, e.g. ``03/04/2024`` or
``20230405``. ``15/03/2024`` is not: 15 cannot be a month.

Only values of date-role fields are inspected. The chosen ordering is scoped
to the whole session and applies only where a value is genuinely ambiguous;
every other value keeps its forced interpretation. A year-first value such as
``2024/01/10`` is flagged but always reads year-month-day, whichever order
is chosen. Output is always the canonical ``YYYY-MM-DD`` form, which is
itself never ambiguous.
"""

__all__ = [
    "DateOrder",
    "DateCandidate",
    "DateAmbiguity",
    "AmbiguousDate",
    "could_be_date",
    "candidates",
    "is_ambiguous",
    "find_ambiguous",
    "resolve",
    "parse_date",
    "detect_order",
    "collect_date_values",
    "ambiguity_for",
    "normalize_records",
]

logger = logging.getLogger(__name__)

MIN_YEAR = 1900
MAX_YEAR = 2100

_CANONICAL_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_YEAR_FIRST_RE = re.compile(r"^(\d{4})[/.\-](\d{1,2})[/.\-](\d{1,2})$")
_YEAR_LAST_RE = re.compile(r"^(\d{1,2})[/.\-](\d{1,2})[/.\-](\d{4})$")
_EIGHT_DIGIT_RE = re.compile(r"^\d{8}$")
_DAY_MONTH_NAME_RE = re.compile(r"^(\d{1,2})(?:st|nd|rd|th)?[\s\-/.,]+([A-Za-z]+)\.?[\s\-/.,]+(\d{4})$")
_MONTH_NAME_DAY_RE = re.compile(r"^([A-Za-z]+)\.?[\s\-/.]+(\d{1,2})(?:st|nd|rd|th)?,?[\s\-/.]+(\d{4})$")
_WORD_RE = re.compile(r"[A-Za-z]+")

MONTHS = {
    "jan": 1, "january": 1,
    "feb": 2, "february": 2,
    "mar": 3, "march": 3,
    "apr": 4, "april": 4,
    "may": 5,
    "jun": 6, "june": 6,
    "jul": 7, "july": 7,
    "aug": 8, "august": 8,
    "sep": 9, "sept": 9, "september": 9,
    "oct": 10, "october": 10,
    "nov": 11, "november": 11,
    "dec": 12, "december": 12,
}

# 8 桁の解釈順 (order 未指定時の優先度)
EIGHT_DIGIT_PRIORITY = ("YYYYMMDD", "DDMMYYYY", "MMDDYYYY", "YYYYDDMM")


class DateOrder(Enum):
    DAY_FIRST = "DD/MM/YYYY"
    MONTH_FIRST = "MM/DD/YYYY"

    @classmethod
    def parse(cls, value: str | DateOrder | None) -> DateOrder | None:
        if value is None or isinstance(value, DateOrder):
            return value
        for order in cls:
            if order.value == value or order.name == value:
                return order
        raise ValueError(f"unknown date order: {value!r}")


# Interpretations that follow each ordering; fallback covers everything else.
# Year-first values read year-month-day under either ordering.
_PREFERRED = {
    DateOrder.DAY_FIRST: ("DD/MM/YYYY", "DDMMYYYY"),
    DateOrder.MONTH_FIRST: ("MM/DD/YYYY", "MMDDYYYY", "YYYY/MM/DD", "YYYYMMDD"),
}
_FALLBACK = (
    "YYYY-MM-DD", "YYYY/MM/DD", "YYYYMMDD", "DD/MM/YYYY", "DDMMYYYY",
    "MM/DD/YYYY", "MMDDYYYY", "YYYY/DD/MM", "YYYYDDMM", "D MON YYYY", "MON D YYYY",
)


class AmbiguousDate(Exception):
    """Ambiguous values exist and no date order has been chosen."""

    def __init__(self, values: Sequence[str]) -> None:
        self.values = list(values)
        sample = ", ".join(self.values[:5])
        super().__init__(f"{len(self.values)} ambiguous date value(s) need a date order: {sample}")


@dataclass(frozen=True)
class DateCandidate:
    """One plausible reading of a raw value."""
    pattern: str
    date: date

    @property
    def iso(self) -> str:
        return self.date.isoformat()


@dataclass(frozen=True)
class DateAmbiguity:
    """Ambiguous date-role values and their readings, plus the chosen order."""
    values: tuple[str, ...]
    candidates: dict[str, tuple[DateCandidate, ...]] = field(default_factory=dict)
    order: DateOrder | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "values": list(self.values),
            "candidates": {
                v: [{"pattern": c.pattern, "date": c.iso} for c in cands]
                for v, cands in self.candidates.items()
            },
            "order": self.order.value if self.order else None,
        }


def _make(year: int, month: int, day: int) -> date | None:
    if not MIN_YEAR <= year <= MAX_YEAR:
        return None
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _month_number(name: str) -> int | None:
    return MONTHS.get(name.lower())


def could_be_date(value: str) -> bool:
    """Shape check only; the value may still not be a real date.

    Any value with an English month name or abbreviation as a whole word
    passes, e.g. ``June 2024``, even though only day-month-year and
    month-day-year spellings parse.
    """
    v = (value or "").strip()
    if not v:
        return False
    if _YEAR_FIRST_RE.match(v) or _YEAR_LAST_RE.match(v) or _EIGHT_DIGIT_RE.match(v):
        return True
    return any(_month_number(word) is not None for word in _WORD_RE.findall(v))


def _readings(v: str) -> list[tuple[str, int, int, int]]:
    """(pattern, year, month, day) for every reading of the value's shape."""
    match = _CANONICAL_RE.match(v)
    if match:
        y, m, d = (int(p) for p in match.groups())
        return [("YYYY-MM-DD", y, m, d)]
    match = _YEAR_FIRST_RE.match(v)
    if match:
        y, a, b = (int(p) for p in match.groups())
        return [("YYYY/MM/DD", y, a, b), ("YYYY/DD/MM", y, b, a)]
    match = _YEAR_LAST_RE.match(v)
    if match:
        a, b, y = (int(p) for p in match.groups())
        return [("DD/MM/YYYY", y, b, a), ("MM/DD/YYYY", y, a, b)]
    if _EIGHT_DIGIT_RE.match(v):
        head4, tail4 = int(v[:4]), int(v[4:])
        p01, p23, p45, p67 = int(v[0:2]), int(v[2:4]), int(v[4:6]), int(v[6:8])
        return [
            ("YYYYMMDD", head4, p45, p67),
            ("DDMMYYYY", tail4, p23, p01),
            ("MMDDYYYY", tail4, p01, p23),
            ("YYYYDDMM", head4, p67, p45),
        ]
    match = _DAY_MONTH_NAME_RE.match(v)
    if match and _month_number(match.group(2)) is not None:
        return [("D MON YYYY", int(match.group(3)), _month_number(match.group(2)), int(match.group(1)))]
    match = _MONTH_NAME_DAY_RE.match(v)
    if match and _month_number(match.group(1)) is not None:
        return [("MON D YYYY", int(match.group(3)), _month_number(match.group(1)), int(match.group(2)))]
    return []


def candidates(value: str) -> list[DateCandidate]:
    """Every plausible interpretation of ``value``, one per pattern."""
    v = (value or "").strip()
    readings = _readings(v)
    result = []
    for pattern, y, m, d in readings:
        parsed = _make(y, m, d)
        if parsed is not None:
            result.append(DateCandidate(pattern=pattern, date=parsed))
    return result


def is_ambiguous(value: str) -> bool:
    return len({c.date for c in candidates(value)}) > 1


def find_ambiguous(values: Iterable[str]) -> list[str]:
    """Distinct ambiguous values (trimmed) in first-occurrence order."""
    found: list[str] = []
    seen: set[str] = set()
    for value in values:
        v = (value or "").strip()
        if not v or v in seen:
            continue
        seen.add(v)
        if is_ambiguous(v):
            found.append(v)
    return found


def _pick(cands: Sequence[DateCandidate], order: DateOrder | None) -> DateCandidate:
    by_pattern = {c.pattern: c for c in cands}
    preferred = _PREFERRED[order] if order is not None else ()
    for pattern in (*preferred, *_FALLBACK):
        if pattern in by_pattern:
            return by_pattern[pattern]
    return cands[0]


def parse_date(value: str, order: DateOrder | None = None) -> str | None:
    """Canonical ``YYYY-MM-DD`` for one value, None when unparseable.

    Raises:
        AmbiguousDate: the value is ambiguous and ``order`` is None
    """
    cands = candidates(value)
    if not cands:
        return None
    if len({c.date for c in cands}) == 1:
        return cands[0].iso
    if order is None:
        raise AmbiguousDate([value.strip()])
    return _pick(cands, order).iso


def resolve(order: DateOrder | str | None, values: Sequence[str]) -> list[str | None]:
    """Re-parse every value; unambiguous ones ignore ``order``."""
    order = DateOrder.parse(order)
    if order is None:
        pending = find_ambiguous(values)
        if pending:
            raise AmbiguousDate(pending)
    return [parse_date(v, order) for v in values]


def _positions(value: str) -> tuple[int, int] | None:
    """The two non-year components of a year-last value, in written order."""
    if _CANONICAL_RE.match(value) or _YEAR_FIRST_RE.match(value):
        return None
    match = _YEAR_LAST_RE.match(value)
    if match:
        return int(match.group(1)), int(match.group(2))
    if _EIGHT_DIGIT_RE.match(value):
        if value[:2] in ("19", "20"):
            return None
        return int(value[0:2]), int(value[2:4])
    return None


def detect_order(values: Iterable[str]) -> DateOrder | None:
    """Ordering implied by the dataset itself, if the evidence is one-sided.

    A first component above 12 can only be a day, a second component above 12
    can only be a day in month-first writing. Contradictory or missing
    evidence yields None. Year-first values carry no evidence.
    """
    day_first = month_first = False
    for value in values:
        pos = _positions((value or "").strip())
        if pos is None:
            continue
        first, second = pos
        if first > 12:
            day_first = True
        if second > 12:
            month_first = True
    if day_first and not month_first:
        order = DateOrder.DAY_FIRST
    elif month_first and not day_first:
        order = DateOrder.MONTH_FIRST
    else:
        order = None
    logger.debug(f"detect_order day_first={day_first} month_first={month_first} -> {order}")
    return order


def collect_date_values(records: Iterable[Record], registry: SchemaRegistry) -> list[str]:
    """Non-blank values of date-role fields only."""
    names = registry.date_fields()
    return [
        record.get(name)
        for record in records
        for name in names
        if record.get(name).strip()
    ]


def ambiguity_for(values: Iterable[str], order: DateOrder | None = None) -> DateAmbiguity:
    ambiguous = find_ambiguous(values)
    return DateAmbiguity(
        values=tuple(ambiguous),
        candidates={v: tuple(candidates(v)) for v in ambiguous},
        order=order,
    )


def normalize_records(
    records: Sequence[Record],
    registry: SchemaRegistry,
    order: DateOrder | None,
) -> list[Record]:
    """Rewrite every parseable date-role value to ``YYYY-MM-DD``.

    Unparseable values are left untouched so validation can report them.

    Raises:
        AmbiguousDate: ambiguous values exist and ``order`` is None
    """
    names = registry.date_fields()
    if order is None:
        pending = find_ambiguous(collect_date_values(records, registry))
        if pending:
            raise AmbiguousDate(pending)
    updated = []
    changed = 0
    for record in records:
        changes = {}
        for name in names:
            raw = record.get(name)
            if not raw.strip():
                continue
            iso = parse_date(raw, order)
            if iso is not None and iso != raw:
                changes[name] = iso
        if changes:
            changed += 1
            record = record.with_values(changes)
        updated.append(record)
    logger.debug(f"normalize dates order={order.value if order else None} rows_changed={changed}")
    return updated
