from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

from ..models.error_pattern import BulkCorrectionSummary, ErrorPattern
from ..models.record import Record
from .reference_catalog import DEFAULT_MULTI_VALUE_DOMAINS, ReferenceCatalog
from .suggestions import BULK_FIX_CONFIDENCE, SUGGESTION_THRESHOLD, suggest

"""Error pattern detection for categorical fields.

Every non-empty value of a catalog-backed field that is not an exact catalog
name is grouped by (field, value). A bulk correction replaces the value in
every row of its pattern; once no row carries it any more, the pattern simply
stops being detected. There is no separate "resolved" flag.
"""

__all__ = [
    "detect",
    "apply_correction",
    "summarize",
]

logger = logging.getLogger(__name__)


def _split(raw: str, multi_value: bool) -> list[str]:
    if multi_value:
        return [part.strip() for part in raw.split(",") if part.strip()]
    return [raw.strip()] if raw.strip() else []


def detect(
    records: Sequence[Record],
    catalog: ReferenceCatalog,
    *,
    field_domains: Mapping[str, str] | None = None,
    threshold: float = SUGGESTION_THRESHOLD,
) -> list[ErrorPattern]:
    """Group invalid categorical values into correction targets.

    Patterns are ordered by count (descending), then field, then value.
    """
    rows: dict[tuple[str, str], list[int]] = {}
    domains: dict[str, str] = {}
    for record in records:
        for field_name, raw in record.values.items():
            if field_domains is not None:
                domain = field_domains.get(field_name)
                if domain is not None and not catalog.has_domain(domain):
                    domain = None
            else:
                domain = catalog.domain_for_field(field_name)
            if domain is None:
                continue
            domains[field_name] = domain
            for item in catalog.split_values(domain, raw):
                if catalog.contains(domain, item):
                    continue
                hits = rows.setdefault((field_name, item), [])
                if not hits or hits[-1] != record.row_index:
                    hits.append(record.row_index)

    patterns = []
    for (field_name, item), hit_rows in rows.items():
        match = suggest(item, catalog.names(domains[field_name]), threshold=threshold)
        patterns.append(
            ErrorPattern(
                field=field_name,
                invalid_name=item,
                rows=tuple(hit_rows),
                suggestion=match.name if match else None,
                confidence=match.confidence if match else 0.0,
            )
        )
    patterns.sort(key=lambda p: (-p.count, p.field, p.invalid_name))
    if patterns:
        logger.debug(f"detect patterns={len(patterns)} occurrences={sum(p.count for p in patterns)}")
    return patterns


def apply_correction(
    records: Sequence[Record],
    field_name: str,
    invalid_name: str,
    replacement: str,
    *,
    catalog: ReferenceCatalog | None = None,
) -> list[Record]:
    """Replace ``invalid_name`` with ``replacement`` in ``field_name`` everywhere.

    Multi-valued cells are split on commas, the matching item replaced, and the
    items rejoined with ", " (dropping a duplicate the replacement creates).
    Returns new records; untouched records are passed through as-is.
    """
    domain = catalog.domain_for_field(field_name) if catalog is not None else None
    if domain is not None:
        multi_value = catalog.domain(domain).multi_value
    else:
        multi_value = field_name in DEFAULT_MULTI_VALUE_DOMAINS

    updated = []
    changed = 0
    for record in records:
        raw = record.get(field_name)
        items = _split(raw, multi_value)
        if invalid_name not in items:
            updated.append(record)
            continue
        fixed: list[str] = []
        for item in items:
            value = replacement if item == invalid_name else item
            if value not in fixed:
                fixed.append(value)
        updated.append(record.with_value(field_name, ", ".join(fixed)))
        changed += 1
    logger.debug(f"correction {field_name}: {invalid_name!r} -> {replacement!r} rows={changed}")
    return updated


def summarize(patterns: Sequence[ErrorPattern]) -> BulkCorrectionSummary:
    affected = {row for p in patterns for row in p.rows}
    return BulkCorrectionSummary(
        total_errors=sum(p.count for p in patterns),
        affected_rows=len(affected),
        patterns=tuple(patterns),
        can_bulk_fix=sum(
            p.count for p in patterns if p.suggestion is not None and p.confidence > BULK_FIX_CONFIDENCE
        ),
    )
