from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from ..models.catalog import CatalogDomain, CatalogEntry

"""Reference catalog: authoritative id/name lists for categorical domains.

Catalogs (organizational units, groupings, role types, supervisors, ...) are
fetched once per session by the caller and handed over as plain documents:

    {
      "departments": [{"id": 1, "name": "Kitchen"}, ...],
      "employeeGroups": {"paging": {...}, "data": [{"id": 7, "name": "Waiter"}]},
      "skills": [{"skillId": 3, "name": "Barista"}]
    }

Name matching is exact and case-sensitive: "kitchen" is not "Kitchen". The
bulk-correction phase is where near-misses get repaired.
"""

__all__ = [
    "ReferenceCatalog",
    "CatalogError",
    "DEFAULT_MULTI_VALUE_DOMAINS",
]

logger = logging.getLogger(__name__)

DEFAULT_MULTI_VALUE_DOMAINS = frozenset({"departments", "employeeGroups", "skillIds"})

_ID_KEYS = ("id", "skillId")


class CatalogError(Exception):
    """Raised when a catalog document cannot be interpreted."""


class ReferenceCatalog:
    """Session-scoped lookup over all categorical domains.

    field_domains binds schema field names to domain names; a field whose name
    equals a domain name is bound implicitly.
    """

    def __init__(
        self,
        domains: Iterable[CatalogDomain] = (),
        *,
        field_domains: Mapping[str, str] | None = None,
    ) -> None:
        self._domains: dict[str, CatalogDomain] = {d.name: d for d in domains}
        self._field_domains = dict(field_domains or {})

    @classmethod
    def from_document(
        cls,
        document: Mapping[str, Any],
        *,
        multi_value: Iterable[str] | None = None,
        field_domains: Mapping[str, str] | None = None,
    ) -> ReferenceCatalog:
        if not isinstance(document, Mapping):
            raise CatalogError(f"catalog document must be an object, got {type(document).__name__}")
        multi = frozenset(multi_value) if multi_value is not None else DEFAULT_MULTI_VALUE_DOMAINS
        domains = []
        for name, raw in document.items():
            items = raw.get("data") if isinstance(raw, Mapping) else raw
            if not isinstance(items, list):
                raise CatalogError(f"catalog domain '{name}' must be a list of {{id, name}} objects")
            entries = tuple(_parse_entry(name, item) for item in items)
            domains.append(CatalogDomain(name=str(name), entries=entries, multi_value=name in multi))
            logger.debug(f"catalog domain={name} entries={len(entries)}")
        return cls(domains, field_domains=field_domains)

    def domains(self) -> list[str]:
        return list(self._domains)

    def domain(self, name: str) -> CatalogDomain:
        return self._domains[name]

    def has_domain(self, name: str) -> bool:
        return name in self._domains

    def domain_for_field(self, field_name: str) -> str | None:
        """Domain backing a schema field, or None for non-categorical fields."""
        bound = self._field_domains.get(field_name)
        if bound is not None:
            return bound if bound in self._domains else None
        return field_name if field_name in self._domains else None

    def names(self, domain: str) -> list[str]:
        return self._domains[domain].names

    def options(self, domain: str) -> list[dict[str, Any]]:
        return [{"id": e.id, "name": e.name} for e in self._domains[domain].entries]

    def contains(self, domain: str, name: str) -> bool:
        return any(e.name == name for e in self._domains[domain].entries)

    def resolve_id(self, domain: str, name: str) -> int | None:
        for e in self._domains[domain].entries:
            if e.name == name:
                return e.id
        return None

    def split_values(self, domain: str, raw: str) -> list[str]:
        """Individual names of a cell; multi-valued domains split on commas."""
        if raw is None or raw.strip() == "":
            return []
        if self._domains[domain].multi_value:
            return [part.strip() for part in raw.split(",") if part.strip()]
        return [raw.strip()]

    def resolve_ids(self, domain: str, raw: str) -> list[int]:
        """Catalog ids for every resolvable name in a cell (unknown names skipped)."""
        ids = []
        for name in self.split_values(domain, raw):
            entry_id = self.resolve_id(domain, name)
            if entry_id is not None and entry_id not in ids:
                ids.append(entry_id)
        return ids


def _parse_entry(domain: str, item: Any) -> CatalogEntry:
    if not isinstance(item, Mapping) or "name" not in item:
        raise CatalogError(f"catalog domain '{domain}' has an entry without a name: {item!r}")
    for key in _ID_KEYS:
        if key in item:
            try:
                return CatalogEntry(id=int(item[key]), name=str(item["name"]))
            except (TypeError, ValueError) as e:
                raise CatalogError(f"catalog domain '{domain}' has a non-numeric id: {item!r}") from e
    raise CatalogError(f"catalog domain '{domain}' has an entry without an id: {item!r}")
