from __future__ import annotations

from dataclasses import dataclass, field

"""Reference catalog entries: authoritative id/name lists per categorical domain."""

__all__ = [
    "CatalogEntry",
    "CatalogDomain",
]


@dataclass(frozen=True)
class CatalogEntry:
    id: int
    name: str


@dataclass(frozen=True)
class CatalogDomain:
    """One categorical domain (departments, employeeGroups, ...).

    multi_value: cells may hold several comma-separated names
    """
    name: str
    entries: tuple[CatalogEntry, ...] = field(default_factory=tuple)
    multi_value: bool = False

    @property
    def names(self) -> list[str]:
        return [e.name for e in self.entries]
