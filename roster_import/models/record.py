from __future__ import annotations

from collections.abc import Container, Mapping
from dataclasses import dataclass, field
from typing import Any

"""Record model for the roster import engine.

A Record is one spreadsheet row after column mapping and user constants have
been applied. Its keys are checked against the schema registry when the record
is created, so a typo in a field name fails loudly instead of silently
producing a payload the remote service ignores.

Records are immutable; corrections produce new Record instances via
``with_value``.
"""

__all__ = [
    "Record",
    "UnknownFieldError",
]


class UnknownFieldError(Exception):
    """Raised when a field name is not part of the loaded schema."""

    def __init__(self, names: list[str]) -> None:
        self.names = sorted(names)
        super().__init__(f"unknown field(s): {', '.join(self.names)}")


@dataclass(frozen=True)
class Record:
    """One mapped row.

    row_index is the 1-based data row number (first row under the header = 1).
    values maps field name -> raw string value.
    """
    row_index: int
    values: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def create(cls, row_index: int, values: Mapping[str, Any], registry: Container[str]) -> Record:
        """Build a record, rejecting keys the registry does not know."""
        unknown = [k for k in values if k not in registry]
        if unknown:
            raise UnknownFieldError(unknown)
        return cls(row_index=row_index, values={k: _as_text(v) for k, v in values.items()})

    def get(self, name: str, default: str = "") -> str:
        return self.values.get(name, default)

    def has_value(self, name: str) -> bool:
        return self.get(name).strip() != ""

    def with_value(self, name: str, value: str) -> Record:
        updated = dict(self.values)
        updated[name] = value
        return Record(row_index=self.row_index, values=updated)

    def with_values(self, changes: Mapping[str, str]) -> Record:
        updated = dict(self.values)
        updated.update(changes)
        return Record(row_index=self.row_index, values=updated)

    def to_dict(self) -> dict[str, str]:
        return dict(self.values)

    def to_payload(self, nest: Container[str] | None = None) -> dict[str, Any]:
        """Nest ``parent.sub`` keys into objects, dropping blank values.

        ``bankAccount.accountNumber`` becomes ``{"bankAccount": {"accountNumber": ...}}``.
        When ``nest`` is given only those parents are nested; other dotted keys
        (catalog-expanded leaves such as ``employeeGroups.Waiter``) are kept as-is.
        """
        payload: dict[str, Any] = {}
        for name, value in self.values.items():
            if value.strip() == "":
                continue
            parent, _, sub = name.partition(".")
            if sub and (nest is None or parent in nest) and not isinstance(payload.get(parent), str):
                payload.setdefault(parent, {})[sub] = value
            else:
                payload[name] = value
        return payload


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)
