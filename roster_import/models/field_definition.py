from __future__ import annotations

from dataclasses import dataclass, field

"""FieldDefinition model for the roster import engine.

A FieldDefinition is one addressable slot of the remote personnel schema.
Nested objects (e.g. ``bankAccount``) and catalog-expanded fields
(e.g. ``employeeGroups.Waiter``) are already flattened into leaf definitions
named ``parent.sub`` by the schema registry, so nothing downstream has to
special-case nesting.
"""

__all__ = [
    "EnumOption",
    "FieldDefinition",
    "DATE_FORMATS",
    "KNOWN_DATE_FIELDS",
]

# format 値がこれらなら date role
DATE_FORMATS = frozenset({"date", "date-time"})

# Fields the remote service types as plain strings but which carry dates
KNOWN_DATE_FIELDS = frozenset({"hiredFrom", "birthDate", "wageValidFrom", "dateOfBirth"})


@dataclass(frozen=True)
class EnumOption:
    """One allowed value of an enumerated field."""
    id: int
    name: str


@dataclass(frozen=True)
class FieldDefinition:
    """Immutable description of one schema field (or flattened leaf).

    Attributes:
        name: Unique key, ``parent.sub`` for flattened leaves
        display_name: Human readable label
        is_required: Must be supplied for every record
        is_read_only: Flagged read-only by the remote schema (still validated)
        is_unique: Must not repeat across the batch
        is_custom: Portal specific ``custom_`` field
        enum_options: Ordered allowed values (empty when free-form)
        sub_fields: Names of leaves expanded from this field
        data_type: JSON type from the descriptor ("string", "number", ...)
        format: JSON format hint ("email", "date", ...) or None
        description: Free text from the descriptor
        parent: Name of the field this leaf was expanded from
    """
    name: str
    display_name: str
    is_required: bool = False
    is_read_only: bool = False
    is_unique: bool = False
    is_custom: bool = False
    enum_options: tuple[EnumOption, ...] = field(default_factory=tuple)
    sub_fields: tuple[str, ...] = field(default_factory=tuple)
    data_type: str = "string"
    format: str | None = None
    description: str = ""
    parent: str | None = None

    @property
    def is_date(self) -> bool:
        """True when values of this field play the "date" role."""
        if self.format in DATE_FORMATS:
            return True
        leaf = self.name.rsplit(".", 1)[-1]
        return leaf in KNOWN_DATE_FIELDS

    @property
    def is_email(self) -> bool:
        return self.format == "email" or self.name in {"email", "userName"}

    @property
    def is_phone(self) -> bool:
        return self.format == "phone" or self.name in {"cellPhone", "phone"}

    @property
    def option_names(self) -> list[str]:
        return [o.name for o in self.enum_options]
