from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator, Mapping
from typing import TYPE_CHECKING, Any

from ..models.field_definition import EnumOption, FieldDefinition

if TYPE_CHECKING:
    from .reference_catalog import ReferenceCatalog

"""Schema registry built from the remote field-definition document.

The remote personnel service describes its create-records API with a JSON
document of this shape:

    {
      "required": ["firstName", "lastName", "userName"],
      "readOnly": ["id"],
      "unique": ["userName", "ssn"],
      "properties": {
        "firstName": {"type": "string", "description": "First name"},
        "gender": {"type": "string", "enum": ["Male", "Female"]},
        "bankAccount": {"$ref": "#/definitions/BankAccount"},
        "custom_12345": {"type": "string", "description": "Shoe size"}
      },
      "definitions": {
        "BankAccount": {"type": "object",
                        "properties": {"accountNumber": {...}, "registrationNumber": {...}}}
      }
    }

Nested objects are flattened into ``parent.sub`` leaves and catalog-backed
grouping fields are expanded into one leaf per catalog entry, so the rest of
the engine only ever sees flat FieldDefinitions.
"""

__all__ = [
    "SchemaRegistry",
    "SchemaUnavailable",
    "DEFAULT_EXPAND_DOMAINS",
]

logger = logging.getLogger(__name__)

DEFAULT_EXPAND_DOMAINS = ("departments", "employeeGroups")
CUSTOM_PREFIX = "custom_"
_REF_PREFIX = "#/definitions/"


class SchemaUnavailable(Exception):
    """Schema document could not be fetched or parsed. Retryable."""


class SchemaRegistry:
    """Typed queries over an immutable set of FieldDefinitions."""

    def __init__(self, fields: Iterable[FieldDefinition], *, portal_id: int | None = None) -> None:
        self._fields: dict[str, FieldDefinition] = {}
        for f in fields:
            self._fields[f.name] = f
        self.portal_id = portal_id

    # ------------------------------------------------------------------ load
    @classmethod
    def load(
        cls,
        document: Mapping[str, Any] | str | bytes,
        *,
        catalog: ReferenceCatalog | None = None,
        expand_domains: Iterable[str] = DEFAULT_EXPAND_DOMAINS,
        always_required: Iterable[str] = (),
    ) -> SchemaRegistry:
        """Parse a field-definition document.

        Args:
            document: Parsed JSON object or raw JSON text; a ``{"data": {...}}``
                envelope is unwrapped
            catalog: When given, fields named in ``expand_domains`` are expanded
                into one numeric leaf per catalog entry
            expand_domains: Grouping fields to expand against the catalog
            always_required: Fields forced required regardless of the document

        Raises:
            SchemaUnavailable: The document is not a usable schema
        """
        doc = _coerce_document(document)
        properties = doc.get("properties")
        if not isinstance(properties, Mapping) or not properties:
            raise SchemaUnavailable("schema document has no 'properties' object")
        definitions = doc.get("definitions") or {}
        if not isinstance(definitions, Mapping):
            raise SchemaUnavailable("schema 'definitions' must be an object")

        required = _name_set(doc, "required") | set(always_required)
        read_only = _name_set(doc, "readOnly")
        unique = _name_set(doc, "unique")

        fields: list[FieldDefinition] = []
        for name, raw in properties.items():
            if not isinstance(raw, Mapping):
                raise SchemaUnavailable(f"descriptor for '{name}' must be an object")
            descriptor = _resolve(raw, definitions, name)
            nested = descriptor.get("properties")
            if isinstance(nested, Mapping) and nested:
                leaves = [
                    _leaf(
                        f"{name}.{sub}",
                        _resolve(sub_raw, definitions, f"{name}.{sub}"),
                        required=name in required or f"{name}.{sub}" in required,
                        read_only=name in read_only or f"{name}.{sub}" in read_only,
                        unique=f"{name}.{sub}" in unique,
                        parent=name,
                    )
                    for sub, sub_raw in nested.items()
                ]
                fields.extend(leaves)
                logger.debug(f"schema: flattened '{name}' into {len(leaves)} leaves")
                continue
            fields.append(
                _leaf(
                    name,
                    descriptor,
                    required=name in required,
                    read_only=name in read_only,
                    unique=name in unique,
                    ref_name=_ref_name(raw),
                )
            )

        if catalog is not None:
            fields = _expand_catalog_fields(fields, catalog, tuple(expand_domains))

        portal = doc.get("portalId")
        registry = cls(fields, portal_id=portal if isinstance(portal, int) else None)
        logger.info(
            f"schema loaded fields={len(registry)} required={len(registry.required_fields())} "
            f"custom={sum(1 for f in registry.fields() if f.is_custom)}"
        )
        return registry

    # --------------------------------------------------------------- queries
    def fields(self) -> list[FieldDefinition]:
        return list(self._fields.values())

    def names(self) -> list[str]:
        return list(self._fields)

    def field(self, name: str) -> FieldDefinition:
        try:
            return self._fields[name]
        except KeyError:
            raise KeyError(f"unknown field: {name}") from None

    def get(self, name: str) -> FieldDefinition | None:
        return self._fields.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._fields

    def __iter__(self) -> Iterator[FieldDefinition]:
        return iter(self._fields.values())

    def __len__(self) -> int:
        return len(self._fields)

    def is_required(self, name: str) -> bool:
        return self.field(name).is_required

    def is_read_only(self, name: str) -> bool:
        return self.field(name).is_read_only

    def is_unique(self, name: str) -> bool:
        return self.field(name).is_unique

    def is_custom(self, name: str) -> bool:
        return self.field(name).is_custom

    def enum_options(self, name: str) -> list[dict[str, Any]]:
        return [{"id": o.id, "name": o.name} for o in self.field(name).enum_options]

    def sub_fields(self, name: str) -> list[str]:
        return list(self.field(name).sub_fields)

    def required_fields(self) -> list[str]:
        return [f.name for f in self._fields.values() if f.is_required]

    def unique_fields(self) -> list[str]:
        return [f.name for f in self._fields.values() if f.is_unique]

    def date_fields(self) -> list[str]:
        return [f.name for f in self._fields.values() if f.is_date]

    def object_parents(self) -> set[str]:
        """Parents of flattened nested-object leaves (nested again in payloads)."""
        return {
            f.parent for f in self._fields.values()
            if f.parent is not None and f.parent not in self._fields
        }


def _coerce_document(document: Mapping[str, Any] | str | bytes) -> Mapping[str, Any]:
    if isinstance(document, (str, bytes)):
        try:
            document = json.loads(document)
        except json.JSONDecodeError as e:
            raise SchemaUnavailable(f"schema document is not valid JSON: {e}") from e
    if not isinstance(document, Mapping):
        raise SchemaUnavailable(f"schema document must be an object, got {type(document).__name__}")
    data = document.get("data")
    if "properties" not in document and isinstance(data, Mapping):
        return data
    return document


def _name_set(doc: Mapping[str, Any], key: str) -> set[str]:
    value = doc.get(key) or []
    if not isinstance(value, list):
        raise SchemaUnavailable(f"schema '{key}' must be a list of field names")
    return {str(v) for v in value}


def _ref_name(raw: Mapping[str, Any]) -> str | None:
    ref = raw.get("$ref")
    if isinstance(ref, str) and ref.startswith(_REF_PREFIX):
        return ref[len(_REF_PREFIX):]
    return None


def _resolve(raw: Any, definitions: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    """Follow a ``$ref`` into ``definitions``, merging local keys over the target."""
    if not isinstance(raw, Mapping):
        raise SchemaUnavailable(f"descriptor for '{name}' must be an object")
    ref_name = _ref_name(raw)
    if raw.get("$ref") is None:
        return raw
    if ref_name is None or ref_name not in definitions:
        raise SchemaUnavailable(f"field '{name}' references unknown definition {raw.get('$ref')!r}")
    target = definitions[ref_name]
    if not isinstance(target, Mapping):
        raise SchemaUnavailable(f"definition '{ref_name}' must be an object")
    merged = dict(target)
    merged.update({k: v for k, v in raw.items() if k != "$ref"})
    return merged


def _enum_values(descriptor: Mapping[str, Any]) -> list[str]:
    for key in ("enum", "values"):
        values = descriptor.get(key)
        if isinstance(values, list) and values:
            return [str(v) for v in values if v is not None]
    for branch in descriptor.get("anyOf") or []:
        if isinstance(branch, Mapping):
            values = _enum_values(branch)
            if values:
                return values
    return []


def _format_of(descriptor: Mapping[str, Any]) -> str | None:
    fmt = descriptor.get("format")
    if isinstance(fmt, str):
        return fmt
    for branch in descriptor.get("anyOf") or []:
        if isinstance(branch, Mapping) and isinstance(branch.get("format"), str):
            return branch["format"]
    return None


def _type_of(descriptor: Mapping[str, Any]) -> str:
    t = descriptor.get("type")
    if isinstance(t, list):
        t = next((x for x in t if x != "null"), "string")
    if isinstance(t, str):
        return t
    for branch in descriptor.get("anyOf") or []:
        if isinstance(branch, Mapping) and isinstance(branch.get("type"), str) and branch["type"] != "null":
            return branch["type"]
    return "string"


def _leaf(
    name: str,
    descriptor: Mapping[str, Any],
    *,
    required: bool,
    read_only: bool,
    unique: bool,
    parent: str | None = None,
    ref_name: str | None = None,
) -> FieldDefinition:
    description = str(descriptor.get("description") or "")
    fmt = _format_of(descriptor)
    # "#/definitions/HiredFromDate" のような日付型参照
    if fmt is None and ref_name and "date" in ref_name.lower():
        fmt = "date"
    leaf = name.rsplit(".", 1)[-1]
    return FieldDefinition(
        name=name,
        display_name=description or leaf,
        is_required=required,
        is_read_only=read_only,
        is_unique=unique,
        is_custom=leaf.startswith(CUSTOM_PREFIX),
        enum_options=tuple(EnumOption(id=i, name=v) for i, v in enumerate(_enum_values(descriptor))),
        data_type=_type_of(descriptor),
        format=fmt,
        description=description,
        parent=parent,
    )


def _expand_catalog_fields(
    fields: list[FieldDefinition],
    catalog: ReferenceCatalog,
    expand_domains: tuple[str, ...],
) -> list[FieldDefinition]:
    expanded: list[FieldDefinition] = []
    for f in fields:
        domain = catalog.domain_for_field(f.name) if f.name in expand_domains else None
        if domain is None:
            expanded.append(f)
            continue
        leaves = [
            FieldDefinition(
                name=f"{f.name}.{entry_name}",
                display_name=f"{f.display_name}: {entry_name}",
                data_type="number",
                parent=f.name,
                description=f"{f.display_name} '{entry_name}'",
            )
            for entry_name in catalog.names(domain)
        ]
        expanded.append(
            FieldDefinition(
                name=f.name,
                display_name=f.display_name,
                is_required=f.is_required,
                is_read_only=f.is_read_only,
                is_unique=f.is_unique,
                is_custom=f.is_custom,
                enum_options=f.enum_options,
                sub_fields=tuple(leaf.name for leaf in leaves),
                data_type=f.data_type,
                format=f.format,
                description=f.description,
                parent=f.parent,
            )
        )
        expanded.extend(leaves)
        logger.debug(f"schema: expanded '{f.name}' into {len(leaves)} catalog leaves")
    return expanded
