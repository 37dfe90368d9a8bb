from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the roster import tool.

These are the typed form of config/import.yml after the loader has validated
it against the packaged JSON schema (roster_import/config/import_schema.json).
"""

__all__ = [
    "ConditionalRuleConfig",
    "MatchingConfig",
    "DateConfig",
    "ValidationConfig",
    "CatalogConfig",
    "ImportConfig",
]


@dataclass(frozen=True)
class ConditionalRuleConfig:
    """``field`` becomes required once ``when_present`` has a value."""
    field: str
    when_present: str


@dataclass(frozen=True)
class MatchingConfig:
    fuzzy_threshold: float = 0.5  # header 部分一致の採用下限 (この値を超えること)
    suggestion_threshold: float = 0.4  # 修正候補を表示する最低類似度


@dataclass(frozen=True)
class DateConfig:
    order: str | None = None  # "DD/MM/YYYY" | "MM/DD/YYYY" | None
    auto_detect: bool = False


@dataclass(frozen=True)
class ValidationConfig:
    phone_min_digits: int = 8
    phone_country: str = "DK"  # 国番号なしの電話番号に仮定する国
    conditional_rules: tuple[ConditionalRuleConfig, ...] = ()


@dataclass(frozen=True)
class CatalogConfig:
    field_domains: dict[str, str] = field(default_factory=dict)  # field -> domain
    multi_value: tuple[str, ...] | None = None  # None = defaults


@dataclass(frozen=True)
class ImportConfig:
    """Root configuration object for one import run."""
    source_file: str
    schema_file: str
    catalog_file: str
    output_file: str = "output/records.json"
    header_row: int = 1  # 1-based row holding the headers
    sheet: str | None = None
    constants: dict[str, str] = field(default_factory=dict)
    column_overrides: dict[str, str] = field(default_factory=dict)  # column -> field | "ignore"
    corrections: dict[str, dict[str, str]] = field(default_factory=dict)  # field -> {invalid: replacement}
    correction_policy: str = "editable"  # "editable" | "permanent"
    always_required: tuple[str, ...] = ()
    null_sentinels: frozenset[str] = frozenset()
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    dates: DateConfig = field(default_factory=DateConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
