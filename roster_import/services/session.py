from __future__ import annotations

from dataclasses import dataclass, field

from ..models.error_pattern import CorrectionState
from .date_resolver import DateOrder
from .phone import DEFAULT_COUNTRY
from .reference_catalog import ReferenceCatalog
from .schema_registry import SchemaRegistry
from .suggestions import SUGGESTION_THRESHOLD
from .validation import DEFAULT_CONDITIONAL_RULES, DEFAULT_PHONE_MIN_DIGITS, ConditionalRule

"""Caller-owned session context.

Everything that must survive between engine calls for one import session
(schema, catalogs, applied corrections, the chosen date order) lives here and
is passed in explicitly. Discarding the object discards the session.
"""

__all__ = [
    "ImportSession",
    "EDITABLE",
    "PERMANENT",
]

EDITABLE = "editable"  # 適用済みの修正も戻ると編集可能な pending として再表示
PERMANENT = "permanent"  # 適用済みの修正は自動で再適用し表示しない


@dataclass
class ImportSession:
    registry: SchemaRegistry
    catalog: ReferenceCatalog
    corrections: CorrectionState = field(default_factory=CorrectionState)
    date_order: DateOrder | None = None
    policy: str = EDITABLE
    auto_detect_dates: bool = False
    suggestion_threshold: float = SUGGESTION_THRESHOLD
    rules: tuple[ConditionalRule, ...] = DEFAULT_CONDITIONAL_RULES
    phone_min_digits: int = DEFAULT_PHONE_MIN_DIGITS
    phone_country: str = DEFAULT_COUNTRY

    def __post_init__(self) -> None:
        if self.policy not in (EDITABLE, PERMANENT):
            raise ValueError(f"unknown correction policy: {self.policy!r}")
        self.date_order = DateOrder.parse(self.date_order)
