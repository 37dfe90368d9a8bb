from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

"""ColumnMapping model: one spreadsheet header and what it is bound to.

``target`` is either a schema field name, the IGNORE marker (the user
explicitly discarded the column) or None (unmapped).
"""

__all__ = [
    "IGNORE",
    "MatchKind",
    "ColumnMapping",
]

IGNORE = "__IGNORE__"


class MatchKind(Enum):
    """How a binding came to be.

    - EXACT: header equals the field name (case-insensitive, trimmed)
    - FUZZY: header contains an alias pattern scoring above the threshold
    - MANUAL: set by the caller
    - NONE: not bound
    """
    EXACT = "exact"
    FUZZY = "fuzzy"
    MANUAL = "manual"
    NONE = "none"


@dataclass(frozen=True)
class ColumnMapping:
    excel_column: str
    target: str | None = None
    match: MatchKind = MatchKind.NONE
    score: float = 0.0

    @property
    def is_ignored(self) -> bool:
        return self.target == IGNORE

    @property
    def is_bound(self) -> bool:
        """Bound to a real field (not ignored, not unmapped)."""
        return self.target is not None and self.target != IGNORE

    @property
    def status(self) -> str:
        if self.is_ignored:
            return "ignored"
        if self.is_bound:
            return "mapped"
        return "unmapped"
