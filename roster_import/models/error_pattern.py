from __future__ import annotations

from dataclasses import dataclass, field

"""Bulk-correction models: ErrorPattern, CorrectionState, BulkCorrectionSummary."""

__all__ = [
    "ErrorPattern",
    "CorrectionState",
    "BulkCorrectionSummary",
    "pattern_key",
]


def pattern_key(field_name: str, invalid_name: str) -> str:
    """Key identifying a pattern across recomputations: ``field:invalidName``."""
    return f"{field_name}:{invalid_name}"


@dataclass(frozen=True)
class ErrorPattern:
    """All rows sharing one invalid categorical value in one field.

    suggestion/confidence come from the suggestion engine; confidence is 0.0
    when no suggestion cleared the acceptance threshold.
    """
    field: str
    invalid_name: str
    rows: tuple[int, ...]
    suggestion: str | None = None
    confidence: float = 0.0

    @property
    def count(self) -> int:
        return len(self.rows)

    @property
    def key(self) -> str:
        return pattern_key(self.field, self.invalid_name)

    def to_dict(self) -> dict[str, object]:
        return {
            "field": self.field,
            "invalidName": self.invalid_name,
            "rows": list(self.rows),
            "count": self.count,
            "suggestion": self.suggestion,
            "confidence": round(self.confidence, 4),
        }


@dataclass
class CorrectionState:
    """Chosen replacements keyed by pattern key.

    pending: chosen but not yet applied to records
    resolved: already applied
    """
    pending: dict[str, str] = field(default_factory=dict)
    resolved: dict[str, str] = field(default_factory=dict)

    def choose(self, key: str, value: str) -> None:
        self.pending[key] = value

    def clear(self, key: str) -> None:
        self.pending.pop(key, None)

    def has_choice(self, key: str) -> bool:
        return key in self.pending

    def mark_resolved(self, key: str) -> None:
        """Move a pending choice to resolved."""
        self.resolved[key] = self.pending.pop(key)

    def copy(self) -> CorrectionState:
        return CorrectionState(pending=dict(self.pending), resolved=dict(self.resolved))

    def to_dict(self) -> dict[str, dict[str, str]]:
        return {"pending": dict(self.pending), "resolved": dict(self.resolved)}


@dataclass(frozen=True)
class BulkCorrectionSummary:
    """Dataset-level overview of categorical errors."""
    total_errors: int  # 無効値の出現総数
    affected_rows: int
    patterns: tuple[ErrorPattern, ...]
    can_bulk_fix: int  # 高信頼 suggestion で直せる出現数
