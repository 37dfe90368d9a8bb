from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass

from rapidfuzz.distance import Levenshtein

"""Closest-valid-name suggestions for invalid categorical values.

Confidence is the normalized Levenshtein similarity of the case-folded,
whitespace-collapsed names (1 - distance / longer length), so it always lies
in [0, 1]. Suggestions are advisory only; nothing here changes a record.
"""

__all__ = [
    "Suggestion",
    "normalize_name",
    "similarity",
    "suggest",
    "top_matches",
    "SUGGESTION_THRESHOLD",
    "BULK_FIX_CONFIDENCE",
]

logger = logging.getLogger(__name__)

SUGGESTION_THRESHOLD = 0.4
BULK_FIX_CONFIDENCE = 0.7  # この値を超える suggestion は一括修正候補として数える
TOP_MATCH_FLOOR = 0.3

_WS_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class Suggestion:
    name: str
    confidence: float

    def to_dict(self) -> dict[str, object]:
        return {"name": self.name, "confidence": round(self.confidence, 4)}


def normalize_name(value: str) -> str:
    return _WS_RE.sub(" ", (value or "").strip()).casefold()


def similarity(a: str, b: str) -> float:
    """Normalized similarity in [0, 1]; two blank names score 0."""
    na, nb = normalize_name(a), normalize_name(b)
    if not na and not nb:
        return 0.0
    score = Levenshtein.normalized_similarity(na, nb)
    return min(1.0, max(0.0, float(score)))


def suggest(
    invalid_name: str,
    candidates: Iterable[str],
    threshold: float = SUGGESTION_THRESHOLD,
) -> Suggestion | None:
    """Best candidate for ``invalid_name`` or None.

    The highest score wins; on ties the earlier candidate wins. A best score
    below ``threshold`` yields None so only the manual picker is offered.
    """
    best: Suggestion | None = None
    for candidate in candidates:
        score = similarity(invalid_name, candidate)
        if best is None or score > best.confidence:
            best = Suggestion(name=candidate, confidence=score)
    if best is None or best.confidence < threshold:
        logger.debug(f"suggest: no candidate for {invalid_name!r} cleared {threshold}")
        return None
    logger.debug(f"suggest: {invalid_name!r} -> {best.name!r} ({best.confidence:.3f})")
    return best


def top_matches(
    invalid_name: str,
    candidates: Iterable[str],
    limit: int = 3,
    floor: float = TOP_MATCH_FLOOR,
) -> list[Suggestion]:
    """Up to ``limit`` candidates scoring above ``floor``, best first."""
    scored = [
        Suggestion(name=c, confidence=similarity(invalid_name, c))
        for c in candidates
    ]
    # sorted() is stable, so equal scores keep catalog order
    ranked = sorted((s for s in scored if s.confidence > floor), key=lambda s: -s.confidence)
    return ranked[:limit]
