from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from enum import Enum

from ..models.error_pattern import CorrectionState, ErrorPattern
from ..models.record import Record, UnknownFieldError
from ..models.validation_error import ValidationError
from . import error_patterns
from .date_resolver import (
    DateAmbiguity,
    DateOrder,
    ambiguity_for,
    collect_date_values,
    detect_order,
    find_ambiguous,
    is_ambiguous,
    normalize_records,
    parse_date,
)
from .session import PERMANENT, ImportSession
from .validation import validate

"""Correction workflow: the state machine around bulk and individual fixes.

    BULK_CORRECTION --proceed--> DATE_DISAMBIGUATION --choose_date_order--> INDIVIDUAL_CORRECTION
          |                             |                                          |
          |                      cancel / back                               complete
          |                             v                                          v
          +--back--> EXITED       BULK_CORRECTION                               COMPLETE

``proceed`` goes straight to INDIVIDUAL_CORRECTION when there is nothing to
disambiguate. ``back`` from INDIVIDUAL_CORRECTION leaves the workflow
(EXITED) instead of returning to bulk correction.

Every action checks the current phase and raises WorkflowStateError when it
is not allowed there.
"""

__all__ = [
    "Phase",
    "CorrectionWorkflow",
    "WorkflowStateError",
    "InvalidCorrection",
    "UnresolvedCategoricalValue",
    "ValidationBlocked",
]

logger = logging.getLogger(__name__)


class Phase(Enum):
    BULK_CORRECTION = "bulk-correction"
    DATE_DISAMBIGUATION = "date-disambiguation"
    INDIVIDUAL_CORRECTION = "individual-correction"
    COMPLETE = "complete"
    EXITED = "exited"


class WorkflowStateError(Exception):
    """Action not allowed in the current phase."""


class InvalidCorrection(Exception):
    """Replacement is not a valid catalog name for the pattern's field."""

    def __init__(self, key: str, value: str | None) -> None:
        self.key = key
        self.value = value
        super().__init__(f"invalid correction for {key}: {value!r}")


class UnresolvedCategoricalValue(Exception):
    """Patterns without a chosen correction block bulk correction."""

    def __init__(self, patterns: Sequence[ErrorPattern]) -> None:
        self.patterns = list(patterns)
        keys = ", ".join(p.key for p in self.patterns)
        super().__init__(f"{len(self.patterns)} invalid value(s) need a correction: {keys}")


class ValidationBlocked(Exception):
    """Error-severity findings remain; warnings alone never block."""

    def __init__(self, errors: Sequence[ValidationError]) -> None:
        self.errors = list(errors)
        super().__init__(f"{len(self.errors)} validation error(s) must be fixed before completing")


def _split_key(key: str) -> tuple[str, str]:
    field_name, _, invalid_name = key.partition(":")
    return field_name, invalid_name


class CorrectionWorkflow:
    """One pass through the correction phases for a set of mapped records."""

    def __init__(
        self,
        session: ImportSession,
        records: Sequence[Record],
        constants: Mapping[str, str] | None = None,
    ) -> None:
        self.session = session
        self.phase = Phase.BULK_CORRECTION
        self._constants = dict(constants or {})
        self._records = list(records)
        self._errors: list[ValidationError] = []
        self._snapshot: tuple[list[Record], CorrectionState] | None = None
        self.applied = 0  # 適用した無効値の出現数
        self._patterns = self._detect()
        self._restore_resolved()

    # ---------------------------------------------------------------- helpers
    def _require(self, *phases: Phase) -> None:
        if self.phase not in phases:
            allowed = ", ".join(p.value for p in phases)
            raise WorkflowStateError(f"not allowed in phase {self.phase.value} (allowed: {allowed})")

    def _move(self, phase: Phase) -> None:
        logger.info(f"workflow {self.phase.value} -> {phase.value}")
        self.phase = phase

    def _detect(self) -> list[ErrorPattern]:
        return error_patterns.detect(
            self._records, self.session.catalog, threshold=self.session.suggestion_threshold
        )

    def _revalidate(self) -> None:
        self._errors = validate(
            self._records,
            self.session.registry,
            self._constants,
            catalog=self.session.catalog,
            rules=self.session.rules,
            phone_min_digits=self.session.phone_min_digits,
            phone_country=self.session.phone_country,
        )

    def _restore_resolved(self) -> None:
        """Bring corrections applied earlier in the session back into play."""
        state = self.session.corrections
        active = {p.key for p in self._patterns}
        reapplied = 0
        for key, value in state.resolved.items():
            if key not in active:
                continue
            if self.session.policy == PERMANENT:
                field_name, invalid_name = _split_key(key)
                self._records = error_patterns.apply_correction(
                    self._records, field_name, invalid_name, value, catalog=self.session.catalog
                )
                reapplied += 1
            elif key not in state.pending:
                state.choose(key, value)
        if reapplied:
            self._patterns = self._detect()
            logger.debug(f"workflow: re-applied {reapplied} permanent correction(s)")

    def _pattern(self, key: str) -> ErrorPattern:
        for p in self._patterns:
            if p.key == key:
                return p
        raise KeyError(f"no active pattern: {key}")

    # --------------------------------------------------------- bulk correction
    @property
    def records(self) -> list[Record]:
        return list(self._records)

    @property
    def patterns(self) -> list[ErrorPattern]:
        return list(self._patterns)

    def correction_for(self, key: str) -> str | None:
        return self.session.corrections.pending.get(key)

    def choose(self, key: str, value: str) -> None:
        """Attach a pending replacement to an active pattern."""
        self._require(Phase.BULK_CORRECTION)
        pattern = self._pattern(key)
        domain = self.session.catalog.domain_for_field(pattern.field)
        if value is None or domain is None or not self.session.catalog.contains(domain, value):
            raise InvalidCorrection(key, value)
        self.session.corrections.choose(key, value)
        logger.debug(f"workflow: pending {key} -> {value!r}")

    def choose_suggestion(self, key: str) -> None:
        self._require(Phase.BULK_CORRECTION)
        pattern = self._pattern(key)
        if pattern.suggestion is None:
            raise InvalidCorrection(key, None)
        self.choose(key, pattern.suggestion)

    def clear(self, key: str) -> None:
        self._require(Phase.BULK_CORRECTION)
        self.session.corrections.clear(key)

    @property
    def can_continue(self) -> bool:
        pending = self.session.corrections.pending
        return all(p.key in pending for p in self._patterns)

    def proceed(self) -> Phase:
        """Apply pending corrections, then move on to dates or individual edits.

        Raises:
            UnresolvedCategoricalValue: an active pattern has no correction
        """
        self._require(Phase.BULK_CORRECTION)
        state = self.session.corrections
        unresolved = [p for p in self._patterns if p.key not in state.pending]
        if unresolved:
            raise UnresolvedCategoricalValue(unresolved)

        self._snapshot = (list(self._records), state.copy())
        for p in self._patterns:
            self._records = error_patterns.apply_correction(
                self._records, p.field, p.invalid_name, state.pending[p.key], catalog=self.session.catalog
            )
            state.mark_resolved(p.key)
            self.applied += p.count
        # 対象パターンが消えた pending は破棄
        for key in list(state.pending):
            state.clear(key)
        self._patterns = self._detect()

        values = collect_date_values(self._records, self.session.registry)
        ambiguous = find_ambiguous(values)
        if ambiguous and self.session.date_order is None and self.session.auto_detect_dates:
            detected = detect_order(values)
            if detected is not None:
                logger.info(f"date order detected from data: {detected.value}")
                self.session.date_order = detected
        if ambiguous and self.session.date_order is None:
            self._move(Phase.DATE_DISAMBIGUATION)
            return self.phase

        self._records = normalize_records(self._records, self.session.registry, self.session.date_order)
        self._snapshot = None
        self._revalidate()
        self._move(Phase.INDIVIDUAL_CORRECTION)
        return self.phase

    # ----------------------------------------------------- date disambiguation
    @property
    def ambiguity(self) -> DateAmbiguity:
        self._require(Phase.DATE_DISAMBIGUATION)
        return ambiguity_for(collect_date_values(self._records, self.session.registry), self.session.date_order)

    def choose_date_order(self, order: DateOrder | str) -> Phase:
        self._require(Phase.DATE_DISAMBIGUATION)
        chosen = DateOrder.parse(order)
        if chosen is None:
            raise ValueError("a date order is required")
        self.session.date_order = chosen
        self._records = normalize_records(self._records, self.session.registry, chosen)
        self._snapshot = None
        self._revalidate()
        self._move(Phase.INDIVIDUAL_CORRECTION)
        return self.phase

    def cancel_date_choice(self) -> Phase:
        """Back to bulk correction with nothing from ``proceed`` committed."""
        self._require(Phase.DATE_DISAMBIGUATION)
        records, state = self._snapshot
        self._records = records
        self.session.corrections = state
        self._snapshot = None
        self.applied = 0
        self._patterns = self._detect()
        self._move(Phase.BULK_CORRECTION)
        return self.phase

    # --------------------------------------------------- individual correction
    @property
    def errors(self) -> list[ValidationError]:
        self._require(Phase.INDIVIDUAL_CORRECTION, Phase.COMPLETE)
        return list(self._errors)

    def edit(self, row_index: int, field_name: str, value: str) -> list[ValidationError]:
        """Set one cell and re-run validation; returns the new findings."""
        self._require(Phase.INDIVIDUAL_CORRECTION)
        registry = self.session.registry
        if field_name not in registry:
            raise UnknownFieldError([field_name])
        if registry.field(field_name).is_date and value.strip():
            if self.session.date_order is not None or not is_ambiguous(value):
                value = parse_date(value, self.session.date_order) or value
        for i, record in enumerate(self._records):
            if record.row_index == row_index:
                self._records[i] = record.with_value(field_name, value)
                break
        else:
            raise KeyError(f"no record for row {row_index}")
        self._revalidate()
        return list(self._errors)

    def complete(self) -> Phase:
        """Raises ValidationBlocked while error-severity findings remain."""
        self._require(Phase.INDIVIDUAL_CORRECTION)
        blocking = [e for e in self._errors if e.is_blocking]
        if blocking:
            raise ValidationBlocked(blocking)
        self._move(Phase.COMPLETE)
        return self.phase

    # ------------------------------------------------------------- navigation
    def back(self) -> Phase:
        if self.phase is Phase.DATE_DISAMBIGUATION:
            return self.cancel_date_choice()
        self._require(Phase.BULK_CORRECTION, Phase.INDIVIDUAL_CORRECTION)
        self._move(Phase.EXITED)
        return self.phase

    def final_records(self) -> list[Record]:
        self._require(Phase.COMPLETE)
        return list(self._records)

    def report(self) -> dict[str, object]:
        """Correction report: active patterns and the session's choices."""
        return {
            "phase": self.phase.value,
            "patterns": [p.to_dict() for p in self._patterns],
            "corrections": self.session.corrections.to_dict(),
            "date_order": self.session.date_order.value if self.session.date_order else None,
        }
