from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum

"""ValidationError model for the roster import engine.

ValidationError entries are regenerated every time the record set changes;
they are never persisted as state. They can be serialized to JSON Lines for
the validation report (see roster_import.logging.error_log).

``code`` classifies the error in UPPER_SNAKE_CASE:

- MISSING_REQUIRED_FIELD: required field has no value for this row
- CONDITIONAL_REQUIRED: field required because a related field is present
- FORMAT_VIOLATION: value shape check failed (email, phone, ISO date)
- ENUM_VIOLATION: value not among the allowed options / catalog names
- DUPLICATE_VALUE: unique field repeats across the batch
"""

__all__ = [
    "Severity",
    "ValidationError",
    "MISSING_REQUIRED_FIELD",
    "CONDITIONAL_REQUIRED",
    "FORMAT_VIOLATION",
    "ENUM_VIOLATION",
    "DUPLICATE_VALUE",
]

MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
CONDITIONAL_REQUIRED = "CONDITIONAL_REQUIRED"
FORMAT_VIOLATION = "FORMAT_VIOLATION"
ENUM_VIOLATION = "ENUM_VIOLATION"
DUPLICATE_VALUE = "DUPLICATE_VALUE"


class Severity(Enum):
    """Errors block progression, warnings do not."""
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class ValidationError:
    """One field-level finding.

    Attributes:
        field: Field name the finding is about
        row_index: 1-based data row number
        value: Offending raw value ("" when missing)
        message: Human readable explanation
        severity: Severity.ERROR or Severity.WARNING
        code: Error classification (UPPER_SNAKE)
    """
    field: str
    row_index: int
    value: str
    message: str
    severity: Severity = Severity.ERROR
    code: str = FORMAT_VIOLATION

    @property
    def is_blocking(self) -> bool:
        return self.severity is Severity.ERROR

    def to_dict(self) -> dict[str, object]:
        return {
            "field": self.field,
            "row": self.row_index,
            "value": self.value,
            "message": self.message,
            "severity": self.severity.value,
            "code": self.code,
        }

    def to_json_line(self) -> str:
        """Serialize to one JSON Lines entry with a fixed key set."""
        return json.dumps(self.to_dict(), ensure_ascii=False)
