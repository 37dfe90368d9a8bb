"""Domain models for the roster import engine.

Records, field definitions, mappings, validation findings and correction
state. Everything here is plain data; the behaviour lives in
roster_import.services.
"""

from .catalog import CatalogDomain, CatalogEntry
from .column_mapping import IGNORE, ColumnMapping, MatchKind
from .config_models import ImportConfig
from .error_pattern import BulkCorrectionSummary, CorrectionState, ErrorPattern
from .field_definition import EnumOption, FieldDefinition
from .import_result import ImportResult
from .record import Record, UnknownFieldError
from .validation_error import Severity, ValidationError

__all__ = [
    # Schema
    "EnumOption",
    "FieldDefinition",
    "CatalogDomain",
    "CatalogEntry",
    # Mapping
    "IGNORE",
    "ColumnMapping",
    "MatchKind",
    # Records and findings
    "Record",
    "UnknownFieldError",
    "Severity",
    "ValidationError",
    # Bulk correction
    "ErrorPattern",
    "CorrectionState",
    "BulkCorrectionSummary",
    # Run
    "ImportConfig",
    "ImportResult",
]
