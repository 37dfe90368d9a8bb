from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path

from ..models.validation_error import ValidationError

"""Validation report buffering.

- JSON Lines with a fixed key set (field, row, value, message, severity, code)
- one file per run: ``logs/validation-YYYYMMDD-HHMMSS.log`` (UTC)
- entries are buffered and written on flush
"""

__all__ = [
    "ValidationReportBuffer",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ValidationReportBuffer:
    """In-memory buffer of ValidationError entries; flush appends JSON Lines.

    The file path is fixed on first access and reused by later flushes.
    """

    def __init__(self, logs_dir: Path = LOGS_DIR) -> None:
        self._entries: list[ValidationError] = []
        self._logs_dir = logs_dir
        self._file_path: Path | None = None

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"validation-{stamp}.log"
        return self._file_path

    def append(self, entry: ValidationError) -> None:
        self._entries.append(entry)

    def extend(self, entries: Iterable[ValidationError]) -> None:
        self._entries.extend(entries)

    def __len__(self) -> int:
        return len(self._entries)

    def flush(self) -> Path | None:
        """Write buffered entries; returns None when there was nothing to write."""
        if not self._entries:
            return None
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for e in self._entries:
                f.write(e.to_json_line() + "\n")
        self._entries.clear()
        return fp
