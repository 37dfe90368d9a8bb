from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any

import pandas as pd

from ..services.column_mapper import unique_headers

"""Spreadsheet reader: file -> ParsedSheet(headers, rows of strings).

The engine only ever sees strings. Excel date cells are rendered as
``YYYY-MM-DD``, integral floats lose their ``.0``, empty cells become "".
Repeated or blank headers are made unique here so column names can key the
column mapping.

.xlsx/.xls are read through pandas (openpyxl engine), .csv through
pandas.read_csv. Nothing is converted to NaN implicitly ("NA" stays "NA");
null_sentinels decides which literal strings count as empty.
"""

__all__ = [
    "ParsedSheet",
    "SheetHeaderError",
    "UnsupportedFileError",
    "read_sheet",
    "normalize_sheet",
    "load_parsed_sheet",
]

EXCEL_SUFFIXES = {".xlsx", ".xls", ".xlsm"}
CSV_SUFFIXES = {".csv"}


class SheetHeaderError(Exception):
    """Raised when the header row is missing."""


class UnsupportedFileError(Exception):
    """Raised for file types the reader cannot parse."""


@dataclass
class ParsedSheet:
    headers: list[str]
    rows: list[list[str]] = field(default_factory=list)

    def sample(self, n: int = 3) -> list[dict[str, str]]:
        return [dict(zip(self.headers, r, strict=False)) for r in self.rows[:n]]


def read_sheet(path: Path, sheet: str | None = None) -> pd.DataFrame:
    """Read one sheet without interpreting any row as header."""
    suffix = path.suffix.lower()
    if suffix in CSV_SUFFIXES:
        return pd.read_csv(path, header=None, dtype=str, keep_default_na=False)
    if suffix in EXCEL_SUFFIXES:
        return pd.read_excel(path, sheet_name=sheet if sheet is not None else 0, header=None, keep_default_na=False)
    raise UnsupportedFileError(f"unsupported file type: {path.name}")


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        if pd.isna(value):
            return ""
        if value.is_integer():
            return str(int(value))
        return str(value)
    if isinstance(value, (pd.Timestamp, datetime)):
        if pd.isna(value):
            return ""
        if (value.hour, value.minute, value.second) == (0, 0, 0):
            return value.strftime("%Y-%m-%d")
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()


def normalize_sheet(
    df: pd.DataFrame,
    header_row: int = 1,
    null_sentinels: Iterable[str] | None = None,
) -> ParsedSheet:
    """Turn a raw frame into headers + string rows.

    Steps:
    1. the 1-based ``header_row`` holds the headers (SheetHeaderError if absent)
    2. rows below it become data rows; fully empty rows are dropped
    3. trailing columns with no header and no data are dropped
    4. cells equal (case-insensitively) to a null sentinel become ""
    """
    if header_row < 1 or df.shape[0] < header_row:
        raise SheetHeaderError(f"sheet has no header row {header_row}")
    sentinels = {s.strip().upper() for s in (null_sentinels or ())}

    header_cells = [_cell_text(v) for v in df.iloc[header_row - 1].tolist()]
    body: list[list[str]] = []
    for raw in df.iloc[header_row:].itertuples(index=False):
        cells = [_cell_text(v) for v in raw]
        cells = ["" if c.upper() in sentinels else c for c in cells]
        if all(c == "" for c in cells):
            continue
        body.append(cells)

    width = len(header_cells)
    while width > 0 and header_cells[width - 1] == "" and all(r[width - 1] == "" for r in body):
        width -= 1
    if width == 0:
        raise SheetHeaderError(f"header row {header_row} is empty")

    headers = unique_headers(header_cells[:width])
    rows = [r[:width] for r in body]
    return ParsedSheet(headers=headers, rows=rows)


def load_parsed_sheet(
    path: Path,
    sheet: str | None = None,
    header_row: int = 1,
    null_sentinels: Iterable[str] | None = None,
) -> ParsedSheet:
    return normalize_sheet(read_sheet(path, sheet), header_row=header_row, null_sentinels=null_sentinels)
