from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pandas as pd
import pytest

from roster_import.excel.reader import (
    SheetHeaderError,
    UnsupportedFileError,
    load_parsed_sheet,
    normalize_sheet,
)


def _make_excel_file(path: Path, frames: dict[str, pd.DataFrame]) -> None:
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for name, df in frames.items():
            df.to_excel(writer, sheet_name=name, index=False, header=False)


def test_csv_cells_stay_text(temp_workdir: Path):
    src = temp_workdir / "data" / "staff.csv"
    src.write_text("Name,Zip,Note\nAnn,0042,NA\n,,\nBo,,N/A\n", encoding="utf-8")
    sheet = load_parsed_sheet(src, null_sentinels=["n/a"])
    assert sheet.headers == ["Name", "Zip", "Note"]
    assert sheet.rows == [["Ann", "0042", "NA"], ["Bo", "", ""]]
    assert sheet.sample(1) == [{"Name": "Ann", "Zip": "0042", "Note": "NA"}]


def test_excel_dates_and_numbers(temp_workdir: Path):
    src = temp_workdir / "data" / "staff.xlsx"
    frame = pd.DataFrame([
        ["Name", "Hired", "Phone", "Rate"],
        ["Ann", datetime(2024, 3, 15), 12345678, 12.5],
    ])
    _make_excel_file(src, {"Staff": frame})
    sheet = load_parsed_sheet(src)
    assert sheet.headers == ["Name", "Hired", "Phone", "Rate"]
    assert sheet.rows == [["Ann", "2024-03-15", "12345678", "12.5"]]


def test_named_sheet_and_header_row(temp_workdir: Path):
    src = temp_workdir / "data" / "book.xlsx"
    other = pd.DataFrame([["x"]])
    staff = pd.DataFrame([["Exported 2024", None], ["Name", "Email"], ["Ann", "ann@example.com"]])
    _make_excel_file(src, {"Other": other, "Staff": staff})
    sheet = load_parsed_sheet(src, sheet="Staff", header_row=2)
    assert sheet.headers == ["Name", "Email"]
    assert sheet.rows == [["Ann", "ann@example.com"]]


def test_duplicate_and_blank_headers_made_unique():
    df = pd.DataFrame([["Name", "", "Name", "Name"], ["a", "b", "c", "d"]])
    sheet = normalize_sheet(df)
    assert sheet.headers == ["Name", "Column 2", "Name (2)", "Name (3)"]


def test_trailing_empty_columns_dropped():
    df = pd.DataFrame([["Name", "", ""], ["Ann", "", ""], ["Bo", "", ""]])
    sheet = normalize_sheet(df)
    assert sheet.headers == ["Name"]
    assert sheet.rows == [["Ann"], ["Bo"]]


def test_missing_or_empty_header_row():
    with pytest.raises(SheetHeaderError):
        normalize_sheet(pd.DataFrame([["Name"]]), header_row=3)
    with pytest.raises(SheetHeaderError):
        normalize_sheet(pd.DataFrame([["", ""]]))


def test_unsupported_suffix(temp_workdir: Path):
    src = temp_workdir / "data" / "staff.txt"
    src.write_text("Name\n", encoding="utf-8")
    with pytest.raises(UnsupportedFileError):
        load_parsed_sheet(src)


def test_generated_header_names_never_collide():
    df = pd.DataFrame([["A", "A", "A (2)"], ["1", "2", "3"]])
    sheet = normalize_sheet(df)
    assert sheet.headers == ["A", "A (2)", "A (2) (2)"]
    assert sheet.sample(1) == [{"A": "1", "A (2)": "2", "A (2) (2)": "3"}]
