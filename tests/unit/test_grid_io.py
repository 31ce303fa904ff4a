from __future__ import annotations
import pandas as pd
import pytest
from pathlib import Path

from sheet_editor.excel.grid_io import (
    GridIOError,
    frame_to_grid,
    grid_to_frame,
    read_csv_grid,
    read_workbook,
    write_csv_grid,
    write_workbook,
)


def test_frame_to_grid_pads_and_converts():
    df = pd.DataFrame([["a", 1.5], [None, float("nan")]])
    grid = frame_to_grid(df, min_rows=3, min_cols=3)
    assert grid == [["a", 1.5, ""], ["", "", ""], ["", "", ""]]
    assert type(grid[0][1]) is float


def test_frame_to_grid_timestamps_become_iso():
    df = pd.DataFrame([[pd.Timestamp("2024-01-31 10:00:00")]])
    assert frame_to_grid(df) == [["2024-01-31T10:00:00"]]


def test_grid_to_frame_trims_trailing_blanks():
    df = grid_to_frame([["a", "", ""], ["", "b", ""], ["", "", ""]])
    assert df.shape == (2, 2)
    assert grid_to_frame([["a", ""]], trim=False).shape == (1, 2)


def test_csv_round_trip(tmp_path: Path):
    path = write_csv_grid([["name", "qty", ""], ["apple", 3, ""], ["", "", ""]], tmp_path / "out" / "s.csv")
    assert path.read_text(encoding="utf-8").splitlines() == ["name,qty", "apple,3"]
    grid = read_csv_grid(path, min_rows=3, min_cols=3)
    assert grid == [["name", "qty", ""], ["apple", "3", ""], ["", "", ""]]


def test_read_empty_csv(tmp_path: Path):
    path = tmp_path / "empty.csv"
    path.write_text("", encoding="utf-8")
    assert read_csv_grid(path, min_rows=2, min_cols=2) == [["", ""], ["", ""]]


def test_read_workbook_csv_and_tsv(tmp_path: Path):
    csv = tmp_path / "prices.csv"
    csv.write_text("a,b\n1,2\n", encoding="utf-8")
    assert read_workbook(csv) == {"prices": [["a", "b"], ["1", "2"]]}
    tsv = tmp_path / "prices.tsv"
    tsv.write_text("a\tb\n", encoding="utf-8")
    assert read_workbook(tsv) == {"prices": [["a", "b"]]}


def test_xlsx_round_trip(tmp_path: Path):
    long_name = "a-very-long-sheet-name-that-excel-rejects"
    path = write_workbook({"S1": [["a", 1], ["", 2.5]], long_name: [["x"]]}, tmp_path / "book.xlsx")
    sheets = read_workbook(path)
    assert list(sheets) == ["S1", long_name[:31]]
    grid = sheets["S1"]
    assert grid[0][0] == "a"
    assert grid[0][1] == 1
    assert grid[1][0] == ""
    assert grid[1][1] == 2.5


def test_unsupported_and_missing_files(tmp_path: Path):
    with pytest.raises(GridIOError):
        read_workbook(tmp_path / "notes.docx")
    with pytest.raises(GridIOError):
        read_workbook(tmp_path / "missing.csv")
    with pytest.raises(GridIOError):
        read_workbook(tmp_path / "missing.xlsx")
