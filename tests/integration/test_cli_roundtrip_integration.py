from __future__ import annotations

import json
from pathlib import Path

import pandas as pd

from sheet_editor.cli.__main__ import EXIT_SUCCESS_ALL, main as cli_main

"""CLI import -> export -> summary over the file store."""


def _write_csv(temp_workdir: Path) -> Path:
    path = temp_workdir / "sales.csv"
    path.write_text("region,amount\neast,120\nwest,80\n", encoding="utf-8")
    return path


def test_import_csv_then_summary(write_config: Path, temp_workdir: Path, capsys):
    src = _write_csv(temp_workdir)
    assert cli_main(["import", str(src)]) == EXIT_SUCCESS_ALL
    out = capsys.readouterr().out
    assert "SUMMARY sheets=1 cells=6 rules=0/0 comments=0 charts=0 modified=0" in out

    record = json.loads((temp_workdir / "documents" / "spreadsheet_sales.json").read_text(encoding="utf-8"))
    assert record["sheets"] == ["sales"]
    grid = record["sheetData"]["sales"]
    assert len(grid) == 5 and len(grid[0]) == 4
    assert grid[1][:2] == ["east", "120"]

    assert cli_main(["summary", "sales"]) == EXIT_SUCCESS_ALL
    assert "SUMMARY sheets=1 cells=6" in capsys.readouterr().out


def test_export_csv_trims_padding(write_config: Path, temp_workdir: Path):
    cli_main(["import", str(_write_csv(temp_workdir)), "--name", "q1"])
    assert cli_main(["export", "q1", "--out", str(temp_workdir / "out")]) == EXIT_SUCCESS_ALL
    exported = (temp_workdir / "out" / "q1_sales.csv").read_text(encoding="utf-8")
    assert exported.splitlines() == ["region,amount", "east,120", "west,80"]


def test_xlsx_export_and_reimport(write_config: Path, temp_workdir: Path, capsys):
    cli_main(["import", str(_write_csv(temp_workdir)), "--name", "q1"])
    out_dir = temp_workdir / "out"
    assert cli_main(["export", "q1", "--out", str(out_dir), "--format", "xlsx"]) == EXIT_SUCCESS_ALL
    xlsx = out_dir / "q1.xlsx"
    frame = pd.read_excel(xlsx, sheet_name="sales", header=None, dtype=object)
    assert frame.iloc[1, 0] == "east"

    capsys.readouterr()
    assert cli_main(["import", str(xlsx), "--name", "q1-copy"]) == EXIT_SUCCESS_ALL
    assert "SUMMARY sheets=1 cells=6" in capsys.readouterr().out

    assert cli_main(["list"]) == EXIT_SUCCESS_ALL
    assert capsys.readouterr().out.splitlines()[:2] == ["q1", "q1-copy"]


def test_multi_sheet_workbook_import(write_config: Path, temp_workdir: Path, capsys):
    path = temp_workdir / "book.xlsx"
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        pd.DataFrame([["a", 1]]).to_excel(writer, sheet_name="first", header=False, index=False)
        pd.DataFrame([["b"]]).to_excel(writer, sheet_name="second", header=False, index=False)

    assert cli_main(["import", str(path)]) == EXIT_SUCCESS_ALL
    assert "SUMMARY sheets=2 cells=3" in capsys.readouterr().out
    record = json.loads((temp_workdir / "documents" / "spreadsheet_book.json").read_text(encoding="utf-8"))
    assert record["sheets"] == ["first", "second"]
    assert record["currentSheet"] == "first"
