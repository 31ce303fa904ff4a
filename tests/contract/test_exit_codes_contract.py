from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

from sheet_editor.cli.__main__ import (
    EXIT_FATAL,
    EXIT_PARTIAL_FAILURE,
    EXIT_SUCCESS_ALL,
    main as cli_main,
)
from sheet_editor.excel.grid_io import GridIOError, write_csv_grid

"""Exit code contract tests."""


def _store_document(temp_workdir: Path, name: str, sheets: dict[str, list[list[object]]]) -> None:
    docs = temp_workdir / "documents"
    record = {"sheets": list(sheets), "sheetData": sheets}
    (docs / f"spreadsheet_{name}.json").write_text(json.dumps(record), encoding="utf-8")
    index = docs / "spreadsheet_files.json"
    names = json.loads(index.read_text(encoding="utf-8")) if index.exists() else []
    index.write_text(json.dumps(names + [name]), encoding="utf-8")


def test_exit_code_fatal_on_invalid_config(write_config: Path, capsys):
    write_config.write_text("history_limit: 0\n", encoding="utf-8")
    code = cli_main(["list"])
    captured = capsys.readouterr()
    assert code == EXIT_FATAL
    assert "ERROR config:" in captured.out


def test_exit_code_success_list(write_config: Path, temp_workdir: Path, capsys):
    _store_document(temp_workdir, "book", {"s": [["a"]]})
    code = cli_main(["list"])
    out = capsys.readouterr().out
    assert code == EXIT_SUCCESS_ALL
    assert "book" in out.splitlines()


def test_exit_code_fatal_on_missing_document(write_config: Path, capsys):
    assert cli_main(["summary", "nope"]) == EXIT_FATAL
    assert "ERROR summary: document not found: nope" in capsys.readouterr().out
    assert cli_main(["delete", "nope"]) == EXIT_FATAL


def test_exit_code_fatal_on_corrupt_record(write_config: Path, temp_workdir: Path, capsys):
    (temp_workdir / "documents" / "spreadsheet_bad.json").write_text('{"sheets": []}', encoding="utf-8")
    assert cli_main(["summary", "bad"]) == EXIT_FATAL
    assert "invalid document record" in capsys.readouterr().out


def test_exit_code_partial_export(write_config: Path, temp_workdir: Path, capsys):
    _store_document(temp_workdir, "book", {"ok": [["a"]], "broken": [["b"]]})

    def flaky_write(grid, path):
        if "broken" in path.name:
            raise GridIOError("disk full")
        return write_csv_grid(grid, path)

    with patch("sheet_editor.cli.__main__.write_csv_grid", side_effect=flaky_write):
        code = cli_main(["export", "book", "--out", str(temp_workdir / "out")])
    out = capsys.readouterr().out
    assert code == EXIT_PARTIAL_FAILURE
    assert "ERROR export broken: disk full" in out
    assert (temp_workdir / "out" / "book_ok.csv").exists()


def test_exit_code_fatal_on_unreadable_import(write_config: Path, temp_workdir: Path):
    bad = temp_workdir / "notes.docx"
    bad.write_text("x", encoding="utf-8")
    assert cli_main(["import", str(bad)]) == EXIT_FATAL


def test_debug_flag_enables_debug_lines(write_config: Path, capsys):
    assert cli_main(["--debug", "list"]) == EXIT_SUCCESS_ALL
    assert "DEBUG debug mode enabled" in capsys.readouterr().out
