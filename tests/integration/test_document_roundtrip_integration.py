from __future__ import annotations

import json
from pathlib import Path

from sheet_editor.models.cell_range import CellRange
from sheet_editor.services.editor import SpreadsheetEditor
from sheet_editor.storage.file_store import FileDocumentStorage

"""Save a fully decorated document to the file store and open it in a fresh session."""


def _decorate(editor: SpreadsheetEditor) -> None:
    editor.handle_changes([(0, 0, "", "region"), (0, 1, "", "sales"), (1, 0, "", "east"), (1, 1, "", 120)])
    editor.execute_command("format:apply", {"format": "bold", "range": "0,0:0,1"})
    editor.execute_command(
        "conditional-format:add",
        {"range": "1,1:4,1", "condition": {"type": "greaterThan", "value": 100}, "style": {"color": "green"}},
    )
    editor.execute_command("data-validation:set", {"range": "1,0:4,0", "rule": {"type": "list", "options": ["east", "west"]}})
    editor.execute_command("comment:set", {"row": 1, "col": 1, "text": "Q1 only"})
    editor.store.set_protected_cells("sheet1", ["0,0"])
    editor.store.add_chart({"type": "bar", "title": "Sales", "dataRange": CellRange(0, 0, 1, 1)})
    second = editor.store.create_sheet("notes")
    editor.store.set_cell_value(0, 0, "draft", sheet=second)


def test_save_and_reopen_restores_everything(editor: SpreadsheetEditor, small_config, tmp_path: Path):
    _decorate(editor)
    assert editor.store.is_modified
    editor.save_document("q1")
    saved_summary = editor.summary_line()
    assert saved_summary.endswith("modified=0")

    other = SpreadsheetEditor(small_config, storage=FileDocumentStorage(tmp_path / "documents"))
    other.open_document("q1")

    assert other.summary_line() == saved_summary
    assert other.store.sheets == ["sheet1", "notes"]
    assert other.store.get_cell(0, 0, "notes") == "draft"
    assert other.cell_style(0, 1) == {"fontWeight": "bold"}
    assert other.cell_style(1, 1) == {"color": "green"}
    assert other.cell_properties(1, 1) == {"comment": "Q1 only"}
    assert other.cell_properties(2, 0) == {"type": "dropdown", "source": ["east", "west"]}
    assert other.cell_properties(0, 0) == {"readOnly": True}
    assert other.store.charts_for_sheet("sheet1")[0].title == "Sales"

    # 復元したルールは引き続き編集を検証する
    assert not other.handle_cell_edit(2, 0, "", "north").committed
    assert not other.store.can_undo


def test_saved_record_is_plain_json(editor: SpreadsheetEditor, tmp_path: Path):
    _decorate(editor)
    editor.save_document("q1")
    docs = tmp_path / "documents"
    record = json.loads((docs / "spreadsheet_q1.json").read_text(encoding="utf-8"))
    assert record["filename"] == "q1"
    assert record["sheets"] == ["sheet1", "notes"]
    assert "1,0:4,0" in record["dataValidations"]["sheet1"]
    assert json.loads((docs / "spreadsheet_files.json").read_text(encoding="utf-8")) == ["q1"]


def test_resave_lists_once_and_delete(editor: SpreadsheetEditor):
    editor.handle_cell_edit(0, 0, "", "v1")
    editor.save_document("doc")
    editor.handle_cell_edit(0, 0, "v1", "v2")
    editor.save_document()
    assert editor.list_documents() == ["doc"]

    editor.new_document()
    editor.open_document("doc")
    assert editor.store.get_cell(0, 0) == "v2"
    assert editor.delete_document("doc")
    assert editor.list_documents() == []
