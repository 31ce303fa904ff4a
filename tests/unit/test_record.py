from __future__ import annotations
import json
import pytest

from sheet_editor.models.cell_range import CellRange
from sheet_editor.models.rules import Condition, ConditionType, ValidationSpec, ValidationType
from sheet_editor.services.document_store import DocumentStore
from sheet_editor.storage.record import (
    RecordFormatError,
    document_from_record,
    document_to_record,
    validate_record,
)


def _populated(store: DocumentStore) -> DocumentStore:
    store.set_cell_value(0, 0, "name")
    store.set_cell_value(1, 0, 3.5)
    store.set_cell_style("sheet1", 0, 0, {"fontWeight": "bold"})
    store.add_conditional_format_rule(
        "sheet1", CellRange(1, 0, 4, 0), Condition(ConditionType.GREATER_THAN, value=3), {"color": "red"}
    )
    store.set_data_validation_rule("sheet1", CellRange(1, 0, 4, 0), ValidationSpec(ValidationType.NUMBER, min=0))
    store.set_comment("sheet1", 0, 0, "header")
    store.set_protected_cells("sheet1", ["0,0"])
    store.add_chart({"type": "bar", "dataRange": CellRange(0, 0, 4, 0)})
    store.create_sheet("other")
    return store


def test_record_is_json_and_schema_valid(store: DocumentStore):
    record = document_to_record(_populated(store).document)
    json.dumps(record, ensure_ascii=False)
    validate_record(record)
    assert record["sheets"] == ["sheet1", "other"]
    assert record["currentSheet"] == "sheet1"
    assert record["cellStyles"]["sheet1"]["0,0"] == {"fontWeight": "bold"}
    assert list(record["dataValidations"]["sheet1"]) == ["1,0:4,0"]
    assert record["protectedCells"] == {"sheet1": {"0,0": True}}


def test_record_round_trip_restores_everything(store: DocumentStore):
    original = _populated(store).document
    record = document_to_record(original)
    doc = document_from_record(json.loads(json.dumps(record)))

    assert doc.sheets == original.sheets
    assert doc.sheet_data == original.sheet_data
    assert doc.cell_styles == original.cell_styles
    assert doc.conditional_formats["sheet1"].to_records() == original.conditional_formats["sheet1"].to_records()
    assert doc.data_validations["sheet1"].to_records() == original.data_validations["sheet1"].to_records()
    assert doc.comments["sheet1"]["0,0"].text == "header"
    assert doc.charts[0].to_dict() == original.charts[0].to_dict()
    assert not doc.is_modified
    assert document_to_record(doc) == record


def test_minimal_record_gets_defaults():
    doc = document_from_record({"sheets": ["a"], "sheetData": {"a": [[1]]}}, default_filename="untitled")
    assert doc.current_sheet == "a"
    assert doc.filename == "untitled"
    assert doc.cell_styles == {}
    assert doc.last_saved is None


def test_unknown_sheet_maps_are_dropped():
    doc = document_from_record(
        {
            "sheets": ["a"],
            "currentSheet": "gone",
            "sheetData": {"a": [[1]]},
            "comments": {"gone": {"0,0": {"text": "x"}}},
        }
    )
    assert doc.current_sheet == "a"
    assert doc.comments == {}


@pytest.mark.parametrize(
    "record",
    [
        {},
        {"sheets": []},
        {"sheets": ["a"]},
        {"sheets": ["a", "a"], "sheetData": {"a": [[1]]}},
        {"sheets": ["a"], "sheetData": {"b": [[1]]}},
        {"sheets": ["a"], "sheetData": {"a": [[1, 2], [3]]}},
        {"sheets": ["a"], "sheetData": {"a": [[1]]}, "protectedCells": {"a": {"A1": True}}},
    ],
)
def test_invalid_records(record: dict):
    with pytest.raises(RecordFormatError):
        document_from_record(record)


def test_legacy_cell_keyed_validation_rules():
    doc = document_from_record(
        {
            "sheets": ["a"],
            "sheetData": {"a": [["", ""], ["", ""]]},
            "dataValidations": {"a": {"1,1": {"type": "list", "options": ["x"], "errorStyle": "stop"}}},
        }
    )
    engine = doc.data_validations["a"]
    assert engine.list_source(1, 1) == ["x"]
    assert not engine.validate(1, 1, "y").valid
