from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
from jsonschema.exceptions import ValidationError

from ..logging.error_log import ErrorLogBuffer
from ..models.document import Chart, Comment, Document
from ..services.conditional_format import ConditionalFormatEngine
from ..services.data_validation import DataValidationEngine

"""Persisted document record codec.

The record is a single JSON object (camelCase keys). ``sheets`` and
``sheetData`` are required; every other per-sheet map may be absent.
Rule engines are serialized through their own ``to_records``.
"""

SCHEMA_PATH = Path(__file__).parent / "record_schema.json"

_schema_cache: dict[str, Any] | None = None


class RecordFormatError(Exception):
    pass


def _schema() -> dict[str, Any]:
    global _schema_cache
    if _schema_cache is None:
        _schema_cache = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
    return _schema_cache


def validate_record(record: Any) -> None:
    """Raise RecordFormatError unless ``record`` matches the record schema."""
    try:
        jsonschema.validate(record, _schema())
    except ValidationError as e:
        location = "/".join(str(p) for p in e.absolute_path) or "<root>"
        raise RecordFormatError(f"invalid document record at {location}: {e.message}") from e


def document_to_record(doc: Document) -> dict[str, Any]:
    return {
        "sheets": list(doc.sheets),
        "currentSheet": doc.current_sheet,
        "filename": doc.filename,
        "lastSaved": doc.last_saved,
        "sheetData": {name: [list(row) for row in grid] for name, grid in doc.sheet_data.items()},
        "cellStyles": {
            name: {key: dict(style) for key, style in styles.items()}
            for name, styles in doc.cell_styles.items()
        },
        "conditionalFormats": {
            name: engine.to_records() for name, engine in doc.conditional_formats.items()
        },
        "charts": [c.to_dict() for c in doc.charts],
        "comments": {
            name: {key: c.to_dict() for key, c in comments.items()}
            for name, comments in doc.comments.items()
        },
        "protectedCells": {name: dict(cells) for name, cells in doc.protected_cells.items()},
        "dataValidations": {
            name: engine.to_records() for name, engine in doc.data_validations.items()
        },
    }


def document_from_record(
    record: dict[str, Any],
    *,
    error_buffer: ErrorLogBuffer | None = None,
    default_filename: str = "新しいスプレッドシート",
) -> Document:
    validate_record(record)

    sheets = list(record["sheets"])
    sheet_data = record["sheetData"]
    missing = [s for s in sheets if s not in sheet_data]
    if missing:
        raise RecordFormatError(f"sheetData missing for sheets: {missing}")
    for name in sheets:
        widths = {len(row) for row in sheet_data[name]}
        if len(widths) > 1:
            raise RecordFormatError(f"sheet {name!r} grid is not rectangular")

    current = record.get("currentSheet")
    if current not in sheets:
        current = sheets[0]

    def _only_known(mapping: dict[str, Any]) -> dict[str, Any]:
        return {k: v for k, v in mapping.items() if k in sheets}

    try:
        return Document(
            sheets=sheets,
            current_sheet=current,
            sheet_data={name: [list(row) for row in sheet_data[name]] for name in sheets},
            cell_styles={
                name: {key: dict(style) for key, style in styles.items()}
                for name, styles in _only_known(record.get("cellStyles") or {}).items()
            },
            conditional_formats={
                name: ConditionalFormatEngine.from_records(rules, error_buffer=error_buffer)
                for name, rules in _only_known(record.get("conditionalFormats") or {}).items()
            },
            charts=[Chart.from_dict(c) for c in record.get("charts") or []],
            comments={
                name: {key: Comment.from_dict(c) for key, c in comments.items()}
                for name, comments in _only_known(record.get("comments") or {}).items()
            },
            protected_cells={
                name: {key: bool(flag) for key, flag in cells.items()}
                for name, cells in _only_known(record.get("protectedCells") or {}).items()
            },
            data_validations={
                name: DataValidationEngine.from_records(rules, error_buffer=error_buffer)
                for name, rules in _only_known(record.get("dataValidations") or {}).items()
            },
            is_modified=False,
            filename=record.get("filename") or default_filename,
            last_saved=record.get("lastSaved"),
        )
    except (KeyError, ValueError) as e:
        raise RecordFormatError(f"invalid document record: {e}") from e
