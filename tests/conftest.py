# Shared pytest fixtures
from __future__ import annotations
import tempfile
from pathlib import Path
from typing import Any
import pytest

from sheet_editor.logging.error_log import ErrorLogBuffer
from sheet_editor.logging.init import reset_logging
from sheet_editor.models.config_models import EditorConfig
from sheet_editor.services.document_store import DocumentStore
from sheet_editor.services.editor import SpreadsheetEditor
from sheet_editor.services.message_channel import MessageChannel
from sheet_editor.services.plugin_registry import ExtensionRegistry
from sheet_editor.storage.file_store import FileDocumentStorage


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "documents").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """default_rows: 5
default_cols: 4
default_sheet_name: sheet1
history_limit: 10
enabled_plugins:
  - formatting
  - conditional-format
  - data-validation
  - filtering
  - comments
  - chart
storage:
  backend: file
  directory: ./documents
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "editor.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def small_config() -> EditorConfig:
    return EditorConfig(default_rows=5, default_cols=4, history_limit=10)


@pytest.fixture()
def error_buffer(tmp_path: Path) -> ErrorLogBuffer:
    return ErrorLogBuffer(logs_dir=tmp_path / "logs")


@pytest.fixture()
def channel(error_buffer: ErrorLogBuffer) -> MessageChannel:
    return MessageChannel(error_buffer)


@pytest.fixture()
def registry(channel: MessageChannel, error_buffer: ErrorLogBuffer) -> ExtensionRegistry:
    return ExtensionRegistry(channel=channel, error_buffer=error_buffer)


@pytest.fixture()
def store(small_config: EditorConfig, registry: ExtensionRegistry, error_buffer: ErrorLogBuffer) -> DocumentStore:
    return DocumentStore(small_config, registry=registry, error_buffer=error_buffer)


@pytest.fixture()
def editor(small_config: EditorConfig, tmp_path: Path, error_buffer: ErrorLogBuffer) -> SpreadsheetEditor:
    storage = FileDocumentStorage(tmp_path / "documents")
    return SpreadsheetEditor(small_config, storage=storage, error_buffer=error_buffer)


@pytest.fixture()
def filter_grid() -> list[list[Any]]:
    return [["A", 1], ["B", 2], ["A", 3]]


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    yield
    reset_logging()


class RecordingFormulaEngine:
    """FormulaEngine double that records every call."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []

    def add_sheet(self, name: str) -> None:
        self.calls.append(("add_sheet", name))

    def rename_sheet(self, old_name: str, new_name: str) -> None:
        self.calls.append(("rename_sheet", old_name, new_name))

    def remove_sheet(self, name: str) -> None:
        self.calls.append(("remove_sheet", name))

    def set_cell_contents(self, sheet: str, row: int, col: int, value: Any) -> None:
        self.calls.append(("set_cell_contents", sheet, row, col, value))


@pytest.fixture()
def formula_engine() -> RecordingFormulaEngine:
    return RecordingFormulaEngine()
