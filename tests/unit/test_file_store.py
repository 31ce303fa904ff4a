from __future__ import annotations
import json
import pytest
from pathlib import Path

from sheet_editor.models.config_models import StorageConfig
from sheet_editor.storage.backend import StorageError, open_storage
from sheet_editor.storage.file_store import INDEX_FILE, RESERVED_NAME, FileDocumentStorage

RECORD = {"sheets": ["sheet1"], "sheetData": {"sheet1": [["a", 1]]}}


def test_save_load_list(tmp_path: Path):
    storage = FileDocumentStorage(tmp_path / "docs")
    storage.save("book", RECORD)
    storage.save("日本語", RECORD)
    storage.save("book", {**RECORD, "filename": "book"})

    assert storage.list_documents() == ["book", "日本語"]
    assert storage.load("book")["filename"] == "book"
    assert (tmp_path / "docs" / "spreadsheet_book.json").exists()
    assert json.loads((tmp_path / "docs" / INDEX_FILE).read_text(encoding="utf-8")) == ["book", "日本語"]
    assert not list((tmp_path / "docs").glob("*.tmp"))


def test_load_missing_raises(tmp_path: Path):
    storage = FileDocumentStorage(tmp_path)
    with pytest.raises(StorageError):
        storage.load("nope")
    assert storage.list_documents() == []


def test_delete(tmp_path: Path):
    storage = FileDocumentStorage(tmp_path)
    storage.save("a", RECORD)
    storage.save("b", RECORD)
    assert storage.delete("a")
    assert storage.list_documents() == ["b"]
    assert not storage.delete("a")


def test_delete_stale_index_entry(tmp_path: Path):
    storage = FileDocumentStorage(tmp_path)
    storage.save("a", RECORD)
    (tmp_path / "spreadsheet_a.json").unlink()
    assert storage.delete("a")
    assert storage.list_documents() == []


@pytest.mark.parametrize("name", ["", "   ", "../evil", "a/b", "c:d", ".."])
def test_unsafe_names_rejected(tmp_path: Path, name: str):
    storage = FileDocumentStorage(tmp_path)
    with pytest.raises(StorageError):
        storage.save(name, RECORD)


@pytest.mark.parametrize("name", ["files", "FILES"])
def test_index_name_is_reserved(tmp_path: Path, name: str):
    storage = FileDocumentStorage(tmp_path)
    storage.save("budget", RECORD)
    for op in (lambda: storage.save(name, RECORD), lambda: storage.load(name), lambda: storage.delete(name)):
        with pytest.raises(StorageError, match="reserved"):
            op()
    assert RESERVED_NAME == "files"
    assert storage.list_documents() == ["budget"]
    storage.save("files2", RECORD)
    assert storage.list_documents() == ["budget", "files2"]


def test_corrupt_files(tmp_path: Path):
    storage = FileDocumentStorage(tmp_path)
    (tmp_path / INDEX_FILE).write_text("{not json", encoding="utf-8")
    with pytest.raises(StorageError):
        storage.list_documents()
    (tmp_path / INDEX_FILE).write_text('{"a": 1}', encoding="utf-8")
    with pytest.raises(StorageError):
        storage.list_documents()
    (tmp_path / "spreadsheet_x.json").write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(StorageError):
        storage.load("x")


def test_open_storage_file_backend(tmp_path: Path):
    storage = open_storage(StorageConfig(backend="file", directory=str(tmp_path)))
    assert isinstance(storage, FileDocumentStorage)
    assert storage.directory == tmp_path
    with pytest.raises(StorageError):
        open_storage(StorageConfig(backend="s3"))
