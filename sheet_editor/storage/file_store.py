from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any

from .backend import StorageError

"""File-backed document storage.

Layout under the storage directory::

    spreadsheet_<name>.json   one document record each
    spreadsheet_files.json    JSON list of known document names (save order)
"""

logger = logging.getLogger(__name__)

RECORD_PREFIX = "spreadsheet_"
INDEX_FILE = "spreadsheet_files.json"
# INDEX_FILE と衝突する名前
RESERVED_NAME = INDEX_FILE[len(RECORD_PREFIX):-len(".json")]

_UNSAFE_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f]')


def _check_name(name: str) -> str:
    if not name or not name.strip():
        raise StorageError("document name must not be empty")
    if _UNSAFE_CHARS.search(name) or name in (".", ".."):
        raise StorageError(f"document name contains unsupported characters: {name!r}")
    if name.casefold() == RESERVED_NAME:
        raise StorageError(f"document name is reserved: {name!r}")
    return name


class FileDocumentStorage:
    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def _record_path(self, name: str) -> Path:
        return self.directory / f"{RECORD_PREFIX}{_check_name(name)}.json"

    @property
    def _index_path(self) -> Path:
        return self.directory / INDEX_FILE

    def _write_json(self, path: Path, data: Any) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            tmp.write_text(json.dumps(data, ensure_ascii=False, indent=1), encoding="utf-8")
            os.replace(tmp, path)
        except OSError as e:
            raise StorageError(f"failed to write {path}: {e}") from e

    def list_documents(self) -> list[str]:
        if not self._index_path.exists():
            return []
        try:
            names = json.loads(self._index_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"failed to read document index: {e}") from e
        if not isinstance(names, list):
            raise StorageError(f"document index is not a list: {self._index_path}")
        return [str(n) for n in names]

    def save(self, name: str, record: dict[str, Any]) -> None:
        path = self._record_path(name)
        self._write_json(path, record)
        names = self.list_documents()
        if name not in names:
            names.append(name)
            self._write_json(self._index_path, names)
        logger.debug(f"document saved: {path}")

    def load(self, name: str) -> dict[str, Any]:
        path = self._record_path(name)
        if not path.exists():
            raise StorageError(f"document not found: {name}")
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"failed to read document {name}: {e}") from e
        if not isinstance(data, dict):
            raise StorageError(f"document {name} is not a JSON object")
        return data

    def delete(self, name: str) -> bool:
        path = self._record_path(name)
        existed = path.exists()
        if existed:
            try:
                path.unlink()
            except OSError as e:
                raise StorageError(f"failed to delete document {name}: {e}") from e
        names = self.list_documents()
        if name in names:
            names.remove(name)
            self._write_json(self._index_path, names)
            existed = True
        return existed
