from __future__ import annotations

from typing import Any, Protocol

from ..models.config_models import StorageConfig

"""Storage backend interface and factory.

A backend keeps one document record per name plus the list of known names.
"""


class StorageError(Exception):
    pass


class DocumentStorage(Protocol):
    def save(self, name: str, record: dict[str, Any]) -> None: ...

    def load(self, name: str) -> dict[str, Any]: ...

    def list_documents(self) -> list[str]: ...

    def delete(self, name: str) -> bool: ...


def open_storage(config: StorageConfig, *, dsn: str | None = None) -> DocumentStorage:
    """Backend for ``config.backend`` (``file`` or ``postgres``)."""
    if config.backend == "file":
        from .file_store import FileDocumentStorage

        return FileDocumentStorage(config.directory)
    if config.backend == "postgres":
        from .postgres_store import PostgresDocumentStorage, resolve_dsn

        return PostgresDocumentStorage(dsn or resolve_dsn(config.database), table=config.table)
    raise StorageError(f"unknown storage backend: {config.backend}")
