from __future__ import annotations

import logging
import os
import re
from contextlib import contextmanager
from typing import Any

from ..models.config_models import DatabaseConfig
from .backend import StorageError

"""PostgreSQL-backed document storage.

One row per document; the record is stored as ``jsonb``::

    CREATE TABLE IF NOT EXISTS <table> (
        name       text PRIMARY KEY,
        record     jsonb NOT NULL,
        created_at timestamptz NOT NULL DEFAULT now(),
        updated_at timestamptz NOT NULL DEFAULT now()
    )

The names list is the table itself (ordered by first save).
"""

try:  # pragma: no cover - optional until psycopg2 present at runtime
    import psycopg2
    from psycopg2.extras import Json
except Exception:  # pragma: no cover
    psycopg2 = None  # type: ignore
    Json = None  # type: ignore

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """Connection string from the environment, falling back to the config section.

    Order: DATABASE_URL / PGDSN, the config dsn, then PGHOST ... PGDATABASE
    with per-key fallback to the config values.
    """
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


class PostgresDocumentStorage:
    def __init__(self, dsn: str, *, table: str = "spreadsheet_documents", connect: Any = None) -> None:
        if not _IDENTIFIER.match(table):
            raise StorageError(f"invalid table name: {table!r}")
        self.dsn = dsn
        self.table = table
        # テストでは connect を差し替える
        self._connect = connect
        self._table_ready = False

    def _connection_factory(self):
        if self._connect is not None:
            return self._connect
        if psycopg2 is None:
            raise StorageError("psycopg2 not available")
        return psycopg2.connect

    @contextmanager
    def _cursor(self):
        try:
            conn = self._connection_factory()(self.dsn)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"failed to connect to database: {e}") from e
        try:
            cur = conn.cursor()
            try:
                if not self._table_ready:
                    cur.execute(
                        f"CREATE TABLE IF NOT EXISTS {self.table} ("
                        "name text PRIMARY KEY, "
                        "record jsonb NOT NULL, "
                        "created_at timestamptz NOT NULL DEFAULT now(), "
                        "updated_at timestamptz NOT NULL DEFAULT now())"
                    )
                    self._table_ready = True
                yield cur
                conn.commit()
            except StorageError:
                conn.rollback()
                raise
            except Exception as e:
                conn.rollback()
                raise StorageError(f"database error: {e}") from e
            finally:
                cur.close()
        finally:
            conn.close()

    def _adapt(self, record: dict[str, Any]) -> Any:
        return Json(record) if Json is not None else record

    def save(self, name: str, record: dict[str, Any]) -> None:
        if not name:
            raise StorageError("document name must not be empty")
        with self._cursor() as cur:
            cur.execute(
                f"INSERT INTO {self.table} (name, record) VALUES (%s, %s) "
                "ON CONFLICT (name) DO UPDATE SET record = EXCLUDED.record, updated_at = now()",
                (name, self._adapt(record)),
            )
        logger.debug(f"document saved to {self.table}: {name}")

    def load(self, name: str) -> dict[str, Any]:
        with self._cursor() as cur:
            cur.execute(f"SELECT record FROM {self.table} WHERE name = %s", (name,))
            row = cur.fetchone()
        if row is None:
            raise StorageError(f"document not found: {name}")
        record = row[0]
        if not isinstance(record, dict):
            raise StorageError(f"document {name} is not a JSON object")
        return record

    def list_documents(self) -> list[str]:
        with self._cursor() as cur:
            cur.execute(f"SELECT name FROM {self.table} ORDER BY created_at, name")
            return [r[0] for r in cur.fetchall()]

    def delete(self, name: str) -> bool:
        with self._cursor() as cur:
            cur.execute(f"DELETE FROM {self.table} WHERE name = %s", (name,))
            return cur.rowcount > 0
