from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the spreadsheet editor core.

The loader in ``sheet_editor/config/loader.py`` builds these from YAML after
schema validation; everything else in the package only sees these types.
"""

DEFAULT_PLUGINS: tuple[str, ...] = (
    "formatting",
    "conditional-format",
    "data-validation",
    "filtering",
    "comments",
    "chart",
)


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class StorageConfig:
    backend: str = "file"  # file | postgres
    directory: str = "./documents"  # file backend のみ
    table: str = "spreadsheet_documents"  # postgres backend のみ
    database: DatabaseConfig = field(default_factory=DatabaseConfig)


@dataclass(frozen=True)
class EditorConfig:
    """Root configuration object for an editor session."""
    default_rows: int = 50
    default_cols: int = 26
    default_sheet_name: str = "sheet1"
    default_filename: str = "新しいスプレッドシート"
    history_limit: int | None = None  # undo スタック上限 (None は無制限、古いものから破棄)
    enabled_plugins: tuple[str, ...] = DEFAULT_PLUGINS
    storage: StorageConfig = field(default_factory=StorageConfig)
