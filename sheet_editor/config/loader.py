from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    DEFAULT_PLUGINS,
    DatabaseConfig,
    EditorConfig,
    StorageConfig,
)

"""Editor config loader.

Responsibilities:
- Load YAML config/editor.yml
- Validate keys against editor_config_schema.json (no unknown keys)
- Apply defaults for everything omitted
"""

DEFAULT_CONFIG_PATH = Path("config") / "editor.yml"
SCHEMA_PATH = Path(__file__).parent / "editor_config_schema.json"


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against JSON schema.

    Raises:
        ConfigError: If the schema file is missing or not valid JSON, or the
            config data fails schema validation (unknown keys, wrong types,
            out-of-range values).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        location = "/".join(str(p) for p in e.absolute_path) or "<root>"
        raise ConfigError(f"config validation failed at {location}: {e.message}") from e


def _database_config(raw: dict[str, Any]) -> DatabaseConfig:
    return DatabaseConfig(
        host=raw.get("host"),
        port=raw.get("port"),
        user=raw.get("user"),
        password=raw.get("password"),
        database=raw.get("database"),
        dsn=raw.get("dsn"),
    )


def config_from_dict(data: dict[str, Any]) -> EditorConfig:
    """Build an EditorConfig from already-parsed data (validated here)."""
    _validate_config_schema(data)

    defaults = EditorConfig()
    storage_raw = data.get("storage", {})
    storage_defaults = StorageConfig()
    storage = StorageConfig(
        backend=storage_raw.get("backend", storage_defaults.backend),
        directory=storage_raw.get("directory", storage_defaults.directory),
        table=storage_raw.get("table", storage_defaults.table),
        database=_database_config(storage_raw.get("database", {})),
    )
    plugins = data.get("enabled_plugins")
    return EditorConfig(
        default_rows=data.get("default_rows", defaults.default_rows),
        default_cols=data.get("default_cols", defaults.default_cols),
        default_sheet_name=data.get("default_sheet_name", defaults.default_sheet_name),
        default_filename=data.get("default_filename", defaults.default_filename),
        history_limit=data.get("history_limit", defaults.history_limit),
        enabled_plugins=tuple(plugins) if plugins is not None else DEFAULT_PLUGINS,
        storage=storage,
    )


def load_config(path: Path | None = None, *, missing_ok: bool = True) -> EditorConfig:
    """Load and validate the editor config.

    A missing file yields the defaults unless ``missing_ok`` is False; a file
    that exists but does not parse or validate always raises ConfigError.
    """
    path = path or DEFAULT_CONFIG_PATH
    if not path.exists():
        if missing_ok:
            return EditorConfig()
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping: {path}")
    return config_from_dict(data)
