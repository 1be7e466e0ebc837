from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    DEFAULT_MAX_ROWS,
    DEFAULT_PREFERRED_SHEETS,
    DatabaseConfig,
    FieldAliases,
    ImportConfig,
    TableConfig,
)

"""Config loader.

Responsibilities:
- Load YAML config/import.yml
- Validate keys and types against config_schema.json (additionalProperties: false)
- Apply defaults (built-in alias lists, preferred sheets, row cap, table names)
"""

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/import.yml")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against JSON schema.

    Raises:
        ConfigError: If the schema file is missing or not valid JSON, or the
            config data fails schema validation.
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def build_config(data: dict[str, Any]) -> ImportConfig:
    """Build an ImportConfig from already-parsed config data."""
    _validate_config_schema(data)

    try:
        aliases = FieldAliases.from_mapping(data.get("field_aliases"))
    except ValueError as e:  # pragma: no cover - schema already rejects unknown fields
        raise ConfigError(str(e)) from e

    sheets_raw = data.get("preferred_sheets")
    preferred = (
        tuple(s.strip().lower() for s in sheets_raw) if sheets_raw is not None else DEFAULT_PREFERRED_SHEETS
    )
    tables_raw = data.get("tables", {})
    db_raw = data.get("database", {})
    return ImportConfig(
        field_aliases=aliases,
        preferred_sheets=preferred,
        max_rows=data.get("max_rows", DEFAULT_MAX_ROWS),
        tables=TableConfig(
            schedule=tables_raw.get("schedule", "schedule_entries"),
            stores=tables_raw.get("stores", "stores"),
        ),
        database=DatabaseConfig(
            host=db_raw.get("host"),
            port=db_raw.get("port"),
            user=db_raw.get("user"),
            password=db_raw.get("password"),
            database=db_raw.get("database"),
            dsn=db_raw.get("dsn"),
        ),
    )


def load_config(path: Path) -> ImportConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping, got {type(data).__name__}")
    return build_config(data)
