from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, fields, replace

"""Config dataclasses for the schedule spreadsheet importer.

The header alias lists live here as an immutable value passed explicitly into
the header resolver / field normalizer. The loader in
schedule_import/config/loader.py builds these from config/import.yml.
"""

__all__ = [
    "DatabaseConfig",
    "FieldAliases",
    "ImportConfig",
    "TableConfig",
    "DEFAULT_PREFERRED_SHEETS",
    "DEFAULT_MAX_ROWS",
]

DEFAULT_PREFERRED_SHEETS: tuple[str, ...] = ("shift detail", "shift details", "employee shifts by site")
DEFAULT_MAX_ROWS = 200_000


def _normalize_aliases(aliases: Iterable[str]) -> tuple[str, ...]:
    # 順序保持で重複除去
    seen: dict[str, None] = {}
    for alias in aliases:
        key = str(alias).strip().lower()
        if key:
            seen.setdefault(key, None)
    return tuple(seen)


@dataclass(frozen=True)
class FieldAliases:
    """Ordered header aliases per logical schedule field.

    Earlier aliases win: the normalizer tries them in order and takes the
    first column whose cell is present and non-blank.
    """
    employee_name: tuple[str, ...] = ("employee name", "employee", "name")
    first_name: tuple[str, ...] = ("first name",)
    last_name: tuple[str, ...] = ("last name",)
    store_number: tuple[str, ...] = (
        "store number",
        "store",
        "site",
        "location number",
        "site number",
        "scheduled site",
    )
    date: tuple[str, ...] = ("date", "shift date", "work date", "scheduled date")
    start_time: tuple[str, ...] = ("shift start", "start time", "start")
    end_time: tuple[str, ...] = ("shift end", "end time", "end")
    notes: tuple[str, ...] = ("notes", "comment", "remarks")
    role: tuple[str, ...] = ("role", "position")
    employee_type: tuple[str, ...] = ("employee type",)
    region: tuple[str, ...] = ("region",)
    scheduled_hours: tuple[str, ...] = ("scheduled hours", "hours")
    employee_id: tuple[str, ...] = ("employee id",)

    @classmethod
    def field_names(cls) -> list[str]:
        return [f.name for f in fields(cls)]

    @classmethod
    def from_mapping(cls, overrides: Mapping[str, Iterable[str]] | None) -> FieldAliases:
        """Build aliases from a config mapping, falling back to defaults per field."""
        base = cls()
        if not overrides:
            return base
        unknown = set(overrides) - set(cls.field_names())
        if unknown:
            raise ValueError(f"unknown alias fields: {sorted(unknown)}")
        changes = {name: _normalize_aliases(values) for name, values in overrides.items()}
        return replace(base, **changes)


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
class TableConfig:
    schedule: str = "schedule_entries"
    stores: str = "stores"


@dataclass(frozen=True)
class ImportConfig:
    """Root configuration object for one import run."""
    field_aliases: FieldAliases = field(default_factory=FieldAliases)
    preferred_sheets: tuple[str, ...] = DEFAULT_PREFERRED_SHEETS  # 小文字化済
    max_rows: int = DEFAULT_MAX_ROWS  # 安全上限
    tables: TableConfig = field(default_factory=TableConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
