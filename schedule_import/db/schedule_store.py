from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Protocol

import psycopg2

from ..models.schedule_record import ScheduleRecord

"""Storage collaborator for the reconciliation engine.

ScheduleStore is the interface the engine depends on; PostgresScheduleStore
implements it on a psycopg2 cursor whose connection runs in autocommit mode,
so BEGIN / SAVEPOINT / COMMIT issued here are the only transaction boundaries.

Error classification:
- StoreConnectionError: the connection or the transaction itself is gone.
  The engine treats it as fatal and rolls back the whole run.
- UpsertError: a statement for one row failed (constraint, bad data).
  The engine rolls back to the row savepoint and carries on.
"""

__all__ = [
    "ScheduleStore",
    "PostgresScheduleStore",
    "StoreError",
    "StoreConnectionError",
    "UpsertError",
    "UpsertResult",
]

ROW_SAVEPOINT = "schedule_import_row"
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")

# 自然キー以外の更新対象列 (ON CONFLICT 時)
MUTABLE_COLUMNS = (
    "start_time",
    "end_time",
    "role",
    "employee_type",
    "scheduled_hours",
    "region",
    "notes",
    "employee_id",
)
KEY_COLUMNS = ("store_number", "date", "employee_name", "shift_time")


class StoreError(Exception):
    pass


class StoreConnectionError(StoreError):
    """Connection / transaction level failure. Fatal for the import run."""


class UpsertError(StoreError):
    """Statement failure scoped to a single record."""


@dataclass(frozen=True)
class UpsertResult:
    inserted: bool  # False = 既存行を更新


class ScheduleStore(Protocol):
    def begin(self) -> None: ...
    def commit(self) -> None: ...
    def rollback(self) -> None: ...
    def savepoint(self) -> None: ...
    def release_savepoint(self) -> None: ...
    def rollback_to_savepoint(self) -> None: ...
    def store_exists(self, store_number: int) -> bool: ...
    def upsert_schedule_record(self, record: ScheduleRecord) -> UpsertResult: ...


def _check_identifier(name: str) -> str:
    if not _IDENTIFIER_RE.match(name):
        raise ValueError(f"invalid table name: {name!r}")
    return name


class PostgresScheduleStore:
    """ScheduleStore backed by a psycopg2 cursor."""

    def __init__(self, cursor: Any, schedule_table: str = "schedule_entries", stores_table: str = "stores") -> None:
        self.cursor = cursor
        self.schedule_table = _check_identifier(schedule_table)
        self.stores_table = _check_identifier(stores_table)
        self._upsert_sql = self._build_upsert_sql()

    def _build_upsert_sql(self) -> str:
        insert_cols = KEY_COLUMNS + MUTABLE_COLUMNS + ("published",)
        placeholders = ", ".join(["%s"] * (len(insert_cols) - 1) + ["TRUE"])
        updates = ", ".join(f"{c} = EXCLUDED.{c}" for c in MUTABLE_COLUMNS)
        # xmax = 0 -> 新規挿入行 (更新時は旧タプルの xmax が入る)
        return (
            f"INSERT INTO {self.schedule_table} ({', '.join(insert_cols)}) "
            f"VALUES ({placeholders}) "
            f"ON CONFLICT ({', '.join(KEY_COLUMNS)}) "
            f"DO UPDATE SET {updates}, updated_at = NOW() "
            "RETURNING (xmax = 0) AS inserted"
        )

    def _connection_closed(self) -> bool:
        conn = getattr(self.cursor, "connection", None)
        return bool(getattr(conn, "closed", 0)) if conn is not None else False

    def _execute(self, sql: str, params: tuple[Any, ...] | None = None, *, fatal: bool = False) -> None:
        if self._connection_closed():
            raise StoreConnectionError("database connection is closed")
        try:
            self.cursor.execute(sql, params)
        except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
            raise StoreConnectionError(str(e).strip()) from e
        except psycopg2.Error as e:
            if fatal:
                raise StoreConnectionError(str(e).strip()) from e
            raise UpsertError(str(e).strip()) from e

    def begin(self) -> None:
        self._execute("BEGIN", fatal=True)

    def commit(self) -> None:
        self._execute("COMMIT", fatal=True)

    def rollback(self) -> None:
        self._execute("ROLLBACK", fatal=True)

    def savepoint(self) -> None:
        self._execute(f"SAVEPOINT {ROW_SAVEPOINT}", fatal=True)

    def release_savepoint(self) -> None:
        self._execute(f"RELEASE SAVEPOINT {ROW_SAVEPOINT}", fatal=True)

    def rollback_to_savepoint(self) -> None:
        self._execute(f"ROLLBACK TO SAVEPOINT {ROW_SAVEPOINT}", fatal=True)

    def store_exists(self, store_number: int) -> bool:
        self._execute(f"SELECT 1 FROM {self.stores_table} WHERE store_number = %s", (store_number,))
        return self.cursor.fetchone() is not None

    def upsert_schedule_record(self, record: ScheduleRecord) -> UpsertResult:
        params = (
            record.store_number,
            record.date,
            record.employee_name,
            record.shift_time,
            record.start_time,
            record.end_time,
            record.role,
            record.employee_type,
            record.scheduled_hours,
            record.region,
            record.notes,
            record.employee_id,
        )
        self._execute(self._upsert_sql, params)
        row = self.cursor.fetchone()
        if row is None:  # pragma: no cover - RETURNING always yields one row
            raise UpsertError("upsert returned no row")
        return UpsertResult(inserted=bool(row[0]))
