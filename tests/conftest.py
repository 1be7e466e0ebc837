# Shared pytest fixtures
from __future__ import annotations

import io
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from schedule_import.db.schedule_store import StoreConnectionError, UpsertError, UpsertResult
from schedule_import.logging.init import reset_logging
from schedule_import.models.schedule_record import NaturalKey, ScheduleRecord

_MISSING = object()


class InMemoryScheduleStore:
    """Transactional fake of the storage collaborator.

    Writes are journaled so ROLLBACK / ROLLBACK TO SAVEPOINT undo exactly what
    happened after the matching BEGIN / SAVEPOINT. Savepoints follow the
    PostgreSQL rules: ROLLBACK TO keeps the savepoint, RELEASE drops it.
    """

    def __init__(self, store_numbers: tuple[int, ...] | list[int] | set[int] = ()) -> None:
        self.stores: set[int] = set(store_numbers)
        self.records: dict[NaturalKey, ScheduleRecord] = {}
        self._journal: list[tuple[NaturalKey, Any]] | None = None
        self._savepoints: list[int] = []
        self.commits = 0
        self.rollbacks = 0
        self.upsert_calls = 0
        # failure injection
        self.upsert_errors: dict[str, Exception] = {}  # employee_name -> exception
        self.lose_connection_on_upsert: int | None = None  # n 回目の upsert で接続断
        self.fail_commit: Exception | None = None
        self.fail_begin: Exception | None = None

    @property
    def in_transaction(self) -> bool:
        return self._journal is not None

    def _require_tx(self) -> list[tuple[NaturalKey, Any]]:
        if self._journal is None:
            raise StoreConnectionError("no transaction in progress")
        return self._journal

    def _undo_to(self, mark: int) -> None:
        journal = self._require_tx()
        while len(journal) > mark:
            key, previous = journal.pop()
            if previous is _MISSING:
                del self.records[key]
            else:
                self.records[key] = previous

    def begin(self) -> None:
        if self.fail_begin is not None:
            raise self.fail_begin
        if self._journal is not None:
            raise StoreConnectionError("transaction already in progress")
        self._journal = []
        self._savepoints = []

    def commit(self) -> None:
        self._require_tx()
        if self.fail_commit is not None:
            raise self.fail_commit
        self._journal = None
        self._savepoints = []
        self.commits += 1

    def rollback(self) -> None:
        self._undo_to(0)
        self._journal = None
        self._savepoints = []
        self.rollbacks += 1

    def savepoint(self) -> None:
        self._savepoints.append(len(self._require_tx()))

    def release_savepoint(self) -> None:
        self._savepoints.pop()

    def rollback_to_savepoint(self) -> None:
        self._undo_to(self._savepoints[-1])

    def store_exists(self, store_number: int) -> bool:
        self._require_tx()
        return store_number in self.stores

    def upsert_schedule_record(self, record: ScheduleRecord) -> UpsertResult:
        journal = self._require_tx()
        self.upsert_calls += 1
        if self.lose_connection_on_upsert is not None and self.upsert_calls >= self.lose_connection_on_upsert:
            raise StoreConnectionError("server closed the connection unexpectedly")
        key = record.natural_key
        previous = self.records.get(key, _MISSING)
        journal.append((key, previous))
        self.records[key] = record
        if record.employee_name in self.upsert_errors:
            # 文の途中で失敗した想定: 書き込み後に例外 (savepoint で巻き戻されること)
            raise self.upsert_errors[record.employee_name]
        return UpsertResult(inserted=previous is _MISSING)


@pytest.fixture(autouse=True)
def _reset_logging_state():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """preferred_sheets:
  - shift detail
max_rows: 1000
field_aliases:
  store_number: [store number, store, site, scheduled site]
  date: [date, scheduled date]
tables:
  schedule: schedule_entries
  stores: stores
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: pharmacy
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def store() -> InMemoryScheduleStore:
    return InMemoryScheduleStore(store_numbers={1001, 1002})


@pytest.fixture()
def make_workbook() -> Callable[..., bytes]:
    """Build an .xlsx in memory. ``sheets`` maps sheet name -> rows (header first)."""
    def _make(sheets: dict[str, list[list[object]]]) -> bytes:
        buf = io.BytesIO()
        with pd.ExcelWriter(buf, engine="openpyxl") as writer:
            for sheet, rows in sheets.items():
                pd.DataFrame(rows).to_excel(writer, sheet_name=sheet, header=False, index=False)
        return buf.getvalue()
    return _make


@pytest.fixture()
def upsert_error() -> UpsertError:
    return UpsertError('null value in column "region" violates not-null constraint')


@pytest.fixture()
def store_factory() -> type[InMemoryScheduleStore]:
    return InMemoryScheduleStore
