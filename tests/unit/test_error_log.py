from __future__ import annotations

import json
import re
from pathlib import Path

import pytest

from schedule_import.logging.error_log import ErrorLogBuffer
from schedule_import.models.error_record import ERROR_TYPES, ErrorRecord


def test_error_record_create_and_json():
    rec = ErrorRecord.create(file="july.xlsx", sheet="Shift Detail", row=5, error_type="ROW_UPSERT_ERROR", message="店舗 重複")
    assert rec.timestamp.endswith("Z")
    obj = json.loads(rec.to_json_line())
    assert obj == {
        "timestamp": rec.timestamp,
        "file": "july.xlsx",
        "sheet": "Shift Detail",
        "row": 5,
        "error_type": "ROW_UPSERT_ERROR",
        "message": "店舗 重複",
    }
    assert "店舗" in rec.to_json_line()  # ensure_ascii=False


def test_flush_empty_buffer_creates_nothing(tmp_path: Path):
    buf = ErrorLogBuffer(logs_dir=tmp_path / "logs")
    assert buf.flush() is None
    assert not (tmp_path / "logs").exists()


def test_flush_writes_jsonl(tmp_path: Path):
    buf = ErrorLogBuffer(logs_dir=tmp_path / "logs")
    buf.append(ErrorRecord.create("f.xlsx", "S", 2, "ROW_UPSERT_ERROR", "a"))
    buf.append(ErrorRecord.create("f.xlsx", "S", -1, "IMPORT_ABORTED", "b"))
    assert len(buf) == 2

    path = buf.flush()
    assert path is not None
    assert re.fullmatch(r"errors-\d{8}-\d{6}\.log", path.name)
    lines = path.read_text(encoding="utf-8").splitlines()
    assert [json.loads(line)["row"] for line in lines] == [2, -1]
    assert len(buf) == 0

    # 2 回目の flush は同じファイルに追記
    buf.append(ErrorRecord.create("f.xlsx", "S", 9, "ROW_UPSERT_ERROR", "c"))
    assert buf.flush() == path
    assert len(path.read_text(encoding="utf-8").splitlines()) == 3


def test_records_returns_copy():
    buf = ErrorLogBuffer()
    buf.append(ErrorRecord.create("f", "s", 1, "ROW_UPSERT_ERROR", "m"))
    buf.records.clear()
    assert len(buf) == 1


def test_error_type_vocabulary():
    assert ERROR_TYPES == {"ROW_UPSERT_ERROR", "IMPORT_ABORTED", "TRANSACTION_ROLLBACK_ERROR"}


@pytest.mark.parametrize("error_type", ["X", "", "row_upsert_error"])
def test_unknown_error_type_rejected(error_type):
    with pytest.raises(ValueError, match="unknown error_type"):
        ErrorRecord.create("f.xlsx", "S", 2, error_type, "m")


def test_counts_by_type():
    buf = ErrorLogBuffer()
    assert buf.counts_by_type() == {}
    for row in (4, 7):
        buf.append(ErrorRecord.create("f.xlsx", "S", row, "ROW_UPSERT_ERROR", "dup"))
    buf.append(ErrorRecord.create("f.xlsx", "S", -1, "IMPORT_ABORTED", "lost connection"))
    counts = buf.counts_by_type()
    assert counts == {"IMPORT_ABORTED": 1, "ROW_UPSERT_ERROR": 2}
    assert list(counts) == ["IMPORT_ABORTED", "ROW_UPSERT_ERROR"]
