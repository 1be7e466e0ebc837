from __future__ import annotations

from dataclasses import replace

import pytest

from schedule_import.models.processing_result import SkipReason
from schedule_import.models.row_data import PartialScheduleRecord
from schedule_import.models.schedule_record import ScheduleRecord
from schedule_import.excel.headers import HeaderIndex
from schedule_import.models.config_models import FieldAliases
from schedule_import.services.normalizer import normalize_row
from schedule_import.services.validator import MAX_STORE_NUMBER, check_parsed, check_presence, validate


def _partial(**overrides) -> PartialScheduleRecord:
    base = PartialScheduleRecord(
        employee_name="John Doe",
        store_number_raw="1001 - Springfield",
        store_number=1001,
        date_raw="45853",
        date="2025-07-15",
        start_time="9:00 AM",
        end_time="5:00 PM",
        shift_time="9:00 AM - 5:00 PM",
        role="Technician",
    )
    return replace(base, **overrides)


def test_validate_complete_row_builds_record():
    record = validate(_partial())
    assert isinstance(record, ScheduleRecord)
    assert record.natural_key == (1001, "2025-07-15", "John Doe", "9:00 AM - 5:00 PM")
    assert record.role == "Technician"


@pytest.mark.parametrize("overrides", [
    {"employee_name": None},
    {"employee_name": ""},
    {"store_number_raw": None, "store_number": None},
    {"store_number_raw": "  "},
    {"date_raw": None, "date": None},
    {"start_time": None, "end_time": None, "shift_time": None},
])
def test_missing_required_field(overrides):
    assert validate(_partial(**overrides)) is SkipReason.MISSING_REQUIRED_FIELD


def test_presence_is_checked_before_parse():
    # 日付も不正だが、名前欠落が優先される
    partial = _partial(employee_name=None, date_raw="garbage", date=None)
    assert validate(partial) is SkipReason.MISSING_REQUIRED_FIELD


def test_only_one_time_is_enough():
    assert isinstance(validate(_partial(end_time=None, shift_time="9:00 AM")), ScheduleRecord)
    assert isinstance(validate(_partial(start_time=None, shift_time="5:00 PM")), ScheduleRecord)


@pytest.mark.parametrize("raw,parsed", [
    ("abc", None),
    ("0", 0),
    ("-", None),
    # INTEGER 列に収まらない
    ("99999999999", 99999999999),
    ("2147483648", 2147483648),
])
def test_invalid_store_number(raw, parsed):
    assert validate(_partial(store_number_raw=raw, store_number=parsed)) is SkipReason.INVALID_STORE_NUMBER


def test_invalid_date():
    assert validate(_partial(date_raw="not a date", date=None)) is SkipReason.INVALID_DATE


def test_no_shift_time():
    assert validate(_partial(shift_time=None)) is SkipReason.NO_SHIFT_TIME


def test_stage_functions_individually():
    ok = _partial()
    assert check_presence(ok) is None
    assert check_parsed(ok) is None
    assert check_parsed(_partial(store_number=None, date=None)) is SkipReason.INVALID_STORE_NUMBER


def test_store_number_at_integer_limit_is_accepted():
    record = validate(_partial(store_number_raw=str(MAX_STORE_NUMBER), store_number=MAX_STORE_NUMBER))
    assert isinstance(record, ScheduleRecord)
    assert record.store_number == 2_147_483_647


def test_oversized_store_number_from_sheet_row():
    index = HeaderIndex.resolve(["Employee", "Store", "Date", "Start"])
    partial = normalize_row(["Jane", "99999999999", "2025-07-15", "9:00 AM"], index, FieldAliases())
    assert validate(partial) is SkipReason.INVALID_STORE_NUMBER


@pytest.mark.parametrize("date_cell", ["9:00 AM", "July", "5pm"])
def test_time_like_date_cell_is_invalid_date(date_cell):
    index = HeaderIndex.resolve(["Employee", "Store", "Date", "Start"])
    partial = normalize_row(["Jane", "1001", date_cell, "9:00 AM"], index, FieldAliases())
    assert partial.date_raw == date_cell
    assert partial.date is None
    assert validate(partial) is SkipReason.INVALID_DATE
