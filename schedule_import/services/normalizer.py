from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta
from typing import Any

import pandas as pd

from ..excel.headers import HeaderIndex, is_blank
from ..models.config_models import FieldAliases
from ..models.row_data import PartialScheduleRecord, RawRow

"""Field normalizer: raw cells -> canonical typed values.

Every function here is pure and never raises on bad data; an unusable value
becomes None and the row validator turns that into a skip reason.

Date serials use the 1899-12-30 epoch (serial + days, UTC). With that epoch
serials >= 61 match the spreadsheet calendar, serial 60 (the non-existent
1900-02-29) lands on 1900-02-28, and serials 1-59 come out one day early.
"""

__all__ = [
    "DATE_FORMATS",
    "EXCEL_EPOCH",
    "cell_text",
    "normalize_date",
    "normalize_row",
    "normalize_scheduled_hours",
    "normalize_shift_time",
    "normalize_store_number",
    "date_to_serial",
]

EXCEL_EPOCH = date(1899, 12, 30)
COMPOSITE_SEPARATOR = " - "
_SERIAL_RE = re.compile(r"^\d+$")
_NON_DIGIT_RE = re.compile(r"[^0-9]")
DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%m/%d/%Y",
    "%m/%d/%y",
    "%m-%d-%Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d %B %Y",
    "%d-%b-%Y",
)


def _format_time(value: time) -> str:
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {suffix}"


def cell_text(value: Any) -> str | None:
    """Render a raw cell as trimmed text, None when blank.

    Integral floats lose their ".0" (engines hand back 1001.0 for 1001) and
    time cells render as "9:00 AM".
    """
    if is_blank(value):
        return None
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, time):
        return _format_time(value)
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip() or None


def normalize_store_number(value: Any) -> int | None:
    """"1001" and "1001 - Springfield" -> 1001; anything non-numeric -> None."""
    text = cell_text(value)
    if text is None:
        return None
    if COMPOSITE_SEPARATOR in text:
        candidate = text.split(COMPOSITE_SEPARATOR, 1)[0].strip()
    else:
        candidate = _NON_DIGIT_RE.sub("", text)
    if not candidate:
        return None
    try:
        return int(candidate)
    except ValueError:
        return None


def _parse_date_text(text: str) -> date | None:
    # 年月日が揃った書式のみ受理 ("9:00 AM" や "July" に日付を補完させない)
    for fmt in DATE_FORMATS:
        try:
            parsed = pd.to_datetime(text, format=fmt, errors="coerce")
        except (ValueError, TypeError, OverflowError):
            continue
        if parsed is not None and not pd.isna(parsed):
            return parsed.date()
    return None


def normalize_date(value: Any) -> str | None:
    """Native date / serial number / date string -> ISO YYYY-MM-DD, else None.

    Strings must match one of DATE_FORMATS; text without a full year, month
    and day (a time of day, a bare month name) is absent, not guessed.
    """
    if is_blank(value):
        return None
    if isinstance(value, datetime):  # pd.Timestamp も含む
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = cell_text(value)
    if text is None:
        return None
    if _SERIAL_RE.match(text):
        try:
            return (EXCEL_EPOCH + timedelta(days=int(text))).isoformat()
        except OverflowError:
            return None
    parsed = _parse_date_text(text)
    return parsed.isoformat() if parsed is not None else None


def date_to_serial(iso_date: str) -> int:
    """Inverse of the serial rule in normalize_date."""
    return (date.fromisoformat(iso_date) - EXCEL_EPOCH).days


def normalize_shift_time(start: str | None, end: str | None) -> str | None:
    if start and end:
        return f"{start} - {end}"
    return start or end or None


def normalize_scheduled_hours(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)) and not is_blank(value):
        return float(value)
    text = cell_text(value)
    if text is None:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _employee_name(row: RawRow, index: HeaderIndex, aliases: FieldAliases) -> str | None:
    direct = cell_text(index.get(row, aliases.employee_name))
    if direct:
        return direct
    first = cell_text(index.get(row, aliases.first_name))
    last = cell_text(index.get(row, aliases.last_name))
    joined = " ".join(part for part in (first, last) if part)
    return joined or None


def normalize_row(row: RawRow, index: HeaderIndex, aliases: FieldAliases) -> PartialScheduleRecord:
    """Resolve and normalize every logical field of one data row."""
    store_raw = index.get(row, aliases.store_number)
    date_raw = index.get(row, aliases.date)
    start = cell_text(index.get(row, aliases.start_time))
    end = cell_text(index.get(row, aliases.end_time))
    return PartialScheduleRecord(
        employee_name=_employee_name(row, index, aliases),
        store_number_raw=store_raw,
        store_number=normalize_store_number(store_raw),
        date_raw=date_raw,
        date=normalize_date(date_raw),
        start_time=start,
        end_time=end,
        shift_time=normalize_shift_time(start, end),
        role=cell_text(index.get(row, aliases.role)),
        employee_type=cell_text(index.get(row, aliases.employee_type)),
        region=cell_text(index.get(row, aliases.region)),
        scheduled_hours=normalize_scheduled_hours(index.get(row, aliases.scheduled_hours)),
        notes=cell_text(index.get(row, aliases.notes)),
        employee_id=cell_text(index.get(row, aliases.employee_id)),
    )
