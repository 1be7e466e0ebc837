from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

"""Row-level models for the schedule spreadsheet importer.

RawRow is one spreadsheet row exactly as read (cell objects, None for empty).
PartialScheduleRecord is what the field normalizer produces from it: the raw
values resolved through the header aliases, next to the parsed values. The
row validator decides from both whether a ScheduleRecord can be built.
"""

__all__ = [
    "RawRow",
    "PartialScheduleRecord",
]

RawRow = Sequence[Any]


@dataclass(frozen=True)
class PartialScheduleRecord:
    """Normalized but unvalidated view of a single data row.

    ``*_raw`` fields hold the resolved cell before parsing so the validator
    can tell an absent value from one that failed to parse.
    """
    employee_name: str | None = None
    store_number_raw: Any = None
    store_number: int | None = None  # None = 解析失敗 or 欠落
    date_raw: Any = None
    date: str | None = None  # ISO YYYY-MM-DD
    start_time: str | None = None
    end_time: str | None = None
    shift_time: str | None = None
    role: str | None = None
    employee_type: str | None = None
    region: str | None = None
    scheduled_hours: float | None = None
    notes: str | None = None
    employee_id: str | None = None
