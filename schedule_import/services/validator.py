from __future__ import annotations

from ..excel.headers import is_blank
from ..models.processing_result import SkipReason
from ..models.row_data import PartialScheduleRecord
from ..models.schedule_record import ScheduleRecord

"""Row validator.

Two stages, always in this order:

1. presence - employee name, store number cell, date cell and at least one
   of start/end time must be there. Otherwise MISSING_REQUIRED_FIELD, before
   any parse result is looked at.
2. parse - store number is a positive int that fits the INTEGER column,
   date parsed, shift time non-empty.
   Each failure has its own reason so absence and bad data stay distinguishable.
"""

__all__ = [
    "validate",
    "check_presence",
    "check_parsed",
]

# schedule_entries.store_number / stores.store_number は INTEGER
MAX_STORE_NUMBER = 2_147_483_647


def check_presence(partial: PartialScheduleRecord) -> SkipReason | None:
    if (
        not partial.employee_name
        or is_blank(partial.store_number_raw)
        or is_blank(partial.date_raw)
        or not (partial.start_time or partial.end_time)
    ):
        return SkipReason.MISSING_REQUIRED_FIELD
    return None


def check_parsed(partial: PartialScheduleRecord) -> SkipReason | None:
    if partial.store_number is None or not 0 < partial.store_number <= MAX_STORE_NUMBER:
        return SkipReason.INVALID_STORE_NUMBER
    if not partial.date:
        return SkipReason.INVALID_DATE
    if not partial.shift_time:
        return SkipReason.NO_SHIFT_TIME
    return None


def validate(partial: PartialScheduleRecord) -> ScheduleRecord | SkipReason:
    """Return a ScheduleRecord, or the SkipReason for the first failing check."""
    reason = check_presence(partial) or check_parsed(partial)
    if reason is not None:
        return reason
    return ScheduleRecord(
        store_number=partial.store_number,  # type: ignore[arg-type]
        date=partial.date,  # type: ignore[arg-type]
        employee_name=partial.employee_name,  # type: ignore[arg-type]
        shift_time=partial.shift_time,  # type: ignore[arg-type]
        start_time=partial.start_time,
        end_time=partial.end_time,
        role=partial.role,
        employee_type=partial.employee_type,
        region=partial.region,
        scheduled_hours=partial.scheduled_hours,
        notes=partial.notes,
        employee_id=partial.employee_id,
    )
