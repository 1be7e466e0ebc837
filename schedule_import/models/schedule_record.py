from __future__ import annotations

from dataclasses import dataclass

"""ScheduleRecord: the canonical unit written to the schedule table."""

__all__ = [
    "ScheduleRecord",
    "NaturalKey",
]

NaturalKey = tuple[int, str, str, str]


@dataclass(frozen=True)
class ScheduleRecord:
    """One validated shift assignment.

    (store_number, date, employee_name, shift_time) is the natural key: two
    rows with the same key are the same logical record, the later one updates
    the descriptive fields of the earlier one.
    """
    store_number: int
    date: str  # ISO YYYY-MM-DD
    employee_name: str
    shift_time: str
    start_time: str | None = None
    end_time: str | None = None
    role: str | None = None
    employee_type: str | None = None
    region: str | None = None
    scheduled_hours: float | None = None
    notes: str | None = None
    employee_id: str | None = None

    @property
    def natural_key(self) -> NaturalKey:
        return (self.store_number, self.date, self.employee_name, self.shift_time)
