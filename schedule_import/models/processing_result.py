from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .schedule_record import ScheduleRecord

"""Processing result models for the schedule spreadsheet importer.

ImportOutcome tags a single data row; ImportSummary aggregates the outcomes
of one run; ImportReport is what the caller gets back (summary plus the full
outcome list for per-row diagnostics). None of these are persisted.
"""

__all__ = [
    "OutcomeStatus",
    "SkipReason",
    "ImportOutcome",
    "ImportSummary",
    "ImportReport",
]


class OutcomeStatus(Enum):
    INSERTED = "inserted"
    UPDATED = "updated"
    SKIPPED = "skipped"
    ERRORED = "errored"


class SkipReason(Enum):
    """Expected data-quality skips. Recorded, never raised."""
    MISSING_REQUIRED_FIELD = "missing_required_field"
    INVALID_STORE_NUMBER = "invalid_store_number"
    INVALID_DATE = "invalid_date"
    NO_SHIFT_TIME = "no_shift_time"
    STORE_NOT_FOUND = "store_not_found"


@dataclass(frozen=True)
class ImportOutcome:
    """Per-row result.

    Attributes:
        row_number: 1-based spreadsheet row (header is row 1)
        status: inserted / updated / skipped / errored
        reason: set when status is SKIPPED
        message: set when status is ERRORED
        record: the validated record, when one was built
    """
    row_number: int
    status: OutcomeStatus
    reason: SkipReason | None = None
    message: str | None = None
    record: ScheduleRecord | None = None

    @staticmethod
    def inserted(row_number: int, record: ScheduleRecord) -> ImportOutcome:
        return ImportOutcome(row_number, OutcomeStatus.INSERTED, record=record)

    @staticmethod
    def updated(row_number: int, record: ScheduleRecord) -> ImportOutcome:
        return ImportOutcome(row_number, OutcomeStatus.UPDATED, record=record)

    @staticmethod
    def skipped(row_number: int, reason: SkipReason, record: ScheduleRecord | None = None) -> ImportOutcome:
        return ImportOutcome(row_number, OutcomeStatus.SKIPPED, reason=reason, record=record)

    @staticmethod
    def errored(row_number: int, message: str, record: ScheduleRecord | None = None) -> ImportOutcome:
        return ImportOutcome(row_number, OutcomeStatus.ERRORED, message=message, record=record)


@dataclass(frozen=True)
class ImportSummary:
    """Aggregated counts for one import run."""
    inserted: int
    updated: int
    skipped: int
    errors: int
    skip_reason_breakdown: dict[str, int] = field(default_factory=dict)
    duration_ms: int = 0

    @property
    def total_rows(self) -> int:
        return self.inserted + self.updated + self.skipped + self.errors

    @property
    def deduped(self) -> int:
        # 自然キー衝突 -> 更新扱いになった行数
        return self.updated

    @property
    def total_records(self) -> int:
        # 挿入 + 更新 (元実装の total_records 相当)
        return self.inserted + self.updated


@dataclass(frozen=True)
class ImportReport:
    sheet_name: str
    summary: ImportSummary
    outcomes: list[ImportOutcome]
    committed: bool = True  # dry run の場合 False
