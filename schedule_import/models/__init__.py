"""Domain models for the schedule spreadsheet importer."""

from .config_models import DatabaseConfig, FieldAliases, ImportConfig, TableConfig
from .error_record import ERROR_TYPES, ErrorRecord
from .processing_result import ImportOutcome, ImportReport, ImportSummary, OutcomeStatus, SkipReason
from .row_data import PartialScheduleRecord, RawRow
from .schedule_record import ScheduleRecord

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "FieldAliases",
    "ImportConfig",
    "TableConfig",
    # Row models
    "RawRow",
    "PartialScheduleRecord",
    "ScheduleRecord",
    # Results
    "ERROR_TYPES",
    "ErrorRecord",
    "ImportOutcome",
    "ImportReport",
    "ImportSummary",
    "OutcomeStatus",
    "SkipReason",
]
