from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any, BinaryIO

from ..db.schedule_store import ScheduleStore, StoreConnectionError
from ..excel.headers import HeaderIndex
from ..excel.reader import read_schedule_sheet
from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import FieldAliases, ImportConfig
from ..models.error_record import IMPORT_ABORTED, ROW_UPSERT_ERROR, TRANSACTION_ROLLBACK_ERROR, ErrorRecord
from ..models.processing_result import ImportOutcome, ImportReport, OutcomeStatus, SkipReason
from ..models.row_data import RawRow
from .normalizer import normalize_row
from .progress import RowProgress
from .summary import summarize
from .validator import validate

"""Reconciliation engine: validated rows -> idempotent upserts in one transaction.

Failure model:
- data problems become skipped outcomes
- a store error for one row is rolled back to that row's savepoint and
  recorded as an errored outcome; the loop continues
- StoreConnectionError (or anything else escaping the row loop) rolls back
  the entire run and raises ImportAbortedError; nothing from the run remains
"""

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("store_number", "date", "start_time", "end_time")


class ProcessingError(Exception):
    """Base exception for processing errors."""
    pass


class ImportAbortedError(ProcessingError):
    """The import transaction was rolled back as a whole."""

    def __init__(self, message: str, row_number: int | None = None) -> None:
        super().__init__(message)
        self.row_number = row_number


def _diagnose_headers(index: HeaderIndex, aliases: FieldAliases, sheet_name: str) -> None:
    """Warn about logical fields that no header column can satisfy."""
    if len(index) == 0:
        logger.warning("sheet=%s header row has no usable columns; every row will be skipped", sheet_name)
        return
    unresolved = [name for name in REQUIRED_FIELDS if not any(a in index for a in getattr(aliases, name))]
    has_name = any(a in index for a in aliases.employee_name + aliases.first_name + aliases.last_name)
    if not has_name:
        unresolved.insert(0, "employee_name")
    if unresolved:
        logger.warning("sheet=%s no header column for fields=%s headers=%s", sheet_name, unresolved, index.keys())
    else:
        logger.debug("sheet=%s headers=%s", sheet_name, index.keys())


def _reconcile_row(
    row_number: int,
    row: RawRow,
    index: HeaderIndex,
    aliases: FieldAliases,
    store: ScheduleStore,
) -> ImportOutcome:
    result = validate(normalize_row(row, index, aliases))
    if isinstance(result, SkipReason):
        return ImportOutcome.skipped(row_number, result)
    record = result

    # savepoint の失敗はトランザクション自体の異常 -> 呼び出し元で中断
    store.savepoint()
    try:
        if not store.store_exists(record.store_number):
            outcome = ImportOutcome.skipped(row_number, SkipReason.STORE_NOT_FOUND, record)
        else:
            upserted = store.upsert_schedule_record(record)
            if upserted.inserted:
                outcome = ImportOutcome.inserted(row_number, record)
            else:
                outcome = ImportOutcome.updated(row_number, record)
    except StoreConnectionError:
        raise
    except Exception as e:
        store.rollback_to_savepoint()
        store.release_savepoint()
        return ImportOutcome.errored(row_number, str(e) or type(e).__name__, record)
    store.release_savepoint()
    return outcome


def _rollback_quietly(store: ScheduleStore, error_log: ErrorLogBuffer | None, file_name: str, sheet_name: str) -> None:
    try:
        store.rollback()
    except Exception as rollback_e:
        # Log rollback failure but don't override original error
        logger.error("rollback failed: %s", rollback_e)
        if error_log is not None:
            error_log.append(
                ErrorRecord.create(
                    file=file_name,
                    sheet=sheet_name,
                    row=-1,
                    error_type=TRANSACTION_ROLLBACK_ERROR,
                    message=str(rollback_e),
                )
            )


def reconcile_rows(
    numbered_rows: Iterable[tuple[int, RawRow]],
    index: HeaderIndex,
    aliases: FieldAliases,
    store: ScheduleStore,
    *,
    error_log: ErrorLogBuffer | None = None,
    file_name: str = "<memory>",
    sheet_name: str = "",
    commit: bool = True,
) -> list[ImportOutcome]:
    """Run the row loop for one file inside a single transaction.

    Args:
        numbered_rows: (spreadsheet row number, raw row) pairs in file order
        index: header index of the sheet
        aliases: ordered header aliases per logical field
        store: storage collaborator; the only thing mutated here
        error_log: receives one record per errored row and per aborted run
        commit: False rolls the transaction back after the loop (dry run)

    Returns:
        One ImportOutcome per row, in file order.

    Raises:
        ImportAbortedError: the transaction could not be started or finished,
            or an infrastructure error occurred; the run has been rolled back.
    """
    rows = list(numbered_rows)
    try:
        store.begin()
    except Exception as e:
        raise ImportAbortedError(f"failed to begin transaction: {e}") from e

    outcomes: list[ImportOutcome] = []
    current_row: int | None = None
    try:
        with RowProgress(len(rows)) as progress:
            for row_number, row in rows:
                current_row = row_number
                outcome = _reconcile_row(row_number, row, index, aliases, store)
                outcomes.append(outcome)
                if outcome.status is OutcomeStatus.ERRORED:
                    logger.warning("row=%d upsert failed: %s", row_number, outcome.message)
                    if error_log is not None:
                        error_log.append(
                            ErrorRecord.create(
                                file=file_name,
                                sheet=sheet_name,
                                row=row_number,
                                error_type=ROW_UPSERT_ERROR,
                                message=outcome.message or "",
                            )
                        )
                progress.advance()
        current_row = None
        if commit:
            store.commit()
        else:
            store.rollback()
            logger.info("dry run: transaction rolled back (%d rows)", len(outcomes))
    except Exception as e:
        _rollback_quietly(store, error_log, file_name, sheet_name)
        where = f" at row {current_row}" if current_row is not None else ""
        logger.error("import aborted%s, transaction rolled back: %s", where, e)
        if error_log is not None:
            error_log.append(
                ErrorRecord.create(
                    file=file_name,
                    sheet=sheet_name,
                    row=current_row if current_row is not None else -1,
                    error_type=IMPORT_ABORTED,
                    message=str(e),
                )
            )
        raise ImportAbortedError(f"import aborted{where}: {e}", row_number=current_row) from e
    except BaseException:
        _rollback_quietly(store, error_log, file_name, sheet_name)
        raise
    return outcomes


def import_rows(
    header_row: Sequence[Any],
    data_rows: Iterable[RawRow],
    aliases: FieldAliases,
    store: ScheduleStore,
    **kwargs: Any,
) -> list[ImportOutcome]:
    """Import already-read rows. Row numbers start at 2 (header is row 1)."""
    index = HeaderIndex.resolve(header_row)
    return reconcile_rows(enumerate(data_rows, start=2), index, aliases, store, **kwargs)


def import_workbook(
    source: bytes | bytearray | BinaryIO | Path | str,
    config: ImportConfig,
    store: ScheduleStore,
    *,
    file_name: str | None = None,
    error_log: ErrorLogBuffer | None = None,
    commit: bool = True,
) -> ImportReport:
    """Read the schedule sheet of a workbook and reconcile it into the store.

    Reader errors (WorkbookError / SheetDataError) are raised before any
    transaction is opened.
    """
    started = time.perf_counter()
    if file_name is None:
        file_name = Path(source).name if isinstance(source, (str, Path)) else "<upload>"

    sheet = read_schedule_sheet(source, config.preferred_sheets, config.max_rows)
    index = HeaderIndex.resolve(sheet.header)
    _diagnose_headers(index, config.field_aliases, sheet.sheet_name)
    logger.info("file=%s sheet=%s data_rows=%d", file_name, sheet.sheet_name, len(sheet.rows))

    outcomes = reconcile_rows(
        sheet.rows,
        index,
        config.field_aliases,
        store,
        error_log=error_log,
        file_name=file_name,
        sheet_name=sheet.sheet_name,
        commit=commit,
    )
    duration_ms = int((time.perf_counter() - started) * 1000)
    summary = summarize(outcomes, duration_ms)
    logger.debug(
        "file=%s inserted=%d updated=%d skipped=%d errors=%d",
        file_name,
        summary.inserted,
        summary.updated,
        summary.skipped,
        summary.errors,
    )
    return ImportReport(sheet_name=sheet.sheet_name, summary=summary, outcomes=outcomes, committed=commit)
