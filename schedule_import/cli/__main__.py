from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import psycopg2
from dotenv import load_dotenv

from schedule_import.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from schedule_import.db.schedule_store import PostgresScheduleStore, StoreConnectionError
from schedule_import.excel.headers import HeaderIndex
from schedule_import.excel.reader import SheetDataError, WorkbookError, read_schedule_sheet
from schedule_import.logging.error_log import ErrorLogBuffer
from schedule_import.logging.init import log_summary, setup_logging
from schedule_import.models.config_models import ImportConfig
from schedule_import.models.processing_result import ImportReport, OutcomeStatus
from schedule_import.services.normalizer import normalize_row
from schedule_import.services.reconciler import ImportAbortedError, import_workbook
from schedule_import.services.summary import render_summary_line
from schedule_import.services.validator import validate

"""CLI entrypoint.

Imports one schedule workbook into PostgreSQL:
- Load .env (overrides process env) and config/import.yml
- Open a connection in autocommit mode; the engine issues BEGIN/COMMIT itself
- Import, flush the error log, print the SUMMARY line
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_ROW_ERRORS = 2


def _resolve_dsn(cfg: ImportConfig) -> str:
    """Connection string, in priority order:

    1. DATABASE_URL / PGDSN (after .env has been loaded)
    2. individual PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
    3. the database section of config/import.yml for whatever is missing
    """
    db_cfg = cfg.database
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def _open_store(cfg: ImportConfig) -> Iterator[PostgresScheduleStore]:  # pragma: no cover (thin wrapper)
    try:
        conn = psycopg2.connect(_resolve_dsn(cfg))
    except psycopg2.Error as e:
        raise StoreConnectionError(f"cannot connect to database: {str(e).strip()}") from e
    conn.autocommit = True  # トランザクション境界は reconciler が BEGIN/COMMIT で管理
    cur = conn.cursor()
    try:
        yield PostgresScheduleStore(cur, cfg.tables.schedule, cfg.tables.stores)
    finally:
        cur.close()
        conn.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="schedule-import", description="Excel shift schedule -> PostgreSQL importer")
    p.add_argument("file", type=Path, help="Workbook (.xlsx) to import")
    p.add_argument("--config", type=Path, default=None, help=f"Config file (default: {DEFAULT_CONFIG_PATH})")
    p.add_argument("--dry-run", action="store_true", help="Run the import and roll it back")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--inspect-data", action="store_true", help="Print resolved headers & first rows then exit")
    p.add_argument("--outcomes", action="store_true", help="Log one line per non-inserted row")
    return p.parse_args(argv)


def _load(config_path: Path | None) -> ImportConfig:
    if config_path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            return ImportConfig()
        config_path = DEFAULT_CONFIG_PATH
    return load_config(config_path)


def _inspect_data(path: Path, cfg: ImportConfig) -> int:
    try:
        sheet = read_schedule_sheet(path, cfg.preferred_sheets, cfg.max_rows)
    except (WorkbookError, SheetDataError) as e:
        print(f"inspect: {e}")
        return EXIT_FATAL
    index = HeaderIndex.resolve(sheet.header)
    print(f"SHEET: {sheet.sheet_name} data_rows={len(sheet.rows)}")
    print(f"  headers={index.keys()}")
    for row_number, row in sheet.rows[:3]:
        partial = normalize_row(row, index, cfg.field_aliases)
        result = validate(partial)
        verdict = getattr(result, "value", None) or "valid"
        print(
            f"  row={row_number} employee={partial.employee_name!r} store={partial.store_number} "
            f"date={partial.date} shift={partial.shift_time!r} -> {verdict}"
        )
    return EXIT_SUCCESS


def _log_outcomes(report: ImportReport, logger) -> None:
    for outcome in report.outcomes:
        if outcome.status is OutcomeStatus.SKIPPED and outcome.reason is not None:
            logger.info(f"row={outcome.row_number} skipped reason={outcome.reason.value}")
        elif outcome.status is OutcomeStatus.ERRORED:
            logger.info(f"row={outcome.row_number} errored message={outcome.message}")
        elif outcome.status is OutcomeStatus.UPDATED:
            logger.debug(f"row={outcome.row_number} updated")


def main(argv: list[str] | None = None) -> int:
    # NOTE: 空リスト [] が与えられた場合に sys.argv[1:] が混入しないよう None のときのみ読む
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)
    try:
        cfg = _load(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if not args.file.exists():
        logger.error(f"file not found: {args.file}")
        return EXIT_FATAL

    if args.inspect_data:
        return _inspect_data(args.file, cfg)

    error_log = ErrorLogBuffer()
    try:
        with _open_store(cfg) as store:
            report = import_workbook(args.file, cfg, store, error_log=error_log, commit=not args.dry_run)
    except (WorkbookError, SheetDataError) as e:
        logger.error(f"workbook: {e}")
        return EXIT_FATAL
    except StoreConnectionError as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL
    except ImportAbortedError as e:
        logger.error(f"import: {e}")
        return EXIT_FATAL
    finally:
        counts = error_log.counts_by_type()
        try:
            written = error_log.flush()
        except OSError as e:
            # Don't fail the entire process if error log flush fails
            logger.warning(f"could not write error log: {e}")
        else:
            if written is not None:
                breakdown = ",".join(f"{k}:{v}" for k, v in counts.items())
                logger.info(f"error log written: {written} ({breakdown})")

    if args.outcomes:
        _log_outcomes(report, logger)
    log_summary(render_summary_line(report))

    return EXIT_ROW_ERRORS if report.summary.errors else EXIT_SUCCESS


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
