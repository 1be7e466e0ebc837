"""Shift schedule spreadsheet import / reconciliation into PostgreSQL."""

from .services.reconciler import ImportAbortedError, import_rows, import_workbook

__all__ = [
    "ImportAbortedError",
    "import_rows",
    "import_workbook",
]

__version__ = "0.1.0"
