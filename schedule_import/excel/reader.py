from __future__ import annotations

import io
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, BinaryIO

import pandas as pd

from ..models.config_models import DEFAULT_MAX_ROWS, DEFAULT_PREFERRED_SHEETS
from ..models.row_data import RawRow

"""Spreadsheet reader for schedule imports.

Row 1 is the header row, rows 2+ are data rows. Cells are kept as the objects
the engine returns (dtype=object) so native dates and times reach the field
normalizer untouched; empty cells become None.
"""

logger = logging.getLogger(__name__)


class WorkbookError(Exception):
    """Raised when the workbook cannot be opened or contains no sheets."""


class SheetDataError(Exception):
    """Raised when the selected sheet has no data rows."""


@dataclass
class SheetData:
    sheet_name: str
    header: list[Any]
    rows: list[tuple[int, RawRow]] = field(default_factory=list)  # (Excel 行番号, セル値)
    truncated_rows: int = 0


def select_sheet(sheet_names: Iterable[str], preferred: Iterable[str] = DEFAULT_PREFERRED_SHEETS) -> str:
    """Pick the first sheet whose lower-cased name is preferred, else the first sheet."""
    names = [str(n) for n in sheet_names]
    if not names:
        raise WorkbookError("no sheets found in workbook")
    wanted = {p.strip().lower() for p in preferred}
    for name in names:
        if name.strip().lower() in wanted:
            return name
    return names[0]


def _to_cell(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):  # pragma: no cover
        pass
    return value


def read_schedule_sheet(
    source: bytes | bytearray | BinaryIO | Path | str,
    preferred_sheets: Iterable[str] = DEFAULT_PREFERRED_SHEETS,
    max_rows: int = DEFAULT_MAX_ROWS,
) -> SheetData:
    """Read the schedule sheet of a workbook.

    Parameters
    ----------
    source: raw workbook bytes, a binary file object or a path
    preferred_sheets: sheet names (case-insensitive) tried before the first sheet
    max_rows: cap on data rows; extra rows are dropped with a warning
    """
    if isinstance(source, (bytes, bytearray)):
        source = io.BytesIO(bytes(source))
    try:
        xls = pd.ExcelFile(source)
    except Exception as e:
        raise WorkbookError(f"cannot open workbook: {e}") from e

    with xls:
        sheet_name = select_sheet(xls.sheet_names, preferred_sheets)
        df = xls.parse(sheet_name, header=None, dtype=object)

    if df.shape[0] < 2:
        raise SheetDataError(f"sheet '{sheet_name}' has no data")

    raw_rows = df.values.tolist()
    header = [_to_cell(v) for v in raw_rows[0]]
    rows: list[tuple[int, RawRow]] = []
    truncated = 0
    for idx, raw in enumerate(raw_rows[1:], start=2):
        cells = [_to_cell(v) for v in raw]
        # 全セル空の行はスキップ
        if all(c is None or (isinstance(c, str) and not c.strip()) for c in cells):
            continue
        if len(rows) >= max_rows:
            truncated += 1
            continue
        rows.append((idx, cells))

    if truncated:
        logger.warning("sheet=%s row cap %d reached, %d rows dropped", sheet_name, max_rows, truncated)
    logger.debug("sheet=%s header=%s data_rows=%d", sheet_name, header, len(rows))
    return SheetData(sheet_name=sheet_name, header=header, rows=rows, truncated_rows=truncated)
