from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for error logging.

Row errors and aborted runs are written as JSON Lines. row=-1 is the sentinel
for run-level errors where no specific row applies (e.g. the transaction
could not be committed).
"""

__all__ = [
    "ErrorRecord",
    "ERROR_TYPES",
    "ROW_UPSERT_ERROR",
    "IMPORT_ABORTED",
    "TRANSACTION_ROLLBACK_ERROR",
]

# error_type の語彙 (固定)
ROW_UPSERT_ERROR = "ROW_UPSERT_ERROR"  # 1 行の upsert 失敗, savepoint まで巻き戻し
IMPORT_ABORTED = "IMPORT_ABORTED"  # 致命的エラーで全体ロールバック
TRANSACTION_ROLLBACK_ERROR = "TRANSACTION_ROLLBACK_ERROR"  # ROLLBACK 自体が失敗
ERROR_TYPES = frozenset({ROW_UPSERT_ERROR, IMPORT_ABORTED, TRANSACTION_ROLLBACK_ERROR})


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: Spreadsheet filename being imported
        sheet: Sheet name within the file
        row: Row number (1-based). Use -1 for run-level errors
        error_type: one of ERROR_TYPES
        message: store error text, or why the run was aborted
    """
    timestamp: str  # ISO8601 UTC
    file: str
    sheet: str
    row: int  # 行番号。不明な場合 -1 許容
    error_type: str  # ERROR_TYPES のいずれか
    message: str

    @staticmethod
    def create(file: str, sheet: str, row: int, error_type: str, message: str) -> ErrorRecord:
        """Create a record stamped with the current UTC time.

        Raises:
            ValueError: error_type is not part of ERROR_TYPES
        """
        if error_type not in ERROR_TYPES:
            raise ValueError(f"unknown error_type: {error_type!r}")
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            sheet=sheet,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        # 追加キー阻止: dataclass -> dict して json.dumps
        return json.dumps(asdict(self), ensure_ascii=False)
