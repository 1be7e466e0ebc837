from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

import pandas as pd

"""Header resolution for schedule sheets.

The first sheet row is mapped to a HeaderIndex (normalized header -> column
position). Lookups go through an ordered alias list so that exports with
different column names ("Store Number", "Scheduled Site", ...) resolve to the
same logical field without per-source configuration.
"""

__all__ = [
    "HeaderIndex",
    "is_blank",
    "normalize_header",
]


def normalize_header(value: Any) -> str | None:
    """Lower-case + trim a header cell. Non-string or empty cells give None."""
    if not isinstance(value, str):
        return None
    key = value.strip().lower()
    return key or None


def is_blank(value: Any) -> bool:
    """True for None, NaN/NaT and strings that are empty after trimming."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):  # pragma: no cover - list-like cell
        return False


class HeaderIndex:
    """Mapping of normalized header key -> zero-based column position.

    Duplicate headers: the first occurrence wins, later ones are ignored.
    """

    def __init__(self, positions: dict[str, int] | None = None) -> None:
        self._positions: dict[str, int] = dict(positions or {})

    @classmethod
    def resolve(cls, header_row: Iterable[Any]) -> HeaderIndex:
        positions: dict[str, int] = {}
        for idx, cell in enumerate(header_row):
            key = normalize_header(cell)
            if key is None:
                continue
            positions.setdefault(key, idx)
        return cls(positions)

    def position(self, header: str) -> int | None:
        return self._positions.get(header.strip().lower())

    def get(self, row: Sequence[Any], aliases: Iterable[str]) -> Any:
        """Return the first present, non-blank cell among ``aliases`` (in order).

        Returns None when no alias matches a column or every matched cell is
        blank. Strings are returned trimmed; other cell types untouched.
        """
        for alias in aliases:
            idx = self._positions.get(alias.strip().lower())
            if idx is None or idx >= len(row):
                continue
            value = row[idx]
            if is_blank(value):
                continue
            return value.strip() if isinstance(value, str) else value
        return None

    def keys(self) -> list[str]:
        return list(self._positions)

    def __contains__(self, header: object) -> bool:
        return isinstance(header, str) and header.strip().lower() in self._positions

    def __len__(self) -> int:
        return len(self._positions)

    def __repr__(self) -> str:  # pragma: no cover (trivial)
        return f"HeaderIndex({self._positions!r})"
