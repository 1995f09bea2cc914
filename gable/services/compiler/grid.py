"""In-memory sheet grid handed over by the spreadsheet reader."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Sequence

from .layout import SheetKind


@dataclass(frozen=True)
class SheetGrid:
    """Raw cells of one worksheet, already normalized to text.

    Rows may be ragged; missing cells read as the empty string.
    """

    name: str
    kind: SheetKind
    rows: tuple[tuple[str, ...], ...]
    source: str | None = field(default=None, compare=False)

    @classmethod
    def from_rows(
        cls,
        name: str,
        kind: SheetKind,
        rows: Iterable[Sequence[object]],
        source: str | None = None,
    ) -> "SheetGrid":
        normalized = tuple(
            tuple("" if value is None else str(value) for value in row) for row in rows
        )
        return cls(name=name, kind=SheetKind(kind), rows=normalized, source=source)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def column_count(self) -> int:
        return max((len(row) for row in self.rows), default=0)

    def cell(self, row: int, column: int) -> str:
        """Return the stripped text at 0-based (row, column)."""

        if row < 0 or row >= len(self.rows):
            return ""
        values = self.rows[row]
        if column < 0 or column >= len(values):
            return ""
        return values[column].strip()

    def raw_cell(self, row: int, column: int) -> str:
        """Like :meth:`cell` but keeps surrounding whitespace."""

        if row < 0 or row >= len(self.rows):
            return ""
        values = self.rows[row]
        if column < 0 or column >= len(values):
            return ""
        return values[column]

    def is_blank_row(self, row: int) -> bool:
        if row < 0 or row >= len(self.rows):
            return True
        return not any(value.strip() for value in self.rows[row])
