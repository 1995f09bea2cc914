"""Custom exceptions and diagnostics used across Gable."""

from __future__ import annotations

from dataclasses import dataclass

from openpyxl.utils import get_column_letter


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """Structured failure record returned to CLI/GUI callers.

    ``row`` and ``column`` are 1-based, matching what designers see in Excel.
    """

    kind: str
    message: str
    sheet: str | None = None
    row: int | None = None
    column: int | None = None
    target: str | None = None

    @property
    def cell_ref(self) -> str | None:
        if self.row is None or self.column is None:
            return None
        return f"{get_column_letter(self.column)}{self.row}"

    def format(self) -> str:
        parts = []
        if self.sheet:
            parts.append(self.sheet)
        if self.cell_ref:
            parts.append(self.cell_ref)
        elif self.row is not None:
            parts.append(f"row {self.row}")
        if self.target:
            parts.append(f"target={self.target}")
        where = " ".join(parts)
        prefix = f"[{self.kind}] {where}: " if where else f"[{self.kind}] "
        return prefix + self.message


class GableError(Exception):
    """Base error for the application.

    Location attributes are optional; they are filled in by the layer that
    knows them (the record builder knows rows, the orchestrator knows targets).
    """

    kind = "GableError"

    def __init__(
        self,
        message: str,
        *,
        sheet: str | None = None,
        row: int | None = None,
        column: int | None = None,
        target: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.sheet = sheet
        self.row = row
        self.column = column
        self.target = target

    def with_location(
        self,
        *,
        sheet: str | None = None,
        row: int | None = None,
        column: int | None = None,
        target: str | None = None,
    ) -> "GableError":
        """Fill in location attributes that are still unknown and return self."""

        if self.sheet is None:
            self.sheet = sheet
        if self.row is None:
            self.row = row
        if self.column is None:
            self.column = column
        if self.target is None:
            self.target = target
        return self

    def to_diagnostic(self) -> Diagnostic:
        return Diagnostic(
            kind=self.kind,
            message=self.message,
            sheet=self.sheet,
            row=self.row,
            column=self.column,
            target=self.target,
        )

    def __str__(self) -> str:
        return self.to_diagnostic().format()


class ConfigError(GableError):
    """Configuration related error."""

    kind = "ConfigError"


class LayoutError(GableError):
    """Row/column missing or malformed in a sheet."""

    kind = "LayoutError"


class DuplicateTableError(LayoutError):
    """Two sheets compile to the same table name."""

    kind = "DuplicateTableError"


class DataTypeError(GableError):
    """Unrecognized declared type."""

    kind = "TypeError"


class CoercionError(DataTypeError):
    """A cell value does not parse as its declared type."""


class DuplicateKeyError(GableError):
    """Two data rows share the same key."""

    kind = "DuplicateKeyError"


class UnresolvedReferenceError(GableError):
    """Enum symbol, linked key or dependency table cannot be resolved."""

    kind = "UnresolvedReferenceError"


class CyclicDependencyError(UnresolvedReferenceError):
    """Tables reference each other in a cycle."""

    kind = "CyclicDependencyError"


class TargetConfigError(GableError):
    """Unknown language tag or unsupported output format on a build target."""

    kind = "TargetConfigError"


class ExportError(GableError):
    """Raised when an artifact cannot be written."""

    kind = "ExportError"


class CompileCancelled(GableError):
    """Raised when a compile run observes a cancellation request."""

    kind = "Cancelled"
