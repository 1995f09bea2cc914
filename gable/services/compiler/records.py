"""Build typed records from the data rows of a sheet grid."""

from __future__ import annotations

import logging
from typing import Any

from gable.core.errors import DuplicateKeyError, GableError, LayoutError

from .coercer import TypeCoercer
from .grid import SheetGrid
from .layout import DATA_LAYOUT, KV_LAYOUT, SheetKind
from .schema import CompiledTable, Record, TableSchema, freeze_record

logger = logging.getLogger(__name__)


class RecordBuilder:
    """Walk data rows in order and coerce every cell under a schema.

    Rows are processed strictly in sheet order so the first occurrence of a
    key wins and the duplicate diagnostic points at the later row.
    """

    def __init__(self, coercer: TypeCoercer) -> None:
        self.coercer = coercer

    def build(self, grid: SheetGrid, schema: TableSchema) -> CompiledTable:
        try:
            if schema.kind is SheetKind.KV:
                records = (self._build_kv(grid, schema),)
            elif schema.kind is SheetKind.DATA:
                records = self._build_data(grid, schema)
            else:
                raise LayoutError(f"{schema.kind.value} sheets carry no records")
        except GableError as exc:
            raise exc.with_location(sheet=grid.name)
        logger.debug("built %d record(s) for %s", len(records), schema.name)
        return CompiledTable(schema=schema, records=records)

    def _build_data(self, grid: SheetGrid, schema: TableSchema) -> tuple[Record, ...]:
        records: list[Record] = []
        first_rows: dict[tuple[Any, ...], int] = {}
        key_defs = schema.key_defs

        for row in range(DATA_LAYOUT.first_data_row, grid.row_count):
            if grid.is_blank_row(row):
                continue
            values: dict[str, Any] = {}
            for item in schema.fields:
                raw = grid.cell(row, item.position)
                if item.is_key and not raw:
                    raise LayoutError(
                        f"key field '{item.name}' is empty",
                        row=row + 1,
                        column=item.position + 1,
                    )
                try:
                    values[item.name] = self.coercer.coerce(raw, item)
                except GableError as exc:
                    raise exc.with_location(row=row + 1, column=item.position + 1)

            key = tuple(values[item.name] for item in key_defs)
            if key in first_rows:
                shown = key[0] if len(key) == 1 else key
                raise DuplicateKeyError(
                    f"duplicate key {shown!r}, first defined at row {first_rows[key]}",
                    row=row + 1,
                    column=key_defs[0].position + 1,
                )
            first_rows[key] = row + 1
            records.append(freeze_record(values))
        return tuple(records)

    def _build_kv(self, grid: SheetGrid, schema: TableSchema) -> Record:
        values: dict[str, Any] = {}
        for item in schema.fields:
            raw = grid.cell(item.position, KV_LAYOUT.value_col)
            try:
                values[item.name] = self.coercer.coerce(raw, item)
            except GableError as exc:
                raise exc.with_location(row=item.position + 1, column=KV_LAYOUT.value_col + 1)
        return freeze_record(values)


__all__ = ["RecordBuilder"]
