"""Schema parsers for the three sheet kinds.

DATA sheets declare one field per column, KV sheets one field per row and
ENUM sheets one constant per row. The orientations differ enough that each
kind gets its own parser class instead of a shared, parameterized loop.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import replace

from gable.core.errors import (
    DataTypeError,
    DuplicateKeyError,
    GableError,
    LayoutError,
)

from .grid import SheetGrid
from .layout import DATA_LAYOUT, ENUM_LAYOUT, KEY_MARKER, KV_LAYOUT, SheetKind
from .schema import EnumMember, EnumTable, FieldDef, TableSchema
from .types import (
    LINKABLE_TYPES,
    is_identifier,
    parse_field_type,
    parse_link,
    parse_platforms,
)

logger = logging.getLogger(__name__)

MAX_KEY_FIELDS = 2


def _check_table_name(grid: SheetGrid) -> None:
    if not is_identifier(grid.name):
        raise LayoutError(f"table name '{grid.name}' is not a valid identifier")


def _split_key_marker(raw_name: str) -> tuple[str, bool]:
    if raw_name.startswith(KEY_MARKER):
        return raw_name[len(KEY_MARKER):].strip(), True
    return raw_name, False


class SchemaParser(ABC):
    """Turn one sheet grid into its schema description."""

    kind: SheetKind

    def parse(self, grid: SheetGrid) -> TableSchema | EnumTable:
        try:
            _check_table_name(grid)
            result = self._parse(grid)
        except GableError as exc:
            raise exc.with_location(sheet=grid.name)
        logger.debug("parsed %s sheet %s", self.kind.value, grid.name)
        return result

    @abstractmethod
    def _parse(self, grid: SheetGrid) -> TableSchema | EnumTable:
        """Parse the grid; raise a GableError on the first problem found."""


class DataSchemaParser(SchemaParser):
    """Field-per-column parser for DATA sheets."""

    kind = SheetKind.DATA

    def _parse(self, grid: SheetGrid) -> TableSchema:
        layout = DATA_LAYOUT
        if grid.row_count < layout.first_data_row:
            raise LayoutError(
                f"sheet has {grid.row_count} rows, the header needs {layout.first_data_row}"
            )

        fields: list[FieldDef] = []
        seen: set[str] = set()
        for col in range(grid.column_count):
            raw_name = grid.cell(layout.field_row, col)
            declared = grid.cell(layout.type_row, col)
            if not raw_name:
                if declared:
                    raise LayoutError(
                        "column declares a type but has no field name",
                        row=layout.field_row + 1,
                        column=col + 1,
                    )
                continue

            name, is_key = _split_key_marker(raw_name)
            if not is_identifier(name):
                raise LayoutError(
                    f"field name '{raw_name}' is not a valid identifier",
                    row=layout.field_row + 1,
                    column=col + 1,
                )
            if name in seen:
                raise LayoutError(
                    f"duplicate field name '{name}'",
                    row=layout.field_row + 1,
                    column=col + 1,
                )
            seen.add(name)

            try:
                field_type = parse_field_type(declared)
            except DataTypeError as exc:
                raise exc.with_location(row=layout.type_row + 1, column=col + 1)

            try:
                link = parse_link(grid.cell(layout.link_row, col))
            except LayoutError as exc:
                raise exc.with_location(row=layout.link_row + 1, column=col + 1)
            if link is not None and field_type.base not in LINKABLE_TYPES:
                raise LayoutError(
                    f"field '{name}' of type {field_type} cannot link to {link}",
                    row=layout.link_row + 1,
                    column=col + 1,
                )

            fields.append(
                FieldDef(
                    name=name,
                    field_type=field_type,
                    index=len(fields) + 1,
                    position=col,
                    platforms=parse_platforms(grid.cell(layout.platform_row, col)),
                    link=link,
                    description=grid.cell(layout.desc_row, col),
                    is_key=is_key,
                )
            )

        if not fields:
            raise LayoutError("sheet declares no fields", row=layout.field_row + 1)

        keys = [item for item in fields if item.is_key]
        if not keys:
            fields[0] = replace(fields[0], is_key=True)
            keys = [fields[0]]
        if len(keys) > MAX_KEY_FIELDS:
            raise LayoutError(
                f"at most {MAX_KEY_FIELDS} key fields are supported, found {len(keys)}",
                row=layout.field_row + 1,
                column=keys[MAX_KEY_FIELDS].position + 1,
            )
        for key in keys:
            if key.field_type.is_list or key.field_type.base.is_vector:
                raise LayoutError(
                    f"key field '{key.name}' must be a scalar, not {key.field_type}",
                    row=layout.type_row + 1,
                    column=key.position + 1,
                )

        return TableSchema(
            name=grid.name,
            kind=SheetKind.DATA,
            fields=tuple(fields),
            key_fields=tuple(item.name for item in keys),
        )


class KvSchemaParser(SchemaParser):
    """Field-per-row parser for KV sheets. Values are read later by the record builder."""

    kind = SheetKind.KV

    def _parse(self, grid: SheetGrid) -> TableSchema:
        layout = KV_LAYOUT
        fields: list[FieldDef] = []
        seen: set[str] = set()
        for row in range(layout.first_data_row, grid.row_count):
            if grid.is_blank_row(row):
                continue
            name = grid.cell(row, layout.field_col)
            if not name:
                raise LayoutError(
                    "row has content but no field name",
                    row=row + 1,
                    column=layout.field_col + 1,
                )
            if not is_identifier(name):
                raise LayoutError(
                    f"field name '{name}' is not a valid identifier",
                    row=row + 1,
                    column=layout.field_col + 1,
                )
            if name in seen:
                raise LayoutError(
                    f"duplicate field name '{name}'",
                    row=row + 1,
                    column=layout.field_col + 1,
                )
            seen.add(name)

            try:
                field_type = parse_field_type(grid.cell(row, layout.type_col))
            except DataTypeError as exc:
                raise exc.with_location(row=row + 1, column=layout.type_col + 1)

            fields.append(
                FieldDef(
                    name=name,
                    field_type=field_type,
                    index=len(fields) + 1,
                    position=row,
                    platforms=parse_platforms(grid.cell(row, layout.platform_col)),
                    description=grid.cell(row, layout.desc_col),
                )
            )

        if not fields:
            raise LayoutError("sheet declares no fields", row=layout.first_data_row + 1)
        return TableSchema(name=grid.name, kind=SheetKind.KV, fields=tuple(fields))


class EnumSchemaParser(SchemaParser):
    """Constant-per-row parser for ENUM sheets; the whole sheet is one enum."""

    kind = SheetKind.ENUM

    def _parse(self, grid: SheetGrid) -> EnumTable:
        layout = ENUM_LAYOUT
        members: list[EnumMember] = []
        seen: dict[str, int] = {}
        next_value = 0
        for row in range(layout.first_data_row, grid.row_count):
            if grid.is_blank_row(row):
                continue
            name = grid.cell(row, layout.field_col)
            if not name:
                raise LayoutError(
                    "row has content but no symbol name",
                    row=row + 1,
                    column=layout.field_col + 1,
                )
            if not is_identifier(name):
                raise LayoutError(
                    f"symbol '{name}' is not a valid identifier",
                    row=row + 1,
                    column=layout.field_col + 1,
                )
            if name in seen:
                raise DuplicateKeyError(
                    f"symbol '{name}' already defined at row {seen[name]}",
                    row=row + 1,
                    column=layout.field_col + 1,
                )
            seen[name] = row + 1

            raw_value = grid.cell(row, layout.value_col)
            if raw_value:
                try:
                    value = int(raw_value)
                except ValueError:
                    raise DataTypeError(
                        f"enum value '{raw_value}' is not an integer",
                        row=row + 1,
                        column=layout.value_col + 1,
                    ) from None
            else:
                value = next_value
            next_value = value + 1
            members.append(
                EnumMember(name=name, value=value, description=grid.cell(row, layout.desc_col))
            )

        if not members:
            raise LayoutError("enum sheet declares no members", row=layout.first_data_row + 1)
        return EnumTable(name=grid.name, members=tuple(members))


_PARSERS: dict[SheetKind, type[SchemaParser]] = {
    SheetKind.DATA: DataSchemaParser,
    SheetKind.KV: KvSchemaParser,
    SheetKind.ENUM: EnumSchemaParser,
}


def parser_for(kind: SheetKind | str) -> SchemaParser:
    """Return the parser matching a sheet kind."""

    try:
        sheet_kind = SheetKind(kind)
    except ValueError:
        raise LayoutError(f"unknown sheet kind: {kind}") from None
    return _PARSERS[sheet_kind]()


def parse_grid(grid: SheetGrid) -> TableSchema | EnumTable:
    return parser_for(grid.kind).parse(grid)


__all__ = [
    "DataSchemaParser",
    "EnumSchemaParser",
    "KvSchemaParser",
    "SchemaParser",
    "parse_grid",
    "parser_for",
]
