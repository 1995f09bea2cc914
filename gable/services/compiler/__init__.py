"""Schema compilation: sheet grids in, typed and validated tables out."""

from __future__ import annotations

from .coercer import TypeCoercer
from .filter import project_record, project_records, project_schema
from .grid import SheetGrid
from .layout import DATA_LAYOUT, ENUM_LAYOUT, KV_LAYOUT, SheetKind
from .parser import (
    DataSchemaParser,
    EnumSchemaParser,
    KvSchemaParser,
    SchemaParser,
    parse_grid,
    parser_for,
)
from .records import RecordBuilder
from .registry import TableRegistry
from .schema import CompiledTable, EnumMember, EnumTable, FieldDef, Record, TableSchema
from .types import BaseType, FieldType, LinkTarget, parse_field_type, parse_link

__all__ = [
    "BaseType",
    "CompiledTable",
    "DATA_LAYOUT",
    "DataSchemaParser",
    "ENUM_LAYOUT",
    "EnumMember",
    "EnumSchemaParser",
    "EnumTable",
    "FieldDef",
    "FieldType",
    "KV_LAYOUT",
    "KvSchemaParser",
    "LinkTarget",
    "Record",
    "RecordBuilder",
    "SchemaParser",
    "SheetGrid",
    "SheetKind",
    "TableRegistry",
    "TableSchema",
    "TypeCoercer",
    "parse_field_type",
    "parse_grid",
    "parse_link",
    "parser_for",
    "project_record",
    "project_records",
    "project_schema",
]
