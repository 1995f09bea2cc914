"""Fixed row/column layout of the three sheet kinds."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping


class SheetKind(str, Enum):
    """Sheet classification; decides the layout and the parse path."""

    DATA = "data"
    KV = "kv"
    ENUM = "enum"

    @property
    def is_auxiliary(self) -> bool:
        return self is not SheetKind.DATA


@dataclass(frozen=True)
class DataLayout:
    """DATA sheets: one field per column, metadata stacked in header rows."""

    desc_row: int = 0
    field_row: int = 1
    type_row: int = 2
    platform_row: int = 3
    link_row: int = 4
    first_data_row: int = 5


@dataclass(frozen=True)
class KvLayout:
    """KV sheets: one field per row, metadata in fixed columns."""

    field_col: int = 0
    type_col: int = 1
    platform_col: int = 2
    value_col: int = 3
    desc_col: int = 4
    first_data_row: int = 1


@dataclass(frozen=True)
class EnumLayout:
    """ENUM sheets: one symbolic constant per row."""

    field_col: int = 0
    value_col: int = 1
    desc_col: int = 2
    first_data_row: int = 1


DATA_LAYOUT = DataLayout()
KV_LAYOUT = KvLayout()
ENUM_LAYOUT = EnumLayout()

ROW_LAYOUTS: Mapping[SheetKind, object] = MappingProxyType(
    {
        SheetKind.DATA: DATA_LAYOUT,
        SheetKind.KV: KV_LAYOUT,
        SheetKind.ENUM: ENUM_LAYOUT,
    }
)

# Workspace sub-folders that classify auxiliary sheets.
ENUM_FOLDER = "enums"
KV_FOLDER = "kvs"

KEY_MARKER = "*"
