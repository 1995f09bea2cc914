"""Declared type grammar for the type row / type column."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from gable.core.errors import DataTypeError, LayoutError

IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_LINK_RE = re.compile(r"^\s*([A-Za-z_][A-Za-z0-9_]*)\s*\.\s*([A-Za-z_][A-Za-z0-9_]*)\s*$")
_ENUM_RE = re.compile(r"^(?:enum|enumref)\s*\(\s*([A-Za-z_][A-Za-z0-9_]*)\s*\)$", re.IGNORECASE)


class BaseType(str, Enum):
    INT = "int"
    LONG = "long"
    FLOAT = "float"
    BOOL = "bool"
    STRING = "string"
    TIME = "time"
    DATE = "date"
    PERCENTAGE = "%"
    PERMILLAGE = "‰"
    PERMIAN = "‱"
    VECTOR2 = "vector2"
    VECTOR3 = "vector3"
    VECTOR4 = "vector4"
    ENUM = "enum"

    @property
    def arity(self) -> int:
        return _VECTOR_ARITY.get(self, 0)

    @property
    def is_vector(self) -> bool:
        return self in _VECTOR_ARITY

    @property
    def is_float(self) -> bool:
        return self in _FLOAT_TYPES

    @property
    def is_integer(self) -> bool:
        return self in _INTEGER_TYPES


_VECTOR_ARITY = {BaseType.VECTOR2: 2, BaseType.VECTOR3: 3, BaseType.VECTOR4: 4}
_FLOAT_TYPES = frozenset(
    {BaseType.FLOAT, BaseType.PERCENTAGE, BaseType.PERMILLAGE, BaseType.PERMIAN}
)
_INTEGER_TYPES = frozenset(
    {BaseType.INT, BaseType.LONG, BaseType.TIME, BaseType.DATE, BaseType.ENUM}
)

_ALIASES = {
    "int": BaseType.INT,
    "int32": BaseType.INT,
    "long": BaseType.LONG,
    "int64": BaseType.LONG,
    "float": BaseType.FLOAT,
    "bool": BaseType.BOOL,
    "boolean": BaseType.BOOL,
    "string": BaseType.STRING,
    "str": BaseType.STRING,
    "time": BaseType.TIME,
    "date": BaseType.DATE,
    "%": BaseType.PERCENTAGE,
    "‰": BaseType.PERMILLAGE,
    "‱": BaseType.PERMIAN,
    "vector2": BaseType.VECTOR2,
    "vector3": BaseType.VECTOR3,
    "vector4": BaseType.VECTOR4,
}

# Element types allowed inside ``T[]``.
_LIST_ELEMENTS = frozenset(
    {
        BaseType.INT,
        BaseType.LONG,
        BaseType.FLOAT,
        BaseType.BOOL,
        BaseType.STRING,
        BaseType.VECTOR2,
        BaseType.VECTOR3,
        BaseType.VECTOR4,
    }
)

# Base types a link column may carry (they must be usable as table keys).
LINKABLE_TYPES = frozenset({BaseType.INT, BaseType.LONG, BaseType.STRING})


@dataclass(frozen=True)
class FieldType:
    base: BaseType
    is_list: bool = False
    enum_name: str | None = None

    def __str__(self) -> str:
        if self.base is BaseType.ENUM:
            return f"enum({self.enum_name})"
        return f"{self.base.value}[]" if self.is_list else self.base.value


@dataclass(frozen=True)
class LinkTarget:
    table: str
    field: str

    def __str__(self) -> str:
        return f"{self.table}.{self.field}"


def parse_field_type(text: str) -> FieldType:
    """Parse a declared type such as ``int``, ``vector3[]`` or ``enum(EPlayerType)``."""

    declared = (text or "").strip()
    if not declared:
        raise DataTypeError("declared type is empty")

    match = _ENUM_RE.match(declared)
    if match:
        return FieldType(base=BaseType.ENUM, enum_name=match.group(1))

    lowered = declared.lower()
    is_list = lowered.endswith("[]")
    if is_list:
        lowered = lowered[:-2].strip()
    base = _ALIASES.get(lowered)
    if base is None:
        raise DataTypeError(f"unrecognized type '{declared}'")
    if is_list and base not in _LIST_ELEMENTS:
        raise DataTypeError(f"type '{declared}' cannot be used as a list element")
    return FieldType(base=base, is_list=is_list)


def parse_link(text: str) -> LinkTarget | None:
    """Parse a ``table.field`` link reference; empty text means no link."""

    if not text or not text.strip():
        return None
    match = _LINK_RE.match(text)
    if not match:
        raise LayoutError(f"link '{text.strip()}' must have the form table.field")
    return LinkTarget(table=match.group(1), field=match.group(2))


def parse_platforms(text: str) -> frozenset[str]:
    """Split a platform cell into lower-cased tags; empty means all platforms."""

    if not text:
        return frozenset()
    return frozenset(tag.lower() for tag in re.split(r"[,;|\s]+", text) if tag)


def is_identifier(name: str) -> bool:
    return bool(IDENTIFIER_RE.match(name or ""))
