"""Schema and compiled-table models shared by the compiler and exporters."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from functools import cached_property
from types import MappingProxyType
from typing import Any, Mapping, Sequence

from gable.core.errors import UnresolvedReferenceError

from .layout import SheetKind
from .types import FieldType, LinkTarget

Record = Mapping[str, Any]


@dataclass(frozen=True, slots=True)
class FieldDef:
    """One declared field.

    ``index`` is the 1-based declaration order and doubles as the binary tag,
    so projecting a schema never renumbers the fields that remain.
    ``position`` is the grid column (DATA) or grid row (KV) the field came from.
    """

    name: str
    field_type: FieldType
    index: int
    position: int
    platforms: frozenset[str] = frozenset()
    link: LinkTarget | None = None
    description: str = ""
    is_key: bool = False

    def included_for(self, keyword: str) -> bool:
        return not self.platforms or keyword.lower() in self.platforms


@dataclass(frozen=True)
class TableSchema:
    name: str
    kind: SheetKind
    fields: tuple[FieldDef, ...]
    key_fields: tuple[str, ...] = ()

    def field(self, name: str) -> FieldDef:
        for item in self.fields:
            if item.name == name:
                return item
        raise KeyError(name)

    def has_field(self, name: str) -> bool:
        return any(item.name == name for item in self.fields)

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(item.name for item in self.fields)

    @property
    def key_defs(self) -> tuple[FieldDef, ...]:
        return tuple(self.field(name) for name in self.key_fields)

    def dependencies(self) -> tuple[str, ...]:
        """Names of the enum and link tables this schema refers to, in field order."""

        seen: dict[str, None] = {}
        for item in self.fields:
            if item.field_type.enum_name:
                seen.setdefault(item.field_type.enum_name, None)
            if item.link is not None:
                seen.setdefault(item.link.table, None)
        return tuple(seen)

    def with_fields(self, fields: Sequence[FieldDef]) -> "TableSchema":
        return replace(self, fields=tuple(fields))


@dataclass(frozen=True, slots=True)
class EnumMember:
    name: str
    value: int
    description: str = ""


@dataclass(frozen=True)
class EnumTable:
    """Symbolic constants compiled from an ENUM sheet."""

    name: str
    members: tuple[EnumMember, ...]

    @cached_property
    def _by_name(self) -> Mapping[str, EnumMember]:
        return MappingProxyType({member.name: member for member in self.members})

    @cached_property
    def _by_value(self) -> Mapping[int, EnumMember]:
        table: dict[int, EnumMember] = {}
        for member in self.members:
            table.setdefault(member.value, member)
        return MappingProxyType(table)

    def resolve(self, raw: str) -> int:
        """Map a symbol name or a numeric literal to the member value."""

        text = raw.strip()
        member = self._by_name.get(text)
        if member is not None:
            return member.value
        try:
            number = int(text)
        except ValueError:
            number = None
        if number is not None and number in self._by_value:
            return number
        raise UnresolvedReferenceError(f"'{text}' is not a member of enum {self.name}")

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(member.name for member in self.members)


@dataclass(frozen=True)
class CompiledTable:
    """A schema with its ordered, immutable records."""

    schema: TableSchema
    records: tuple[Record, ...] = field(default_factory=tuple)

    @property
    def name(self) -> str:
        return self.schema.name

    @property
    def kind(self) -> SheetKind:
        return self.schema.kind

    @cached_property
    def _value_sets(self) -> dict[str, frozenset]:
        return {}

    def values_of(self, field_name: str) -> frozenset:
        """Set of values a field takes across all records, used for link checks."""

        cache = self._value_sets
        if field_name not in cache:
            if not self.schema.has_field(field_name):
                raise UnresolvedReferenceError(
                    f"table {self.name} has no field '{field_name}'"
                )
            cache[field_name] = frozenset(
                record[field_name]
                for record in self.records
                if record.get(field_name) is not None
            )
        return cache[field_name]


def freeze_record(values: Mapping[str, Any]) -> Record:
    return MappingProxyType(dict(values))


__all__ = [
    "CompiledTable",
    "EnumMember",
    "EnumTable",
    "FieldDef",
    "Record",
    "TableSchema",
    "freeze_record",
]
