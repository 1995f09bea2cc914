"""Data serializers for compiled tables.

Every serializer walks ``schema.fields`` in declaration order, so records may
carry extra fields that a projection dropped; they are simply not written.
Output is deterministic for identical input.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Sequence

import pandas as pd
import yaml
from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from lxml import etree

from gable.core.errors import ExportError, TargetConfigError
from gable.services.compiler.layout import SheetKind
from gable.services.compiler.schema import FieldDef, Record, TableSchema
from gable.services.compiler.types import BaseType

logger = logging.getLogger(__name__)

VECTOR_AXES = ("x", "y", "z", "w")


def _vector_to_mapping(value: Sequence[float]) -> dict[str, float]:
    return {axis: component for axis, component in zip(VECTOR_AXES, value)}


def _vector_from_mapping(value: Mapping[str, float], arity: int) -> tuple[float, ...]:
    return tuple(float(value[axis]) for axis in VECTOR_AXES[:arity])


def _nested_value(value: Any, item: FieldDef) -> Any:
    """Structured-text form of a value: vectors become x/y/z/w objects."""

    if value is None:
        return None
    field_type = item.field_type
    if field_type.is_list:
        if field_type.base.is_vector:
            return [_vector_to_mapping(element) for element in value]
        return list(value)
    if field_type.base.is_vector:
        return _vector_to_mapping(value)
    return value


def _record_payload(record: Record, schema: TableSchema) -> dict[str, Any]:
    return {item.name: _nested_value(record.get(item.name), item) for item in schema.fields}


def _table_payload(schema: TableSchema, records: Sequence[Record]) -> Any:
    if schema.kind is SheetKind.KV:
        record = records[0] if records else MappingProxyType({})
        return _record_payload(record, schema)
    return [_record_payload(record, schema) for record in records]


class Serializer(ABC):
    """Encode a (projected) schema and its records into bytes."""

    format: str = ""
    extension: str = ""

    def serialize(self, schema: TableSchema, records: Sequence[Record]) -> bytes:
        if schema.kind is SheetKind.ENUM:
            raise ExportError(f"enum {schema.name} has no data to serialize", sheet=schema.name)
        return self._serialize(schema, tuple(records))

    @abstractmethod
    def _serialize(self, schema: TableSchema, records: tuple[Record, ...]) -> bytes:
        """Produce the encoded artifact."""


class JsonSerializer(Serializer):
    format = "json"
    extension = "json"

    def _serialize(self, schema: TableSchema, records: tuple[Record, ...]) -> bytes:
        payload = _table_payload(schema, records)
        text = json.dumps(payload, ensure_ascii=False, indent=2)
        return (text + "\n").encode("utf-8")

    def decode(self, data: bytes, schema: TableSchema) -> tuple[Record, ...]:
        """Read serialized bytes back into records shaped like the builder's output."""

        payload = json.loads(data.decode("utf-8"))
        rows = [payload] if schema.kind is SheetKind.KV else payload
        return tuple(self._decode_record(row, schema) for row in rows)

    @staticmethod
    def _decode_record(row: Mapping[str, Any], schema: TableSchema) -> Record:
        values: dict[str, Any] = {}
        for item in schema.fields:
            value = row.get(item.name)
            field_type = item.field_type
            arity = field_type.base.arity
            if value is not None:
                if field_type.is_list and arity:
                    value = tuple(_vector_from_mapping(element, arity) for element in value)
                elif field_type.is_list:
                    value = tuple(value)
                elif arity:
                    value = _vector_from_mapping(value, arity)
            values[item.name] = value
        return MappingProxyType(values)


def _format_scalar(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _flatten_value(value: Any, item: FieldDef) -> str:
    if value is None:
        return ""
    field_type = item.field_type
    if field_type.base.is_vector:
        if field_type.is_list:
            return ";".join(",".join(_format_scalar(c) for c in element) for element in value)
        return ",".join(_format_scalar(component) for component in value)
    if field_type.is_list:
        return ",".join(_format_scalar(element) for element in value)
    return _format_scalar(value)


class CsvSerializer(Serializer):
    """Tabular text; DATA keeps the description/field/type header rows."""

    format = "csv"
    extension = "csv"

    def _serialize(self, schema: TableSchema, records: tuple[Record, ...]) -> bytes:
        rows: list[list[str]]
        if schema.kind is SheetKind.KV:
            record = records[0] if records else MappingProxyType({})
            rows = [["field", "type", "value"]]
            rows.extend(
                [item.name, str(item.field_type), _flatten_value(record.get(item.name), item)]
                for item in schema.fields
            )
        else:
            rows = [
                [item.description for item in schema.fields],
                [item.name for item in schema.fields],
                [str(item.field_type) for item in schema.fields],
            ]
            rows.extend(
                [_flatten_value(record.get(item.name), item) for item in schema.fields]
                for record in records
            )
        frame = pd.DataFrame(rows, dtype=object)
        text = frame.to_csv(index=False, header=False, lineterminator="\n")
        return text.encode("utf-8")


class YamlSerializer(Serializer):
    format = "yaml"
    extension = "yaml"

    def _serialize(self, schema: TableSchema, records: tuple[Record, ...]) -> bytes:
        payload = {schema.name: _table_payload(schema, records)}
        text = yaml.safe_dump(
            payload, allow_unicode=True, sort_keys=False, default_flow_style=False
        )
        return text.encode("utf-8")


class XmlSerializer(Serializer):
    """Element-per-field XML; DATA rows become ``<item>`` elements."""

    format = "xml"
    extension = "xml"

    def _serialize(self, schema: TableSchema, records: tuple[Record, ...]) -> bytes:
        try:
            root = etree.Element(schema.name)
            if schema.kind is SheetKind.KV:
                record = records[0] if records else MappingProxyType({})
                self._append_fields(root, record, schema)
            else:
                for record in records:
                    self._append_fields(etree.SubElement(root, "item"), record, schema)
        except ValueError as exc:
            raise ExportError(f"cannot write {schema.name} as xml: {exc}", sheet=schema.name) from exc
        return etree.tostring(root, xml_declaration=True, encoding="UTF-8", pretty_print=True)

    @staticmethod
    def _append_fields(parent: Any, record: Record, schema: TableSchema) -> None:
        for item in schema.fields:
            element = etree.SubElement(parent, item.name)
            element.text = _flatten_value(record.get(item.name), item)


FDP = descriptor_pb2.FieldDescriptorProto

_PROTO_SCALARS = {
    BaseType.INT: FDP.TYPE_INT32,
    BaseType.TIME: FDP.TYPE_INT32,
    BaseType.ENUM: FDP.TYPE_INT32,
    BaseType.LONG: FDP.TYPE_INT64,
    BaseType.DATE: FDP.TYPE_INT64,
    BaseType.FLOAT: FDP.TYPE_FLOAT,
    BaseType.PERCENTAGE: FDP.TYPE_FLOAT,
    BaseType.PERMILLAGE: FDP.TYPE_FLOAT,
    BaseType.PERMIAN: FDP.TYPE_FLOAT,
    BaseType.BOOL: FDP.TYPE_BOOL,
    BaseType.STRING: FDP.TYPE_STRING,
}
PROTO_PACKAGE = "gable"


def _vector_message_name(base: BaseType) -> str:
    return f"Vector{base.arity}"


def build_file_descriptor(schema: TableSchema) -> descriptor_pb2.FileDescriptorProto:
    """Describe ``schema`` as a proto2 file; tags come from ``FieldDef.index``.

    Vector helpers are nested in the table message so they never clash with
    another table's name.
    """

    proto = descriptor_pb2.FileDescriptorProto()
    proto.name = f"{schema.name}.proto"
    proto.package = PROTO_PACKAGE
    proto.syntax = "proto2"

    message = proto.message_type.add()
    message.name = schema.name
    vector_bases = sorted(
        {item.field_type.base for item in schema.fields if item.field_type.base.is_vector},
        key=lambda base: base.arity,
    )
    for base in vector_bases:
        vector = message.nested_type.add()
        vector.name = _vector_message_name(base)
        for number, axis in enumerate(VECTOR_AXES[: base.arity], start=1):
            component = vector.field.add()
            component.name = axis
            component.number = number
            component.label = FDP.LABEL_OPTIONAL
            component.type = FDP.TYPE_FLOAT

    for item in schema.fields:
        entry = message.field.add()
        entry.name = item.name
        entry.number = item.index
        entry.label = FDP.LABEL_REPEATED if item.field_type.is_list else FDP.LABEL_OPTIONAL
        base = item.field_type.base
        if base.is_vector:
            entry.type = FDP.TYPE_MESSAGE
            entry.type_name = f".{PROTO_PACKAGE}.{schema.name}.{_vector_message_name(base)}"
        else:
            entry.type = _PROTO_SCALARS[base]

    if schema.kind is SheetKind.DATA:
        wrapper = proto.message_type.add()
        wrapper.name = f"{schema.name}Array"
        items = wrapper.field.add()
        items.name = "items"
        items.number = 1
        items.label = FDP.LABEL_REPEATED
        items.type = FDP.TYPE_MESSAGE
        items.type_name = f".{PROTO_PACKAGE}.{schema.name}"
    return proto


def message_classes(schema: TableSchema) -> dict[str, type]:
    """Generated message classes for ``schema`` keyed by short message name.

    A fresh descriptor pool is used per call so concurrent exports never
    share protobuf state.

    Raises:
        ExportError: When the schema cannot be expressed as protobuf messages.
    """

    proto = build_file_descriptor(schema)
    pool = descriptor_pool.DescriptorPool()
    try:
        pool.AddSerializedFile(proto.SerializeToString())
    except (TypeError, ValueError) as exc:
        raise ExportError(
            f"cannot describe {schema.name} as protobuf: {exc}", sheet=schema.name
        ) from exc
    classes: dict[str, type] = {}
    for message in proto.message_type:
        descriptor = pool.FindMessageTypeByName(f"{PROTO_PACKAGE}.{message.name}")
        classes[message.name] = message_factory.GetMessageClass(descriptor)
    return classes


def _fill_vector(target: Any, value: Sequence[float]) -> None:
    for axis, component in zip(VECTOR_AXES, value):
        setattr(target, axis, component)


def _fill_message(message: Any, record: Record, schema: TableSchema) -> None:
    for item in schema.fields:
        value = record.get(item.name)
        if value is None:
            continue
        field_type = item.field_type
        if field_type.is_list:
            container = getattr(message, item.name)
            if field_type.base.is_vector:
                for element in value:
                    _fill_vector(container.add(), element)
            else:
                container.extend(value)
        elif field_type.base.is_vector:
            _fill_vector(getattr(message, item.name), value)
        else:
            setattr(message, item.name, value)


class ProtobufSerializer(Serializer):
    """Binary tagged records using dynamically built protobuf messages."""

    format = "protobuf"
    extension = "bin"

    def _serialize(self, schema: TableSchema, records: tuple[Record, ...]) -> bytes:
        classes = message_classes(schema)
        try:
            if schema.kind is SheetKind.KV:
                message = classes[schema.name]()
                if records:
                    _fill_message(message, records[0], schema)
                return message.SerializeToString(deterministic=True)

            wrapper = classes[f"{schema.name}Array"]()
            for record in records:
                _fill_message(wrapper.items.add(), record, schema)
            return wrapper.SerializeToString(deterministic=True)
        except (TypeError, ValueError) as exc:
            raise ExportError(f"cannot encode {schema.name}: {exc}", sheet=schema.name) from exc


_SERIALIZERS: Mapping[str, type[Serializer]] = MappingProxyType(
    {
        "json": JsonSerializer,
        "structured-text": JsonSerializer,
        "csv": CsvSerializer,
        "tabular-text": CsvSerializer,
        "protobuf": ProtobufSerializer,
        "protobuff": ProtobufSerializer,
        "binary": ProtobufSerializer,
        "bin": ProtobufSerializer,
        "binary-tagged-record": ProtobufSerializer,
        "yaml": YamlSerializer,
        "yml": YamlSerializer,
        "xml": XmlSerializer,
    }
)


def supported_formats() -> Iterable[str]:
    return tuple(_SERIALIZERS)


def serializer_for(format_tag: str | None) -> Serializer:
    """Return a serializer for a target's output format tag."""

    tag = (format_tag or "").strip().lower()
    cls = _SERIALIZERS.get(tag)
    if cls is None:
        raise TargetConfigError(f"unsupported output format: {format_tag!r}")
    return cls()


__all__ = [
    "CsvSerializer",
    "JsonSerializer",
    "ProtobufSerializer",
    "Serializer",
    "XmlSerializer",
    "YamlSerializer",
    "build_file_descriptor",
    "message_classes",
    "serializer_for",
    "supported_formats",
]
