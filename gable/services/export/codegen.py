"""Accessor code generation through per-language jinja2 templates."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from google.protobuf import descriptor_pb2
from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from gable.core.errors import TargetConfigError
from gable.services.compiler.layout import SheetKind
from gable.services.compiler.schema import EnumTable, TableSchema

from .languages import LanguageSpec, language_spec
from .serializers import build_file_descriptor

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
PROTO_TEMPLATE = "proto.j2"

FDP = descriptor_pb2.FieldDescriptorProto

_PROTO_TYPE_NAMES = {
    FDP.TYPE_INT32: "int32",
    FDP.TYPE_INT64: "int64",
    FDP.TYPE_FLOAT: "float",
    FDP.TYPE_BOOL: "bool",
    FDP.TYPE_STRING: "string",
}
_PROTO_LABELS = {FDP.LABEL_OPTIONAL: "optional", FDP.LABEL_REPEATED: "repeated"}


def _upper_first(name: str) -> str:
    return name[:1].upper() + name[1:]


def _proto_fields(message: descriptor_pb2.DescriptorProto, descriptions: dict[str, str]) -> list[dict]:
    fields = []
    for entry in message.field:
        if entry.type == FDP.TYPE_MESSAGE:
            # Short names resolve to the nested vector first, then the package.
            type_name = entry.type_name.rsplit(".", 1)[-1]
        else:
            type_name = _PROTO_TYPE_NAMES[entry.type]
        fields.append(
            {
                "label": _PROTO_LABELS[entry.label],
                "type": type_name,
                "name": entry.name,
                "number": entry.number,
                "description": descriptions.get(entry.name, ""),
            }
        )
    return fields


class CodeGenerator:
    """Render a record shape plus lookup container for one target language."""

    def __init__(self, templates_dir: Path | None = None) -> None:
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir or TEMPLATES_DIR)),
            autoescape=select_autoescape(enabled_extensions=()),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            undefined=StrictUndefined,
        )
        self.env.filters["upper_first"] = _upper_first

    def _language(self, language: str) -> LanguageSpec:
        spec = language_spec(language)
        if spec is None:
            raise TargetConfigError(f"no code template for language {language!r}")
        return spec

    def generate(self, schema: TableSchema, language: str) -> str:
        """Source text for a DATA or KV schema (usually already projected).

        Raises:
            TargetConfigError: For an unknown language, or a field name the
                language reserves and cannot escape.
        """

        if schema.kind is SheetKind.ENUM:
            raise TargetConfigError(f"{schema.name} is an enum; use generate_enum")
        spec = self._language(language)
        fields = [
            {
                "name": spec.identifier(item.name),
                "key": item.name,
                "type": spec.field_type_name(item),
                "boxed": spec.boxed_name(spec.field_type_name(item)),
                "description": item.description,
                "index": item.index,
                "is_key": item.is_key,
            }
            for item in schema.fields
        ]
        keys = [entry for entry in fields if entry["is_key"]]
        enums = sorted(
            {item.field_type.enum_name for item in schema.fields if item.field_type.enum_name}
        )
        return self._render(
            spec,
            kind=schema.kind.value,
            class_name=schema.name,
            instance_name=schema.name[:1].lower() + schema.name[1:],
            fields=fields,
            keys=keys,
            enums=enums,
            members=[],
        )

    def generate_enum(self, enum_table: EnumTable, language: str) -> str:
        spec = self._language(language)
        members = [
            {"name": member.name, "value": member.value, "description": member.description}
            for member in enum_table.members
        ]
        return self._render(
            spec,
            kind=SheetKind.ENUM.value,
            class_name=enum_table.name,
            instance_name=enum_table.name[:1].lower() + enum_table.name[1:],
            fields=[],
            keys=[],
            enums=[],
            members=members,
        )

    def generate_proto(self, schema: TableSchema) -> str:
        """``.proto`` source matching the messages ``ProtobufSerializer`` writes."""

        if schema.kind is SheetKind.ENUM:
            raise TargetConfigError(f"{schema.name} is an enum; it has no message schema")
        proto = build_file_descriptor(schema)
        descriptions = {item.name: item.description for item in schema.fields}
        messages = [
            {
                "name": message.name,
                "nested": [
                    {"name": nested.name, "fields": _proto_fields(nested, {})}
                    for nested in message.nested_type
                ],
                "fields": _proto_fields(
                    message, descriptions if message.name == schema.name else {}
                ),
            }
            for message in proto.message_type
        ]
        logger.debug("rendering %s for %s", PROTO_TEMPLATE, schema.name)
        return self.env.get_template(PROTO_TEMPLATE).render(
            syntax=proto.syntax, package=proto.package, messages=messages
        )

    def _render(self, spec: LanguageSpec, **context: Any) -> str:
        template = self.env.get_template(spec.template)
        logger.debug("rendering %s for %s", spec.template, context["class_name"])
        return template.render(language=spec.tag, **context)


__all__ = ["CodeGenerator", "PROTO_TEMPLATE", "TEMPLATES_DIR"]
