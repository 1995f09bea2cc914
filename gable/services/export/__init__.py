"""Serializers and code generation for compiled tables."""

from __future__ import annotations

from .codegen import CodeGenerator
from .languages import (
    LANGUAGE_EXTENSIONS,
    LANGUAGES,
    LanguageSpec,
    default_keyword,
    extension_for,
    language_spec,
)
from .serializers import (
    CsvSerializer,
    JsonSerializer,
    ProtobufSerializer,
    Serializer,
    XmlSerializer,
    YamlSerializer,
    message_classes,
    serializer_for,
)

__all__ = [
    "CodeGenerator",
    "CsvSerializer",
    "JsonSerializer",
    "LANGUAGES",
    "LANGUAGE_EXTENSIONS",
    "LanguageSpec",
    "ProtobufSerializer",
    "Serializer",
    "XmlSerializer",
    "YamlSerializer",
    "default_keyword",
    "extension_for",
    "language_spec",
    "message_classes",
    "serializer_for",
]
