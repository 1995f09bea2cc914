"""Per-target projection of schemas and records."""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterable

from .schema import Record, TableSchema


def project_schema(schema: TableSchema, keyword: str | None) -> TableSchema:
    """Keep fields emitted for ``keyword``; key fields always survive.

    Fields with an empty platform set belong to every platform. An empty
    keyword disables filtering and returns ``schema`` itself.
    """

    if not keyword or not keyword.strip():
        return schema
    tag = keyword.strip().lower()
    kept = [item for item in schema.fields if item.is_key or item.included_for(tag)]
    if len(kept) == len(schema.fields):
        return schema
    return schema.with_fields(kept)


def project_record(record: Record, schema: TableSchema) -> Record:
    return MappingProxyType({item.name: record.get(item.name) for item in schema.fields})


def project_records(records: Iterable[Record], schema: TableSchema) -> tuple[Record, ...]:
    return tuple(project_record(record, schema) for record in records)


__all__ = ["project_record", "project_records", "project_schema"]
