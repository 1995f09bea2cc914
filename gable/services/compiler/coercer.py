"""Strict cell-to-value coercion for declared field types."""

from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from typing import Any, Callable

from gable.core.errors import CoercionError, UnresolvedReferenceError

from .registry import TableRegistry
from .schema import FieldDef
from .types import BaseType, FieldType

INT32_MIN, INT32_MAX = -(2**31), 2**31 - 1
INT64_MIN, INT64_MAX = -(2**63), 2**63 - 1

_INTEGER_RE = re.compile(r"^[+-]?\d+$")
_CLOCK_RE = re.compile(r"^(\d{1,3}):(\d{1,2})(?::(\d{1,2}))?$")
_DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%Y/%m/%d",
    "%Y/%m/%d %H:%M:%S",
)
_PERCENT_SCALE = {
    BaseType.PERCENTAGE: 100,
    BaseType.PERMILLAGE: 1000,
    BaseType.PERMIAN: 10000,
}
_TRUE = {"true", "1"}
_FALSE = {"false", "0"}


def _fail(text: str, field_type: FieldType | BaseType, reason: str = "") -> CoercionError:
    label = field_type.value if isinstance(field_type, BaseType) else str(field_type)
    message = f"'{text}' is not a valid {label}"
    if reason:
        message += f" ({reason})"
    return CoercionError(message)


def _parse_integer(text: str, base: BaseType, low: int, high: int) -> int:
    if not _INTEGER_RE.match(text):
        raise _fail(text, base)
    value = int(text)
    if value < low or value > high:
        raise _fail(text, base, "out of range")
    return value


def _parse_int(text: str) -> int:
    return _parse_integer(text, BaseType.INT, INT32_MIN, INT32_MAX)


def _parse_long(text: str) -> int:
    return _parse_integer(text, BaseType.LONG, INT64_MIN, INT64_MAX)


def _parse_finite(text: str, base: BaseType) -> float:
    try:
        value = float(text)
    except ValueError:
        raise _fail(text, base) from None
    if not math.isfinite(value):
        raise _fail(text, base, "not finite")
    return value


def _parse_float(text: str) -> float:
    return _parse_finite(text, BaseType.FLOAT)


def _parse_bool(text: str) -> bool:
    lowered = text.lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise _fail(text, BaseType.BOOL, "expected true/false/1/0")


def _parse_time(text: str) -> int:
    if _INTEGER_RE.match(text):
        return _parse_integer(text, BaseType.TIME, 0, INT32_MAX)
    match = _CLOCK_RE.match(text)
    if not match:
        raise _fail(text, BaseType.TIME, "expected seconds or HH:MM[:SS]")
    hours, minutes = int(match.group(1)), int(match.group(2))
    seconds = int(match.group(3) or 0)
    if minutes > 59 or seconds > 59:
        raise _fail(text, BaseType.TIME, "minutes and seconds must be below 60")
    return hours * 3600 + minutes * 60 + seconds


def _parse_date(text: str) -> int:
    if _INTEGER_RE.match(text):
        return _parse_integer(text, BaseType.DATE, INT64_MIN, INT64_MAX)
    for fmt in _DATE_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        return int(parsed.replace(tzinfo=timezone.utc).timestamp())
    raise _fail(text, BaseType.DATE, "expected epoch seconds or YYYY-MM-DD[ HH:MM:SS]")


def _percent_parser(base: BaseType) -> Callable[[str], float]:
    sign = base.value
    scale = _PERCENT_SCALE[base]

    def parse(text: str) -> float:
        if text.endswith(sign):
            return _parse_finite(text[: -len(sign)].strip(), base) / scale
        return _parse_finite(text, base)

    return parse


def _vector_parser(base: BaseType) -> Callable[[str], tuple[float, ...]]:
    arity = base.arity

    def parse(text: str) -> tuple[float, ...]:
        body = text
        if (body.startswith("(") and body.endswith(")")) or (
            body.startswith("[") and body.endswith("]")
        ):
            body = body[1:-1]
        parts = [part.strip() for part in body.split(",")]
        if len(parts) != arity:
            raise _fail(text, base, f"expected {arity} components, got {len(parts)}")
        return tuple(_parse_finite(part, base) for part in parts)

    return parse


_SCALAR_PARSERS: dict[BaseType, Callable[[str], Any]] = {
    BaseType.INT: _parse_int,
    BaseType.LONG: _parse_long,
    BaseType.FLOAT: _parse_float,
    BaseType.BOOL: _parse_bool,
    BaseType.STRING: lambda text: text,
    BaseType.TIME: _parse_time,
    BaseType.DATE: _parse_date,
    BaseType.PERCENTAGE: _percent_parser(BaseType.PERCENTAGE),
    BaseType.PERMILLAGE: _percent_parser(BaseType.PERMILLAGE),
    BaseType.PERMIAN: _percent_parser(BaseType.PERMIAN),
    BaseType.VECTOR2: _vector_parser(BaseType.VECTOR2),
    BaseType.VECTOR3: _vector_parser(BaseType.VECTOR3),
    BaseType.VECTOR4: _vector_parser(BaseType.VECTOR4),
}


class TypeCoercer:
    """Convert raw cell text into typed values.

    Enum and link references are resolved against ``registry``; a coercer
    without a registry rejects every reference.
    """

    def __init__(self, registry: TableRegistry | None = None) -> None:
        self.registry = registry if registry is not None else TableRegistry()

    def coerce(self, raw: str | None, field: FieldDef) -> Any:
        field_type = field.field_type
        text = (raw or "").strip()

        if field_type.is_list:
            if not text:
                return ()
            separator = ";" if field_type.base.is_vector else ","
            values = []
            for element in text.split(separator):
                element = element.strip()
                if not element:
                    raise _fail(text, field_type, "empty list element")
                values.append(self._coerce_one(element, field))
            return tuple(values)

        if not text:
            return "" if field_type.base is BaseType.STRING else None
        return self._coerce_one(text, field)

    def _coerce_one(self, text: str, field: FieldDef) -> Any:
        field_type = field.field_type
        if field_type.base is BaseType.ENUM:
            return self.registry.enum(field_type.enum_name or "").resolve(text)

        value = _SCALAR_PARSERS[field_type.base](text)
        if field.link is not None:
            self._check_link(value, field)
        return value

    def _check_link(self, value: Any, field: FieldDef) -> None:
        link = field.link
        target = self.registry.table(link.table)
        if value not in target.values_of(link.field):
            raise UnresolvedReferenceError(
                f"'{value}' has no matching row in {link}"
            )


__all__ = ["INT32_MAX", "INT32_MIN", "INT64_MAX", "INT64_MIN", "TypeCoercer"]
