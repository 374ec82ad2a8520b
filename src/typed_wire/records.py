"""Conversion of wire maps to records."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from typed_wire.errors import TypeMismatch, UnknownField
from typed_wire.infer import field_key
from typed_wire.types import (
    FieldDefinition,
    PrimitiveDescriptor,
    PrimitiveKind,
    RecordDescriptor,
    RecordValue,
    TypeDescriptor,
)
from typed_wire.wire import WireKind

if TYPE_CHECKING:
    from typed_wire.engine import WireConverter

logger = logging.getLogger(__name__)

_NEUTRAL_VALUES: dict[PrimitiveKind, Any] = {
    PrimitiveKind.BOOLEAN: False,
    PrimitiveKind.CHAR: "\x00",
    PrimitiveKind.INT8: 0,
    PrimitiveKind.INT16: 0,
    PrimitiveKind.INT32: 0,
    PrimitiveKind.INT64: 0,
    PrimitiveKind.BIGINT: 0,
    PrimitiveKind.FLOAT32: 0.0,
    PrimitiveKind.FLOAT64: 0.0,
    PrimitiveKind.DECIMAL: Decimal(0),
    PrimitiveKind.STRING: "",
}


def neutral_value(field_def: FieldDefinition) -> Any:
    """Return the value a field takes when the wire map does not mention it."""
    if field_def.default_value is not None:
        return field_def.default_value
    if isinstance(field_def.type_def, PrimitiveDescriptor):
        return _NEUTRAL_VALUES.get(field_def.type_def.kind)
    return None


class RecordConverter:
    """Converts a wire map against a record descriptor.

    For a declared record every key must name a field; unknown keys raise
    ``UnknownField`` unless the context is forgiving, in which case they are
    dropped. Fields missing from the map, or present with a null value, take
    their neutral value.

    An inferred record describes values seen earlier, so it never drops keys
    and never invents values: unknown keys always raise ``UnknownField`` and
    missing or null fields stay ``None``.
    """

    def __init__(self, parent: WireConverter) -> None:
        self.parent = parent

    def can_convert(self, descriptor: TypeDescriptor) -> bool:
        return isinstance(descriptor, RecordDescriptor)

    def convert(self, value: Any, descriptor: RecordDescriptor, key: str) -> RecordValue:
        data = self.parent.expect(value, WireKind.MAP, descriptor, key)
        drop_unknown = self.parent.context.forgiving and not descriptor.inferred
        values: dict[str, Any] = {}
        for name, item in data.items():
            field_def = descriptor.get_field(name)
            if field_def is None:
                if drop_unknown:
                    logger.debug("Ignoring unknown field '%s' of %s at '%s'", name, descriptor.name, key)
                    continue
                raise UnknownField(
                    f"Unknown field '{name}' (known fields: {', '.join(descriptor.field_names)})",
                    key,
                    descriptor,
                )
            if item is None:
                continue
            values[name] = self.parent.convert_nested(item, field_def.type_def, field_key(key, name))
        if not descriptor.inferred:
            for field_def in descriptor.fields:
                if field_def.name not in values:
                    values[field_def.name] = neutral_value(field_def)
        return RecordValue(descriptor, values)

    def check_shape(self, value: Any, descriptor: RecordDescriptor, key: str) -> None:
        """Reject maps carrying keys the record does not declare, regardless of forgiving mode."""
        if not isinstance(value, dict):
            raise TypeMismatch(f"Expected a map, got {type(value).__name__}", key, descriptor)
        extra = [name for name in value if descriptor.get_field(name) is None]
        if extra:
            raise TypeMismatch(
                f"Fields {extra} are not part of {descriptor.name} ({', '.join(descriptor.field_names)})",
                key,
                descriptor,
            )
