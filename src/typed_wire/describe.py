"""JSON representation of type descriptors.

Descriptors travel over the same wire as values:

- primitives are their kind name, e.g. ``"int32"``; unknown is ``"unknown"``
- arrays: ``{"kind": "array", "type", "dimension", "primitive", "elemType"}``
- records: ``{"kind": "record", "type", "items": {field: descriptor}}``
- tables: ``{"kind": "table", "type", "index": [...], "rowType"}``
"""

from __future__ import annotations

import logging
from typing import Any

from typed_wire.parsing import DescriptorParser
from typed_wire.types import (
    PRIMITIVE_KIND_NAMES,
    UNKNOWN,
    ArrayDescriptor,
    FieldDefinition,
    PrimitiveDescriptor,
    RecordDescriptor,
    TableDescriptor,
    TypeDescriptor,
)

logger = logging.getLogger(__name__)


def describe(descriptor: TypeDescriptor) -> Any:
    """Return the wire representation of a descriptor."""
    if isinstance(descriptor, PrimitiveDescriptor):
        return descriptor.kind.value
    if isinstance(descriptor, ArrayDescriptor):
        return {
            "kind": "array",
            "type": descriptor.name,
            "dimension": descriptor.dimension,
            "primitive": descriptor.packed,
            "elemType": describe(descriptor.element),
        }
    if isinstance(descriptor, RecordDescriptor):
        return {
            "kind": "record",
            "type": descriptor.name,
            "items": {f.name: describe(f.type_def) for f in descriptor.fields},
        }
    if isinstance(descriptor, TableDescriptor):
        return {
            "kind": "table",
            "type": descriptor.name,
            "index": list(descriptor.index_fields),
            "rowType": describe(descriptor.row_type) if descriptor.row_type is not None else None,
        }
    return UNKNOWN.name


def descriptor_from_wire(data: Any, parser: DescriptorParser | None = None) -> TypeDescriptor | None:
    """Read a descriptor back from its wire representation.

    Strings are primitive kind names, or any type name ``parser`` accepts
    when one is given. Returns None for representations that do not
    describe a descriptor.
    """
    try:
        return _from_wire(data, parser)
    except (KeyError, TypeError, ValueError) as e:
        logger.debug("Not a descriptor representation: %r (%s)", data, e)
        return None


def _from_wire(data: Any, parser: DescriptorParser | None) -> TypeDescriptor | None:
    if isinstance(data, str):
        if data == UNKNOWN.name:
            return UNKNOWN
        if parser is not None:
            return parser.parse(data)
        kind = PRIMITIVE_KIND_NAMES.get(data)
        return PrimitiveDescriptor.of(kind) if kind is not None else None
    if not isinstance(data, dict):
        return None

    kind = data.get("kind")
    if kind in ("record", "table") and not isinstance(data.get("type"), str):
        return None
    if kind == "array":
        element = _from_wire(data["elemType"], parser)
        if element is None:
            return None
        dimension = data.get("dimension", 1)
        if not isinstance(dimension, int) or isinstance(dimension, bool):
            return None
        return ArrayDescriptor.of(element, dimension, packed=data.get("primitive") is True)
    if kind == "record":
        items = data["items"]
        if not isinstance(items, dict):
            return None
        fields = []
        for name, item in items.items():
            field_type = _from_wire(item, parser)
            if field_type is None:
                return None
            fields.append(FieldDefinition(name, field_type))
        return RecordDescriptor(name=data["type"], fields=tuple(fields))
    if kind == "table":
        index = data.get("index", [])
        if not isinstance(index, list) or not all(isinstance(n, str) for n in index):
            return None
        row_data = data.get("rowType")
        row_type = None
        if row_data is not None:
            row_type = _from_wire(row_data, parser)
            if not isinstance(row_type, RecordDescriptor):
                return None
        return TableDescriptor(name=data["type"], index_fields=tuple(index), row_type=row_type)
    return None
