"""Reverse conversion: target-side object graphs to wire values."""

from __future__ import annotations

import array
import dataclasses
import itertools
import logging
import math
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from typed_wire.context import ConversionContext
from typed_wire.errors import ConversionError, UnsupportedConversion
from typed_wire.infer import field_key, item_key
from typed_wire.types import (
    ArrayDescriptor,
    EntityName,
    PrimitiveDescriptor,
    RecordDescriptor,
    RecordValue,
    TableDescriptor,
    TableValue,
    TypedValue,
    TypeDescriptor,
)

logger = logging.getLogger(__name__)

OBJECT_LIMIT_EXCEEDED = "[Object limit exceeded]"


@dataclass
class _Walk:
    """State of one ``to_wire`` call."""

    active: set[int] = field(default_factory=set)
    depth: int = 0
    objects: int = 0


class ObjectToWireConverter:
    """Walks an object graph and produces wire values.

    Map keys that are not strings go through the scalar registry's string
    allow-list; a key without a faithful string form fails the whole
    conversion instead of being stringified some arbitrary way.

    The context's ``SerializeOptions`` bound the walk: containers below the
    depth limit are written as strings, lists and maps are truncated to the
    collection size limit and values past the object limit become
    ``OBJECT_LIMIT_EXCEEDED``.
    """

    def __init__(self, context: ConversionContext | None = None) -> None:
        self.context = context if context is not None else ConversionContext()

    def to_wire(self, obj: Any, descriptor: TypeDescriptor | None = None, key: str = "") -> Any:
        """Convert ``obj`` to a wire value, guided by ``descriptor`` when given.

        Raises:
            UnsupportedConversion: for objects, or map keys, with no wire form
                and for cyclic object graphs, unless the fault handler is
                ``ignore``.
        """
        return self._to_wire(obj, descriptor, key, _Walk())

    def _to_wire(self, obj: Any, descriptor: TypeDescriptor | None, key: str, walk: _Walk) -> Any:
        if obj is None:
            return None
        options = self.context.serialize
        walk.objects += 1
        if options.max_objects and walk.objects > options.max_objects:
            return OBJECT_LIMIT_EXCEEDED
        try:
            return self._convert(obj, descriptor, key, walk)
        except ConversionError as e:
            if not options.ignore_faults:
                raise
            logger.debug("Writing error in place of the value at '%s': %s", key, e)
            return f"ERROR: {e} ({type(e).__name__})"

    def _convert(self, obj: Any, descriptor: TypeDescriptor | None, key: str, walk: _Walk) -> Any:
        if isinstance(descriptor, PrimitiveDescriptor):
            try:
                return self.context.scalars.to_wire(obj, descriptor.kind)
            except ConversionError as e:
                raise e.locate(key, descriptor) from None
        scalar = self._scalar(obj)
        if scalar is not _NOT_SCALAR:
            return scalar

        max_depth = self.context.serialize.max_depth
        if max_depth and walk.depth >= max_depth:
            return self._depth_cut(obj)
        if id(obj) in walk.active:
            raise UnsupportedConversion(f"Cyclic reference to a {type(obj).__name__}", key, descriptor)
        walk.active.add(id(obj))
        walk.depth += 1
        try:
            return self._structured(obj, descriptor, key, walk)
        finally:
            walk.depth -= 1
            walk.active.discard(id(obj))

    def _scalar(self, obj: Any) -> Any:
        if isinstance(obj, (bool, str)):
            return obj
        if isinstance(obj, TypedValue):
            return self.context.scalars.to_wire(obj, obj.kind)
        if isinstance(obj, int):
            return int(obj)
        if isinstance(obj, float):
            return obj if math.isfinite(obj) else None
        if isinstance(obj, Decimal):
            return obj if obj.is_finite() else None
        if isinstance(obj, Enum):
            return obj.name
        if isinstance(obj, date):
            return self.context.date_format.format(obj)
        if isinstance(obj, (uuid.UUID, EntityName)):
            return str(obj)
        if isinstance(obj, (bytes, bytearray)):
            return list(obj)
        return _NOT_SCALAR

    def _depth_cut(self, obj: Any) -> str:
        if self.context.scalars.is_stringifiable(obj):
            return self.context.scalars.to_string(obj)
        return str(obj)

    def _limited(self, items: Iterable[Any]) -> Iterable[Any]:
        size = self.context.serialize.max_collection_size
        return itertools.islice(items, size) if size else items

    def _structured(self, obj: Any, descriptor: TypeDescriptor | None, key: str, walk: _Walk) -> Any:
        if isinstance(obj, TableValue):
            return self._table(obj, key, walk)
        if isinstance(obj, RecordValue):
            return self._record(obj, obj.descriptor, key, walk)
        if isinstance(obj, Mapping):
            if isinstance(descriptor, RecordDescriptor):
                return self._record(obj, descriptor, key, walk)
            value_type = None
            if isinstance(descriptor, TableDescriptor) and descriptor.is_key_value:
                value_type = descriptor.row_type.get_field("value").type_def
            return {
                self._key_string(k, key, descriptor): self._to_wire(v, value_type, field_key(key, str(k)), walk)
                for k, v in self._limited(obj.items())
            }
        if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
            values = {f.name: getattr(obj, f.name) for f in dataclasses.fields(obj)}
            if isinstance(descriptor, RecordDescriptor):
                return self._record(values, descriptor, key, walk)
            return {name: self._to_wire(v, None, field_key(key, name), walk) for name, v in values.items()}
        if isinstance(obj, (Iterable, array.array)):
            component = descriptor.component if isinstance(descriptor, ArrayDescriptor) else None
            sub_key = item_key(key)
            return [self._to_wire(item, component, sub_key, walk) for item in self._limited(obj)]
        if self.context.scalars.is_stringifiable(obj):
            return self.context.scalars.to_string(obj)
        raise UnsupportedConversion(f"No wire form for {type(obj).__name__} values", key, descriptor)

    def _record(self, obj: Mapping, descriptor: RecordDescriptor, key: str, walk: _Walk) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for f in descriptor.fields:
            if f.name in obj:
                result[f.name] = self._to_wire(obj[f.name], f.type_def, field_key(key, f.name), walk)
        for name, value in obj.items():
            if name not in result:
                result[self._key_string(name, key, descriptor)] = self._to_wire(
                    value, None, field_key(key, str(name)), walk
                )
        return result

    def _table(self, table: TableValue, key: str, walk: _Walk) -> Any:
        descriptor = table.descriptor
        row_type = descriptor.row_type
        if descriptor.is_key_value:
            value_type = row_type.get_field("value").type_def
            value_key = field_key(key, "value")
            return {
                self._key_string(row["key"], key, descriptor): self._to_wire(row["value"], value_type, value_key, walk)
                for row in self._limited(table.values())
            }
        sub_key = item_key(key)
        if not descriptor.index_fields:
            return {
                self._key_string(index[0], key, descriptor): self._record(row, row_type, sub_key, walk)
                for index, row in self._limited(table.items())
            }
        if row_type is not None and all(
            isinstance(row_type.get_field(n).type_def, PrimitiveDescriptor) for n in descriptor.index_fields
        ):
            nested: dict[str, Any] = {}
            for index, row in self._limited(table.items()):
                level = nested
                for value in index[:-1]:
                    level = level.setdefault(self._key_string(value, key, descriptor), {})
                level[self._key_string(index[-1], key, descriptor)] = self._record(row, row_type, sub_key, walk)
            return nested
        return {
            "indexNames": list(descriptor.index_fields),
            "values": [
                self._record(row, row.descriptor, sub_key, walk) for row in self._limited(table.values())
            ],
        }

    def _key_string(self, value: Any, key: str, descriptor: TypeDescriptor | None) -> str:
        try:
            return self.context.scalars.to_string(value)
        except UnsupportedConversion as e:
            raise UnsupportedConversion(
                f"Map key {value!r} cannot be converted to a string: {e.reason}", key, descriptor
            ) from None


class _NotScalar:
    def __repr__(self) -> str:
        return "<not scalar>"


_NOT_SCALAR = _NotScalar()
