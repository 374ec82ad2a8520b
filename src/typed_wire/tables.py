"""Conversion of wire maps and lists to indexed tables.

Three wire forms are understood:

- key/value maps, for tables whose rows are exactly a primitive ``key``
  and a ``value`` indexed by ``key``: every map entry becomes a row
- the full form ``{"indexNames": [...], "values": [row, ...]}``
- nested maps, one level per index field, with the rows as leaves; a
  table without index fields is keyed by the single level of map keys

A plain list is read as a list of rows.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

from typed_wire.errors import TypeMismatch
from typed_wire.infer import field_key, item_key
from typed_wire.types import (
    RecordDescriptor,
    RecordValue,
    TableDescriptor,
    TableValue,
    TypeDescriptor,
)

if TYPE_CHECKING:
    from typed_wire.engine import WireConverter

logger = logging.getLogger(__name__)

INDEX_NAMES = "indexNames"
VALUES = "values"


def is_full_form(value: Any) -> bool:
    return isinstance(value, dict) and set(value) == {INDEX_NAMES, VALUES}


class TableConverter:
    """Converts wire data to a ``TableValue``.

    When the table's row type is not declared it is inferred from the first
    row and every further row must have exactly that shape; a row that does
    not fit raises ``TypeMismatch``. Index values must be present in every
    row and unique across the table.
    """

    def __init__(self, parent: WireConverter) -> None:
        self.parent = parent

    def can_convert(self, descriptor: TypeDescriptor) -> bool:
        return isinstance(descriptor, TableDescriptor)

    def convert(self, value: Any, descriptor: TableDescriptor, key: str) -> TableValue:
        if isinstance(value, str):
            value = self.parent.expand_string(value, descriptor, key)
        if descriptor.is_key_value:
            return self._convert_key_value(value, descriptor, key)
        if is_full_form(value):
            return self._convert_full(value, descriptor, key)
        if isinstance(value, list):
            if not descriptor.index_fields:
                raise TypeMismatch("A table without index fields must be given as a map", key, descriptor)
            return self._convert_rows(((None, row) for row in value), descriptor, key)
        if isinstance(value, dict):
            if not descriptor.index_fields:
                return self._convert_rows(value.items(), descriptor, key)
            return self._convert_rows(
                ((None, row) for row in self._leaves(value, len(descriptor.index_fields), descriptor, key)),
                descriptor,
                key,
            )
        raise TypeMismatch(f"Cannot convert a {type(value).__name__} to a table", key, descriptor)

    def _convert_key_value(self, value: Any, descriptor: TableDescriptor, key: str) -> TableValue:
        if not isinstance(value, dict):
            raise TypeMismatch(f"Expected a map, got {type(value).__name__}", key, descriptor)
        row_type = descriptor.row_type
        key_type = row_type.get_field("key").type_def
        value_type = row_type.get_field("value").type_def
        rows: dict[tuple, RecordValue] = {}
        for map_key, item in value.items():
            index = self.parent.convert_nested(map_key, key_type, field_key(key, "key"))
            if (index,) in rows:
                raise TypeMismatch(f"Duplicate key {index!r}", key, descriptor)
            converted = None
            if item is not None:
                converted = self.parent.convert_nested(item, value_type, field_key(key, "value"))
            rows[(index,)] = RecordValue(row_type, {"key": index, "value": converted})
        return TableValue(descriptor, rows)

    def _convert_full(self, value: dict, descriptor: TableDescriptor, key: str) -> TableValue:
        names = value[INDEX_NAMES]
        rows = value[VALUES]
        if not isinstance(names, list) or not all(isinstance(n, str) for n in names):
            raise TypeMismatch(f"'{INDEX_NAMES}' must be a list of strings", key, descriptor)
        if not isinstance(rows, list):
            raise TypeMismatch(f"'{VALUES}' must be a list of rows", key, descriptor)
        if not descriptor.index_fields:
            row_type = descriptor.row_type
            if row_type is not None and any(row_type.get_field(n) is None for n in names):
                raise TypeMismatch(f"Index names {names} are not all fields of {row_type.name}", key, descriptor)
            descriptor = TableDescriptor(name=descriptor.name, index_fields=tuple(names), row_type=row_type)
        elif tuple(names) != descriptor.index_fields:
            raise TypeMismatch(
                f"Index names {names} do not match {list(descriptor.index_fields)}", key, descriptor
            )
        return self._convert_rows(((None, row) for row in rows), descriptor, key)

    def _leaves(self, value: Any, depth: int, descriptor: TableDescriptor, key: str) -> Iterator[Any]:
        if depth == 0:
            yield value
            return
        if not isinstance(value, dict):
            raise TypeMismatch(
                f"Expected {depth} more level(s) of nested maps, got {type(value).__name__}", key, descriptor
            )
        for item in value.values():
            yield from self._leaves(item, depth - 1, descriptor, key)

    def _convert_rows(self, rows: Any, descriptor: TableDescriptor, key: str) -> TableValue:
        row_key = item_key(key)
        row_type = descriptor.row_type
        inferred = row_type is None
        converted: dict[tuple, RecordValue] = {}
        for map_key, row in rows:
            if row_type is None:
                if not isinstance(row, dict):
                    raise TypeMismatch(f"Expected a map for a table row, got {type(row).__name__}", key, descriptor)
                row_type = self.parent.infer_record(row, row_key)
                missing = [n for n in descriptor.index_fields if row_type.get_field(n) is None]
                if missing:
                    raise TypeMismatch(f"Index fields {missing} missing from the first row", key, descriptor)
                logger.debug("Inferred row type of '%s' from its first row: %s", key, row_type.field_names)
                descriptor = descriptor.with_row_type(row_type)
            if inferred:
                self.parent.records.check_shape(row, row_type, row_key)
            record = self.parent.convert_nested(row, row_type, row_key)
            if not isinstance(record, RecordValue):
                # Forgiving mode left the row unconverted
                raise TypeMismatch("Table row could not be converted", row_key, row_type)
            index = self._index_of(row, record, map_key, descriptor, key)
            if index in converted:
                raise TypeMismatch(f"Duplicate index {index!r}", key, descriptor)
            converted[index] = record
        if row_type is not None and descriptor.row_type is None:
            descriptor = descriptor.with_row_type(row_type)
        return TableValue(descriptor, converted)

    def _index_of(
        self, row: Any, record: RecordValue, map_key: Any, descriptor: TableDescriptor, key: str
    ) -> tuple:
        if not descriptor.index_fields:
            return (map_key,)
        index = []
        for name in descriptor.index_fields:
            value = record.get(name)
            # Absent index fields would otherwise show up as neutral values
            if value is None or (isinstance(row, dict) and row.get(name) is None):
                raise TypeMismatch(f"Row has no value for index field '{name}'", key, descriptor)
            index.append(value)
        try:
            hash(tuple(index))
        except TypeError:
            raise TypeMismatch(
                f"Index values {index!r} cannot identify a row", key, descriptor
            ) from None
        return tuple(index)


def table_of(
    index_fields: list[str] | tuple[str, ...] = (),
    row_type: RecordDescriptor | None = None,
    name: str = "table",
) -> TableDescriptor:
    """Create a table descriptor; leave ``row_type`` out to infer it from the data."""
    return TableDescriptor(name=name, index_fields=tuple(index_fields), row_type=row_type)
