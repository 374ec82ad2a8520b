"""Schema inference: build a type descriptor from the data itself."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from typed_wire.cache import TypeCache
from typed_wire.errors import AmbiguousSchema
from typed_wire.types import (
    FLOAT64_MAX,
    UNKNOWN,
    ArrayDescriptor,
    FieldDefinition,
    PrimitiveDescriptor,
    PrimitiveKind,
    RecordDescriptor,
    TypeDescriptor,
    type_range,
)

logger = logging.getLogger(__name__)

INFERRED_RECORD_NAME = "inferred"

_INTEGER_RANK = {
    PrimitiveKind.INT8: 0,
    PrimitiveKind.INT16: 1,
    PrimitiveKind.INT32: 2,
    PrimitiveKind.INT64: 3,
    PrimitiveKind.BIGINT: 4,
}


def item_key(key: str) -> str:
    """Sub-key shared by all elements of a list."""
    return f"{key}.item" if key else "item"


def field_key(key: str, name: str) -> str:
    """Sub-key of a named field."""
    return f"{key}.{name}" if key else name


def infer_number_kind(value: Any) -> PrimitiveKind:
    if isinstance(value, int):
        for kind in (PrimitiveKind.INT32, PrimitiveKind.INT64):
            lo, hi = type_range(kind)
            if lo <= value <= hi:
                return kind
        return PrimitiveKind.BIGINT
    if isinstance(value, Decimal) and value.copy_abs() > Decimal(FLOAT64_MAX):
        return PrimitiveKind.DECIMAL
    return PrimitiveKind.FLOAT64


def widen(kinds: list[PrimitiveKind]) -> PrimitiveKind:
    """Return the narrowest numeric kind able to hold every kind in ``kinds``."""
    if all(k in _INTEGER_RANK for k in kinds):
        return max(kinds, key=_INTEGER_RANK.__getitem__)
    if len(set(kinds)) == 1:
        return kinds[0]
    if PrimitiveKind.DECIMAL in kinds or PrimitiveKind.BIGINT in kinds:
        return PrimitiveKind.DECIMAL
    return PrimitiveKind.FLOAT64


class TypeInferrer:
    """Infers descriptors from wire values.

    Null values and empty lists carry no shape of their own; they are
    resolved from the cache entry of their sub-key. Without one they are
    ambiguous: an ``AmbiguousSchema`` error in strict mode, the unknown
    descriptor in forgiving mode. Empty maps are always an error.
    """

    def __init__(self, cache: TypeCache) -> None:
        self.cache = cache

    def infer(self, value: Any, key: str = "", forgiving: bool = False) -> TypeDescriptor:
        if value is None or (isinstance(value, list) and not value):
            return self._from_hint(value, key, forgiving)
        if isinstance(value, bool):
            return PrimitiveDescriptor.of(PrimitiveKind.BOOLEAN)
        if isinstance(value, (int, Decimal, float)):
            return PrimitiveDescriptor.of(infer_number_kind(value))
        if isinstance(value, str):
            return PrimitiveDescriptor.of(PrimitiveKind.STRING)
        if isinstance(value, list):
            return self._infer_array(value, key, forgiving)
        return self.infer_record(value, key, forgiving)

    def infer_record(self, value: dict, key: str = "", forgiving: bool = False) -> RecordDescriptor:
        if not value:
            raise AmbiguousSchema(
                "Cannot infer a record type from an empty map", key, suppressible=False
            )
        fields = []
        for name, item in value.items():
            sub_key = field_key(key, name)
            fields.append(FieldDefinition(name, self._infer_nested(item, sub_key, forgiving)))
        return RecordDescriptor(name=INFERRED_RECORD_NAME, fields=tuple(fields), inferred=True)

    def fits(self, value: Any, descriptor: TypeDescriptor) -> bool:
        """Check whether ``value`` has the shape an earlier inference gave its key.

        Nulls and empty lists fit any shape and take theirs from ``descriptor``.
        A number fits a numeric kind at least as wide as its own kind. A map
        fits a record only with exactly the record's keys.
        """
        if value is None or descriptor.is_unknown:
            return True
        if isinstance(descriptor, PrimitiveDescriptor):
            if isinstance(value, bool):
                return descriptor.kind is PrimitiveKind.BOOLEAN
            if isinstance(value, str):
                return descriptor.kind is PrimitiveKind.STRING
            if isinstance(value, (int, Decimal, float)) and descriptor.kind.is_numeric:
                return widen([descriptor.kind, infer_number_kind(value)]) is descriptor.kind
            return False
        if isinstance(descriptor, ArrayDescriptor):
            return isinstance(value, list) and all(self.fits(item, descriptor.component) for item in value)
        if isinstance(descriptor, RecordDescriptor):
            if not isinstance(value, dict) or set(value) != set(descriptor.field_names):
                return False
            return all(self.fits(item, descriptor.get_field(name).type_def) for name, item in value.items())
        return False

    def _infer_nested(self, value: Any, key: str, forgiving: bool) -> TypeDescriptor:
        descriptor = self.infer(value, key, forgiving)
        if descriptor.is_complete:
            self.cache.put_inferred(key, descriptor)
        return descriptor

    def _from_hint(self, value: Any, key: str, forgiving: bool) -> TypeDescriptor:
        hint = self.cache.hint(key)
        if hint is not None and not hint.is_unknown:
            return hint
        what = "null" if value is None else "an empty list"
        if forgiving:
            logger.debug("No type for %s at '%s', leaving it unconverted", what, key)
            return UNKNOWN
        raise AmbiguousSchema(f"Cannot infer a type from {what} without a cached type", key)

    def _infer_array(self, value: list, key: str, forgiving: bool) -> TypeDescriptor:
        sub_key = item_key(key)
        present = [item for item in value if item is not None]
        if not present:
            element = self._from_hint(None, sub_key, forgiving)
        else:
            # Elements may fill in each other's gaps, so ambiguity is judged
            # on the merged element type
            element = self._merge([self.infer(item, sub_key, True) for item in present])
            if element.is_complete:
                self.cache.put_inferred(sub_key, element)
            elif not forgiving:
                hint = self.cache.hint(sub_key)
                if hint is None or hint.is_unknown:
                    raise AmbiguousSchema("Cannot infer a complete element type from the list items", sub_key)
                element = hint
        if isinstance(element, ArrayDescriptor):
            return ArrayDescriptor.of(element.element, element.dimension + 1)
        return ArrayDescriptor.of(element)

    def _merge(self, descriptors: list[TypeDescriptor]) -> TypeDescriptor:
        known = [d for d in descriptors if not d.is_unknown]
        if not known:
            return UNKNOWN
        if all(isinstance(d, PrimitiveDescriptor) and d.kind.is_numeric for d in known):
            return PrimitiveDescriptor.of(widen([d.kind for d in known]))
        if all(isinstance(d, RecordDescriptor) for d in known):
            # Union of the fields seen in any element, in first-seen order
            fields: dict[str, list[TypeDescriptor]] = {}
            for d in known:
                for f in d.fields:
                    fields.setdefault(f.name, []).append(f.type_def)
            return RecordDescriptor(
                name=INFERRED_RECORD_NAME,
                fields=tuple(FieldDefinition(name, self._merge(types)) for name, types in fields.items()),
                inferred=True,
            )
        return known[0]
