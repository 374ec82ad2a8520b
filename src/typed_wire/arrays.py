"""Conversion of wire lists to arrays."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from typed_wire.errors import TypeMismatch
from typed_wire.infer import item_key
from typed_wire.types import ArrayDescriptor, TypeDescriptor
from typed_wire.wire import WireKind

if TYPE_CHECKING:
    from typed_wire.engine import WireConverter


class ArrayConverter:
    """Converts a wire list element by element against an array descriptor.

    Multi-dimensional arrays recurse one dimension at a time. A null element
    is kept as None, except in packed arrays whose elements cannot be null.
    A string holding a JSON array is accepted in place of a list.
    """

    def __init__(self, parent: WireConverter) -> None:
        self.parent = parent

    def can_convert(self, descriptor: TypeDescriptor) -> bool:
        return isinstance(descriptor, ArrayDescriptor)

    def convert(self, value: Any, descriptor: ArrayDescriptor, key: str) -> list[Any]:
        items = self.parent.expect(value, WireKind.LIST, descriptor, key)
        component = descriptor.component
        sub_key = item_key(key)
        result = []
        for index, item in enumerate(items):
            if item is None:
                if descriptor.packed and descriptor.dimension == 1:
                    raise TypeMismatch(
                        f"Null element at index {index} in an array of {component.name}", key, descriptor
                    )
                result.append(None)
                continue
            result.append(self.parent.convert_nested(item, component, sub_key))
        return result
