"""Forward conversion: wire values to values of a type descriptor."""

from __future__ import annotations

import logging
from typing import Any

from typed_wire.arrays import ArrayConverter
from typed_wire.cache import DescriptorQuality
from typed_wire.context import ConversionContext
from typed_wire.errors import (
    AmbiguousSchema,
    ConversionError,
    MalformedWireValue,
    TypeMismatch,
    UnsupportedConversion,
)
from typed_wire.infer import TypeInferrer
from typed_wire.records import RecordConverter
from typed_wire.tables import TableConverter
from typed_wire.types import PrimitiveDescriptor, RecordDescriptor, TypeDescriptor
from typed_wire.wire import WireKind, ensure_wire, parse_wire, wire_kind

logger = logging.getLogger(__name__)


class PrimitiveConverter:
    """Leaf conversion through the scalar registry.

    In forgiving mode an unsupported conversion leaves the wire value
    unconverted for this leaf only.
    """

    def __init__(self, parent: WireConverter) -> None:
        self.parent = parent

    def can_convert(self, descriptor: TypeDescriptor) -> bool:
        return isinstance(descriptor, PrimitiveDescriptor)

    def convert(self, value: Any, descriptor: PrimitiveDescriptor, key: str) -> Any:
        try:
            return self.parent.context.scalars.convert(value, descriptor.kind, key)
        except UnsupportedConversion as e:
            if not self.parent.context.forgiving:
                raise
            logger.debug("Leaving value at '%s' unconverted: %s", key, e)
            return value


class WireConverter:
    """Converts wire values, resolving the target type through the type cache.

    The effective descriptor for a key is chosen in this order:

    1. a descriptor passed with the call; it is stored in the cache as
       declared and always used
    2. the cached descriptor for the key, used as a hint; an inferred hint
       is used only if the value still has its shape, and if conversion
       under either kind of hint fails the value is inferred again
    3. a descriptor inferred from the value, stored as inferred
    """

    def __init__(self, context: ConversionContext | None = None) -> None:
        self.context = context if context is not None else ConversionContext()
        self.inferrer = TypeInferrer(self.context.cache)
        self.records = RecordConverter(self)
        self._converters = [
            PrimitiveConverter(self),
            ArrayConverter(self),
            self.records,
            TableConverter(self),
        ]

    def convert(self, value: Any, descriptor: TypeDescriptor | None = None, key: str = "") -> Any:
        """Convert a wire value.

        Args:
            value: The wire value.
            descriptor: The declared target type, None or ``UNKNOWN`` if not known.
            key: Qualified key of the value, used for cache lookups and errors.

        Raises:
            ConversionError: a subclass naming the kind of failure.
        """
        ensure_wire(value, key)
        return self.resolve(value, descriptor, key)

    def convert_type_name(self, value: Any, type_name: str, key: str = "") -> Any:
        """Convert a wire value to the type named by an introspection layer."""
        return self.convert(value, self.context.parse_type_name(type_name), key)

    def resolve(self, value: Any, descriptor: TypeDescriptor | None, key: str) -> Any:
        if descriptor is not None and not descriptor.is_unknown:
            self.context.cache.put_declared(key, descriptor)
            return self.convert_to(value, descriptor, key)
        if value is None:
            return None

        entry = self.context.cache.get(key)
        if entry is not None and not entry.descriptor.is_unknown:
            hint = entry.descriptor
            if entry.quality is DescriptorQuality.INFERRED and not self.inferrer.fits(value, hint):
                logger.debug("Value at '%s' no longer has the inferred shape %s, inferring", key, hint.name)
            else:
                try:
                    return self.convert_to(value, hint, key)
                except ConversionError as e:
                    if isinstance(e, MalformedWireValue) or (isinstance(e, AmbiguousSchema) and not e.suppressible):
                        raise
                    logger.debug("Cached type %s does not fit the value at '%s' (%s), inferring", hint.name, key, e)

        inferred = self.inferrer.infer(value, key, self.context.forgiving)
        if inferred.is_unknown:
            return value
        self.context.cache.put_inferred(key, inferred)
        return self.convert_to(value, inferred, key)

    def convert_nested(self, value: Any, descriptor: TypeDescriptor, key: str) -> Any:
        """Convert a nested value; undeclared parts go through the type cache."""
        if descriptor.is_unknown:
            return self.resolve(value, None, key)
        return self.convert_to(value, descriptor, key)

    def convert_to(self, value: Any, descriptor: TypeDescriptor, key: str) -> Any:
        if value is None:
            return None
        for converter in self._converters:
            if converter.can_convert(descriptor):
                return converter.convert(value, descriptor, key)
        raise UnsupportedConversion(f"No converter for {type(descriptor).__name__}", key, descriptor)

    def infer_record(self, value: dict, key: str) -> RecordDescriptor:
        return self.inferrer.infer_record(value, key, self.context.forgiving)

    def expect(self, value: Any, kind: WireKind, descriptor: TypeDescriptor, key: str) -> Any:
        """Return ``value`` if it has the wire kind, expanding JSON held in a string."""
        if isinstance(value, str):
            value = self.expand_string(value, descriptor, key)
        if wire_kind(value) is not kind:
            raise TypeMismatch(
                f"Expected a {kind.value}, got a {wire_kind(value).value}", key, descriptor
            )
        return value

    def expand_string(self, value: str, descriptor: TypeDescriptor, key: str) -> Any:
        """Parse JSON text given where a structured value is expected."""
        try:
            return ensure_wire(parse_wire(value), key)
        except MalformedWireValue:
            raise TypeMismatch(f"String is not JSON for a {descriptor.name}", key, descriptor) from None
