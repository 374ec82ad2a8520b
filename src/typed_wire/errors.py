"""Conversion errors."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typed_wire.types import TypeDescriptor


class ErrorKind(Enum):
    UNSUPPORTED_CONVERSION = "unsupported-conversion"
    NUMERIC_OVERFLOW = "numeric-overflow"
    TYPE_MISMATCH = "type-mismatch"
    UNKNOWN_FIELD = "unknown-field"
    AMBIGUOUS_SCHEMA = "ambiguous-schema"
    MALFORMED_WIRE_VALUE = "malformed-wire-value"


class ConversionError(ValueError):
    """Base class for every failure raised while converting a value.

    Carries the qualified key the value belongs to and the descriptor that
    was being converted to, so failures can be traced back to an attribute
    or operation argument.
    """

    kind: ErrorKind
    # Whether forgiving mode may replace the failing leaf with its raw value
    suppressible = False

    def __init__(self, message: str, key: str = "", descriptor: TypeDescriptor | None = None) -> None:
        self.reason = message
        self.key = key
        self.descriptor = descriptor
        super().__init__(self._format())

    def locate(self, key: str, descriptor: TypeDescriptor | None) -> ConversionError:
        """Attach a key and target descriptor unless the error already has them."""
        if not self.key:
            self.key = key
        if self.descriptor is None:
            self.descriptor = descriptor
        self.args = (self._format(),)
        return self

    def _format(self) -> str:
        where = f" at '{self.key}'" if self.key else ""
        target = f" (target type {self.descriptor.name})" if self.descriptor is not None else ""
        return f"{self.reason}{where}{target}"


class UnsupportedConversion(ConversionError):
    kind = ErrorKind.UNSUPPORTED_CONVERSION
    suppressible = True


class NumericOverflow(ConversionError):
    kind = ErrorKind.NUMERIC_OVERFLOW


class TypeMismatch(ConversionError):
    kind = ErrorKind.TYPE_MISMATCH


class UnknownField(ConversionError):
    kind = ErrorKind.UNKNOWN_FIELD


class AmbiguousSchema(ConversionError):
    """No shape can be inferred for a value and no cached hint exists."""

    kind = ErrorKind.AMBIGUOUS_SCHEMA
    suppressible = True

    def __init__(
        self,
        message: str,
        key: str = "",
        descriptor: TypeDescriptor | None = None,
        suppressible: bool = True,
    ) -> None:
        self.suppressible = suppressible
        super().__init__(message, key, descriptor)


class MalformedWireValue(ConversionError):
    kind = ErrorKind.MALFORMED_WIRE_VALUE


class ConversionConfigError(Exception):
    """Raised when a conversion configuration file is invalid."""
