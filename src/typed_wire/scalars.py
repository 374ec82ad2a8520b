"""Scalar parsers: leaf conversions between wire values and primitive kinds.

Each primitive kind has a parser with four operations:

- ``from_string``: parse the kind from its textual form
- ``accepts_direct`` / ``from_direct``: take a wire number (or boolean)
  without a round trip through text, applying the overflow policy
- ``to_wire``: the reverse direction

Integer kinds accept a number when it is already of exactly that kind
(a ``TypedValue``), when its bit length excluding the sign fits in
``bits - 1``, or when its value lies within the kind's range. Anything
else raises ``NumericOverflow``; values are never truncated.
"""

from __future__ import annotations

import logging
import math
import re
import struct
import uuid
from collections.abc import Callable
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any
from urllib.parse import urlsplit

from typed_wire.dates import DateFormatConfig
from typed_wire.errors import (
    ConversionError,
    NumericOverflow,
    TypeMismatch,
    UnsupportedConversion,
)
from typed_wire.types import (
    FLOAT32_MAX,
    FLOAT64_MAX,
    EntityName,
    PrimitiveDescriptor,
    PrimitiveKind,
    TypedValue,
    type_range,
)
from typed_wire.wire import exceeds_int_digits, int_text, is_number

logger = logging.getLogger(__name__)

# Strings with a fixed meaning for every string-sourced scalar conversion
NULL_TAG = "[null]"
EMPTY_STRING_TAG = '""'

_INTEGER_RE = re.compile(r"^[+-]?\d+$")


def signed_bit_length(n: int) -> int:
    """Bit length of ``n`` in two's complement, excluding the sign bit."""
    return n.bit_length() if n >= 0 else (~n).bit_length()


def number_text(value: Any) -> str:
    """Return the canonical text of a wire number."""
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, int) and not isinstance(value, bool):
        return int_text(value)
    return str(value)


def short_number_text(value: Any) -> str:
    """Text of a number for error messages, abbreviated when it is very long."""
    if isinstance(value, int) and value.bit_length() > 128:
        return f"{'-' if value < 0 else ''}<{value.bit_length()}-bit integer>"
    if isinstance(value, Decimal) and value.is_finite() and abs(value.adjusted()) > 40:
        return f"{value:.6e}"
    return number_text(value)


def short_text(s: str) -> str:
    if len(s) > 48:
        return f"{s[:20]}...{s[-8:]} ({len(s)} characters)"
    return s


def _split_digits(text: str) -> tuple[str, str]:
    """Split an integer literal into its sign and its digits without leading zeros."""
    sign = "-" if text.startswith("-") else ""
    return sign, text.lstrip("+-").lstrip("0") or "0"


def is_integral(value: Any) -> bool:
    if isinstance(value, Decimal):
        return value.is_finite() and value == value.to_integral_value()
    if isinstance(value, float):
        return value.is_integer()
    return True


def to_float32(value: float) -> float:
    """Round a double to the nearest single precision value."""
    return struct.unpack("f", struct.pack("f", value))[0]


class ScalarParser:
    """Base class for the per-kind leaf converters."""

    kind: PrimitiveKind
    # Python types ``to_wire`` accepts for this kind
    target_types: tuple[type, ...] = (str,)

    def from_string(self, s: str) -> Any:
        raise UnsupportedConversion(f"Cannot convert string '{short_text(s)}' to {self.kind.value}")

    def accepts_direct(self, value: Any) -> bool:
        return False

    def from_direct(self, value: Any) -> Any:
        raise UnsupportedConversion(f"Cannot convert {short_number_text(value)} to {self.kind.value}")

    def to_wire(self, value: Any) -> Any:
        """Return the wire form of a target value of this kind.

        Raises:
            UnsupportedConversion: if the value is not of one of ``target_types``.
        """
        if isinstance(value, TypedValue):
            value = value.value
        if (isinstance(value, bool) and bool not in self.target_types) or not isinstance(
            value, self.target_types
        ):
            raise UnsupportedConversion(f"A {type(value).__name__} value is not a {self.kind.value}")
        return value


class BooleanParser(ScalarParser):
    kind = PrimitiveKind.BOOLEAN
    target_types = (bool,)

    def from_string(self, s: str) -> bool:
        lowered = s.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
        raise TypeMismatch(f"'{s}' is not a boolean (expected true or false)")

    def accepts_direct(self, value: Any) -> bool:
        return isinstance(value, bool)

    def from_direct(self, value: Any) -> bool:
        return value


class CharParser(ScalarParser):
    kind = PrimitiveKind.CHAR

    def from_string(self, s: str) -> str:
        if not s:
            raise TypeMismatch("Cannot convert an empty string to a character")
        return s[0]


class IntegerParser(ScalarParser):
    """Fixed-width signed integers.

    Magnitudes are checked on the digit count or exponent before any
    conversion to ``int``, so oversized input fails fast.
    """

    target_types = (int,)

    def __init__(self, kind: PrimitiveKind) -> None:
        self.kind = kind
        self.min_val, self.max_val = type_range(kind)
        self.max_digits = len(str(self.max_val))

    def from_string(self, s: str) -> int:
        text = s.strip()
        if not _INTEGER_RE.match(text):
            raise TypeMismatch(f"'{short_text(s)}' is not an integer")
        sign, digits = _split_digits(text)
        if len(digits) > self.max_digits:
            raise self._overflow(short_text(text))
        return self._check(int(sign + digits), short_text(s))

    def accepts_direct(self, value: Any) -> bool:
        return is_number(value) or isinstance(value, TypedValue)

    def from_direct(self, value: Any) -> int:
        if isinstance(value, TypedValue):
            if value.kind is self.kind:
                return value.value
            value = value.value
        if isinstance(value, (Decimal, float)):
            if not is_integral(value):
                raise TypeMismatch(f"{short_number_text(value)} is not an integral value")
            if isinstance(value, Decimal):
                if value.is_zero():
                    value = 0
                elif value.adjusted() >= self.max_digits:
                    raise self._overflow(short_number_text(value))
            value = int(value)
        if not self.fits(value):
            raise self._overflow(short_number_text(value))
        return value

    def fits(self, n: int) -> bool:
        return signed_bit_length(n) <= self.kind.bits - 1 or self.min_val <= n <= self.max_val

    def _check(self, n: int, raw: str) -> int:
        if not self.fits(n):
            raise self._overflow(raw)
        return n

    def _overflow(self, raw: str) -> NumericOverflow:
        return NumericOverflow(f"Value {raw} out of range for {self.kind.value} ({self.min_val}..{self.max_val})")


class FloatParser(ScalarParser):
    """Single and double precision floating point numbers."""

    target_types = (int, float, Decimal)

    def __init__(self, kind: PrimitiveKind) -> None:
        self.kind = kind
        self.max_val = FLOAT32_MAX if kind is PrimitiveKind.FLOAT32 else FLOAT64_MAX

    def from_string(self, s: str) -> float:
        text = s.strip()
        try:
            number = Decimal(text)
        except InvalidOperation:
            raise TypeMismatch(f"'{short_text(s)}' is not a floating point number") from None
        if number.is_nan() or number.is_infinite():
            # "NaN" and "Infinity" are valid textual floats
            return float(number)
        return self.from_direct(number)

    def accepts_direct(self, value: Any) -> bool:
        return is_number(value) or isinstance(value, TypedValue)

    def from_direct(self, value: Any) -> float:
        if isinstance(value, TypedValue):
            if value.kind is self.kind:
                return value.value
            if value.kind is PrimitiveKind.FLOAT32 and self.kind is PrimitiveKind.FLOAT64:
                return float(value.value)
            value = value.value
        if isinstance(value, float) and not math.isfinite(value):
            return value
        # Both bounds are inclusive; the comparison is exact for int and Decimal
        if not -self.max_val <= value <= self.max_val:
            raise NumericOverflow(
                f"Value {short_number_text(value)} out of range for {self.kind.value} "
                f"({-self.max_val!r}..{self.max_val!r})"
            )
        result = float(value)
        if self.kind is PrimitiveKind.FLOAT32:
            result = to_float32(result)
        return result

    def to_wire(self, value: Any) -> float | None:
        value = super().to_wire(value)
        if value is None or not math.isfinite(value):
            return None
        return float(value)


class DecimalParser(ScalarParser):
    kind = PrimitiveKind.DECIMAL
    target_types = (int, float, Decimal)

    def from_string(self, s: str) -> Decimal:
        try:
            number = Decimal(s.strip())
        except InvalidOperation:
            raise TypeMismatch(f"'{short_text(s)}' is not a decimal number") from None
        if not number.is_finite():
            raise TypeMismatch(f"'{s}' is not a finite decimal number")
        return number

    def accepts_direct(self, value: Any) -> bool:
        return is_number(value) or isinstance(value, TypedValue)

    def from_direct(self, value: Any) -> Decimal | None:
        if isinstance(value, TypedValue):
            value = value.value
        if isinstance(value, float):
            if not math.isfinite(value):
                return None
            return Decimal(repr(value))
        return Decimal(value)

    def to_wire(self, value: Any) -> Decimal | None:
        value = super().to_wire(value)
        if isinstance(value, float):
            return self.from_direct(value)
        if isinstance(value, Decimal) and not value.is_finite():
            return None
        return value


class BigIntParser(ScalarParser):
    """Integers of any size up to the interpreter's int/str digit limit."""

    kind = PrimitiveKind.BIGINT
    target_types = (int,)

    def from_string(self, s: str) -> int:
        text = s.strip()
        if not _INTEGER_RE.match(text):
            raise TypeMismatch(f"'{short_text(s)}' is not an integer")
        sign, digits = _split_digits(text)
        if exceeds_int_digits(len(digits)):
            raise self._too_long(short_text(text))
        return int(sign + digits)

    def accepts_direct(self, value: Any) -> bool:
        return is_number(value) or isinstance(value, TypedValue)

    def from_direct(self, value: Any) -> int:
        if isinstance(value, TypedValue):
            value = value.value
        if isinstance(value, (Decimal, float)):
            if not is_integral(value):
                raise TypeMismatch(f"{short_number_text(value)} is not an integral value")
            if isinstance(value, Decimal):
                if value.is_zero():
                    return 0
                if exceeds_int_digits(value.adjusted() + 1):
                    raise self._too_long(short_number_text(value))
            return int(value)
        return value

    def _too_long(self, raw: str) -> NumericOverflow:
        return NumericOverflow(f"Value {raw} has too many digits for {self.kind.value}")


class StringParser(ScalarParser):
    kind = PrimitiveKind.STRING

    def from_string(self, s: str) -> str:
        return s

    def accepts_direct(self, value: Any) -> bool:
        return isinstance(value, (bool, TypedValue)) or is_number(value)

    def from_direct(self, value: Any) -> str:
        if isinstance(value, TypedValue):
            value = value.value
        if isinstance(value, bool):
            return "true" if value else "false"
        return number_text(value)


class DateParser(ScalarParser):
    """Instants (``date``) and zoned date-times (``calendar``)."""

    def __init__(self, kind: PrimitiveKind, config: DateFormatConfig) -> None:
        self.kind = kind
        self.config = config

    def _parse(self, value: Any) -> datetime:
        try:
            parsed = self.config.parse(value)
        except ValueError as e:
            raise TypeMismatch(str(e)) from None
        if self.kind is PrimitiveKind.CALENDAR:
            return parsed.astimezone(self.config.tz)
        return parsed.astimezone(timezone.utc)

    def from_string(self, s: str) -> datetime:
        return self._parse(s)

    def accepts_direct(self, value: Any) -> bool:
        return is_number(value)

    def from_direct(self, value: Any) -> datetime:
        return self._parse(value)

    def to_wire(self, value: Any) -> Any:
        if not isinstance(value, date):
            raise UnsupportedConversion(f"{type(value).__name__} is not a date")
        return self.config.format(value)


class EntityNameParser(ScalarParser):
    kind = PrimitiveKind.ENTITY_REF
    target_types = (EntityName, str)

    def from_string(self, s: str) -> EntityName:
        try:
            return EntityName(s)
        except ValueError as e:
            raise TypeMismatch(str(e)) from None

    def from_map(self, value: dict) -> EntityName:
        """Accept the ``{"objectName": "domain:key=value"}`` map form."""
        if set(value) != {"objectName"} or not isinstance(value["objectName"], str):
            raise TypeMismatch("Entity name maps must have exactly one string key 'objectName'")
        return self.from_string(value["objectName"])

    def to_wire(self, value: Any) -> str:
        return str(super().to_wire(value))


class UriParser(ScalarParser):
    kind = PrimitiveKind.URI

    def from_string(self, s: str) -> str:
        if not s or any(c.isspace() for c in s):
            raise TypeMismatch(f"'{s}' is not a valid URI")
        try:
            parts = urlsplit(s)
            # Accessing port validates it
            parts.port
        except ValueError as e:
            raise TypeMismatch(f"'{s}' is not a valid URI: {e}") from None
        return s

    def to_wire(self, value: Any) -> str:
        return str(super().to_wire(value))


class UuidParser(ScalarParser):
    kind = PrimitiveKind.UUID
    target_types = (uuid.UUID, str)

    def from_string(self, s: str) -> uuid.UUID:
        try:
            return uuid.UUID(s.strip())
        except ValueError:
            raise TypeMismatch(f"'{s}' is not a valid UUID") from None

    def to_wire(self, value: Any) -> str:
        return str(super().to_wire(value))


class ScalarRegistry:
    """Registry of scalar parsers plus the string conversion allow-list."""

    def __init__(self, date_config: DateFormatConfig | None = None) -> None:
        self.date_config = date_config if date_config is not None else DateFormatConfig()
        self._parsers: dict[PrimitiveKind, ScalarParser] = {
            PrimitiveKind.BOOLEAN: BooleanParser(),
            PrimitiveKind.CHAR: CharParser(),
            PrimitiveKind.DECIMAL: DecimalParser(),
            PrimitiveKind.BIGINT: BigIntParser(),
            PrimitiveKind.STRING: StringParser(),
            PrimitiveKind.ENTITY_REF: EntityNameParser(),
            PrimitiveKind.URI: UriParser(),
            PrimitiveKind.UUID: UuidParser(),
        }
        for kind in (PrimitiveKind.INT8, PrimitiveKind.INT16, PrimitiveKind.INT32, PrimitiveKind.INT64):
            self._parsers[kind] = IntegerParser(kind)
        for kind in (PrimitiveKind.FLOAT32, PrimitiveKind.FLOAT64):
            self._parsers[kind] = FloatParser(kind)
        for kind in (PrimitiveKind.DATE, PrimitiveKind.CALENDAR):
            self._parsers[kind] = DateParser(kind, self.date_config)
        self._string_accessors: dict[type, Callable[[Any], str]] = {}
        # Resolved accessor per concrete type; None means not stringifiable
        self._accessor_cache: dict[type, Callable[[Any], str] | None] = {}

    def parser(self, kind: PrimitiveKind) -> ScalarParser:
        return self._parsers[kind]

    def convert(self, value: Any, kind: PrimitiveKind, key: str = "") -> Any:
        """Convert a wire leaf to ``kind``.

        Raises:
            TypeMismatch: for lists or maps, or text that is not of the kind.
            NumericOverflow: for numbers outside the kind's range.
            UnsupportedConversion: when the kind cannot be built from the source.
        """
        descriptor = PrimitiveDescriptor.of(kind)
        parser = self._parsers[kind]
        try:
            if value is None:
                return None
            if isinstance(value, str):
                if value == NULL_TAG:
                    return None
                if value == EMPTY_STRING_TAG:
                    value = ""
                return parser.from_string(value)
            if isinstance(value, dict) and isinstance(parser, EntityNameParser):
                return parser.from_map(value)
            if isinstance(value, (list, dict)):
                raise TypeMismatch(f"Cannot convert a {type(value).__name__} to a {kind.value}")
            if parser.accepts_direct(value):
                return parser.from_direct(value)
            shown = short_number_text(value) if is_number(value) else repr(value)
            raise UnsupportedConversion(f"Cannot convert {type(value).__name__} {shown} to {kind.value}")
        except ConversionError as e:
            raise e.locate(key, descriptor) from None

    def to_wire(self, value: Any, kind: PrimitiveKind) -> Any:
        """Convert a target value of ``kind`` back to a wire leaf."""
        if value is None:
            return None
        return self._parsers[kind].to_wire(value)

    def register_string_accessor(self, cls: type, accessor: Callable[[Any], str]) -> None:
        """Make instances of ``cls`` (and its subclasses) stringifiable."""
        self._string_accessors[cls] = accessor
        self._accessor_cache.clear()

    def is_stringifiable(self, value: Any) -> bool:
        if isinstance(value, (str, bool, int, float, Decimal, TypedValue, uuid.UUID, EntityName, Enum, date)):
            return True
        return self._lookup_accessor(type(value)) is not None

    def to_string(self, value: Any) -> str:
        """Convert a target value to a string using the allow-list.

        Raises:
            UnsupportedConversion: if the value has no faithful string form.
        """
        if isinstance(value, str):
            return value
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, TypedValue):
            return self.to_string(value.value)
        if isinstance(value, (int, float, Decimal)):
            return number_text(value)
        if isinstance(value, Enum):
            return value.name
        if isinstance(value, (uuid.UUID, EntityName)):
            return str(value)
        if isinstance(value, date):
            return str(self.date_config.format(value))
        accessor = self._lookup_accessor(type(value))
        if accessor is None:
            raise UnsupportedConversion(f"No string conversion for {type(value).__name__} values")
        return accessor(value)

    def _lookup_accessor(self, cls: type) -> Callable[[Any], str] | None:
        if cls in self._accessor_cache:
            return self._accessor_cache[cls]
        accessor: Callable[[Any], str] | None = None
        for base in cls.__mro__:
            if base in self._string_accessors:
                accessor = self._string_accessors[base]
                break
        if accessor is None and cls.__str__ is not object.__str__:
            accessor = str
        logger.debug("String accessor for %s: %s", cls.__name__, accessor)
        self._accessor_cache[cls] = accessor
        return accessor
