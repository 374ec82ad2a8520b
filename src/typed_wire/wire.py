"""Wire values: the JSON-shaped data exchanged at the system boundary.

A wire value is one of ``None``, ``bool``, ``int``, ``decimal.Decimal``
(``float`` is tolerated for producers that already hold doubles), ``str``,
``list`` of wire values, or ``dict`` mapping ``str`` to wire values.
Numbers are read with ``parse_float=Decimal`` so no precision is lost
before a target width has been chosen.
"""

from __future__ import annotations

import json
import math
import sys
from decimal import Decimal
from enum import Enum
from typing import Any

from typed_wire.errors import MalformedWireValue


class WireKind(Enum):
    NULL = "null"
    BOOL = "bool"
    NUMBER = "number"
    STRING = "string"
    LIST = "list"
    MAP = "map"


def wire_kind(value: Any) -> WireKind:
    """Return the tag of a wire value (shallow, children are not checked)."""
    if value is None:
        return WireKind.NULL
    # bool is an int subclass, check it first
    if isinstance(value, bool):
        return WireKind.BOOL
    if isinstance(value, (int, Decimal, float)):
        return WireKind.NUMBER
    if isinstance(value, str):
        return WireKind.STRING
    if isinstance(value, list):
        return WireKind.LIST
    if isinstance(value, dict):
        return WireKind.MAP
    raise MalformedWireValue(f"{type(value).__name__} is not a wire value")


def is_number(value: Any) -> bool:
    return isinstance(value, (int, Decimal, float)) and not isinstance(value, bool)


def exceeds_int_digits(digits: int) -> bool:
    """True if ``int``/``str`` conversion of this many digits is refused by the interpreter."""
    limit = sys.get_int_max_str_digits()
    return limit != 0 and digits > limit


def int_text(n: int) -> str:
    """Decimal text of an integer of any size."""
    # bit_length * log10(2) bounds the digit count from above
    if exceeds_int_digits(n.bit_length() * 30103 // 100000 + 1):
        return str(Decimal(n))
    return str(n)


def ensure_wire(value: Any, key: str = "") -> Any:
    """Check that ``value`` is a well-formed wire value and return it.

    Raises:
        MalformedWireValue: for non-string map keys, non-finite numbers or
            objects the wire format cannot carry.
    """
    stack = [(value, key)]
    while stack:
        current, path = stack.pop()
        kind = wire_kind_or_raise(current, path)
        if kind is WireKind.NUMBER:
            if isinstance(current, float) and not math.isfinite(current):
                raise MalformedWireValue(f"Non-finite number {current!r}", path)
            if isinstance(current, Decimal) and not current.is_finite():
                raise MalformedWireValue(f"Non-finite number {current}", path)
        elif kind is WireKind.LIST:
            stack.extend((item, path) for item in current)
        elif kind is WireKind.MAP:
            for k, v in current.items():
                if not isinstance(k, str):
                    raise MalformedWireValue(f"Map key {k!r} is not a string", path)
                stack.append((v, f"{path}.{k}" if path else k))
    return value


def wire_kind_or_raise(value: Any, key: str) -> WireKind:
    try:
        return wire_kind(value)
    except MalformedWireValue as e:
        raise MalformedWireValue(e.reason, key) from None


def parse_wire(text: str) -> Any:
    """Parse JSON text into a wire value.

    Integers too long for ``int`` are kept as integral ``Decimal`` values.

    Raises:
        MalformedWireValue: if the text is not valid JSON.
    """
    try:
        return json.loads(text, parse_float=Decimal, parse_int=_parse_int, parse_constant=_reject_constant)
    except MalformedWireValue:
        raise
    except ValueError as e:
        raise MalformedWireValue(f"Invalid JSON: {e}") from e


def _parse_int(text: str) -> int | Decimal:
    if exceeds_int_digits(len(text.lstrip("-"))):
        return Decimal(text)
    return int(text)


def _reject_constant(name: str) -> Any:
    raise MalformedWireValue(f"Non-finite number {name}")


def _escape_string(s: str) -> str:
    return json.dumps(s, ensure_ascii=False)


def dump_wire(value: Any, indent: int | None = None, _level: int = 0) -> str:
    """Serialize a wire value to JSON text.

    Decimals are written verbatim, so ``dump_wire(parse_wire(text))`` keeps
    every digit of the original numbers.
    """
    if value is None:
        return "null"

    if isinstance(value, bool):
        return "true" if value else "false"

    if isinstance(value, int):
        return int_text(value)

    if isinstance(value, Decimal):
        if not value.is_finite():
            raise MalformedWireValue(f"Non-finite number {value}")
        return str(value)

    if isinstance(value, float):
        if not math.isfinite(value):
            raise MalformedWireValue(f"Non-finite number {value!r}")
        return repr(value)

    if isinstance(value, str):
        return _escape_string(value)

    if isinstance(value, (list, dict)):
        if not value:
            return "[]" if isinstance(value, list) else "{}"
        if isinstance(value, list):
            parts = [dump_wire(item, indent, _level + 1) for item in value]
            open_, close = "[", "]"
        else:
            parts = []
            for k, v in value.items():
                if not isinstance(k, str):
                    raise MalformedWireValue(f"Map key {k!r} is not a string")
                parts.append(f"{_escape_string(k)}: {dump_wire(v, indent, _level + 1)}")
            open_, close = "{", "}"
        if indent is None:
            return open_ + ", ".join(parts) + close
        inner_prefix = " " * (indent * (_level + 1))
        prefix = " " * (indent * _level)
        body = ",".join(f"\n{inner_prefix}{p}" for p in parts)
        return f"{open_}{body}\n{prefix}{close}"

    raise MalformedWireValue(f"{type(value).__name__} is not a wire value")
