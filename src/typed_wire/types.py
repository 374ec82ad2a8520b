"""Type descriptors for the typed_wire library."""

from __future__ import annotations

import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class PrimitiveKind(Enum):
    """Built-in scalar kinds a wire value can be converted to."""

    BOOLEAN = "boolean"
    CHAR = "char"
    INT8 = "int8"
    INT16 = "int16"
    INT32 = "int32"
    INT64 = "int64"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    DECIMAL = "decimal"
    BIGINT = "bigint"
    STRING = "string"
    DATE = "date"
    CALENDAR = "calendar"
    ENTITY_REF = "entityref"
    URI = "uri"
    UUID = "uuid"

    @property
    def bits(self) -> int | None:
        """Return the bit width of fixed-width numeric kinds."""
        widths = {
            PrimitiveKind.INT8: 8,
            PrimitiveKind.INT16: 16,
            PrimitiveKind.INT32: 32,
            PrimitiveKind.INT64: 64,
            PrimitiveKind.FLOAT32: 32,
            PrimitiveKind.FLOAT64: 64,
        }
        return widths.get(self)

    @property
    def is_integer(self) -> bool:
        return self in INTEGER_KINDS

    @property
    def is_float(self) -> bool:
        return self in (PrimitiveKind.FLOAT32, PrimitiveKind.FLOAT64)

    @property
    def is_numeric(self) -> bool:
        return self.is_integer or self.is_float or self in (PrimitiveKind.DECIMAL, PrimitiveKind.BIGINT)


INTEGER_KINDS = frozenset({
    PrimitiveKind.INT8,
    PrimitiveKind.INT16,
    PrimitiveKind.INT32,
    PrimitiveKind.INT64,
})

# Largest finite IEEE 754 single and double precision values
FLOAT32_MAX = 3.4028234663852886e38
FLOAT64_MAX = 1.7976931348623157e308


def type_range(kind: PrimitiveKind) -> tuple[int, int]:
    """Return the inclusive (min, max) range of a fixed-width integer kind."""
    bits = kind.bits
    if bits is None or not kind.is_integer:
        raise ValueError(f"'{kind.value}' is not a fixed-width integer kind")
    return -(1 << (bits - 1)), (1 << (bits - 1)) - 1


# Signature letters used inside packed array type names ("[I", "[[D")
SIGNATURE_KINDS: dict[str, PrimitiveKind] = {
    "Z": PrimitiveKind.BOOLEAN,
    "C": PrimitiveKind.CHAR,
    "B": PrimitiveKind.INT8,
    "S": PrimitiveKind.INT16,
    "I": PrimitiveKind.INT32,
    "J": PrimitiveKind.INT64,
    "F": PrimitiveKind.FLOAT32,
    "D": PrimitiveKind.FLOAT64,
}

# Mapping from type name strings to primitive kinds, including the names
# introspection layers commonly report
PRIMITIVE_KIND_NAMES: dict[str, PrimitiveKind] = {pk.value: pk for pk in PrimitiveKind}
PRIMITIVE_KIND_NAMES.update({
    "bool": PrimitiveKind.BOOLEAN,
    "java.lang.Boolean": PrimitiveKind.BOOLEAN,
    "character": PrimitiveKind.CHAR,
    "java.lang.Character": PrimitiveKind.CHAR,
    "byte": PrimitiveKind.INT8,
    "java.lang.Byte": PrimitiveKind.INT8,
    "short": PrimitiveKind.INT16,
    "java.lang.Short": PrimitiveKind.INT16,
    "int": PrimitiveKind.INT32,
    "java.lang.Integer": PrimitiveKind.INT32,
    "long": PrimitiveKind.INT64,
    "java.lang.Long": PrimitiveKind.INT64,
    "float": PrimitiveKind.FLOAT32,
    "java.lang.Float": PrimitiveKind.FLOAT32,
    "double": PrimitiveKind.FLOAT64,
    "java.lang.Double": PrimitiveKind.FLOAT64,
    "java.math.BigDecimal": PrimitiveKind.DECIMAL,
    "java.math.BigInteger": PrimitiveKind.BIGINT,
    "str": PrimitiveKind.STRING,
    "java.lang.String": PrimitiveKind.STRING,
    "java.util.Date": PrimitiveKind.DATE,
    "java.util.Calendar": PrimitiveKind.CALENDAR,
    "objectname": PrimitiveKind.ENTITY_REF,
    "javax.management.ObjectName": PrimitiveKind.ENTITY_REF,
    "java.net.URI": PrimitiveKind.URI,
    "java.net.URL": PrimitiveKind.URI,
    "java.util.UUID": PrimitiveKind.UUID,
})
PRIMITIVE_KIND_NAMES.update(SIGNATURE_KINDS)


@dataclass(frozen=True)
class TypedValue:
    """A number already known to be of exactly one primitive kind."""

    value: Any
    kind: PrimitiveKind


@dataclass(frozen=True)
class TypeDescriptor:
    """Base class for all type descriptors."""

    name: str

    @property
    def is_unknown(self) -> bool:
        return False

    @property
    def is_complete(self) -> bool:
        """Return whether no part of this descriptor is left undeclared."""
        return True


@dataclass(frozen=True)
class UnknownDescriptor(TypeDescriptor):
    """Explicit "no declared type" marker, distinct from a missing descriptor."""

    name: str = "unknown"

    @property
    def is_unknown(self) -> bool:
        return True

    @property
    def is_complete(self) -> bool:
        return False


UNKNOWN = UnknownDescriptor()


@dataclass(frozen=True)
class PrimitiveDescriptor(TypeDescriptor):
    """Descriptor wrapping a primitive kind."""

    kind: PrimitiveKind = PrimitiveKind.STRING

    @classmethod
    def of(cls, kind: PrimitiveKind) -> PrimitiveDescriptor:
        return _PRIMITIVES[kind]


_PRIMITIVES: dict[PrimitiveKind, PrimitiveDescriptor] = {
    pk: PrimitiveDescriptor(name=pk.value, kind=pk) for pk in PrimitiveKind
}


@dataclass(frozen=True)
class ArrayDescriptor(TypeDescriptor):
    """Descriptor for (possibly multi-dimensional) arrays.

    ``packed`` marks a dense primitive array whose elements can never be
    null. It changes nothing else about conversion.
    """

    dimension: int = 1
    element: TypeDescriptor = UNKNOWN
    packed: bool = False

    def __post_init__(self) -> None:
        if self.dimension < 1:
            raise ValueError(f"Array '{self.name}' must have a dimension of at least 1")
        if self.packed and not isinstance(self.element, PrimitiveDescriptor):
            raise ValueError(f"Packed array '{self.name}' needs a primitive element type")

    @classmethod
    def of(cls, element: TypeDescriptor, dimension: int = 1, packed: bool = False) -> ArrayDescriptor:
        """Create an array descriptor named after its element type."""
        return cls(
            name=element.name + "[]" * dimension,
            dimension=dimension,
            element=element,
            packed=packed,
        )

    @property
    def component(self) -> TypeDescriptor:
        """Return the descriptor of a single item, one dimension down."""
        if self.dimension == 1:
            return self.element
        return ArrayDescriptor.of(self.element, self.dimension - 1, self.packed)

    @property
    def is_complete(self) -> bool:
        return self.element.is_complete


@dataclass(frozen=True)
class FieldDefinition:
    """Definition of a field within a record descriptor."""

    name: str
    type_def: TypeDescriptor
    default_value: Any = None  # None = the kind's neutral value


@dataclass(frozen=True)
class RecordDescriptor(TypeDescriptor):
    """Descriptor for a fixed, named set of fields.

    ``inferred`` marks records built from observed values rather than declared.
    """

    fields: tuple[FieldDefinition, ...] = ()
    inferred: bool = field(default=False, compare=False)
    _index: Mapping[str, FieldDefinition] = field(default=None, init=False, repr=False, compare=False)  # type: ignore[assignment]

    def __post_init__(self) -> None:
        index: dict[str, FieldDefinition] = {}
        for f in self.fields:
            if f.name in index:
                raise ValueError(f"Duplicate field '{f.name}' in record '{self.name}'")
            index[f.name] = f
        object.__setattr__(self, "fields", tuple(self.fields))
        object.__setattr__(self, "_index", index)

    @classmethod
    def of(cls, name: str, fields: Mapping[str, TypeDescriptor]) -> RecordDescriptor:
        """Create a record descriptor from an ordered name -> descriptor mapping."""
        return cls(name=name, fields=tuple(FieldDefinition(n, td) for n, td in fields.items()))

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    def get_field(self, name: str) -> FieldDefinition | None:
        """Get a field by name."""
        return self._index.get(name)

    @property
    def is_complete(self) -> bool:
        return all(f.type_def.is_complete for f in self.fields)


@dataclass(frozen=True)
class TableDescriptor(TypeDescriptor):
    """Descriptor for tables of records keyed by one or more index fields.

    ``row_type`` may be None when only the table shape is declared; the row
    type is then inferred from the first row of each conversion.
    """

    index_fields: tuple[str, ...] = ()
    row_type: RecordDescriptor | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "index_fields", tuple(self.index_fields))
        if self.row_type is not None:
            missing = [n for n in self.index_fields if self.row_type.get_field(n) is None]
            if missing:
                raise ValueError(
                    f"Index fields {missing} of table '{self.name}' are not fields of "
                    f"row type '{self.row_type.name}'"
                )

    @property
    def is_key_value(self) -> bool:
        """Check whether this table is a plain key/value map.

        Such tables have the single index field ``key`` and rows made of
        exactly ``key`` (a primitive) and ``value``.
        """
        if self.index_fields != ("key",) or self.row_type is None:
            return False
        if sorted(self.row_type.field_names) != ["key", "value"]:
            return False
        return isinstance(self.row_type.get_field("key").type_def, PrimitiveDescriptor)

    def with_row_type(self, row_type: RecordDescriptor) -> TableDescriptor:
        return TableDescriptor(name=self.name, index_fields=self.index_fields, row_type=row_type)

    @property
    def is_complete(self) -> bool:
        return self.row_type is not None and self.row_type.is_complete


def key_value_table(key_type: TypeDescriptor, value_type: TypeDescriptor) -> TableDescriptor:
    """Create the table descriptor used to carry a plain map."""
    name = f"Map<{key_type.name}, {value_type.name}>"
    row = RecordDescriptor.of(name, {"key": key_type, "value": value_type})
    return TableDescriptor(name=name, index_fields=("key",), row_type=row)


_ENTITY_PROPERTY_RE = re.compile(r'([^,=:"*?]+)=("(?:[^"\\]|\\.)*"|[^,=:"*?]*)(?:,|$)')


class EntityName:
    """Name of an introspectable entity, ``domain:key=value[,key=value...]``.

    Two names are equal when their domain and property set are equal,
    regardless of the property order they were written in.
    """

    __slots__ = ("domain", "properties", "_text")

    def __init__(self, text: str) -> None:
        domain, sep, props = text.partition(":")
        if not sep:
            raise ValueError(f"Entity name '{text}' has no domain separator")
        if not props:
            raise ValueError(f"Entity name '{text}' has no key properties")
        properties: dict[str, str] = {}
        pos = 0
        while pos < len(props):
            m = _ENTITY_PROPERTY_RE.match(props, pos)
            if m is None or m.end() == pos:
                raise ValueError(f"Invalid key property list in entity name '{text}'")
            key, value = m.group(1), m.group(2)
            if key in properties:
                raise ValueError(f"Duplicate key '{key}' in entity name '{text}'")
            properties[key] = value
            pos = m.end()
            if pos == len(props) and props.endswith(","):
                raise ValueError(f"Trailing comma in entity name '{text}'")
        self.domain = domain
        self.properties = properties
        self._text = text

    @property
    def canonical(self) -> str:
        """Return the name with its properties sorted by key."""
        props = ",".join(f"{k}={v}" for k, v in sorted(self.properties.items()))
        return f"{self.domain}:{props}"

    def __str__(self) -> str:
        return self._text

    def __repr__(self) -> str:
        return f"EntityName({self._text!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EntityName):
            return NotImplemented
        return self.canonical == other.canonical

    def __hash__(self) -> int:
        return hash(self.canonical)


class RecordValue(Mapping[str, Any]):
    """Converted record: field values in declared order plus their descriptor."""

    __slots__ = ("descriptor", "_values")

    def __init__(self, descriptor: RecordDescriptor, values: Mapping[str, Any]) -> None:
        self.descriptor = descriptor
        self._values = {f.name: values.get(f.name) for f in descriptor.fields}

    def __getitem__(self, name: str) -> Any:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __hash__(self) -> int:
        # Records may serve as table index values; unhashable field values raise TypeError
        return hash(tuple(self._values.items()))

    def __repr__(self) -> str:
        return f"RecordValue({self.descriptor.name!r}, {self._values!r})"


class TableValue(Mapping[tuple, RecordValue]):
    """Converted table: rows keyed by the tuple of their index values."""

    __slots__ = ("descriptor", "_rows")

    def __init__(self, descriptor: TableDescriptor, rows: Mapping[tuple, RecordValue]) -> None:
        self.descriptor = descriptor
        self._rows = dict(rows)

    def __getitem__(self, index: tuple) -> RecordValue:
        return self._rows[index]

    def __iter__(self) -> Iterator[tuple]:
        return iter(self._rows)

    def __len__(self) -> int:
        return len(self._rows)

    def row(self, *index_values: Any) -> RecordValue:
        """Get a row by its index values."""
        return self._rows[tuple(index_values)]

    def __repr__(self) -> str:
        return f"TableValue({self.descriptor.name!r}, {len(self._rows)} rows)"


class TypeRegistry:
    """Registry of record and table shapes known by name."""

    def __init__(self) -> None:
        self._types: dict[str, TypeDescriptor] = {}

    def register(self, descriptor: TypeDescriptor, *aliases: str) -> None:
        """Register a descriptor under its name and any extra aliases."""
        if isinstance(descriptor, (PrimitiveDescriptor, UnknownDescriptor)):
            raise ValueError(f"Cannot register '{descriptor.name}': only records, tables and arrays are named shapes")
        for name in (descriptor.name, *aliases):
            existing = self._types.get(name)
            if existing is not None and existing != descriptor:
                raise ValueError(f"Type '{name}' is already defined")
            self._types[name] = descriptor

    def get(self, name: str) -> TypeDescriptor | None:
        """Get a type by name."""
        kind = PRIMITIVE_KIND_NAMES.get(name)
        if kind is not None:
            return PrimitiveDescriptor.of(kind)
        return self._types.get(name)

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None
