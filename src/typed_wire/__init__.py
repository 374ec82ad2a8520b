"""Typed Wire - bidirectional conversion between wire values and typed values."""

from typed_wire.cache import CacheEntry, DescriptorQuality, TypeCache
from typed_wire.config import ConversionConfig, load_config, parse_config
from typed_wire.context import ConversionContext
from typed_wire.dates import DateFormatConfig
from typed_wire.describe import describe, descriptor_from_wire
from typed_wire.engine import WireConverter
from typed_wire.errors import (
    AmbiguousSchema,
    ConversionConfigError,
    ConversionError,
    ErrorKind,
    MalformedWireValue,
    NumericOverflow,
    TypeMismatch,
    UnknownField,
    UnsupportedConversion,
)
from typed_wire.parsing import DescriptorParser
from typed_wire.reverse import ObjectToWireConverter
from typed_wire.scalars import ScalarRegistry
from typed_wire.tables import table_of
from typed_wire.types import (
    UNKNOWN,
    ArrayDescriptor,
    EntityName,
    FieldDefinition,
    PrimitiveDescriptor,
    PrimitiveKind,
    RecordDescriptor,
    RecordValue,
    TableDescriptor,
    TableValue,
    TypedValue,
    TypeDescriptor,
    TypeRegistry,
    key_value_table,
    type_range,
)
from typed_wire.wire import WireKind, dump_wire, ensure_wire, parse_wire, wire_kind

__all__ = [
    # Main API
    "WireConverter",
    "ObjectToWireConverter",
    "ConversionContext",
    "ConversionConfig",
    "load_config",
    "parse_config",
    "DateFormatConfig",
    # Type descriptors
    "TypeDescriptor",
    "PrimitiveKind",
    "PrimitiveDescriptor",
    "ArrayDescriptor",
    "RecordDescriptor",
    "FieldDefinition",
    "TableDescriptor",
    "UNKNOWN",
    "TypeRegistry",
    "DescriptorParser",
    "key_value_table",
    "table_of",
    "type_range",
    "describe",
    "descriptor_from_wire",
    # Values
    "TypedValue",
    "EntityName",
    "RecordValue",
    "TableValue",
    "WireKind",
    "wire_kind",
    "ensure_wire",
    "parse_wire",
    "dump_wire",
    # Cache and scalars
    "TypeCache",
    "CacheEntry",
    "DescriptorQuality",
    "ScalarRegistry",
    # Errors
    "ErrorKind",
    "ConversionError",
    "UnsupportedConversion",
    "NumericOverflow",
    "TypeMismatch",
    "UnknownField",
    "AmbiguousSchema",
    "MalformedWireValue",
    "ConversionConfigError",
]

__version__ = "0.1.0"
