"""Data model and YAML parser for conversion configuration files.

Example::

    forgiving: false
    date-format: "%Y-%m-%dT%H:%M:%S%z"   # or millis, unix, nanos
    date-zone: Europe/Berlin
    max-depth: 6                         # 0 means no limit
    max-collection-size: 1000
    max-objects: 100000
    fault-handler: ignore                # or throw
    types:
      - kind: record
        type: MemoryUsage
        items: {init: int64, used: int64, committed: int64, max: int64}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from typed_wire.context import FAULT_HANDLERS, FAULT_THROW
from typed_wire.dates import DEFAULT_DATE_PATTERN, DEFAULT_ZONE, DateFormatConfig
from typed_wire.describe import descriptor_from_wire
from typed_wire.errors import ConversionConfigError
from typed_wire.types import PrimitiveDescriptor, TypeDescriptor, UnknownDescriptor

_KNOWN_KEYS = {
    "forgiving",
    "date-format",
    "date-zone",
    "max-depth",
    "max-collection-size",
    "max-objects",
    "fault-handler",
    "types",
}


@dataclass
class ConversionConfig:
    """Parsed conversion configuration.

    Attributes:
        forgiving: Leave unconvertible leaves as raw wire values instead of failing.
        date_format: strftime pattern, or one of the epoch keywords millis, time,
            long, unix and nanos.
        date_zone: IANA zone used for calendar values and zone-less dates.
        max_depth: Containers nested deeper are written as strings when converting
            back to wire values. 0 means no limit.
        max_collection_size: Lists and maps are truncated to this many entries.
        max_objects: Values beyond this count are replaced by a marker string.
        fault_handler: "throw" to fail on a value without a wire form, "ignore"
            to write a description of the error in its place.
        types: Named record and table shapes made available to type-name lookups.
    """

    forgiving: bool = False
    date_format: str = DEFAULT_DATE_PATTERN
    date_zone: str = DEFAULT_ZONE
    max_depth: int = 0
    max_collection_size: int = 0
    max_objects: int = 0
    fault_handler: str = FAULT_THROW
    types: list[TypeDescriptor] = field(default_factory=list)


def load_config(path: Path) -> ConversionConfig:
    """Load and parse a conversion configuration file.

    Raises:
        ConversionConfigError: If the file cannot be read or the configuration is invalid.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConversionConfigError(f"Config file not found: {path}") from None
    except OSError as exc:
        raise ConversionConfigError(f"Cannot read config file: {exc}") from exc

    return parse_config(text, source_label=str(path))


def parse_config(text: str, source_label: str = "<string>") -> ConversionConfig:
    """Parse configuration YAML text.

    An empty document gives the default configuration.

    Raises:
        ConversionConfigError: If the YAML is invalid or a value has the wrong type.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConversionConfigError(f"Invalid YAML in {source_label}: {exc}") from exc

    if data is None:
        return ConversionConfig()
    if not isinstance(data, dict):
        raise ConversionConfigError(f"{source_label}: conversion config must be a YAML mapping")

    unknown = sorted(str(k) for k in data if k not in _KNOWN_KEYS)
    if unknown:
        raise ConversionConfigError(f"{source_label}: unknown keys {', '.join(unknown)}")

    config = ConversionConfig(
        forgiving=_optional_bool(data, "forgiving", False, source_label),
        date_format=_optional_string(data, "date-format", DEFAULT_DATE_PATTERN, source_label),
        date_zone=_optional_string(data, "date-zone", DEFAULT_ZONE, source_label),
        max_depth=_optional_limit(data, "max-depth", source_label),
        max_collection_size=_optional_limit(data, "max-collection-size", source_label),
        max_objects=_optional_limit(data, "max-objects", source_label),
        fault_handler=_optional_string(data, "fault-handler", FAULT_THROW, source_label),
    )
    # Fail early on unknown zones
    DateFormatConfig(pattern=config.date_format, zone=config.date_zone)
    if config.fault_handler not in FAULT_HANDLERS:
        raise ConversionConfigError(
            f"{source_label}: 'fault-handler' must be one of {', '.join(FAULT_HANDLERS)}"
        )

    if "types" in data:
        raw_types = data["types"]
        if not isinstance(raw_types, list):
            raise ConversionConfigError(f"{source_label}: 'types' must be a list")
        for index, entry in enumerate(raw_types):
            config.types.append(_parse_type(entry, index, source_label))
    return config


def _optional_bool(mapping: dict[str, object], key: str, default: bool, source_label: str) -> bool:
    value = mapping.get(key, default)
    if not isinstance(value, bool):
        raise ConversionConfigError(f"{source_label}: '{key}' must be a boolean")
    return value


def _optional_limit(mapping: dict[str, object], key: str, source_label: str) -> int:
    value = mapping.get(key, 0)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConversionConfigError(f"{source_label}: '{key}' must be a non-negative integer")
    return value


def _optional_string(mapping: dict[str, object], key: str, default: str, source_label: str) -> str:
    """Extract an optional string field from a mapping, raising ConversionConfigError if mistyped."""
    value = mapping.get(key, default)
    if not isinstance(value, str) or not value:
        raise ConversionConfigError(f"{source_label}: '{key}' must be a non-empty string")
    return value


def _parse_type(entry: object, index: int, source_label: str) -> TypeDescriptor:
    location = f"{source_label}: types[{index}]"
    descriptor = descriptor_from_wire(entry)
    if descriptor is None:
        raise ConversionConfigError(f"{location} is not a valid type description")
    if isinstance(descriptor, (PrimitiveDescriptor, UnknownDescriptor)):
        raise ConversionConfigError(f"{location} must describe a record, table or array")
    return descriptor
