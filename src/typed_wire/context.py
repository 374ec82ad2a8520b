"""Per-process conversion state shared by both directions."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import TYPE_CHECKING

from typed_wire.cache import TypeCache
from typed_wire.dates import DateFormatConfig
from typed_wire.errors import ConversionConfigError
from typed_wire.parsing import DescriptorParser
from typed_wire.scalars import ScalarRegistry
from typed_wire.types import TypeDescriptor, TypeRegistry

if TYPE_CHECKING:
    from typed_wire.config import ConversionConfig

FAULT_THROW = "throw"
FAULT_IGNORE = "ignore"
FAULT_HANDLERS = (FAULT_THROW, FAULT_IGNORE)


@dataclass(frozen=True)
class SerializeOptions:
    """Limits and failure policy for converting object graphs to wire values.

    A limit of 0 means no limit. ``max_depth`` replaces containers nested
    deeper than the limit with their string form, ``max_collection_size``
    truncates lists and maps, and ``max_objects`` replaces every value after
    the limit with a marker string. With the ``ignore`` fault handler a value
    that cannot be converted is replaced by a description of the error
    instead of failing the whole conversion.
    """

    max_depth: int = 0
    max_collection_size: int = 0
    max_objects: int = 0
    fault_handler: str = FAULT_THROW

    def __post_init__(self) -> None:
        for name in ("max_depth", "max_collection_size", "max_objects"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ConversionConfigError(f"{name} must be a non-negative integer, got {value!r}")
        if self.fault_handler not in FAULT_HANDLERS:
            raise ConversionConfigError(
                f"Unknown fault handler '{self.fault_handler}' (expected {' or '.join(FAULT_HANDLERS)})"
            )

    @property
    def ignore_faults(self) -> bool:
        return self.fault_handler == FAULT_IGNORE


class ConversionContext:
    """Configuration and shared registries threaded through every conversion.

    Built once at startup. ``with_forgiving`` derives a context that differs
    only in its failure policy and shares the type cache, the scalar
    registry and the registry of named shapes with its origin.
    """

    def __init__(
        self,
        forgiving: bool = False,
        date_format: DateFormatConfig | None = None,
        cache: TypeCache | None = None,
        types: TypeRegistry | None = None,
        serialize: SerializeOptions | None = None,
    ) -> None:
        self.forgiving = forgiving
        self.date_format = date_format if date_format is not None else DateFormatConfig()
        self.cache = cache if cache is not None else TypeCache()
        self.types = types if types is not None else TypeRegistry()
        self.serialize = serialize if serialize is not None else SerializeOptions()
        self.scalars = ScalarRegistry(self.date_format)
        self.parser = DescriptorParser(self.types)

    @classmethod
    def from_config(cls, config: ConversionConfig, cache: TypeCache | None = None) -> ConversionContext:
        """Build a context from a loaded configuration."""
        context = cls(
            forgiving=config.forgiving,
            date_format=DateFormatConfig(pattern=config.date_format, zone=config.date_zone),
            cache=cache,
            serialize=SerializeOptions(
                max_depth=config.max_depth,
                max_collection_size=config.max_collection_size,
                max_objects=config.max_objects,
                fault_handler=config.fault_handler,
            ),
        )
        for descriptor in config.types:
            context.types.register(descriptor)
        return context

    def with_forgiving(self, forgiving: bool) -> ConversionContext:
        derived = copy.copy(self)
        derived.forgiving = forgiving
        return derived

    def parse_type_name(self, name: str) -> TypeDescriptor:
        """Parse a type-name string; unknown names give the unknown descriptor."""
        return self.parser.parse(name)

    def __repr__(self) -> str:
        return (
            f"ConversionContext(forgiving={self.forgiving}, date_format={self.date_format!r}, "
            f"serialize={self.serialize!r}, cached={len(self.cache)})"
        )
