"""Parsing module for type-name strings."""

from typed_wire.parsing.descriptor_parser import DescriptorParser, TypeRef

__all__ = [
    "DescriptorParser",
    "TypeRef",
]
