"""Shared fixtures."""

import pytest

from typed_wire.context import ConversionContext
from typed_wire.engine import WireConverter
from typed_wire.reverse import ObjectToWireConverter
from typed_wire.types import PrimitiveDescriptor, PrimitiveKind, RecordDescriptor

STRING = PrimitiveDescriptor.of(PrimitiveKind.STRING)
INT32 = PrimitiveDescriptor.of(PrimitiveKind.INT32)
INT64 = PrimitiveDescriptor.of(PrimitiveKind.INT64)


@pytest.fixture
def context():
    """Create a strict context with its own type cache."""
    return ConversionContext()


@pytest.fixture
def converter(context):
    return WireConverter(context)


@pytest.fixture
def forgiving(context):
    """Create a forgiving converter sharing the strict context's cache."""
    return WireConverter(context.with_forgiving(True))


@pytest.fixture
def reverse(context):
    return ObjectToWireConverter(context)


@pytest.fixture
def record_x():
    return RecordDescriptor.of("X", {"stringField": STRING, "intField": INT32})
