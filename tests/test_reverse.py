"""Tests for reverse conversion to wire values."""

import array
import enum
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from typed_wire.context import ConversionContext, SerializeOptions
from typed_wire.dates import DateFormatConfig
from typed_wire.engine import WireConverter
from typed_wire.errors import ConversionConfigError, UnsupportedConversion
from typed_wire.reverse import OBJECT_LIMIT_EXCEEDED, ObjectToWireConverter
from typed_wire.tables import table_of
from typed_wire.types import (
    ArrayDescriptor,
    EntityName,
    PrimitiveDescriptor,
    PrimitiveKind,
    RecordDescriptor,
    TypedValue,
    key_value_table,
)

STRING = PrimitiveDescriptor.of(PrimitiveKind.STRING)
INT32 = PrimitiveDescriptor.of(PrimitiveKind.INT32)
INT64 = PrimitiveDescriptor.of(PrimitiveKind.INT64)


class State(enum.Enum):
    RUNNING = "r"
    STOPPED = "s"


@dataclass
class Usage:
    used: int
    max: int


@dataclass(frozen=True)
class Coord:
    x: int
    y: int


class Node:
    def __init__(self):
        self.children = []


class TestPrimitiveRoundTrip:
    """Converting a primitive forward and back gives an equivalent wire value."""

    @pytest.mark.parametrize(
        "kind, wire",
        [
            (PrimitiveKind.BOOLEAN, True),
            (PrimitiveKind.CHAR, "c"),
            (PrimitiveKind.INT8, -128),
            (PrimitiveKind.INT16, 32767),
            (PrimitiveKind.INT32, 5),
            (PrimitiveKind.INT64, 2**63 - 1),
            (PrimitiveKind.FLOAT32, 1.5),
            (PrimitiveKind.FLOAT64, 0.1),
            (PrimitiveKind.DECIMAL, Decimal("12.340")),
            (PrimitiveKind.BIGINT, 10**30),
            (PrimitiveKind.STRING, "text"),
            (PrimitiveKind.ENTITY_REF, "java.lang:type=Memory"),
            (PrimitiveKind.URI, "http://localhost:8778/agent"),
            (PrimitiveKind.UUID, "12345678-1234-5678-1234-567812345678"),
        ],
    )
    def test_round_trip(self, converter, reverse, kind, wire):
        descriptor = PrimitiveDescriptor.of(kind)
        assert reverse.to_wire(converter.convert(wire, descriptor, "k"), descriptor) == wire

    def test_date_round_trip(self):
        context = ConversionContext(date_format=DateFormatConfig(pattern="millis"))
        descriptor = PrimitiveDescriptor.of(PrimitiveKind.DATE)
        value = WireConverter(context).convert(1709296215250, descriptor)
        assert ObjectToWireConverter(context).to_wire(value, descriptor) == 1709296215250

    def test_wrong_value_for_date(self, reverse):
        with pytest.raises(UnsupportedConversion) as exc_info:
            reverse.to_wire("yesterday", PrimitiveDescriptor.of(PrimitiveKind.DATE), "app.started")
        assert exc_info.value.key == "app.started"

    def test_structure_for_primitive_descriptor(self, reverse):
        with pytest.raises(UnsupportedConversion) as exc_info:
            reverse.to_wire([object()], STRING, "app.name")
        assert exc_info.value.key == "app.name"
        assert exc_info.value.descriptor == STRING

    def test_boolean_for_integer_descriptor(self, reverse):
        with pytest.raises(UnsupportedConversion, match="bool value is not a"):
            reverse.to_wire(True, INT32, "count")


class TestScalars:
    """Tests for values converted without a descriptor."""

    def test_plain_values(self, reverse):
        assert reverse.to_wire(None) is None
        assert reverse.to_wire("s") == "s"
        assert reverse.to_wire(False) is False
        assert reverse.to_wire(7) == 7
        assert reverse.to_wire(Decimal("1.5")) == Decimal("1.5")

    def test_non_finite_numbers(self, reverse):
        assert reverse.to_wire(float("inf")) is None
        assert reverse.to_wire(Decimal("NaN")) is None
        assert reverse.to_wire(TypedValue(float("nan"), PrimitiveKind.FLOAT32)) is None

    def test_library_types(self, reverse):
        assert reverse.to_wire(State.RUNNING) == "RUNNING"
        assert reverse.to_wire(uuid.UUID(int=0)) == "00000000-0000-0000-0000-000000000000"
        assert reverse.to_wire(EntityName("d:b=2,a=1")) == "d:b=2,a=1"
        assert reverse.to_wire(b"\x01\x02") == [1, 2]

    def test_date_uses_configured_format(self, reverse):
        value = datetime(2024, 3, 1, 12, 30, 15, 250000, tzinfo=timezone.utc)
        assert reverse.to_wire(value) == "2024-03-01T12:30:15.250000+0000"


class TestStructures:
    """Tests for maps, lists, records and object graphs."""

    def test_record_value(self, converter, reverse, record_x):
        value = converter.convert({"stringField": "aString"}, record_x, "k")
        assert reverse.to_wire(value) == {"stringField": "aString", "intField": 0}

    def test_mapping_against_record_descriptor(self, reverse, record_x):
        result = reverse.to_wire({"intField": 1, "stringField": "s", "extra": True}, record_x)
        assert list(result) == ["stringField", "intField", "extra"]

    def test_dataclass(self, reverse):
        assert reverse.to_wire(Usage(used=1, max=2)) == {"used": 1, "max": 2}

    def test_dataclass_against_record_descriptor(self, reverse):
        record = RecordDescriptor.of("Usage", {"max": INT64, "used": INT64})
        assert list(reverse.to_wire(Usage(used=1, max=2), record)) == ["max", "used"]

    def test_sequences(self, reverse):
        assert reverse.to_wire((1, "a", [None])) == [1, "a", [None]]
        assert reverse.to_wire(array.array("i", [3, 4])) == [3, 4]
        assert sorted(reverse.to_wire({2, 1})) == [1, 2]

    def test_array_descriptor_guides_elements(self, reverse):
        descriptor = ArrayDescriptor.of(PrimitiveDescriptor.of(PrimitiveKind.FLOAT64))
        assert reverse.to_wire([1.5, float("nan")], descriptor) == [1.5, None]

    def test_map_keys(self, reverse):
        assert reverse.to_wire({1: "a", State.STOPPED: "b", False: "c"}) == {"1": "a", "STOPPED": "b", "false": "c"}

    def test_map_key_without_string_form(self, reverse):
        """A key with no faithful string form fails the whole conversion."""
        with pytest.raises(UnsupportedConversion, match="Map key"):
            reverse.to_wire({Coord(1, 2): "a"}, None, "grid")

    def test_map_key_error_names_record(self, reverse, record_x):
        with pytest.raises(UnsupportedConversion, match="Map key") as exc_info:
            reverse.to_wire({"stringField": "s", Coord(1, 2): "a"}, record_x, "x")
        assert exc_info.value.descriptor == record_x
        assert exc_info.value.key == "x"

    def test_map_key_with_registered_accessor(self, context, reverse):
        context.scalars.register_string_accessor(Coord, lambda c: f"{c.x}/{c.y}")
        assert reverse.to_wire({Coord(1, 2): "a"}) == {"1/2": "a"}

    def test_stringifiable_object(self, context, reverse):
        context.scalars.register_string_accessor(Node, lambda n: "node")
        assert reverse.to_wire({"n": Node()}) == {"n": "node"}

    def test_unsupported_object(self, reverse):
        with pytest.raises(UnsupportedConversion):
            reverse.to_wire({"n": Node()})

    def test_cycle(self, reverse):
        items = []
        items.append(items)
        with pytest.raises(UnsupportedConversion, match="Cyclic"):
            reverse.to_wire(items)

    def test_shared_object_is_not_a_cycle(self, reverse):
        shared = {"a": 1}
        assert reverse.to_wire([shared, shared]) == [{"a": 1}, {"a": 1}]


class TestTables:
    """Tests for the wire form chosen for each table shape."""

    def test_key_value_table(self, converter, reverse):
        descriptor = key_value_table(INT32, STRING)
        table = converter.convert({"1": "a", "2": "b"}, descriptor, "m")
        assert reverse.to_wire(table) == {"1": "a", "2": "b"}

    def test_table_without_index_fields(self, converter, reverse):
        wire = {"k1": {"v": 1}, "k2": {"v": 2}}
        assert reverse.to_wire(converter.convert(wire, table_of(), "t")) == wire

    def test_nested_maps_for_primitive_indices(self, converter, reverse):
        row = RecordDescriptor.of("Process", {"host": STRING, "pid": INT32})
        table = converter.convert(
            [{"host": "a", "pid": 1}, {"host": "a", "pid": 2}], table_of(["host", "pid"], row), "procs"
        )
        assert reverse.to_wire(table) == {
            "a": {"1": {"host": "a", "pid": 1}, "2": {"host": "a", "pid": 2}}
        }

    def test_full_form_for_structured_indices(self, converter, reverse):
        point = RecordDescriptor.of("Point", {"x": INT32, "y": INT32})
        row = RecordDescriptor.of("Cell", {"at": point, "label": STRING})
        wire = {"indexNames": ["at"], "values": [{"at": {"x": 1, "y": 2}, "label": "a"}]}
        table = converter.convert(wire, table_of(["at"], row), "cells")
        assert reverse.to_wire(table) == wire

    def test_plain_mapping_against_key_value_table(self, reverse):
        descriptor = key_value_table(STRING, PrimitiveDescriptor.of(PrimitiveKind.FLOAT64))
        assert reverse.to_wire({"a": float("inf")}, descriptor) == {"a": None}

    def test_map_key_error_names_table(self, reverse):
        descriptor = key_value_table(STRING, STRING)
        with pytest.raises(UnsupportedConversion, match="Map key") as exc_info:
            reverse.to_wire({Coord(1, 2): "a"}, descriptor, "grid")
        assert exc_info.value.descriptor == descriptor


def limited(**options):
    return ObjectToWireConverter(ConversionContext(serialize=SerializeOptions(**options)))


class TestSerializeOptions:
    """Tests for the limits and fault handler applied while walking an object graph."""

    def test_no_limits_by_default(self, reverse):
        deep = {"a": {"b": {"c": list(range(50))}}}
        assert reverse.to_wire(deep) == deep

    def test_depth_limit(self):
        assert limited(max_depth=2).to_wire({"a": {"b": {"c": 1}}, "n": 5}) == {"a": {"b": "{'c': 1}"}, "n": 5}

    def test_depth_limit_uses_string_form(self):
        context = ConversionContext(serialize=SerializeOptions(max_depth=1))
        context.scalars.register_string_accessor(Usage, lambda u: f"{u.used}/{u.max}")
        assert ObjectToWireConverter(context).to_wire([Usage(1, 2)]) == ["1/2"]

    def test_scalars_are_not_cut_by_depth(self):
        assert limited(max_depth=1).to_wire([1, "a", None]) == [1, "a", None]

    def test_collection_size(self):
        converter = limited(max_collection_size=2)
        assert converter.to_wire([1, 2, 3]) == [1, 2]
        assert converter.to_wire({"a": 1, "b": 2, "c": 3}) == {"a": 1, "b": 2}
        assert len(converter.to_wire({5, 6, 7})) == 2
        assert converter.to_wire([[1, 2, 3]]) == [[1, 2]]

    def test_collection_size_for_tables(self, converter):
        table = converter.convert({"1": "a", "2": "b", "3": "c"}, key_value_table(INT32, STRING), "m")
        assert limited(max_collection_size=1).to_wire(table) == {"1": "a"}

    def test_object_limit(self):
        assert limited(max_objects=3).to_wire([1, 2, 3, 4]) == [1, 2, OBJECT_LIMIT_EXCEEDED, OBJECT_LIMIT_EXCEEDED]

    def test_object_limit_counts_each_call_separately(self):
        converter = limited(max_objects=2)
        assert converter.to_wire([1]) == [1]
        assert converter.to_wire([1]) == [1]

    def test_ignore_writes_error_in_place(self):
        result = limited(fault_handler="ignore").to_wire({"n": Node(), "m": 1})
        assert result["m"] == 1
        assert result["n"].startswith("ERROR: ")
        assert "Node" in result["n"]
        assert result["n"].endswith("(UnsupportedConversion)")

    def test_ignore_cycle(self):
        items = [1]
        items.append(items)
        result = limited(fault_handler="ignore").to_wire(items)
        assert result[0] == 1
        assert result[1].startswith("ERROR: Cyclic reference")

    def test_throw(self):
        with pytest.raises(UnsupportedConversion):
            limited(fault_handler="throw").to_wire({"n": Node()})

    @pytest.mark.parametrize(
        "options",
        [{"max_depth": -1}, {"max_objects": True}, {"max_collection_size": "10"}, {"fault_handler": "log"}],
    )
    def test_invalid_options(self, options):
        with pytest.raises(ConversionConfigError):
            SerializeOptions(**options)
