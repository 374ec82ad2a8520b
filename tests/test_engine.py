"""Tests for type resolution and inference in the forward converter."""

import threading
from decimal import Decimal

import pytest

from typed_wire.cache import DescriptorQuality
from typed_wire.engine import WireConverter
from typed_wire.errors import AmbiguousSchema, MalformedWireValue, NumericOverflow, UnknownField
from typed_wire.types import (
    UNKNOWN,
    ArrayDescriptor,
    PrimitiveDescriptor,
    PrimitiveKind,
    RecordDescriptor,
    RecordValue,
)
from typed_wire.wire import parse_wire

STRING = PrimitiveDescriptor.of(PrimitiveKind.STRING)
INT32 = PrimitiveDescriptor.of(PrimitiveKind.INT32)
INT64 = PrimitiveDescriptor.of(PrimitiveKind.INT64)


class TestCachePrecedence:
    """Tests for declared, cached and inferred descriptors."""

    def test_declared_overrides_inferred(self, converter, context):
        """An inferred shape is replaced by a declared one and the declared one is reused."""
        first = converter.convert({"a": "x"}, None, "k")
        assert first == {"a": "x"}
        entry = context.cache.get("k")
        assert entry.quality is DescriptorQuality.INFERRED
        assert entry.descriptor.field_names == ["a"]

        declared = RecordDescriptor.of("Declared", {"a": STRING, "b": INT32})
        converter.convert({"a": "x", "b": 1}, declared, "k")
        entry = context.cache.get("k")
        assert entry.descriptor is declared
        assert entry.quality is DescriptorQuality.DECLARED

        third = converter.convert({"a": "y"}, UNKNOWN, "k")
        assert isinstance(third, RecordValue)
        assert third.descriptor is declared
        assert third == {"a": "y", "b": 0}

    def test_declared_descriptor_always_wins(self, converter, context):
        context.cache.put_declared("k", STRING)
        assert converter.convert(5, INT64, "k") == 5
        assert context.cache.hint("k") is INT64

    def test_hint_is_retried_with_inference(self, converter, context):
        """A cached hint that does not fit the data falls back to inference."""
        converter.convert(1, None, "n")
        assert context.cache.hint("n") is INT32
        assert converter.convert(2**40, None, "n") == 2**40
        assert context.cache.hint("n") is INT64

    def test_declared_hint_is_not_replaced_by_fallback(self, converter, context):
        converter.convert(1, INT32, "n")
        assert converter.convert(2**40, None, "n") == 2**40
        assert context.cache.get("n").quality is DescriptorQuality.DECLARED
        assert context.cache.hint("n") is INT32

    def test_declared_value_is_not_retried(self, converter):
        """Only cached hints are retried; a declared descriptor's failure surfaces."""
        with pytest.raises(NumericOverflow):
            converter.convert(2**40, INT32, "n")

    def test_record_hint_with_extra_key_is_reinferred(self, converter, context):
        converter.convert({"a": "x"}, None, "k")
        result = converter.convert({"a": "x", "b": True}, None, "k")
        assert result == {"a": "x", "b": True}
        assert context.cache.hint("k").field_names == ["a", "b"]

    def test_cached_scalar_kind_does_not_coerce(self, converter, context):
        assert converter.convert("x", None, "k") == "x"
        assert converter.convert(True, None, "k") is True
        assert context.cache.hint("k").kind is PrimitiveKind.BOOLEAN

    def test_inferred_field_kind_does_not_coerce(self, converter, context):
        converter.convert({"a": "x"}, None, "k")
        result = converter.convert({"a": 5}, None, "k")
        assert result["a"] == 5
        assert isinstance(result["a"], int)
        assert context.cache.hint("k").get_field("a").type_def is INT32

    def test_missing_key_is_not_invented(self, converter, context):
        converter.convert({"a": "x", "b": 1}, None, "k")
        result = converter.convert({"a": "y"}, None, "k")
        assert dict(result) == {"a": "y"}
        assert context.cache.hint("k").field_names == ["a"]

    def test_inferred_hint_types_null_leaf(self, converter):
        converter.convert({"a": "x", "b": 1}, None, "k")
        assert converter.convert({"a": "y", "b": None}, None, "k") == {"a": "y", "b": None}

    def test_integer_fits_wider_inferred_kind(self, converter, context):
        converter.convert(2**40, None, "n")
        assert converter.convert(1, None, "n") == 1
        assert context.cache.hint("n") is INT64

    def test_forgiving_keeps_new_keys_under_inferred_hint(self, forgiving, context):
        forgiving.convert({"a": "x"}, None, "k")
        result = forgiving.convert({"a": "y", "b": "z"}, None, "k")
        assert result == {"a": "y", "b": "z"}
        assert context.cache.hint("k").field_names == ["a", "b"]

    def test_convert_type_name(self, converter):
        assert converter.convert_type_name("42", "java.lang.Long", "k") == 42
        assert converter.convert_type_name(["1", "2"], "[J", "k2") == [1, 2]

    def test_unknown_type_name_is_inferred(self, converter):
        assert converter.convert_type_name(7, "com.example.Dynamic", "k") == 7

    def test_concurrent_conversions_share_the_cache(self, context):
        converter = WireConverter(context)
        errors = []

        def run():
            try:
                for _ in range(50):
                    assert converter.convert({"v": 1, "s": "x"}, None, "shared") == {"v": 1, "s": "x"}
            except Exception as e:  # noqa: BLE001
                errors.append(e)

        threads = [threading.Thread(target=run) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert errors == []
        assert context.cache.get("shared").quality is DescriptorQuality.INFERRED


class TestInference:
    """Tests for inferring shapes from the data."""

    def test_scalars(self, converter):
        assert converter.convert("x") == "x"
        assert converter.convert(True) is True
        assert converter.convert(Decimal("1.5")) == 1.5
        assert converter.convert(2**70) == 2**70

    def test_null_at_top_level(self, converter):
        assert converter.convert(None, None, "k") is None

    def test_nested_record(self, converter, context):
        result = converter.convert({"usage": {"used": 10, "max": 3000000000}}, None, "pool")
        assert result["usage"]["used"] == 10
        usage = context.cache.hint("pool.usage")
        assert usage.get_field("used").type_def is INT32
        assert usage.get_field("max").type_def is INT64

    def test_list_widening(self, converter, context):
        assert converter.convert([1, 3000000000], None, "k") == [1, 3000000000]
        assert context.cache.hint("k") == ArrayDescriptor.of(INT64)

    def test_list_of_mixed_numbers(self, converter):
        assert converter.convert([1, Decimal("2.5")], None, "k") == [1.0, 2.5]

    def test_nested_lists(self, converter, context):
        assert converter.convert([[1, 2], [3]], None, "k") == [[1, 2], [3]]
        descriptor = context.cache.hint("k")
        assert descriptor.dimension == 2
        assert descriptor.element is INT32

    def test_list_of_records_merges_fields(self, converter):
        result = converter.convert([{"a": 1}, {"b": "x"}], None, "k")
        assert result == [{"a": 1, "b": None}, {"a": None, "b": "x"}]

    def test_list_items_fill_in_nulls(self, converter):
        result = converter.convert([{"a": None}, {"a": 5}], None, "k")
        assert result == [{"a": None}, {"a": 5}]

    def test_empty_map_is_always_ambiguous(self, converter, forgiving):
        """An empty map cannot be inferred, even in forgiving mode."""
        with pytest.raises(AmbiguousSchema):
            converter.convert({}, UNKNOWN, "k")
        with pytest.raises(AmbiguousSchema):
            forgiving.convert({}, UNKNOWN, "k")
        with pytest.raises(AmbiguousSchema):
            forgiving.convert({"nested": {}}, None, "k2")

    def test_null_field_without_hint(self, converter, forgiving):
        with pytest.raises(AmbiguousSchema) as exc_info:
            converter.convert({"a": "x", "b": None}, None, "k")
        assert exc_info.value.key == "k.b"
        assert forgiving.convert({"a": "x", "b": None}, None, "k") == {"a": "x", "b": None}

    def test_empty_list_without_hint(self, converter, forgiving):
        with pytest.raises(AmbiguousSchema):
            converter.convert({"a": []}, None, "k")
        assert forgiving.convert({"a": []}, None, "k") == {"a": []}

    def test_null_field_with_hint(self, converter, context):
        """Null and empty values take their shape from the sub-key's cache entry."""
        context.cache.put_inferred("k.b", ArrayDescriptor.of(STRING))
        assert converter.convert({"a": "x", "b": []}, None, "k") == {"a": "x", "b": []}

    def test_empty_list_with_hint_at_top_level(self, converter, context):
        converter.convert(["a"], None, "k")
        assert converter.convert([], None, "k") == []

    def test_unknown_field_surfaces_under_declared(self, converter, record_x):
        with pytest.raises(UnknownField):
            converter.convert({"stringField": "x", "bogus": 1}, record_x, "k")

    def test_malformed_value(self, converter):
        with pytest.raises(MalformedWireValue):
            converter.convert({1: "x"}, None, "k")
        with pytest.raises(MalformedWireValue):
            converter.convert(object(), STRING, "k")

    def test_unknown_field_descriptor_resolves_through_cache(self, converter):
        """Parts of a declared record typed as unknown are inferred."""
        record = RecordDescriptor.of("R", {"known": INT32, "dynamic": UNKNOWN})
        result = converter.convert({"known": "1", "dynamic": {"x": 1}}, record, "r")
        assert result["known"] == 1
        assert result["dynamic"] == {"x": 1}

    def test_oversized_wire_number(self, converter):
        value = parse_wire("1" * 5000)
        with pytest.raises(NumericOverflow):
            converter.convert(value, INT32, "k")
        assert converter.convert(value, None, "big") == value
