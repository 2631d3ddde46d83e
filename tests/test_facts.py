"""
Tests for the fact and value model.
"""

import pytest

from backend.runes.errors import FieldNotFound, IndexOutOfRange, TypeMismatch, UnknownVariable
from backend.runes.facts import (
    Fact,
    FactStore,
    ValueKind,
    get_field,
    get_index,
    is_truthy,
    kind_of,
    to_value,
    values_equal,
)


class TestValueKinds:
    """Tests for value classification and normalization."""

    def test_bool_is_not_a_number(self):
        """Test that booleans are classified before numbers."""
        assert kind_of(True) is ValueKind.BOOL
        assert kind_of(1.0) is ValueKind.NUMBER

    def test_all_kinds(self):
        """Test classification of every supported kind."""
        assert kind_of("a") is ValueKind.STRING
        assert kind_of({}) is ValueKind.OBJECT
        assert kind_of([]) is ValueKind.ARRAY
        assert kind_of(None) is ValueKind.NULL

    def test_unsupported_type(self):
        """Test that unsupported values are rejected."""
        with pytest.raises(TypeError):
            kind_of({1, 2})

    def test_to_value_normalizes_ints(self):
        """Test that integers become floats recursively."""
        value = to_value({"a": 1, "b": [2, (3, 4)], "c": True})
        assert value == {"a": 1.0, "b": [2.0, [3.0, 4.0]], "c": True}
        assert isinstance(value["a"], float)
        assert value["c"] is True

    def test_to_value_rejects_non_string_keys(self):
        """Test that object keys must be strings."""
        with pytest.raises(TypeError):
            to_value({1: "x"})


class TestEquality:
    """Tests for structural equality."""

    def test_cross_kind_never_equal(self):
        """Test that 1.0 and True are different values."""
        assert values_equal(1.0, True) is False
        assert values_equal(0.0, None) is False
        assert values_equal("1", 1.0) is False

    def test_structural_object_equality(self):
        """Test nested object comparison."""
        assert values_equal({"a": [1.0, {"b": "c"}]}, {"a": [1.0, {"b": "c"}]})
        assert not values_equal({"a": [1.0]}, {"a": [True]})
        assert not values_equal({"a": 1.0}, {"a": 1.0, "b": 2.0})

    def test_array_length_mismatch(self):
        """Test arrays of different length."""
        assert not values_equal([1.0], [1.0, 2.0])

    def test_truthiness(self):
        """Test truthiness of each kind."""
        assert is_truthy(True)
        assert not is_truthy(0.0)
        assert not is_truthy("")
        assert not is_truthy([])
        assert not is_truthy(None)
        assert is_truthy({"a": None})


class TestAccessors:
    """Tests for field and index access."""

    def test_get_field(self):
        """Test reading an existing field."""
        assert get_field({"age": 30.0}, "age") == 30.0

    def test_missing_field(self):
        """Test reading a missing field."""
        with pytest.raises(FieldNotFound) as exc_info:
            get_field({"age": 30.0}, "name")
        assert exc_info.value.field == "name"

    def test_field_on_non_object(self):
        """Test field access on a scalar."""
        with pytest.raises(TypeMismatch):
            get_field(5.0, "x")

    def test_get_index_out_of_range(self):
        """Test reading past the end of an array."""
        with pytest.raises(IndexOutOfRange) as exc_info:
            get_index([1.0, 2.0], 2)
        assert exc_info.value.length == 2

    def test_negative_index_rejected(self):
        """Test that negative indices are out of range."""
        with pytest.raises(IndexOutOfRange):
            get_index([1.0], -1)


class TestFact:
    """Tests for Fact constructors."""

    def test_constructors(self):
        """Test every typed constructor."""
        assert Fact.number_fact("x", 7).value == 7.0
        assert Fact.string_fact("s", "hi").kind is ValueKind.STRING
        assert Fact.bool_fact("b", True).value is True
        assert Fact.object_fact("o", {"a": 1}).value == {"a": 1.0}
        assert Fact.array_fact("l", [1, 2]).value == [1.0, 2.0]
        assert Fact.null_fact("n").kind is ValueKind.NULL

    def test_set_field(self):
        """Test adding a field to an object fact."""
        fact = Fact.object_fact("test", {"field1": "value1", "field2": 42})
        fact.set_field("field3", True)
        assert fact.get_field("field3") is True
        assert fact.get_field("field2") == 42.0

    def test_set_field_on_scalar(self):
        """Test that scalar facts have no fields."""
        fact = Fact.number_fact("x", 1)
        with pytest.raises(TypeMismatch):
            fact.set_field("y", 1)


class TestFactStore:
    """Tests for FactStore."""

    def test_absent_vs_null(self):
        """Test that an absent fact differs from a null one."""
        store = FactStore.from_dict({"present": None})
        assert store.get_value("present") is None
        assert store.get("missing") is None
        with pytest.raises(UnknownVariable):
            store.get_value("missing")

    def test_set_overwrites(self):
        """Test insert-or-overwrite semantics."""
        store = FactStore([Fact.number_fact("x", 1)])
        store.set("x", "now a string")
        assert store.get_value("x") == "now a string"
        assert len(store) == 1

    def test_to_dict_is_a_copy(self):
        """Test that to_dict does not expose stored values."""
        store = FactStore.from_dict({"o": {"a": [1]}})
        snapshot = store.to_dict()
        snapshot["o"]["a"].append(2.0)
        assert store.get_value("o") == {"a": [1.0]}

    def test_container_protocol(self):
        """Test membership, iteration and removal."""
        store = FactStore.from_dict({"a": 1, "b": 2})
        assert "a" in store
        assert sorted(store) == ["a", "b"]
        assert store.remove("a").value == 1.0
        assert "a" not in store
