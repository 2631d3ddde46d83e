"""
Fact and value model.

Fact values are plain Python data restricted to a closed set of kinds:
numbers (always ``float``), strings, booleans, objects (``dict`` with string
keys), arrays (``list``) and null (``None``).
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from .errors import FieldNotFound, IndexOutOfRange, TypeMismatch, UnknownVariable


class ValueKind(str, Enum):
    """The kinds of value a fact can hold."""

    NUMBER = "number"
    STRING = "string"
    BOOL = "bool"
    OBJECT = "object"
    ARRAY = "array"
    NULL = "null"


def kind_of(value: Any) -> ValueKind:
    """
    Classify a fact value.

    Raises:
        TypeError: If the value is not one of the supported kinds.
    """
    # bool is a subclass of int, check it first
    if isinstance(value, bool):
        return ValueKind.BOOL
    if isinstance(value, float):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, dict):
        return ValueKind.OBJECT
    if isinstance(value, list):
        return ValueKind.ARRAY
    if value is None:
        return ValueKind.NULL
    raise TypeError(f"Unsupported fact value type: {type(value).__name__}")


def to_value(value: Any) -> Any:
    """
    Normalize host data into a fact value.

    Integers become floats, tuples become lists; objects and arrays are
    copied recursively.
    """
    if isinstance(value, bool) or value is None or isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, dict):
        result = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise TypeError(f"Object keys must be strings, got {type(key).__name__}")
            result[key] = to_value(item)
        return result
    if isinstance(value, (list, tuple)):
        return [to_value(item) for item in value]
    raise TypeError(f"Unsupported fact value type: {type(value).__name__}")


def values_equal(left: Any, right: Any) -> bool:
    """Structural equality; values of different kinds are never equal."""
    left_kind = kind_of(left)
    if left_kind is not kind_of(right):
        return False
    if left_kind is ValueKind.OBJECT:
        if left.keys() != right.keys():
            return False
        return all(values_equal(left[k], right[k]) for k in left)
    if left_kind is ValueKind.ARRAY:
        if len(left) != len(right):
            return False
        return all(values_equal(a, b) for a, b in zip(left, right))
    return left == right


def is_truthy(value: Any) -> bool:
    """Truthiness of a value (empty containers, zero and null are false)."""
    kind = kind_of(value)
    if kind is ValueKind.BOOL:
        return value
    if kind is ValueKind.NUMBER:
        return value != 0.0
    if kind is ValueKind.NULL:
        return False
    return len(value) > 0


def get_field(value: Any, field: str) -> Any:
    """Read a field of an object value."""
    if kind_of(value) is not ValueKind.OBJECT:
        raise TypeMismatch(
            f"Cannot access field '{field}' on {kind_of(value).value}"
        )
    if field not in value:
        raise FieldNotFound(field)
    return value[field]


def get_index(value: Any, index: int) -> Any:
    """Read an element of an array value."""
    if kind_of(value) is not ValueKind.ARRAY:
        raise TypeMismatch(f"Cannot index into {kind_of(value).value}")
    if index < 0 or index >= len(value):
        raise IndexOutOfRange(index, len(value))
    return value[index]


@dataclass
class Fact:
    """A named fact value."""

    name: str
    value: Any = None

    def __post_init__(self):
        self.value = to_value(self.value)

    @property
    def kind(self) -> ValueKind:
        return kind_of(self.value)

    def get_field(self, field: str) -> Any:
        return get_field(self.value, field)

    def set_field(self, field: str, value: Any) -> None:
        """Set a field on an object fact."""
        if self.kind is not ValueKind.OBJECT:
            raise TypeMismatch(f"Cannot set field '{field}' on non-object fact '{self.name}'")
        self.value[field] = to_value(value)

    @classmethod
    def number_fact(cls, name: str, value: float) -> "Fact":
        return cls(name, float(value))

    @classmethod
    def string_fact(cls, name: str, value: str) -> "Fact":
        return cls(name, str(value))

    @classmethod
    def bool_fact(cls, name: str, value: bool) -> "Fact":
        return cls(name, bool(value))

    @classmethod
    def object_fact(cls, name: str, value: Dict[str, Any]) -> "Fact":
        return cls(name, dict(value))

    @classmethod
    def array_fact(cls, name: str, value: List[Any]) -> "Fact":
        return cls(name, list(value))

    @classmethod
    def null_fact(cls, name: str) -> "Fact":
        return cls(name, None)


class FactStore:
    """
    Mapping of fact name to Fact.

    ``set`` is the only mutator used during rule execution. Lookups raise
    typed errors instead of returning defaults so callers can tell an absent
    fact from a null one.
    """

    def __init__(self, facts: Optional[List[Fact]] = None):
        self._facts: Dict[str, Fact] = {}
        for fact in facts or []:
            self.add(fact)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FactStore":
        """Build a store from a name -> value mapping."""
        store = cls()
        for name, value in data.items():
            store.set(name, value)
        return store

    def to_dict(self) -> Dict[str, Any]:
        """Deep copy of all fact values keyed by name."""
        return {name: copy.deepcopy(fact.value) for name, fact in self._facts.items()}

    def add(self, fact: Fact) -> None:
        self._facts[fact.name] = fact

    def get(self, name: str) -> Optional[Fact]:
        return self._facts.get(name)

    def get_value(self, name: str) -> Any:
        """Value of a fact, raising UnknownVariable if it is absent."""
        fact = self._facts.get(name)
        if fact is None:
            raise UnknownVariable(name)
        return fact.value

    def set(self, name: str, value: Any) -> None:
        """Insert or overwrite a fact."""
        self._facts[name] = Fact(name, value)

    def remove(self, name: str) -> Optional[Fact]:
        return self._facts.pop(name, None)

    def get_field(self, value: Any, field: str) -> Any:
        return get_field(value, field)

    def get_index(self, value: Any, index: int) -> Any:
        return get_index(value, index)

    def __contains__(self, name: object) -> bool:
        return name in self._facts

    def __len__(self) -> int:
        return len(self._facts)

    def __iter__(self) -> Iterator[str]:
        return iter(self._facts)

    def __repr__(self) -> str:
        return f"FactStore({self.to_dict()!r})"
