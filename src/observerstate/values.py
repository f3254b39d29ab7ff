"""
Value primitives shared by the observer, its history bridge and its sync bridge.

- MISSING: sentinel for "no value" (distinct from None, which is JSON null)
- Record: lightweight keyed sub-record stored at keyed fields of an Observer
- Equality helpers with JSON-style strictness (True is not 1, containers by identity)
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


class _MissingType:
    """Marker for an absent value. Falsy, singleton, survives copy."""

    _instance: Optional['_MissingType'] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return 'MISSING'

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self

    def __reduce__(self):
        return (_MissingType, ())


MISSING = _MissingType()


@dataclass(eq=False)
class Record:
    """Keyed sub-record of an Observer.

    Has no event bus of its own; every event for a field inside a record is
    emitted by the Observer that owns it. Field order is the insertion order
    of `data`.
    """
    path: str
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def keys(self) -> List[str]:
        return list(self.data)

    def child_path(self, key: str) -> str:
        return f"{self.path}.{key}" if self.path else key


def is_composite(value: Any) -> bool:
    """True for values that are materialized into records, lists or nested trees."""
    return isinstance(value, (dict, list))


def strict_equals(a: Any, b: Any) -> bool:
    """Scalar equality without Python's cross-type coercions.

    Containers only compare equal when they are the same object.
    """
    if a is b:
        return True
    if isinstance(a, (dict, list, Record)) or isinstance(b, (dict, list, Record)):
        return False
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    if isinstance(a, (int, float, str)) and isinstance(b, (int, float, str)):
        return a == b
    return False


def array_equals(a: Any, b: Any) -> bool:
    """Element-wise comparison of two lists, recursing into nested lists."""
    if not isinstance(a, list) or not isinstance(b, list):
        return False

    if len(a) != len(b):
        return False

    for x, y in zip(a, b):
        if isinstance(x, list) and isinstance(y, list):
            if not array_equals(x, y):
                return False
        elif not strict_equals(x, y):
            return False
    return True


def values_equal(a: Any, b: Any) -> bool:
    """Strict equality, plus element-wise equality for two lists."""
    return strict_equals(a, b) or array_equals(a, b)


def json_equals(a: Any, b: Any) -> bool:
    """Deep equality of two JSON values using strict scalar comparison."""
    if isinstance(a, dict) and isinstance(b, dict):
        return a.keys() == b.keys() and all(json_equals(a[k], b[k]) for k in a)
    if isinstance(a, list) and isinstance(b, list):
        return len(a) == len(b) and all(json_equals(x, y) for x, y in zip(a, b))
    return strict_equals(a, b)


def deep_copy_array(arr: List[Any]) -> List[Any]:
    """Copy a list, recursively copying nested lists (other elements are shared)."""
    return [deep_copy_array(item) if isinstance(item, list) else item for item in arr]
