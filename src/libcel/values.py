"""Runtime value model for the libcel expression language.

Values are plain Python objects:
- null: None
- bool: bool (never treated as a number)
- int/uint: int (integral), double: float (non-integral)
- string: str, bytes: Bytes (decoded text tagged as bytes)
- list: list or tuple
- map: any Mapping, struct: Struct (a dict with an optional type name)

This module holds the type tests, deep equality, the total-order comparator
and the conversions shared by the evaluator and the standard functions.
"""

import math
import re
from collections.abc import Mapping
from typing import Any

from libcel.errors import EvaluationError, InvalidArgumentsError


class Bytes(str):
    """Bytes literal content, stored as decoded text."""

    __slots__ = ()

    def __repr__(self) -> str:
        return f"b{super().__repr__()}"


class Struct(dict):
    """Struct value: a field map with an optional type name."""

    def __init__(self, type_name: str | None = None, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.type_name = type_name

    def __repr__(self) -> str:
        return f"{self.type_name or ''}{super().__repr__()}"


# -----------------------------------------------------------------------------
# Type tests
# -----------------------------------------------------------------------------


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_integral(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def is_list(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def is_map(value: Any) -> bool:
    return isinstance(value, Mapping)


def type_name(value: Any) -> str:
    """Return a simple type name for the given value.

    Possible results: "null", "bool", "int", "double", "string", "bytes",
    "list", "map", a struct's type name, or "unknown".
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "double"
    if isinstance(value, Bytes):
        return "bytes"
    if isinstance(value, str):
        return "string"
    if is_list(value):
        return "list"
    if isinstance(value, Struct) and value.type_name:
        return value.type_name
    if is_map(value):
        return "map"
    return "unknown"


# -----------------------------------------------------------------------------
# Equality, ordering, membership
# -----------------------------------------------------------------------------


def deep_equals(left: Any, right: Any) -> bool:
    """Structural equality. Never raises; mismatched types are unequal."""
    if left is None or right is None:
        return left is None and right is None

    if is_list(left) and is_list(right):
        if len(left) != len(right):
            return False
        return all(deep_equals(a, b) for a, b in zip(left, right))

    if is_map(left) and is_map(right):
        if len(left) != len(right):
            return False
        for key, value in left.items():
            if key not in right or not deep_equals(value, right[key]):
                return False
        return True

    if is_number(left) and is_number(right):
        return left == right

    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right

    if isinstance(left, str) and isinstance(right, str):
        return str(left) == str(right)

    if is_number(left) or is_number(right) or is_list(left) or is_list(right):
        return False

    if isinstance(left, str) or isinstance(right, str) or is_map(left) or is_map(right):
        return False

    return type(left) is type(right) and left == right


def compare(left: Any, right: Any) -> int:
    """Compare two values, returning -1, 0, or 1.

    null orders before everything else; numbers compare by value, strings
    lexicographically, booleans false before true, lists element-wise then
    by length. Any other pairing raises EvaluationError.
    """
    if left is None or right is None:
        if left is None and right is None:
            return 0
        return -1 if left is None else 1

    if is_number(left) and is_number(right):
        return (left > right) - (left < right)

    if isinstance(left, str) and isinstance(right, str):
        return (left > right) - (left < right)

    if isinstance(left, bool) and isinstance(right, bool):
        return int(left) - int(right)

    if is_list(left) and is_list(right):
        for a, b in zip(left, right):
            result = compare(a, b)
            if result != 0:
                return result
        return (len(left) > len(right)) - (len(left) < len(right))

    raise EvaluationError(
        f"Values of type {type_name(left)} and {type_name(right)} are not comparable"
    )


def contains(collection: Any, item: Any) -> bool:
    """Membership test used by the 'in' operator."""
    if is_list(collection):
        return any(deep_equals(element, item) for element in collection)

    if is_map(collection):
        try:
            return item in collection
        except TypeError:
            return False

    if isinstance(collection, str):
        if not isinstance(item, str):
            raise EvaluationError(
                f"'in' on a string requires a string operand, got {type_name(item)}"
            )
        return item in collection

    raise EvaluationError(
        f"'in' operator requires list, map, or string, got {type_name(collection)}"
    )


# -----------------------------------------------------------------------------
# Formatting and conversions
# -----------------------------------------------------------------------------


def format_value(value: Any) -> str:
    """Render a value as text (used by string() and string concatenation)."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, str):
        return str(value)
    if is_list(value):
        return "[" + ", ".join(_format_element(v) for v in value) + "]"
    if is_map(value):
        items = ", ".join(
            f"{_format_element(k)}: {_format_element(v)}" for k, v in value.items()
        )
        prefix = (value.type_name or "") if isinstance(value, Struct) else ""
        return prefix + "{" + items + "}"
    return str(value)


def _format_element(value: Any) -> str:
    if isinstance(value, str):
        return f'"{value}"'
    return format_value(value)


def size_of(value: Any) -> int:
    """Return length of a string, list or map; 0 for null."""
    if value is None:
        return 0
    if isinstance(value, str) or is_list(value) or is_map(value):
        return len(value)
    raise InvalidArgumentsError(f"size() not supported for type {type_name(value)}")


def as_int(value: Any) -> int:
    """Convert a number (truncating), integer string or bool to int."""
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise InvalidArgumentsError(f"Cannot convert {value!r} to int")
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip(), 10)
        except ValueError:
            raise InvalidArgumentsError(f"Cannot convert {value!r} to int") from None
    raise InvalidArgumentsError(f"Cannot convert {type_name(value)} to int")


def as_uint(value: Any) -> int:
    """Convert to a non-negative integer."""
    result = as_int(value)
    if result < 0:
        raise InvalidArgumentsError(f"Cannot convert negative value to uint: {format_value(value)}")
    return result


def as_double(value: Any) -> float:
    """Convert a number or numeric string to float."""
    if is_number(value):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            raise InvalidArgumentsError(f"Cannot convert {value!r} to double") from None
    raise InvalidArgumentsError(f"Cannot convert {type_name(value)} to double")


def as_string(value: Any) -> str:
    return format_value(value)


def as_bool(value: Any) -> bool:
    """Interpret a value as bool: non-zero numbers, non-empty strings and
    collections are true, null is false."""
    if isinstance(value, bool):
        return value
    if is_number(value):
        return value != 0
    if isinstance(value, str) or is_list(value) or is_map(value):
        return len(value) > 0
    return value is not None


def has_field(target: Any, field: Any) -> bool:
    """Return True if target is a map containing the given string key."""
    return is_map(target) and isinstance(field, str) and field in target


def matches(text: Any, pattern: Any) -> bool:
    """Test whether pattern matches anywhere in text (search, not full match)."""
    if not isinstance(text, str) or not isinstance(pattern, str):
        raise InvalidArgumentsError("matches() requires string text and pattern")
    try:
        return re.search(pattern, text) is not None
    except re.error as e:
        raise InvalidArgumentsError(f"Invalid regex pattern {pattern!r}: {e}") from e


def max_of(values: list[Any]) -> Any:
    """Return the greatest value using the total-order comparator."""
    if not values:
        raise InvalidArgumentsError("max() requires at least one argument")
    result = values[0]
    for value in values[1:]:
        if compare(value, result) > 0:
            result = value
    return result


def min_of(values: list[Any]) -> Any:
    """Return the least value using the total-order comparator."""
    if not values:
        raise InvalidArgumentsError("min() requires at least one argument")
    result = values[0]
    for value in values[1:]:
        if compare(value, result) < 0:
            result = value
    return result
