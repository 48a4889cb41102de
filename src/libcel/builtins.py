"""Built-in functions for the libcel expression language.

This module registers the standard library with a FunctionRegistry.

Categories:
- Conversion: int, uint, double, string, bool, type
- Collection: size, has, max, min, contains (method), size (method)
- String: matches, startsWith, endsWith, toLowerCase, toUpperCase, trim,
  replace, split, matches (method)
- Math: abs, ceil, floor, round
"""

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from libcel import values
from libcel.errors import InvalidArgumentsError
from libcel.functions import (
    FunctionCategory,
    FunctionDefinition,
    FunctionParameter,
    FunctionRegistry,
)


def standard_functions() -> FunctionRegistry:
    """Create a registry holding the full standard library."""
    registry = FunctionRegistry()
    register_all_builtins(registry)
    return registry


def register_all_builtins(registry: FunctionRegistry) -> None:
    """Register all built-in functions and methods with the registry."""
    _register_conversion_functions(registry)
    _register_collection_functions(registry)
    _register_string_functions(registry)
    _register_math_functions(registry)


def _require_string(name: str, *args: Any) -> None:
    if not all(isinstance(a, str) for a in args):
        raise InvalidArgumentsError(f"{name}() requires string arguments")


# -----------------------------------------------------------------------------
# Conversion Functions
# -----------------------------------------------------------------------------


def _register_conversion_functions(registry: FunctionRegistry) -> None:
    conversions = [
        ("int", values.as_int, "int", "Converts a number, integer string or bool to int",
         ['int("42") == 42', "int(3.9) == 3"]),
        ("uint", values.as_uint, "uint", "Converts to a non-negative integer",
         ['uint("7") == 7u']),
        ("double", values.as_double, "double", "Converts a number or numeric string to double",
         ['double("2.5") > 2.0']),
        ("string", values.as_string, "string", "Formats any value as text",
         ['"total: " + string(count)']),
        ("bool", values.as_bool, "bool", "Interprets a value as true/false (non-zero, non-empty)",
         ["bool(items)"]),
        ("type", values.type_name, "string", "Returns the simple type name of a value",
         ['type(value) == "string"']),
    ]
    for name, implementation, return_type, description, examples in conversions:
        registry.register(
            FunctionDefinition(
                name=name,
                description=description,
                category=FunctionCategory.CONVERSION,
                parameters=[FunctionParameter("value", "any", "The value to convert")],
                return_type=return_type,
                implementation=implementation,
                examples=examples,
            )
        )


# -----------------------------------------------------------------------------
# Collection Functions
# -----------------------------------------------------------------------------


def _contains(target: Any, item: Any) -> bool:
    """Substring test for strings, deep-equality membership for lists."""
    if isinstance(target, str):
        _require_string("contains", item)
        return item in target
    if values.is_list(target):
        return values.contains(target, item)
    raise InvalidArgumentsError(f"contains() not supported for type {values.type_name(target)}")


def _register_collection_functions(registry: FunctionRegistry) -> None:
    registry.register(
        FunctionDefinition(
            name="size",
            description="Returns length of a string, list or map; 0 for null",
            category=FunctionCategory.COLLECTION,
            parameters=[FunctionParameter("value", "string|list|map", "The value to measure")],
            return_type="int",
            implementation=values.size_of,
            examples=["size(tags) >= 1", 'size("") == 0'],
        )
    )

    registry.register(
        FunctionDefinition(
            name="size",
            description="Returns length of the target string, list or map",
            category=FunctionCategory.COLLECTION,
            parameters=[],
            return_type="int",
            implementation=values.size_of,
            method=True,
            examples=["tags.size() > 0"],
        )
    )

    registry.register(
        FunctionDefinition(
            name="has",
            description="Returns true if a map contains the given key",
            category=FunctionCategory.COLLECTION,
            parameters=[
                FunctionParameter("target", "map", "The map to inspect"),
                FunctionParameter("field", "string", "The key to look for"),
            ],
            return_type="bool",
            implementation=values.has_field,
            examples=['has(user, "email")'],
        )
    )

    registry.register(
        FunctionDefinition(
            name="max",
            description="Returns the greatest argument",
            category=FunctionCategory.COLLECTION,
            parameters=[
                FunctionParameter("values", "any", "Values to compare", variadic=True)
            ],
            return_type="any",
            implementation=lambda *args: values.max_of(list(args)),
            examples=["max(a, b, c)"],
        )
    )

    registry.register(
        FunctionDefinition(
            name="min",
            description="Returns the least argument",
            category=FunctionCategory.COLLECTION,
            parameters=[
                FunctionParameter("values", "any", "Values to compare", variadic=True)
            ],
            return_type="any",
            implementation=lambda *args: values.min_of(list(args)),
            examples=["min(limit, requested)"],
        )
    )

    registry.register(
        FunctionDefinition(
            name="contains",
            description="Tests for a substring (strings) or an element (lists)",
            category=FunctionCategory.COLLECTION,
            parameters=[FunctionParameter("item", "any", "The substring or element")],
            return_type="bool",
            implementation=_contains,
            method=True,
            examples=['email.contains("@")', "roles.contains(\"admin\")"],
        )
    )


# -----------------------------------------------------------------------------
# String Functions
# -----------------------------------------------------------------------------


def _starts_with(target: Any, prefix: Any) -> bool:
    _require_string("startsWith", target, prefix)
    return target.startswith(prefix)


def _ends_with(target: Any, suffix: Any) -> bool:
    _require_string("endsWith", target, suffix)
    return target.endswith(suffix)


def _lower(target: Any) -> str:
    _require_string("toLowerCase", target)
    return target.lower()


def _upper(target: Any) -> str:
    _require_string("toUpperCase", target)
    return target.upper()


def _trim(target: Any) -> str:
    _require_string("trim", target)
    return target.strip()


def _replace(target: Any, old: Any, new: Any) -> str:
    """Replace every literal occurrence of old with new."""
    _require_string("replace", target, old, new)
    return target.replace(old, new)


def _split(target: Any, separator: Any) -> list[str]:
    """Split on a literal separator; an empty separator yields characters."""
    _require_string("split", target, separator)
    if separator == "":
        return list(target)
    return target.split(separator)


def _register_string_functions(registry: FunctionRegistry) -> None:
    registry.register(
        FunctionDefinition(
            name="matches",
            description="Tests if a regex pattern matches anywhere in the text",
            category=FunctionCategory.STRING,
            parameters=[
                FunctionParameter("text", "string", "The string to search"),
                FunctionParameter("pattern", "string", "Regular expression pattern"),
            ],
            return_type="bool",
            implementation=values.matches,
            examples=['matches(email, "@example\\\\.com$")'],
        )
    )

    registry.register(
        FunctionDefinition(
            name="matches",
            description="Tests if a regex pattern matches anywhere in the target",
            category=FunctionCategory.STRING,
            parameters=[FunctionParameter("pattern", "string", "Regular expression pattern")],
            return_type="bool",
            implementation=values.matches,
            method=True,
            examples=['code.matches("^[A-Z]{3}$")'],
        )
    )

    methods = [
        ("startsWith", _starts_with, [FunctionParameter("prefix", "string", "Expected prefix")],
         "bool", "Tests if the target starts with prefix", ['name.startsWith("Dr.")']),
        ("endsWith", _ends_with, [FunctionParameter("suffix", "string", "Expected suffix")],
         "bool", "Tests if the target ends with suffix", ['email.endsWith("@example.com")']),
        ("toLowerCase", _lower, [], "string", "Converts the target to lowercase",
         ['country.toLowerCase() == "us"']),
        ("toUpperCase", _upper, [], "string", "Converts the target to uppercase",
         ['code.toUpperCase() == "ABC"']),
        ("trim", _trim, [], "string", "Removes whitespace from both ends",
         ['name.trim() != ""']),
        ("replace", _replace,
         [FunctionParameter("old", "string", "Text to replace"),
          FunctionParameter("new", "string", "Replacement text")],
         "string", "Replaces every literal occurrence of old with new",
         ['phone.replace("-", "")']),
        ("split", _split, [FunctionParameter("separator", "string", "Literal separator")],
         "list", "Splits the target on a literal separator",
         ['tags.split(",").size() <= 5']),
    ]
    for name, implementation, parameters, return_type, description, examples in methods:
        registry.register(
            FunctionDefinition(
                name=name,
                description=description,
                category=FunctionCategory.STRING,
                parameters=parameters,
                return_type=return_type,
                implementation=implementation,
                method=True,
                examples=examples,
            )
        )


# -----------------------------------------------------------------------------
# Math Functions
# -----------------------------------------------------------------------------


def _require_number(name: str, value: Any, finite: bool = False) -> None:
    if not values.is_number(value):
        raise InvalidArgumentsError(
            f"{name}() requires a number, got {values.type_name(value)}"
        )
    if finite and isinstance(value, float) and not math.isfinite(value):
        raise InvalidArgumentsError(f"{name}() requires a finite number, got {value!r}")


def _abs(value: Any) -> int | float:
    _require_number("abs", value)
    return abs(value)


def _floor(value: Any) -> int:
    _require_number("floor", value, finite=True)
    return math.floor(value)


def _ceil(value: Any) -> int:
    _require_number("ceil", value, finite=True)
    return math.ceil(value)


def _round_num(value: Any, digits: Any = 0) -> int | float:
    """Round half away from zero to the given number of decimal places."""
    _require_number("round", value, finite=True)
    if not values.is_integral(digits):
        raise InvalidArgumentsError("round() requires an integer number of digits")
    if isinstance(value, int):
        return value
    quantum = Decimal(1).scaleb(-digits)
    rounded = Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    return float(rounded)


def _register_math_functions(registry: FunctionRegistry) -> None:
    registry.register(
        FunctionDefinition(
            name="abs",
            description="Returns absolute value of a number",
            category=FunctionCategory.MATH,
            parameters=[FunctionParameter("value", "number", "The number")],
            return_type="number",
            implementation=_abs,
            examples=["abs(balance) < 1000"],
        )
    )

    registry.register(
        FunctionDefinition(
            name="floor",
            description="Rounds down to the nearest integer",
            category=FunctionCategory.MATH,
            parameters=[FunctionParameter("value", "number", "The number to round down")],
            return_type="int",
            implementation=_floor,
            examples=["floor(rating) >= 3"],
        )
    )

    registry.register(
        FunctionDefinition(
            name="ceil",
            description="Rounds up to the nearest integer",
            category=FunctionCategory.MATH,
            parameters=[FunctionParameter("value", "number", "The number to round up")],
            return_type="int",
            implementation=_ceil,
            examples=["ceil(hours) <= 8"],
        )
    )

    registry.register(
        FunctionDefinition(
            name="round",
            description="Rounds a number to specified decimal places (half-up)",
            category=FunctionCategory.MATH,
            parameters=[
                FunctionParameter("value", "number", "The number to round"),
                FunctionParameter(
                    "decimals", "int", "Number of decimal places", required=False
                ),
            ],
            return_type="number",
            implementation=_round_num,
            examples=["round(price, 2) == 9.99"],
        )
    )
