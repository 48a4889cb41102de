"""Function registry for the libcel expression language.

Functions are callable from expressions as free functions (`size(name)`)
or as methods on a value (`name.startsWith("a")`). Each function is
registered with metadata used for arity checking and documentation.

Custom libraries compose by delegation: a registry created with a parent
(or via `extend()`) handles its own names and hands everything else to
the parent.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Protocol, runtime_checkable

from libcel.errors import (
    EvaluationError,
    FunctionNotFoundError,
    InvalidArgumentsError,
    RegistryError,
)
from libcel.nodes import MACRO_NAMES

logger = logging.getLogger(__name__)


@runtime_checkable
class Functions(Protocol):
    """Interface the evaluator uses to dispatch calls.

    Implementations raise RegistryError subclasses for unknown names and
    invalid arguments.
    """

    def call_function(self, name: str, args: list[Any]) -> Any: ...

    def call_method(self, target: Any, name: str, args: list[Any]) -> Any: ...


class FunctionCategory(Enum):
    """Categories for organizing functions in documentation."""

    STRING = "string"
    MATH = "math"
    COLLECTION = "collection"
    CONVERSION = "conversion"
    CUSTOM = "custom"


@dataclass
class FunctionParameter:
    """Definition of a function parameter.

    Attributes:
        name: Parameter name
        type: Expected type ("string", "number", "any", "list", etc.)
        description: Human-readable description
        required: Whether this parameter is required
        variadic: If True, this parameter accepts any number of values
    """

    name: str
    type: str
    description: str
    required: bool = True
    variadic: bool = False


@dataclass
class FunctionDefinition:
    """Complete definition of an expression function.

    Attributes:
        name: Function name as used in expressions
        description: Human-readable description
        category: Category for documentation organization
        parameters: Parameter definitions (excluding the target of a method)
        return_type: Type of the return value
        implementation: The Python callable; methods receive the target first
        method: True if called as target.name(...), False for name(...)
        examples: Example expressions using this function
    """

    name: str
    description: str
    category: FunctionCategory
    parameters: list[FunctionParameter]
    return_type: str
    implementation: Callable[..., Any]
    method: bool = False
    examples: list[str] = field(default_factory=list)

    @property
    def min_args(self) -> int:
        return sum(1 for p in self.parameters if p.required and not p.variadic)

    @property
    def max_args(self) -> int | None:
        if any(p.variadic for p in self.parameters):
            return None
        return len(self.parameters)

    def check_arity(self, count: int) -> None:
        """Raise InvalidArgumentsError if count arguments do not fit."""
        maximum = self.max_args
        if self.min_args <= count and (maximum is None or count <= maximum):
            return
        if maximum is None:
            expected = f"at least {self.min_args}"
        elif maximum == self.min_args:
            expected = str(maximum)
        else:
            expected = f"{self.min_args} to {maximum}"
        raise InvalidArgumentsError(
            f"{self.signature()} expects {expected} argument(s), got {count}"
        )

    def signature(self) -> str:
        params = ", ".join(
            f"{p.name}..." if p.variadic else p.name for p in self.parameters
        )
        prefix = "<target>." if self.method else ""
        return f"{prefix}{self.name}({params})"

    def to_dict(self) -> dict[str, Any]:
        """Export for documentation output."""
        return {
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "method": self.method,
            "parameters": [
                {
                    "name": p.name,
                    "type": p.type,
                    "description": p.description,
                    "required": p.required,
                    "variadic": p.variadic,
                }
                for p in self.parameters
            ],
            "returnType": self.return_type,
            "examples": self.examples,
        }


class FunctionRegistry:
    """Registry of expression functions and methods.

    Free functions and methods live in separate tables, so `size(x)` and
    `x.size()` may have different implementations.

    Example:
        registry = standard_functions().extend()

        @registry.function("reverse")
        def reverse(text):
            return text[::-1]

        registry.call_function("reverse", ["abc"])  # Returns "cba"
    """

    def __init__(self, parent: Functions | None = None):
        self.parent = parent
        self._functions: dict[str, FunctionDefinition] = {}
        self._methods: dict[str, FunctionDefinition] = {}

    def _table(self, method: bool) -> dict[str, FunctionDefinition]:
        return self._methods if method else self._functions

    def register(self, func_def: FunctionDefinition) -> None:
        """Register a function definition, replacing any previous one.

        Args:
            func_def: Complete function definition with implementation
        """
        table = self._table(func_def.method)
        if func_def.name in table:
            logger.debug("Replacing registered %s '%s'", _kind(func_def.method), func_def.name)
        table[func_def.name] = func_def

    def function(
        self,
        name: str,
        *,
        description: str = "",
        category: FunctionCategory = FunctionCategory.CUSTOM,
        method: bool = False,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator registering a host function with unchecked arity.

        Usage:
            @registry.function("double", method=True)
            def double(target):
                return target * 2
        """

        def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
            self.register(
                FunctionDefinition(
                    name=name,
                    description=description or (fn.__doc__ or "").strip(),
                    category=category,
                    parameters=[
                        FunctionParameter(
                            "args", "any", "Arguments", required=False, variadic=True
                        )
                    ],
                    return_type="any",
                    implementation=fn,
                    method=method,
                )
            )
            return fn

        return decorator

    def get(self, name: str, method: bool = False) -> FunctionDefinition:
        """Get a function definition registered directly on this registry.

        Raises:
            FunctionNotFoundError: If the name is not registered
        """
        table = self._table(method)
        if name not in table:
            raise FunctionNotFoundError(f"Unknown {_kind(method)}: {name}")
        return table[name]

    def is_registered(self, name: str, method: bool = False) -> bool:
        """Check if a function is registered directly on this registry."""
        return name in self._table(method)

    def extend(self) -> "FunctionRegistry":
        """Create a child registry that delegates unknown names to this one."""
        return FunctionRegistry(parent=self)

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def call_function(self, name: str, args: list[Any]) -> Any:
        """Call a free function by name with already-evaluated arguments."""
        func_def = self._functions.get(name)
        if func_def is None:
            if self.parent is not None:
                logger.debug("Delegating function '%s' to parent registry", name)
                return self.parent.call_function(name, args)
            raise FunctionNotFoundError(f"Unknown function: {name}")
        return self._invoke(func_def, list(args))

    def call_method(self, target: Any, name: str, args: list[Any]) -> Any:
        """Call a method on target with already-evaluated arguments."""
        func_def = self._methods.get(name)
        if func_def is None:
            if self.parent is not None:
                logger.debug("Delegating method '%s' to parent registry", name)
                return self.parent.call_method(target, name, args)
            if name in MACRO_NAMES:
                raise EvaluationError(
                    f"Macro '{name}' must be called on a list with a variable and an expression"
                )
            raise FunctionNotFoundError(f"Unknown method: {name}")
        if target is None:
            raise InvalidArgumentsError(f"Cannot call method '{name}' on null")
        return self._invoke(func_def, [target, *args], len(args))

    def _invoke(
        self, func_def: FunctionDefinition, args: list[Any], count: int | None = None
    ) -> Any:
        func_def.check_arity(len(args) if count is None else count)
        try:
            return func_def.implementation(*args)
        except RegistryError:
            raise
        except (TypeError, ValueError, ArithmeticError) as e:
            raise InvalidArgumentsError(
                f"Invalid arguments for {func_def.signature()}: {e}"
            ) from e

    # -------------------------------------------------------------------------
    # Documentation
    # -------------------------------------------------------------------------

    def list_all(self) -> list[FunctionDefinition]:
        """List all definitions visible from this registry, parents included."""
        seen: dict[tuple[str, bool], FunctionDefinition] = {}
        if isinstance(self.parent, FunctionRegistry):
            for func_def in self.parent.list_all():
                seen[(func_def.name, func_def.method)] = func_def
        for func_def in [*self._functions.values(), *self._methods.values()]:
            seen[(func_def.name, func_def.method)] = func_def
        return list(seen.values())

    def list_by_category(self, category: FunctionCategory) -> list[FunctionDefinition]:
        """List functions in a specific category."""
        return [f for f in self.list_all() if f.category == category]

    def export_documentation(self) -> dict[str, Any]:
        """Export the registry for documentation output.

        Returns:
            Dict with functions, methods and definitions grouped by category
        """
        by_category: dict[str, list[dict[str, Any]]] = {}
        for func_def in self.list_all():
            by_category.setdefault(func_def.category.value, []).append(func_def.to_dict())

        return {
            "functions": sorted(f.name for f in self.list_all() if not f.method),
            "methods": sorted(f.name for f in self.list_all() if f.method),
            "byCategory": by_category,
        }

    def clear(self) -> None:
        """Clear all registrations on this registry."""
        self._functions.clear()
        self._methods.clear()


def _kind(method: bool) -> str:
    return "method" if method else "function"
