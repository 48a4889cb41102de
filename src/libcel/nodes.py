"""AST node types for the libcel expression language.

Nodes are frozen dataclasses; child collections are tuples, so a tree is
immutable once built and two parses of the same source compare equal.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any


class LiteralKind(Enum):
    """The literal form a value was written in."""

    NULL = "null"
    BOOL = "bool"
    INT = "int"
    UINT = "uint"
    DOUBLE = "double"
    STRING = "string"
    BYTES = "bytes"


class UnaryOperator(Enum):
    NOT = "!"
    NEGATE = "-"


class BinaryOperator(Enum):
    ADD = "+"
    SUBTRACT = "-"
    MULTIPLY = "*"
    DIVIDE = "/"
    MODULO = "%"
    EQUAL = "=="
    NOT_EQUAL = "!="
    LESS = "<"
    LESS_EQUAL = "<="
    GREATER = ">"
    GREATER_EQUAL = ">="
    IN = "in"
    LOGICAL_AND = "&&"
    LOGICAL_OR = "||"


# Method names the parser marks as macros
MACRO_NAMES = frozenset({"map", "filter", "all", "exists", "existsOne"})


def _plain(value: Any) -> Any:
    if isinstance(value, ASTNode):
        return value.to_dict()
    if isinstance(value, tuple):
        return [_plain(item) for item in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, str):
        return str(value)
    return value


@dataclass(frozen=True)
class ASTNode:
    """Base class for AST nodes."""

    def to_dict(self) -> dict[str, Any]:
        """Export the subtree as plain nested dicts and lists."""
        result: dict[str, Any] = {"node": type(self).__name__}
        for f in fields(self):
            result[f.name] = _plain(getattr(self, f.name))
        return result


@dataclass(frozen=True)
class Literal(ASTNode):
    """A literal value (null, bool, number, string, bytes)."""
    value: Any
    kind: LiteralKind


@dataclass(frozen=True)
class Identifier(ASTNode):
    """A variable reference."""
    name: str


@dataclass(frozen=True)
class Select(ASTNode):
    """Field selection (e.g., user.name, .name, has(user.name)).

    A missing operand selects from the top-level bindings. In test mode the
    node reports presence of the field instead of its value.
    """
    operand: ASTNode | None
    field: str
    test: bool = False


@dataclass(frozen=True)
class Index(ASTNode):
    """Bracket index access (e.g., items[0], data["key"])."""
    operand: ASTNode
    index: ASTNode


@dataclass(frozen=True)
class Call(ASTNode):
    """Function call (size(x)) or method call (name.startsWith("a")).

    Macro calls keep their arguments unevaluated; the first names the loop
    variable and the second is re-evaluated per element.
    """
    target: ASTNode | None
    function: str
    args: tuple[ASTNode, ...] = ()
    macro: bool = False


@dataclass(frozen=True)
class ListLiteral(ASTNode):
    """List literal (e.g., [1, 2, 3])."""
    elements: tuple[ASTNode, ...] = ()


@dataclass(frozen=True)
class MapEntry(ASTNode):
    key: ASTNode
    value: ASTNode


@dataclass(frozen=True)
class MapLiteral(ASTNode):
    """Map literal (e.g., {"key": value, 1: "one"})."""
    entries: tuple[MapEntry, ...] = ()


@dataclass(frozen=True)
class FieldInit(ASTNode):
    field: str
    value: ASTNode


@dataclass(frozen=True)
class StructLiteral(ASTNode):
    """Struct literal (e.g., {name: "x"}, Person{name: "x"}, a.b.Person{})."""
    type_name: str | None
    fields: tuple[FieldInit, ...] = ()


@dataclass(frozen=True)
class Comprehension(ASTNode):
    """Generalized fold over a list.

    The accumulator starts at initializer; for each element bound to
    variable, step recomputes the accumulator when condition is true.
    result is evaluated against the final accumulator.
    """
    variable: str
    range: ASTNode
    accumulator: str
    initializer: ASTNode
    condition: ASTNode
    step: ASTNode
    result: ASTNode


@dataclass(frozen=True)
class UnaryOp(ASTNode):
    """Unary operation (e.g., !x, -y)."""
    operator: UnaryOperator
    operand: ASTNode


@dataclass(frozen=True)
class BinaryOp(ASTNode):
    """Binary operation (e.g., a + b, x == y)."""
    operator: BinaryOperator
    left: ASTNode
    right: ASTNode


@dataclass(frozen=True)
class Conditional(ASTNode):
    """Ternary conditional (e.g., age >= 18 ? "adult" : "minor")."""
    condition: ASTNode
    then: ASTNode
    otherwise: ASTNode
