"""Evaluator for the libcel expression language.

Walks the AST and computes the result against an evaluation context
containing variable bindings and the function registry.
"""

import math
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from libcel import values
from libcel.errors import EvaluationError
from libcel.functions import Functions
from libcel.nodes import (
    ASTNode,
    BinaryOp,
    BinaryOperator,
    Call,
    Comprehension,
    Conditional,
    Identifier,
    Index,
    ListLiteral,
    Literal,
    MapLiteral,
    Select,
    StructLiteral,
    UnaryOp,
    UnaryOperator,
)

_MISSING = object()


@dataclass
class EvaluationContext:
    """Context for expression evaluation.

    Attributes:
        functions: Registry used for free function and method calls
        variables: Variable bindings; macro loop variables are bound here
            temporarily and restored afterwards
    """

    functions: Functions
    variables: dict[str, Any] = field(default_factory=dict)


class Evaluator:
    """Evaluates expression AST against a context.

    An evaluator owns its context's variable bindings for the duration of
    an evaluation; use one evaluator per concurrent evaluation.

    Usage:
        ctx = EvaluationContext(standard_functions(), {"count": 5})
        evaluator = Evaluator(ctx)
        result = evaluator.evaluate(ast)
    """

    def __init__(self, context: EvaluationContext):
        self.context = context

    def evaluate(self, node: ASTNode) -> Any:
        """Evaluate an AST node and return the result."""
        try:
            return self._eval(node)
        except RecursionError:
            raise EvaluationError("Expression nested too deeply") from None

    def _eval(self, node: ASTNode) -> Any:
        method_name = f"_eval_{type(node).__name__.lower()}"
        method = getattr(self, method_name, None)

        if method is None:
            raise EvaluationError(f"Unknown node type: {type(node).__name__}")

        return method(node)

    @contextmanager
    def _scoped(self, *names: str) -> Iterator[None]:
        """Restore the given bindings on exit, however the block ends."""
        variables = self.context.variables
        saved = [(name, variables.get(name, _MISSING)) for name in names]
        try:
            yield
        finally:
            for name, value in reversed(saved):
                if value is _MISSING:
                    variables.pop(name, None)
                else:
                    variables[name] = value

    # -------------------------------------------------------------------------
    # Node type evaluators
    # -------------------------------------------------------------------------

    def _eval_literal(self, node: Literal) -> Any:
        return node.value

    def _eval_identifier(self, node: Identifier) -> Any:
        variables = self.context.variables
        if node.name not in variables:
            raise EvaluationError(f"Undefined variable: {node.name}")
        return variables[node.name]

    def _eval_select(self, node: Select) -> Any:
        """Evaluate field selection, or field presence in test mode."""
        if node.operand is None:
            target = self.context.variables
        else:
            target = self._eval(node.operand)

        if target is None:
            if node.test:
                return False
            raise EvaluationError(f"Cannot select field {node.field} from null")

        if not values.is_map(target):
            raise EvaluationError(
                f"Cannot select field {node.field} from {values.type_name(target)}"
            )

        if node.test:
            return node.field in target
        if node.field not in target:
            raise EvaluationError(f"Field {node.field} not found")
        return target[node.field]

    def _eval_index(self, node: Index) -> Any:
        target = self._eval(node.operand)
        index = self._eval(node.index)

        if values.is_list(target) or isinstance(target, str):
            position = self._position(index)
            if not 0 <= position < len(target):
                raise EvaluationError(
                    f"Index {position} out of bounds for {values.type_name(target)} "
                    f"of size {len(target)}"
                )
            return target[position]

        if values.is_map(target):
            try:
                if index in target:
                    return target[index]
            except TypeError:
                pass
            raise EvaluationError(f"Map key not found: {values.format_value(index)}")

        raise EvaluationError(f"Cannot index into {values.type_name(target)}")

    def _position(self, index: Any) -> int:
        """Truncate a numeric index toward zero."""
        if not values.is_number(index):
            raise EvaluationError(
                f"Index must be a number, got {values.type_name(index)}"
            )
        if isinstance(index, float):
            if not math.isfinite(index):
                raise EvaluationError(f"Invalid index: {index!r}")
            return int(index)
        return index

    def _eval_call(self, node: Call) -> Any:
        """Evaluate a function, method or macro call."""
        if node.macro and node.target is not None:
            return self._eval_macro(node)

        args = [self._eval(arg) for arg in node.args]
        functions = self.context.functions

        if node.target is None:
            return functions.call_function(node.function, args)
        return functions.call_method(self._eval(node.target), node.function, args)

    def _eval_macro(self, node: Call) -> Any:
        """Evaluate map/filter/all/exists/existsOne over a list target."""
        target = self._eval(node.target)

        if len(node.args) != 2:
            raise EvaluationError(
                f"Macro {node.function} requires a variable and an expression"
            )
        variable, body = node.args
        if not isinstance(variable, Identifier):
            raise EvaluationError(
                f"First argument to macro {node.function} must be a variable name"
            )
        if not values.is_list(target):
            raise EvaluationError(
                f"Macro {node.function} requires a list target, "
                f"got {values.type_name(target)}"
            )

        name = variable.name
        variables = self.context.variables

        with self._scoped(name):
            if node.function == "map":
                result = []
                for element in target:
                    variables[name] = element
                    result.append(self._eval(body))
                return result

            if node.function == "filter":
                result = []
                for element in target:
                    variables[name] = element
                    if self._eval(body) is True:
                        result.append(element)
                return result

            if node.function == "all":
                for element in target:
                    variables[name] = element
                    if self._eval(body) is not True:
                        return False
                return True

            if node.function == "exists":
                for element in target:
                    variables[name] = element
                    if self._eval(body) is True:
                        return True
                return False

            if node.function == "existsOne":
                count = 0
                for element in target:
                    variables[name] = element
                    if self._eval(body) is True:
                        count += 1
                        if count > 1:
                            return False
                return count == 1

        raise EvaluationError(f"Unknown macro: {node.function}")

    def _eval_comprehension(self, node: Comprehension) -> Any:
        """Evaluate the generalized accumulator fold."""
        target = self._eval(node.range)
        if not values.is_list(target):
            raise EvaluationError(
                f"Comprehension requires a list range, got {values.type_name(target)}"
            )

        variables = self.context.variables
        with self._scoped(node.variable, node.accumulator):
            variables[node.accumulator] = self._eval(node.initializer)
            for element in target:
                variables[node.variable] = element
                if self._eval(node.condition) is True:
                    variables[node.accumulator] = self._eval(node.step)
            return self._eval(node.result)

    def _eval_listliteral(self, node: ListLiteral) -> list[Any]:
        return [self._eval(element) for element in node.elements]

    def _eval_mapliteral(self, node: MapLiteral) -> dict[Any, Any]:
        result: dict[Any, Any] = {}
        for entry in node.entries:
            key = self._eval(entry.key)
            if values.is_list(key) or values.is_map(key):
                raise EvaluationError(
                    f"Map key must be a scalar, got {values.type_name(key)}"
                )
            result[key] = self._eval(entry.value)
        return result

    def _eval_structliteral(self, node: StructLiteral) -> values.Struct:
        return values.Struct(
            node.type_name,
            {init.field: self._eval(init.value) for init in node.fields},
        )

    def _eval_unaryop(self, node: UnaryOp) -> Any:
        operand = self._eval(node.operand)

        if node.operator == UnaryOperator.NOT:
            if not isinstance(operand, bool):
                raise EvaluationError(
                    f"'!' requires a bool operand, got {values.type_name(operand)}"
                )
            return not operand

        if node.operator == UnaryOperator.NEGATE:
            if not values.is_number(operand):
                raise EvaluationError(
                    f"Cannot negate non-numeric value of type {values.type_name(operand)}"
                )
            return -operand

        raise EvaluationError(f"Unknown unary operator: {node.operator}")

    def _eval_binaryop(self, node: BinaryOp) -> Any:
        """Evaluate a binary operation."""
        op = node.operator

        # Short-circuit evaluation for logical operators
        if op == BinaryOperator.LOGICAL_AND:
            if not self._logical_operand(node.left, op):
                return False
            return self._logical_operand(node.right, op)

        if op == BinaryOperator.LOGICAL_OR:
            if self._logical_operand(node.left, op):
                return True
            return self._logical_operand(node.right, op)

        left = self._eval(node.left)
        right = self._eval(node.right)

        if op == BinaryOperator.EQUAL:
            return values.deep_equals(left, right)
        if op == BinaryOperator.NOT_EQUAL:
            return not values.deep_equals(left, right)
        if op == BinaryOperator.LESS:
            return values.compare(left, right) < 0
        if op == BinaryOperator.LESS_EQUAL:
            return values.compare(left, right) <= 0
        if op == BinaryOperator.GREATER:
            return values.compare(left, right) > 0
        if op == BinaryOperator.GREATER_EQUAL:
            return values.compare(left, right) >= 0
        if op == BinaryOperator.IN:
            return values.contains(right, left)

        try:
            return self._arithmetic(op, left, right)
        except OverflowError as e:
            raise EvaluationError(f"Numeric overflow in '{op.value}': {e}") from e

    def _arithmetic(self, op: BinaryOperator, left: Any, right: Any) -> Any:
        if op == BinaryOperator.ADD:
            return self._add(left, right)
        if op == BinaryOperator.SUBTRACT:
            self._require_numbers("Subtraction", left, right)
            return left - right
        if op == BinaryOperator.MULTIPLY:
            return self._multiply(left, right)
        if op == BinaryOperator.DIVIDE:
            return self._divide(left, right)
        if op == BinaryOperator.MODULO:
            return self._modulo(left, right)

        raise EvaluationError(f"Unknown operator: {op.value}")

    def _eval_conditional(self, node: Conditional) -> Any:
        if self._eval(node.condition) is True:
            return self._eval(node.then)
        return self._eval(node.otherwise)

    # -------------------------------------------------------------------------
    # Helper methods
    # -------------------------------------------------------------------------

    def _logical_operand(self, node: ASTNode, op: BinaryOperator) -> bool:
        value = self._eval(node)
        if not isinstance(value, bool):
            raise EvaluationError(
                f"'{op.value}' requires bool operands, got {values.type_name(value)}"
            )
        return value

    def _require_numbers(self, operation: str, left: Any, right: Any) -> None:
        if not (values.is_number(left) and values.is_number(right)):
            raise EvaluationError(
                f"{operation} requires numeric operands, got "
                f"{values.type_name(left)} and {values.type_name(right)}"
            )

    def _add(self, left: Any, right: Any) -> Any:
        """Add two values."""
        # Bytes concatenation stays bytes
        if isinstance(left, values.Bytes) and isinstance(right, values.Bytes):
            return values.Bytes(left + right)

        # String concatenation
        if isinstance(left, str) or isinstance(right, str):
            return values.format_value(left) + values.format_value(right)

        # List concatenation
        if values.is_list(left) and values.is_list(right):
            return [*left, *right]

        # Numeric addition
        if values.is_number(left) and values.is_number(right):
            return left + right

        raise EvaluationError(
            f"Cannot add {values.type_name(left)} and {values.type_name(right)}"
        )

    def _multiply(self, left: Any, right: Any) -> Any:
        """Multiply numbers, or repeat a string or list."""
        if values.is_number(left) and values.is_number(right):
            return left * right

        if isinstance(left, str) or values.is_list(left):
            if not values.is_integral(right) or right < 0:
                raise EvaluationError(
                    f"Repetition count must be a non-negative integer, "
                    f"got {values.format_value(right)}"
                )
            if isinstance(left, values.Bytes):
                return values.Bytes(str(left) * right)
            if isinstance(left, str):
                return str(left) * right
            return list(left) * right

        raise EvaluationError(
            f"Cannot multiply {values.type_name(left)} and {values.type_name(right)}"
        )

    def _divide(self, left: Any, right: Any) -> float:
        """Divide two numbers; the result is always a double."""
        self._require_numbers("Division", left, right)
        if right == 0:
            raise EvaluationError("Division by zero")
        return left / right

    def _modulo(self, left: Any, right: Any) -> Any:
        """Remainder truncated toward zero (sign follows the dividend)."""
        self._require_numbers("Modulo", left, right)
        if right == 0:
            raise EvaluationError("Modulo by zero")
        if values.is_integral(left) and values.is_integral(right):
            remainder = abs(left) % abs(right)
            return -remainder if left < 0 else remainder
        return math.fmod(left, right)
