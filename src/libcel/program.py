"""Compiled programs and one-shot helpers for the libcel expression language.

A Program pairs a parsed, immutable AST with the function registry used to
run it. Each evaluation gets its own variable bindings, so one Program can
be shared freely, including across threads.
"""

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from libcel.builtins import standard_functions
from libcel.config import EngineConfig
from libcel.errors import EvaluationError
from libcel.evaluator import EvaluationContext, Evaluator
from libcel.functions import Functions
from libcel.nodes import ASTNode
from libcel.parser import Parser
from libcel.values import type_name

logger = logging.getLogger(__name__)

_default_functions: Functions | None = None


def default_functions() -> Functions:
    """Return the shared standard library registry, creating it on first use."""
    global _default_functions
    if _default_functions is None:
        _default_functions = standard_functions()
    return _default_functions


@dataclass(frozen=True)
class Program:
    """A compiled expression, ready to be evaluated any number of times.

    Attributes:
        source: The original expression text
        ast: Root of the parsed syntax tree
        functions: Registry used for function and method calls
    """

    source: str
    ast: ASTNode
    functions: Functions

    def evaluate(self, variables: Mapping[str, Any] | None = None) -> Any:
        """Evaluate against the given bindings.

        Raises:
            EvaluationError: On any runtime failure
            RegistryError: On unknown functions or invalid arguments
        """
        context = EvaluationContext(self.functions, dict(variables or {}))
        return Evaluator(context).evaluate(self.ast)

    def evaluate_bool(self, variables: Mapping[str, Any] | None = None) -> bool:
        """Evaluate and require a bool result."""
        result = self.evaluate(variables)
        if not isinstance(result, bool):
            raise EvaluationError(
                f"Expression must evaluate to bool, got {type_name(result)}"
            )
        return result


def compile(
    source: str,
    functions: Functions | None = None,
    config: EngineConfig | None = None,
) -> Program:
    """Parse an expression into a reusable Program.

    Args:
        source: The expression string
        functions: Registry for calls; defaults to the standard library
        config: Parsing limits; defaults to EngineConfig()

    Raises:
        ParseError: If the expression is not syntactically valid
    """
    ast = Parser(source, config).parse()
    logger.debug("Compiled expression: %s", source)
    return Program(source, ast, functions or default_functions())


def evaluate(
    source: str,
    variables: Mapping[str, Any] | None = None,
    functions: Functions | None = None,
) -> Any:
    """Compile and evaluate an expression in one step.

    Example:
        result = evaluate('user.age >= 18', {"user": {"age": 21}})
        # result = True
    """
    return compile(source, functions).evaluate(variables)


def evaluate_bool(
    source: str,
    variables: Mapping[str, Any] | None = None,
    functions: Functions | None = None,
) -> bool:
    """Compile and evaluate an expression that must produce a bool."""
    return compile(source, functions).evaluate_bool(variables)


class Engine:
    """Reusable facade holding a function registry and parsing limits.

    Usage:
        engine = Engine(functions=my_registry)
        program = engine.compile('name.startsWith("a")')
        program.evaluate({"name": "alice"})
    """

    def __init__(
        self,
        functions: Functions | None = None,
        config: EngineConfig | None = None,
    ):
        self.functions = functions or default_functions()
        self.config = config or EngineConfig()

    def compile(self, source: str) -> Program:
        return compile(source, self.functions, self.config)

    def evaluate(self, source: str, variables: Mapping[str, Any] | None = None) -> Any:
        return self.compile(source).evaluate(variables)

    def evaluate_bool(
        self, source: str, variables: Mapping[str, Any] | None = None
    ) -> bool:
        return self.compile(source).evaluate_bool(variables)
