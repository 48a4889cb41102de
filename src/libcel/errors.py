"""Error taxonomy for the libcel expression language.

- ParseError: lexer/parser failures, positioned by line and column
- EvaluationError: runtime failures raised by the evaluator
- RegistryError: failures raised by function/method dispatch
"""


class ExpressionError(Exception):
    """Base class for every error raised by libcel."""


class ParseError(ExpressionError):
    """Syntax error in an expression.

    Attributes:
        line: Line number of the offending token (1-indexed)
        column: Column number of the offending token (1-indexed)
        position: Character offset in the source (0-indexed)
    """

    def __init__(self, message: str, line: int = 1, column: int = 1, position: int = 0):
        self.message = message
        self.line = line
        self.column = column
        self.position = position
        super().__init__(f"{message} at line {line}, column {column}")


class LexerError(ParseError):
    """Error during lexical analysis."""


class EvaluationError(ExpressionError):
    """Error during expression evaluation."""


class RegistryError(ExpressionError):
    """Error raised while dispatching a function or method call."""


class FunctionNotFoundError(RegistryError):
    """No function or method is registered under the requested name."""


class InvalidArgumentsError(RegistryError):
    """A registered function rejected its arguments."""
