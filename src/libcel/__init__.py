"""libcel: an embeddable Common Expression Language engine.

This package provides:
- Lexer: Tokenizes expression strings
- Parser: Produces an immutable AST from tokens
- Evaluator: Evaluates an AST against variable bindings
- FunctionRegistry: Registry for expression functions and methods
- Program / compile: Parse once, evaluate many times
"""

from libcel.builtins import register_all_builtins, standard_functions
from libcel.config import EngineConfig
from libcel.errors import (
    EvaluationError,
    ExpressionError,
    FunctionNotFoundError,
    InvalidArgumentsError,
    LexerError,
    ParseError,
    RegistryError,
)
from libcel.evaluator import EvaluationContext, Evaluator
from libcel.functions import (
    FunctionCategory,
    FunctionDefinition,
    FunctionParameter,
    FunctionRegistry,
    Functions,
)
from libcel.lexer import Lexer, Token, TokenType
from libcel.nodes import (
    ASTNode,
    BinaryOp,
    BinaryOperator,
    Call,
    Comprehension,
    Conditional,
    FieldInit,
    Identifier,
    Index,
    ListLiteral,
    Literal,
    LiteralKind,
    MapEntry,
    MapLiteral,
    Select,
    StructLiteral,
    UnaryOp,
    UnaryOperator,
)
from libcel.parser import Parser, parse
from libcel.program import Engine, Program, compile, evaluate, evaluate_bool
from libcel.values import Bytes, Struct

__all__ = [
    # Program
    "Engine",
    "Program",
    "compile",
    "evaluate",
    "evaluate_bool",
    "EngineConfig",
    # Errors
    "EvaluationError",
    "ExpressionError",
    "FunctionNotFoundError",
    "InvalidArgumentsError",
    "LexerError",
    "ParseError",
    "RegistryError",
    # Evaluator
    "EvaluationContext",
    "Evaluator",
    # Functions
    "FunctionCategory",
    "FunctionDefinition",
    "FunctionParameter",
    "FunctionRegistry",
    "Functions",
    "register_all_builtins",
    "standard_functions",
    # Lexer
    "Lexer",
    "Token",
    "TokenType",
    # Parser
    "ASTNode",
    "BinaryOp",
    "BinaryOperator",
    "Call",
    "Comprehension",
    "Conditional",
    "FieldInit",
    "Identifier",
    "Index",
    "ListLiteral",
    "Literal",
    "LiteralKind",
    "MapEntry",
    "MapLiteral",
    "Parser",
    "Select",
    "StructLiteral",
    "UnaryOp",
    "UnaryOperator",
    "parse",
    # Values
    "Bytes",
    "Struct",
]
