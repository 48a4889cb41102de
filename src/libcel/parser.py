"""Parser for the libcel expression language.

Converts a stream of tokens into an Abstract Syntax Tree (AST).
Uses recursive descent parsing with operator precedence.

Operator Precedence (lowest to highest):
1. ? : (conditional, right-associative)
2. || (or)
3. && (and)
4. == != < <= > >= in
5. + -
6. * / %
7. ! - (unary prefix)
8. . (member access / method call) [] (index)
"""

from libcel.config import EngineConfig
from libcel.errors import ParseError
from libcel.lexer import Lexer, Token, TokenType, unescape
from libcel.nodes import (
    MACRO_NAMES,
    ASTNode,
    BinaryOp,
    BinaryOperator,
    Call,
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
from libcel.values import Bytes

RELATIONAL_OPERATORS = {
    TokenType.EQ: BinaryOperator.EQUAL,
    TokenType.NE: BinaryOperator.NOT_EQUAL,
    TokenType.LT: BinaryOperator.LESS,
    TokenType.LE: BinaryOperator.LESS_EQUAL,
    TokenType.GT: BinaryOperator.GREATER,
    TokenType.GE: BinaryOperator.GREATER_EQUAL,
    TokenType.IN: BinaryOperator.IN,
}

ADDITIVE_OPERATORS = {
    TokenType.PLUS: BinaryOperator.ADD,
    TokenType.MINUS: BinaryOperator.SUBTRACT,
}

MULTIPLICATIVE_OPERATORS = {
    TokenType.STAR: BinaryOperator.MULTIPLY,
    TokenType.SLASH: BinaryOperator.DIVIDE,
    TokenType.PERCENT: BinaryOperator.MODULO,
}

LITERAL_TOKENS = frozenset({
    TokenType.NULL,
    TokenType.TRUE,
    TokenType.FALSE,
    TokenType.INT,
    TokenType.UINT,
    TokenType.DOUBLE,
    TokenType.STRING,
    TokenType.BYTES,
})


class Parser:
    """Recursive descent parser for the expression language.

    Usage:
        parser = Parser('user.age >= 18 && "admin" in user.roles')
        ast = parser.parse()
    """

    def __init__(self, source: str, config: EngineConfig | None = None):
        self.source = source
        self.config = config or EngineConfig()
        self.lexer = Lexer(source)
        self._current: Token | None = None
        self._depth = 0

    def parse(self) -> ASTNode:
        """Parse the expression and return the AST root."""
        if len(self.source) > self.config.max_source_length:
            raise ParseError(
                f"Expression exceeds {self.config.max_source_length} characters"
            )

        self._current = self.lexer.next_token()
        if self._current.type == TokenType.EOF:
            raise self._error("Empty expression")

        ast = self._parse_expr()

        if self._current.type != TokenType.EOF:
            raise self._error(f"Unexpected token '{self._current.value}' after expression")

        return ast

    # -------------------------------------------------------------------------
    # Helper methods
    # -------------------------------------------------------------------------

    def _error(self, message: str, token: Token | None = None) -> ParseError:
        token = token or self._current
        return ParseError(message, token.line, token.column, token.position)

    def _advance(self) -> Token:
        """Consume and return current token."""
        token = self._current
        self._current = self.lexer.next_token()
        return token

    def _match(self, *types: TokenType) -> bool:
        """Check if current token matches any of the given types."""
        return self._current.type in types

    def _accept(self, token_type: TokenType) -> bool:
        """Consume the current token if it has the given type."""
        if self._current.type == token_type:
            self._advance()
            return True
        return False

    def _consume(self, token_type: TokenType, message: str) -> Token:
        """Consume a token of the expected type, or raise error."""
        if self._current.type == token_type:
            return self._advance()
        raise self._error(f"{message}, found '{self._current.value or 'end of input'}'")

    def _consume_identifier(self, message: str) -> str:
        return self._consume(TokenType.IDENTIFIER, message).value

    def _enter(self) -> None:
        self._depth += 1
        if self._depth > self.config.max_depth:
            raise self._error("Expression nested too deeply")

    def _leave(self) -> None:
        self._depth -= 1

    # -------------------------------------------------------------------------
    # Parsing methods (in order of precedence, lowest to highest)
    # -------------------------------------------------------------------------

    def _parse_expr(self) -> ASTNode:
        """Parse conditional expression: or ('?' or ':' expr)?"""
        self._enter()
        try:
            condition = self._parse_or()

            if self._accept(TokenType.QUESTION):
                then = self._parse_or()
                self._consume(TokenType.COLON, "Expected ':' in conditional expression")
                otherwise = self._parse_expr()
                return Conditional(condition, then, otherwise)

            return condition
        finally:
            self._leave()

    def _parse_or(self) -> ASTNode:
        left = self._parse_and()

        while self._accept(TokenType.OR):
            right = self._parse_and()
            left = BinaryOp(BinaryOperator.LOGICAL_OR, left, right)

        return left

    def _parse_and(self) -> ASTNode:
        left = self._parse_relation()

        while self._accept(TokenType.AND):
            right = self._parse_relation()
            left = BinaryOp(BinaryOperator.LOGICAL_AND, left, right)

        return left

    def _parse_relation(self) -> ASTNode:
        """Parse comparison expression (==, !=, <, <=, >, >=, in)."""
        left = self._parse_additive()

        while self._current.type in RELATIONAL_OPERATORS:
            op = RELATIONAL_OPERATORS[self._advance().type]
            right = self._parse_additive()
            left = BinaryOp(op, left, right)

        return left

    def _parse_additive(self) -> ASTNode:
        left = self._parse_multiplicative()

        while self._current.type in ADDITIVE_OPERATORS:
            op = ADDITIVE_OPERATORS[self._advance().type]
            right = self._parse_multiplicative()
            left = BinaryOp(op, left, right)

        return left

    def _parse_multiplicative(self) -> ASTNode:
        left = self._parse_unary()

        while self._current.type in MULTIPLICATIVE_OPERATORS:
            op = MULTIPLICATIVE_OPERATORS[self._advance().type]
            right = self._parse_unary()
            left = BinaryOp(op, left, right)

        return left

    def _parse_unary(self) -> ASTNode:
        """Parse unary expression (!, -)."""
        if self._match(TokenType.BANG, TokenType.MINUS):
            op = UnaryOperator.NOT if self._advance().type == TokenType.BANG else UnaryOperator.NEGATE
            self._enter()
            try:
                return UnaryOp(op, self._parse_unary())
            finally:
                self._leave()

        return self._parse_member()

    def _parse_member(self) -> ASTNode:
        """Parse postfix expressions (field selection, method call, index)."""
        expr = self._parse_primary()

        while True:
            if self._accept(TokenType.DOT):
                name = self._consume_identifier("Expected identifier after '.'")
                if self._accept(TokenType.LPAREN):
                    args = self._parse_call_args()
                    expr = Call(expr, name, args, macro=name in MACRO_NAMES)
                else:
                    expr = Select(expr, name)

            elif self._accept(TokenType.LBRACKET):
                index = self._parse_expr()
                self._consume(TokenType.RBRACKET, "Expected ']' after index")
                expr = Index(expr, index)

            else:
                break

        return expr

    def _parse_primary(self) -> ASTNode:
        """Parse primary expression (literals, identifiers, grouped expressions)."""
        token = self._current

        if token.type in LITERAL_TOKENS:
            self._advance()
            return self._literal(token)

        if token.type == TokenType.LBRACKET:
            return self._parse_list_literal()

        if token.type == TokenType.LBRACE:
            return self._parse_map_or_struct(None)

        # Grouped expression
        if self._accept(TokenType.LPAREN):
            expr = self._parse_expr()
            self._consume(TokenType.RPAREN, "Expected ')' after expression")
            return expr

        # Leading dot selects from the top-level bindings
        if self._accept(TokenType.DOT):
            name = self._consume_identifier("Expected identifier after '.'")
            if self._accept(TokenType.LPAREN):
                return Call(None, name, self._parse_call_args())
            return Select(None, name)

        if token.type == TokenType.IDENTIFIER:
            self._advance()
            name = token.value

            if self._accept(TokenType.LPAREN):
                return self._presence_test(Call(None, name, self._parse_call_args()))

            if self._match(TokenType.DOT) and self._is_qualified_struct():
                return self._parse_map_or_struct(self._parse_qualified_name(name))

            if self._match(TokenType.LBRACE):
                return self._parse_map_or_struct(name)

            return Identifier(name)

        if token.type == TokenType.EOF:
            raise self._error("Unexpected end of expression")
        raise self._error(f"Unexpected token '{token.value}'")

    def _presence_test(self, call: Call) -> ASTNode:
        """Rewrite has(e.f) into a presence-testing selection."""
        if call.function == "has" and len(call.args) == 1:
            arg = call.args[0]
            if isinstance(arg, Select) and not arg.test:
                return Select(arg.operand, arg.field, test=True)
        return call

    def _is_qualified_struct(self) -> bool:
        """Check for a '. ident ( . ident )* {' pattern ahead of the current DOT."""
        lookahead = 1
        while True:
            if self.lexer.peek(lookahead).type != TokenType.IDENTIFIER:
                return False
            following = self.lexer.peek(lookahead + 1).type
            if following == TokenType.LBRACE:
                return True
            if following != TokenType.DOT:
                return False
            lookahead += 2

    def _parse_qualified_name(self, first: str) -> str:
        parts = [first]
        while self._accept(TokenType.DOT):
            parts.append(self._consume_identifier("Expected identifier in type name"))
        return ".".join(parts)

    def _parse_call_args(self) -> tuple[ASTNode, ...]:
        """Parse call arguments after '(' up to and including ')'."""
        args = self._parse_expr_list(TokenType.RPAREN)
        self._consume(TokenType.RPAREN, "Expected ')' after arguments")
        return args

    def _parse_expr_list(self, closing: TokenType) -> tuple[ASTNode, ...]:
        """Parse comma-separated expressions, allowing one trailing comma."""
        elements: list[ASTNode] = []

        if self._match(closing):
            return ()

        elements.append(self._parse_expr())
        while self._accept(TokenType.COMMA):
            if self._match(closing):
                break
            elements.append(self._parse_expr())

        return tuple(elements)

    def _parse_list_literal(self) -> ListLiteral:
        self._consume(TokenType.LBRACKET, "Expected '['")
        elements = self._parse_expr_list(TokenType.RBRACKET)
        self._consume(TokenType.RBRACKET, "Expected ']' after list elements")
        return ListLiteral(elements)

    def _parse_map_or_struct(self, type_name: str | None) -> ASTNode:
        """Parse a map or struct literal starting at '{'.

        A preceding type name, or a first entry of the form `ident :`,
        makes it a struct; anything else is a map.
        """
        self._consume(TokenType.LBRACE, "Expected '{'")

        if self._accept(TokenType.RBRACE):
            if type_name is not None:
                return StructLiteral(type_name, ())
            return MapLiteral(())

        is_struct = type_name is not None or (
            self._match(TokenType.IDENTIFIER)
            and self.lexer.peek(1).type == TokenType.COLON
        )

        if is_struct:
            fields = [self._parse_field_init()]
            while self._accept(TokenType.COMMA):
                if self._match(TokenType.RBRACE):
                    break
                fields.append(self._parse_field_init())
            self._consume(TokenType.RBRACE, "Expected '}' after struct fields")
            return StructLiteral(type_name, tuple(fields))

        entries = [self._parse_map_entry()]
        while self._accept(TokenType.COMMA):
            if self._match(TokenType.RBRACE):
                break
            entries.append(self._parse_map_entry())
        self._consume(TokenType.RBRACE, "Expected '}' after map entries")
        return MapLiteral(tuple(entries))

    def _parse_field_init(self) -> FieldInit:
        name = self._consume_identifier("Expected field name in struct literal")
        self._consume(TokenType.COLON, "Expected ':' after field name")
        return FieldInit(name, self._parse_expr())

    def _parse_map_entry(self) -> MapEntry:
        key = self._parse_expr()
        self._consume(TokenType.COLON, "Expected ':' after map key")
        return MapEntry(key, self._parse_expr())

    # -------------------------------------------------------------------------
    # Literal post-processing
    # -------------------------------------------------------------------------

    def _literal(self, token: Token) -> Literal:
        text = token.value

        if token.type == TokenType.NULL:
            return Literal(None, LiteralKind.NULL)
        if token.type == TokenType.TRUE:
            return Literal(True, LiteralKind.BOOL)
        if token.type == TokenType.FALSE:
            return Literal(False, LiteralKind.BOOL)
        if token.type == TokenType.INT:
            return Literal(_parse_integer(text), LiteralKind.INT)
        if token.type == TokenType.UINT:
            return Literal(_parse_integer(text[:-1]), LiteralKind.UINT)
        if token.type == TokenType.DOUBLE:
            return Literal(float(text), LiteralKind.DOUBLE)
        if token.type == TokenType.STRING:
            return Literal(_string_content(text), LiteralKind.STRING)
        if token.type == TokenType.BYTES:
            return Literal(Bytes(unescape(text[2:-1])), LiteralKind.BYTES)

        raise self._error(f"Not a literal: '{text}'", token)


def _parse_integer(text: str) -> int:
    if text[:2] in ("0x", "0X"):
        return int(text[2:], 16)
    return int(text, 10)


def _string_content(text: str) -> str:
    """Strip prefix and quotes from a string lexeme, decoding unless raw."""
    raw = text[0] in "rR"
    if raw:
        text = text[1:]
    if text[:3] in ('"""', "'''") and len(text) >= 6:
        content = text[3:-3]
    else:
        content = text[1:-1]
    return content if raw else unescape(content)


def parse(source: str, config: EngineConfig | None = None) -> ASTNode:
    """Convenience function to parse an expression string.

    Args:
        source: The expression string
        config: Optional parsing limits

    Returns:
        The AST root node
    """
    return Parser(source, config).parse()
