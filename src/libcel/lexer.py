"""Lexer/tokenizer for the libcel expression language.

Converts expression strings into a stream of positioned tokens for the
parser. Tokens are produced on demand; a small lookahead buffer lets the
parser peek at upcoming tokens without re-scanning.

Token types:
- Literals: NULL, TRUE, FALSE, INT, UINT, DOUBLE, STRING, BYTES
- Identifiers: IDENTIFIER (variable, field, function and type names)
- Operators: arithmetic, comparison, logical, membership
- Punctuation: parentheses, brackets, braces, DOT, COMMA, COLON, QUESTION
"""

import re
from collections import deque
from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator

from libcel.errors import LexerError


class TokenType(Enum):
    """Types of tokens in the expression language."""

    # Literals
    NULL = auto()
    TRUE = auto()
    FALSE = auto()
    INT = auto()
    UINT = auto()
    DOUBLE = auto()
    STRING = auto()
    BYTES = auto()

    # Identifiers
    IDENTIFIER = auto()

    # Arithmetic operators
    PLUS = auto()        # +
    MINUS = auto()       # -
    STAR = auto()        # *
    SLASH = auto()       # /
    PERCENT = auto()     # %

    # Comparison operators
    EQ = auto()          # ==
    NE = auto()          # !=
    LT = auto()          # <
    LE = auto()          # <=
    GT = auto()          # >
    GE = auto()          # >=

    # Logical operators
    AND = auto()         # &&
    OR = auto()          # ||
    BANG = auto()        # !

    # Membership operator
    IN = auto()          # in

    # Punctuation
    LPAREN = auto()      # (
    RPAREN = auto()      # )
    LBRACKET = auto()    # [
    RBRACKET = auto()    # ]
    LBRACE = auto()      # {
    RBRACE = auto()      # }
    DOT = auto()         # .
    COMMA = auto()       # ,
    COLON = auto()       # :
    QUESTION = auto()    # ?

    # End of input
    EOF = auto()


@dataclass(frozen=True)
class Token:
    """A single token from the lexer.

    Attributes:
        type: The token type
        value: The raw lexeme text as it appears in the source
        line: Line number (1-indexed)
        column: Column number (1-indexed)
        position: Character offset in the source string (0-indexed)
    """

    type: TokenType
    value: str
    line: int = 1
    column: int = 1
    position: int = 0

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, {self.line}:{self.column})"


# Operator and punctuation patterns (order matters - longer matches first)
OPERATOR_PATTERNS = [
    ("==", TokenType.EQ),
    ("!=", TokenType.NE),
    ("<=", TokenType.LE),
    (">=", TokenType.GE),
    ("&&", TokenType.AND),
    ("||", TokenType.OR),
    ("<", TokenType.LT),
    (">", TokenType.GT),
    ("!", TokenType.BANG),
    ("+", TokenType.PLUS),
    ("-", TokenType.MINUS),
    ("*", TokenType.STAR),
    ("/", TokenType.SLASH),
    ("%", TokenType.PERCENT),
    ("(", TokenType.LPAREN),
    (")", TokenType.RPAREN),
    ("[", TokenType.LBRACKET),
    ("]", TokenType.RBRACKET),
    ("{", TokenType.LBRACE),
    ("}", TokenType.RBRACE),
    (".", TokenType.DOT),
    (",", TokenType.COMMA),
    (":", TokenType.COLON),
    ("?", TokenType.QUESTION),
]

# Reserved words that map to specific token types
KEYWORDS = {
    "null": TokenType.NULL,
    "true": TokenType.TRUE,
    "false": TokenType.FALSE,
    "in": TokenType.IN,
}

WHITESPACE = " \t\r\n"
DIGITS = "0123456789"

HEX_PATTERN = re.compile(r"0[xX][0-9a-fA-F]+")
DECIMAL_PATTERN = re.compile(r"[0-9]+(?P<fraction>\.[0-9]+)?(?P<exponent>[eE][+-]?[0-9]+)?")
IDENTIFIER_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

# \\ \" \' \` \? \a \b \f \n \r \t \v, \xHH, \uHHHH, \UHHHHHHHH, \[0-3][0-7][0-7]
ESCAPE_PATTERN = re.compile(
    r"\\(?:"
    r"(?P<simple>[\\\"'`?abfnrtv])"
    r"|x(?P<hex>[0-9a-fA-F]{2})"
    r"|u(?P<u4>[0-9a-fA-F]{4})"
    r"|U(?P<u8>[0-9a-fA-F]{8})"
    r"|(?P<octal>[0-3][0-7]{2})"
    r")"
)

SIMPLE_ESCAPES = {
    "\\": "\\",
    '"': '"',
    "'": "'",
    "`": "`",
    "?": "?",
    "a": "\a",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "v": "\v",
}


def _decode_escape(match: re.Match) -> str:
    if match.group("simple") is not None:
        return SIMPLE_ESCAPES[match.group("simple")]
    if match.group("octal") is not None:
        return chr(int(match.group("octal"), 8))
    digits = match.group("hex") or match.group("u4") or match.group("u8")
    code_point = int(digits, 16)
    if code_point > 0x10FFFF:
        return match.group(0)
    return chr(code_point)


def unescape(text: str) -> str:
    """Decode escape sequences in non-raw string or bytes content.

    Unrecognized backslash sequences are passed through literally.
    """
    if "\\" not in text:
        return text
    return ESCAPE_PATTERN.sub(_decode_escape, text)


class Lexer:
    """Tokenizer for the expression language.

    Usage:
        lexer = Lexer('user.age >= 18 && "admin" in user.roles')
        for token in lexer:
            print(token)
    """

    def __init__(self, source: str):
        self.source = source
        self.position = 0
        self.line = 1
        self.column = 1
        self._lookahead: deque[Token] = deque()

    def __iter__(self) -> Iterator[Token]:
        """Iterate over all tokens in the source, ending with EOF."""
        while True:
            token = self.next_token()
            yield token
            if token.type == TokenType.EOF:
                break

    def next_token(self) -> Token:
        """Consume and return the next token."""
        if self._lookahead:
            return self._lookahead.popleft()
        return self._scan()

    def peek(self, count: int = 1) -> Token:
        """Return the count-th upcoming token (1-indexed) without consuming it."""
        if count < 1:
            raise ValueError("peek count must be at least 1")
        while len(self._lookahead) < count:
            self._lookahead.append(self._scan())
        return self._lookahead[count - 1]

    def tokenize(self) -> list[Token]:
        """Tokenize the entire source and return list of tokens."""
        return list(self)

    # -------------------------------------------------------------------------
    # Scanning
    # -------------------------------------------------------------------------

    def _scan(self) -> Token:
        self._skip_whitespace()

        if self.position >= len(self.source):
            return Token(TokenType.EOF, "", self.line, self.column, self.position)

        start = self.position
        line = self.line
        column = self.column
        ch = self.source[start]
        following = self.source[start + 1:start + 2]

        if ch in "\"'":
            return self._string(start, line, column, raw=False)

        if ch in "rR" and following and following in "\"'":
            self._advance(1)
            return self._string(start, line, column, raw=True)

        if ch in "bB" and following and following in "\"'":
            self._advance(1)
            return self._bytes(start, line, column)

        if ch in DIGITS:
            return self._number(start, line, column)

        match = IDENTIFIER_PATTERN.match(self.source, start)
        if match:
            value = match.group()
            self._advance(len(value))
            token_type = KEYWORDS.get(value, TokenType.IDENTIFIER)
            return Token(token_type, value, line, column, start)

        for text, token_type in OPERATOR_PATTERNS:
            if self.source.startswith(text, start):
                self._advance(len(text))
                return Token(token_type, text, line, column, start)

        raise LexerError(f"Unexpected character '{ch}'", line, column, start)

    def _number(self, start: int, line: int, column: int) -> Token:
        match = HEX_PATTERN.match(self.source, start)
        is_double = False
        if match is None:
            match = DECIMAL_PATTERN.match(self.source, start)
            is_double = bool(match.group("fraction") or match.group("exponent"))
        self._advance(len(match.group()))

        token_type = TokenType.DOUBLE if is_double else TokenType.INT
        if not is_double and self._current_char() in ("u", "U"):
            self._advance(1)
            token_type = TokenType.UINT

        return Token(token_type, self.source[start:self.position], line, column, start)

    def _string(self, start: int, line: int, column: int, raw: bool) -> Token:
        quote = self.source[self.position]
        if self.source.startswith(quote * 3, self.position):
            self._advance(3)
            self._scan_until(quote * 3, raw, "Unterminated triple-quoted string", line, column, start)
        else:
            self._advance(1)
            self._scan_until(quote, raw, "Unterminated string", line, column, start)
        return Token(TokenType.STRING, self.source[start:self.position], line, column, start)

    def _bytes(self, start: int, line: int, column: int) -> Token:
        quote = self.source[self.position]
        self._advance(1)
        self._scan_until(quote, False, "Unterminated bytes literal", line, column, start)
        return Token(TokenType.BYTES, self.source[start:self.position], line, column, start)

    def _scan_until(
        self, closing: str, raw: bool, message: str, line: int, column: int, start: int
    ) -> None:
        """Advance past the closing delimiter, skipping escapes unless raw."""
        while self.position < len(self.source):
            if self.source.startswith(closing, self.position):
                self._advance(len(closing))
                return
            if (
                not raw
                and self.source[self.position] == "\\"
                and self.position + 1 < len(self.source)
            ):
                self._advance(2)
            else:
                self._advance(1)
        raise LexerError(message, line, column, start)

    def _skip_whitespace(self) -> None:
        while self._current_char() and self._current_char() in WHITESPACE:
            self._advance(1)

    def _current_char(self) -> str:
        return self.source[self.position:self.position + 1]

    def _advance(self, count: int) -> None:
        """Advance position by count characters, updating line/column.

        A CRLF pair counts as one character and one newline.
        """
        for _ in range(count):
            if self.position >= len(self.source):
                return
            ch = self.source[self.position]
            self.position += 1
            if ch == "\r":
                if self._current_char() == "\n":
                    self.position += 1
                self.line += 1
                self.column = 1
            elif ch == "\n":
                self.line += 1
                self.column = 1
            else:
                self.column += 1
