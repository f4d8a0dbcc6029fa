"""
ruscom Lexer (Tokenizer)
========================

This module converts ruscom source text into a stream of tokens for
the parser.

Token Categories
----------------
- Keywords: fn, let, static, if, else, while, return, true, false
- Type names: i8 ... i64, u8 ... u64, isize, usize, bool, str
- Identifiers: variable and function names
- Integers: decimal, hexadecimal (0x), octal (0o), binary (0b), with
  optional '_' separators and an optional type suffix (42u8, 7_i32)
- Strings: "double quoted"
- Operators: + - * / % == != < <= > >= = & && || ! ->
- Delimiters: ( ) { } [ ] , ; :

Number Formats
--------------
| Format      | Prefix  | Example    | Value |
|-------------|---------|------------|-------|
| Decimal     | (none)  | 1_000      | 1000  |
| Hexadecimal | 0x      | 0x7F       | 127   |
| Octal       | 0o      | 0o177      | 127   |
| Binary      | 0b      | 0b1010_u8  | 10    |

Comments
--------
- Single-line: // comment
- Multi-line: /* comment */

Escape Sequences
----------------
\\n (newline), \\r (return), \\t (tab), \\\\ (backslash),
\\' (quote), \\" (double quote), \\0 (null), \\xNN (hex, up to 0x7F)

Example Usage
-------------
>>> from ruscom.lexer import Lexer
>>> for token in Lexer('fn main() -> i32 { 42 }', "main.rs").tokenize():
...     print(token)
Token(FN, 'fn', 1:1)
Token(IDENTIFIER, 'main', 1:4)
Token(LPAREN, '(', 1:8)
Token(RPAREN, ')', 1:9)
Token(ARROW, '->', 1:11)
Token(TYPE_NAME, 'i32', 1:14)
Token(LBRACE, '{', 1:18)
Token(INTEGER, 42, 1:20)
Token(RBRACE, '}', 1:23)
Token(EOF, 1:24)
"""

import logging
import string
from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator, Optional

from ruscom.errors import (
    SourceLocation,
    LexError,
    UnterminatedStringError,
    InvalidCharacterError,
)
from ruscom.types import TYPE_NAMES, INTEGER_SUFFIXES


logger = logging.getLogger(__name__)


# =============================================================================
# Token Type Enumeration
# =============================================================================

class TokenType(Enum):
    """
    Token types for the ruscom language.

    Keywords are distinguished from identifiers to simplify parsing.
    All type names share the single TYPE_NAME kind; the token value holds
    the spelling.
    """

    # === Structural Tokens ===
    EOF = auto()            # End of input

    # === Identifiers and Literals ===
    IDENTIFIER = auto()     # Variable/function names
    INTEGER = auto()        # Integer literals (all formats)
    STRING = auto()         # String literals "..."
    TYPE_NAME = auto()      # i32, u8, bool, str, ...

    # === Keywords ===
    FN = auto()             # fn
    LET = auto()            # let
    STATIC = auto()         # static
    IF = auto()             # if
    ELSE = auto()           # else
    WHILE = auto()          # while
    RETURN = auto()         # return
    TRUE = auto()           # true
    FALSE = auto()          # false

    # === Arithmetic Operators ===
    PLUS = auto()           # +
    MINUS = auto()          # -
    STAR = auto()           # * (multiply, dereference, pointer type)
    SLASH = auto()          # /
    PERCENT = auto()        # %

    # === Comparison Operators ===
    EQ = auto()             # ==
    NE = auto()             # !=
    LT = auto()             # <
    GT = auto()             # >
    LE = auto()             # <=
    GE = auto()             # >=

    # === Logical Operators ===
    AND = auto()            # &&
    OR = auto()             # ||
    NOT = auto()            # !

    # === Other Operators ===
    ASSIGN = auto()         # =
    AMPERSAND = auto()      # & (address-of, reference type)
    ARROW = auto()          # ->

    # === Delimiters ===
    LPAREN = auto()         # (
    RPAREN = auto()         # )
    LBRACE = auto()         # {
    RBRACE = auto()         # }
    LBRACKET = auto()       # [
    RBRACKET = auto()       # ]
    SEMICOLON = auto()      # ;
    COMMA = auto()          # ,
    COLON = auto()          # :


KEYWORDS: dict[str, TokenType] = {
    "fn": TokenType.FN,
    "let": TokenType.LET,
    "static": TokenType.STATIC,
    "if": TokenType.IF,
    "else": TokenType.ELSE,
    "while": TokenType.WHILE,
    "return": TokenType.RETURN,
    "true": TokenType.TRUE,
    "false": TokenType.FALSE,
}


# =============================================================================
# Token Data Class
# =============================================================================

@dataclass(frozen=True)
class Token:
    """
    A single token from ruscom source code.

    Attributes:
        type: The TokenType classification
        value: Identifier text, integer value, decoded string, or the
            operator spelling (None for EOF)
        line: Line number in source (1-indexed)
        column: Column number in source (1-indexed)
        filename: Name of the source file
        suffix: Type suffix of an integer literal ("u8" in 255u8), or None
    """
    type: TokenType
    value: str | int | None
    line: int
    column: int
    filename: str
    suffix: Optional[str] = None

    def __repr__(self) -> str:
        """Format token for debugging output."""
        if self.value is not None:
            if isinstance(self.value, int):
                text = f"{self.value}{self.suffix or ''}"
                return f"Token({self.type.name}, {text}, {self.line}:{self.column})"
            return f"Token({self.type.name}, {self.value!r}, {self.line}:{self.column})"
        return f"Token({self.type.name}, {self.line}:{self.column})"

    @property
    def location(self) -> SourceLocation:
        """Return a SourceLocation for error reporting."""
        return SourceLocation(self.filename, self.line, self.column)

    def describe(self) -> str:
        """Describe the token for diagnostics ("end of input", "'foo'")."""
        if self.type == TokenType.EOF:
            return "end of input"
        if self.type == TokenType.STRING:
            return "string literal"
        if self.type == TokenType.INTEGER:
            return f"'{self.value}{self.suffix or ''}'"
        return f"'{self.value}'"


# =============================================================================
# Lexer Implementation
# =============================================================================

class Lexer:
    """
    Tokenizes ruscom source code.

    Each call to tokenize() scans the source from the beginning, so the
    token sequence can be produced any number of times. Scanning stops at
    the first invalid input with a LexError.

    Usage:
        lexer = Lexer(source_text, filename)
        tokens = list(lexer.tokenize())

    Attributes:
        source: The source code being tokenized
        filename: Name of the source file (for error reporting)
    """

    IDENT_START = string.ascii_letters + "_"
    IDENT_CHARS = string.ascii_letters + string.digits + "_"

    ESCAPE_SEQUENCES = {
        "n": "\n",
        "r": "\r",
        "t": "\t",
        "0": "\0",
        "\\": "\\",
        "'": "'",
        '"': '"',
    }

    RADIX_PREFIXES = {
        "x": (16, string.hexdigits),
        "o": (8, string.octdigits),
        "b": (2, "01"),
    }

    # Longest spellings first so that "==" wins over "="
    OPERATORS = {
        "->": TokenType.ARROW,
        "==": TokenType.EQ,
        "!=": TokenType.NE,
        "<=": TokenType.LE,
        ">=": TokenType.GE,
        "&&": TokenType.AND,
        "||": TokenType.OR,
        "+": TokenType.PLUS,
        "-": TokenType.MINUS,
        "*": TokenType.STAR,
        "/": TokenType.SLASH,
        "%": TokenType.PERCENT,
        "<": TokenType.LT,
        ">": TokenType.GT,
        "!": TokenType.NOT,
        "=": TokenType.ASSIGN,
        "&": TokenType.AMPERSAND,
        "(": TokenType.LPAREN,
        ")": TokenType.RPAREN,
        "{": TokenType.LBRACE,
        "}": TokenType.RBRACE,
        "[": TokenType.LBRACKET,
        "]": TokenType.RBRACKET,
        ";": TokenType.SEMICOLON,
        ",": TokenType.COMMA,
        ":": TokenType.COLON,
    }

    def __init__(self, source: str, filename: str = "<input>"):
        """
        Initialize the lexer with source code.

        Args:
            source: The ruscom source code to tokenize
            filename: Name of the source file (for error messages)
        """
        self.source = source
        self.filename = filename
        self._reset()

    def _reset(self) -> None:
        self._pos = 0
        self._line = 1
        self._column = 1
        self._line_start_pos = 0

    def tokenize(self) -> Iterator[Token]:
        """
        Generate tokens from the source code.

        Yields:
            Token objects, always ending with a single EOF token

        Raises:
            LexError: If invalid input is encountered
        """
        self._reset()
        count = 0

        while True:
            self._skip_whitespace_and_comments()
            if self._at_end():
                break
            yield self._scan_token()
            count += 1

        logger.debug(f"Lexed {count} tokens from {self.filename}")
        yield self._make_token(TokenType.EOF, None, self._line, self._column)

    # =========================================================================
    # Character Access Methods
    # =========================================================================

    def _at_end(self) -> bool:
        return self._pos >= len(self.source)

    def _peek(self, offset: int = 0) -> str:
        """Look at the character at position + offset ("" past the end)."""
        pos = self._pos + offset
        if pos >= len(self.source):
            return ""
        return self.source[pos]

    def _advance(self) -> str:
        """Consume and return the current character, tracking line/column."""
        if self._at_end():
            return ""

        char = self.source[self._pos]
        self._pos += 1

        if char == "\n":
            self._line += 1
            self._column = 1
            self._line_start_pos = self._pos
        else:
            self._column += 1

        return char

    # =========================================================================
    # Token Creation
    # =========================================================================

    def _make_token(
        self,
        token_type: TokenType,
        value: str | int | None,
        line: int,
        column: int,
        suffix: Optional[str] = None,
    ) -> Token:
        return Token(
            type=token_type,
            value=value,
            line=line,
            column=column,
            filename=self.filename,
            suffix=suffix,
        )

    def _error(
        self,
        message: str,
        line: Optional[int] = None,
        column: Optional[int] = None,
        hint: Optional[str] = None,
    ) -> LexError:
        """Create a LexError at the given (or current) position."""
        location = SourceLocation(
            self.filename,
            line or self._line,
            column or self._column,
        )
        return LexError(message, location, hint=hint, source_line=self._get_current_line())

    # =========================================================================
    # Whitespace and Comment Handling
    # =========================================================================

    def _skip_whitespace_and_comments(self) -> None:
        while not self._at_end():
            char = self._peek()

            if char in " \t\n\r":
                self._advance()
                continue

            if char == "/" and self._peek(1) == "/":
                while not self._at_end() and self._peek() != "\n":
                    self._advance()
                continue

            if char == "/" and self._peek(1) == "*":
                self._skip_block_comment()
                continue

            break

    def _skip_block_comment(self) -> None:
        """
        Skip a block comment (/* ... */).

        Raises:
            LexError: If the comment is not terminated
        """
        start_line = self._line
        start_column = self._column
        self._advance()
        self._advance()

        while not self._at_end():
            if self._peek() == "*" and self._peek(1) == "/":
                self._advance()
                self._advance()
                return
            self._advance()

        raise LexError(
            "unterminated block comment",
            SourceLocation(self.filename, start_line, start_column),
            hint="add closing */ to terminate the comment",
        )

    # =========================================================================
    # Token Scanning
    # =========================================================================

    def _scan_token(self) -> Token:
        line = self._line
        column = self._column
        char = self._peek()

        if char in self.IDENT_START:
            return self._scan_word(line, column)

        if char in string.digits:
            return self._scan_integer(line, column)

        if char == '"':
            return self._scan_string(line, column)

        return self._scan_operator(line, column)

    def _scan_word(self, line: int, column: int) -> Token:
        """Scan an identifier, keyword or type name."""
        chars = []
        while self._peek() and self._peek() in self.IDENT_CHARS:
            chars.append(self._advance())

        word = "".join(chars)

        if word in KEYWORDS:
            return self._make_token(KEYWORDS[word], word, line, column)
        if word in TYPE_NAMES:
            return self._make_token(TokenType.TYPE_NAME, word, line, column)
        return self._make_token(TokenType.IDENTIFIER, word, line, column)

    def _scan_integer(self, line: int, column: int) -> Token:
        """
        Scan an integer literal with optional radix prefix and type suffix.

        The suffix is a type name written straight after the digits, with
        an optional '_' in between: 42i32, 0xff_u8.
        """
        radix = 10
        digits = string.digits

        if self._peek() == "0" and self._peek(1) in self.RADIX_PREFIXES:
            prefix = self._peek(1)
            radix, digits = self.RADIX_PREFIXES[prefix]
            self._advance()
            self._advance()

        chars = []
        while self._peek() and (self._peek() in digits or self._peek() == "_"):
            # A '_' that starts a suffix ends the digits: 10_u8
            if self._peek() == "_" and self._peek(1) in ("i", "u"):
                break
            char = self._advance()
            if char != "_":
                chars.append(char)

        if not chars:
            raise self._error(
                "expected digits after integer prefix",
                line,
                column,
            )

        value = int("".join(chars), radix)

        suffix = None
        if self._peek() == "_" or (self._peek() and self._peek() in self.IDENT_START):
            suffix_column = self._column
            if self._peek() == "_":
                self._advance()
            word = []
            while self._peek() and self._peek() in self.IDENT_CHARS:
                word.append(self._advance())
            suffix = "".join(word)
            if suffix not in INTEGER_SUFFIXES:
                raise self._error(
                    f"invalid suffix '{suffix}' for integer literal",
                    line,
                    suffix_column,
                    hint="valid suffixes are i8, i16, i32, i64, u8, u16, u32, u64, isize, usize",
                )

        return self._make_token(TokenType.INTEGER, value, line, column, suffix=suffix)

    def _scan_string(self, line: int, column: int) -> Token:
        """Scan a double-quoted string literal, decoding escapes."""
        self._advance()

        chars = []
        while not self._at_end():
            char = self._peek()

            if char == '"':
                self._advance()
                return self._make_token(TokenType.STRING, "".join(chars), line, column)

            if char == "\n":
                break

            if char == "\\":
                self._advance()
                chars.append(self._scan_escape_sequence())
            else:
                chars.append(self._advance())

        raise UnterminatedStringError(
            SourceLocation(self.filename, line, column),
            self._get_current_line(),
        )

    def _scan_escape_sequence(self) -> str:
        """Scan the character(s) after a backslash and return the decoded char."""
        line = self._line
        column = self._column - 1

        if self._at_end() or self._peek() == "\n":
            raise UnterminatedStringError(
                SourceLocation(self.filename, line, column),
                self._get_current_line(),
            )

        char = self._advance()

        if char in self.ESCAPE_SEQUENCES:
            return self.ESCAPE_SEQUENCES[char]

        if char == "x":
            hex_chars = self._peek() + self._peek(1)
            if len(hex_chars) == 2 and all(c in string.hexdigits for c in hex_chars):
                value = int(hex_chars, 16)
                if value <= 0x7F:
                    self._advance()
                    self._advance()
                    return chr(value)
            raise self._error(
                "invalid '\\x' escape",
                line,
                column,
                hint="use two hex digits with a value up to \\x7F",
            )

        raise self._error(f"unknown escape sequence '\\{char}'", line, column)

    def _scan_operator(self, line: int, column: int) -> Token:
        """Scan an operator or delimiter, preferring two-character spellings."""
        two = self._peek() + self._peek(1)
        if two in self.OPERATORS:
            self._advance()
            self._advance()
            return self._make_token(self.OPERATORS[two], two, line, column)

        char = self._peek()
        if char in self.OPERATORS:
            self._advance()
            return self._make_token(self.OPERATORS[char], char, line, column)

        raise InvalidCharacterError(
            char,
            SourceLocation(self.filename, line, column),
            self._get_current_line(),
        )

    # =========================================================================
    # Utility Methods
    # =========================================================================

    def _get_current_line(self) -> str:
        """Get the current line of source text for error reporting."""
        line_end = self.source.find("\n", self._line_start_pos)
        if line_end == -1:
            line_end = len(self.source)
        return self.source[self._line_start_pos:line_end]


def tokenize(source: str, filename: str = "<input>") -> list[Token]:
    """Tokenize source into a list ending with the EOF token."""
    return list(Lexer(source, filename).tokenize())
