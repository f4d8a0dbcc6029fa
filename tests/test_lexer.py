# =============================================================================
# test_lexer.py - Lexer Unit Tests
# =============================================================================
# Tests for the ruscom lexer/tokenizer.
#
# Test coverage includes:
#   - Keywords, type names and identifiers
#   - Integer formats: decimal, hexadecimal (0x), octal (0o), binary (0b),
#     digit separators and type suffixes
#   - String literals with escape sequences
#   - Operators and delimiters, including two-character spellings
#   - Comments (line and block forms) and position tracking
#   - Error conditions
# =============================================================================

import pytest
from ruscom.lexer import Lexer, TokenType, Token, tokenize
from ruscom.errors import LexError, UnterminatedStringError, InvalidCharacterError


# =============================================================================
# Helper Function
# =============================================================================

def lex(source: str) -> list[Token]:
    """Tokenize source and drop the trailing EOF token."""
    tokens = list(Lexer(source, "<test>").tokenize())
    assert tokens[-1].type == TokenType.EOF
    return tokens[:-1]


def types_of(source: str) -> list[TokenType]:
    return [t.type for t in lex(source)]


# =============================================================================
# Basic Token Recognition Tests
# =============================================================================

class TestBasicTokens:
    """Test basic token recognition for simple inputs."""

    def test_empty_source(self):
        """Empty source produces only EOF."""
        tokens = tokenize("")
        assert len(tokens) == 1
        assert tokens[0].type == TokenType.EOF

    def test_whitespace_only(self):
        """Whitespace produces no tokens."""
        assert lex("  \t\n\r\n ") == []

    def test_keywords(self):
        """All keywords are recognized."""
        assert types_of("fn let static if else while return true false") == [
            TokenType.FN,
            TokenType.LET,
            TokenType.STATIC,
            TokenType.IF,
            TokenType.ELSE,
            TokenType.WHILE,
            TokenType.RETURN,
            TokenType.TRUE,
            TokenType.FALSE,
        ]

    def test_type_names(self):
        """Type names become TYPE_NAME tokens carrying their spelling."""
        tokens = lex("i8 u16 i32 u64 isize usize bool str")
        assert all(t.type == TokenType.TYPE_NAME for t in tokens)
        assert [t.value for t in tokens] == ["i8", "u16", "i32", "u64", "isize", "usize", "bool", "str"]

    def test_identifier(self):
        tokens = lex("counter")
        assert tokens[0].type == TokenType.IDENTIFIER
        assert tokens[0].value == "counter"

    def test_identifier_with_underscore_and_digits(self):
        """Identifiers may start with '_' and contain digits."""
        tokens = lex("_tmp1 loop_2")
        assert [t.value for t in tokens] == ["_tmp1", "loop_2"]
        assert all(t.type == TokenType.IDENTIFIER for t in tokens)

    def test_keyword_prefix_is_identifier(self):
        """A keyword followed by identifier characters is an identifier."""
        tokens = lex("iffy fnord i32x")
        assert all(t.type == TokenType.IDENTIFIER for t in tokens)


# =============================================================================
# Integer Literal Tests
# =============================================================================

class TestIntegerLiterals:
    """Test integer literal formats and suffixes."""

    def test_decimal(self):
        tokens = lex("123")
        assert tokens[0].type == TokenType.INTEGER
        assert tokens[0].value == 123
        assert tokens[0].suffix is None

    def test_zero(self):
        assert lex("0")[0].value == 0

    def test_hexadecimal(self):
        assert lex("0xFF")[0].value == 255
        assert lex("0xdead_beef")[0].value == 0xDEADBEEF

    def test_octal(self):
        assert lex("0o17")[0].value == 15

    def test_binary(self):
        assert lex("0b1010")[0].value == 10

    def test_digit_separators(self):
        """Underscores between digits are ignored."""
        assert lex("1_000_000")[0].value == 1000000

    def test_suffix(self):
        """A type suffix written straight after the digits."""
        token = lex("42i32")[0]
        assert token.value == 42
        assert token.suffix == "i32"

    def test_suffix_after_underscore(self):
        token = lex("255_u8")[0]
        assert token.value == 255
        assert token.suffix == "u8"

    def test_hex_with_suffix(self):
        token = lex("0x7f_i8")[0]
        assert token.value == 127
        assert token.suffix == "i8"

    def test_binary_with_suffix(self):
        token = lex("0b11u16")[0]
        assert token.value == 3
        assert token.suffix == "u16"

    def test_size_suffixes(self):
        assert lex("1usize")[0].suffix == "usize"
        assert lex("1isize")[0].suffix == "isize"

    def test_invalid_suffix(self):
        """Unknown suffixes are rejected."""
        with pytest.raises(LexError) as exc_info:
            lex("10abc")
        assert "invalid suffix 'abc'" in str(exc_info.value)

    def test_bool_is_not_an_integer_suffix(self):
        with pytest.raises(LexError):
            lex("1bool")

    def test_missing_digits_after_prefix(self):
        with pytest.raises(LexError):
            lex("0x")

    def test_negative_is_two_tokens(self):
        """The minus sign is an operator, not part of the literal."""
        assert types_of("-5") == [TokenType.MINUS, TokenType.INTEGER]


# =============================================================================
# String Literal Tests
# =============================================================================

class TestStringLiterals:
    """Test string literals and escape sequences."""

    def test_simple_string(self):
        token = lex('"hello"')[0]
        assert token.type == TokenType.STRING
        assert token.value == "hello"

    def test_empty_string(self):
        assert lex('""')[0].value == ""

    def test_escape_sequences(self):
        token = lex(r'"a\nb\tc\\d\"e\0f\'g\r"')[0]
        assert token.value == "a\nb\tc\\d\"e\0f'g\r"

    def test_hex_escape(self):
        assert lex(r'"\x41\x7f"')[0].value == "A\x7f"

    def test_hex_escape_out_of_range(self):
        """\\x escapes above 0x7F are rejected."""
        with pytest.raises(LexError):
            lex(r'"\x80"')

    def test_unknown_escape(self):
        with pytest.raises(LexError) as exc_info:
            lex(r'"\q"')
        assert "unknown escape sequence" in str(exc_info.value)

    def test_unterminated_string(self):
        with pytest.raises(UnterminatedStringError):
            lex('"hello')

    def test_newline_in_string(self):
        """A string may not span lines."""
        with pytest.raises(UnterminatedStringError):
            lex('"hello\nworld"')


# =============================================================================
# Operator and Delimiter Tests
# =============================================================================

class TestOperators:
    """Test operators and delimiters."""

    def test_arithmetic_operators(self):
        assert types_of("+ - * / %") == [
            TokenType.PLUS,
            TokenType.MINUS,
            TokenType.STAR,
            TokenType.SLASH,
            TokenType.PERCENT,
        ]

    def test_comparison_operators(self):
        assert types_of("== != < <= > >=") == [
            TokenType.EQ,
            TokenType.NE,
            TokenType.LT,
            TokenType.LE,
            TokenType.GT,
            TokenType.GE,
        ]

    def test_logical_operators(self):
        assert types_of("&& || !") == [TokenType.AND, TokenType.OR, TokenType.NOT]

    def test_two_character_operators_win(self):
        """'==' is one token, '= =' is two."""
        assert types_of("==") == [TokenType.EQ]
        assert types_of("= =") == [TokenType.ASSIGN, TokenType.ASSIGN]

    def test_arrow(self):
        assert types_of("->") == [TokenType.ARROW]

    def test_ampersand(self):
        assert types_of("&x") == [TokenType.AMPERSAND, TokenType.IDENTIFIER]

    def test_delimiters(self):
        assert types_of("( ) { } [ ] , ; :") == [
            TokenType.LPAREN,
            TokenType.RPAREN,
            TokenType.LBRACE,
            TokenType.RBRACE,
            TokenType.LBRACKET,
            TokenType.RBRACKET,
            TokenType.COMMA,
            TokenType.SEMICOLON,
            TokenType.COLON,
        ]

    def test_invalid_character(self):
        with pytest.raises(InvalidCharacterError) as exc_info:
            lex("let x = 1 @ 2;")
        assert exc_info.value.char == "@"
        assert exc_info.value.location.column == 11

    def test_single_pipe_is_invalid(self):
        with pytest.raises(InvalidCharacterError):
            lex("a | b")

    def test_non_ascii_digit_is_invalid(self):
        """Digits outside ASCII (here ARABIC-INDIC THREE) start no literal."""
        with pytest.raises(InvalidCharacterError) as exc_info:
            lex("let x = ٣;")
        assert exc_info.value.char == "٣"
        assert exc_info.value.location.column == 9


# =============================================================================
# Comment and Position Tests
# =============================================================================

class TestCommentsAndPositions:
    """Test comment skipping and source position tracking."""

    def test_line_comment(self):
        assert types_of("x // comment\ny") == [TokenType.IDENTIFIER, TokenType.IDENTIFIER]

    def test_block_comment(self):
        assert types_of("x /* a\nmulti-line\ncomment */ y") == [
            TokenType.IDENTIFIER,
            TokenType.IDENTIFIER,
        ]

    def test_unterminated_block_comment(self):
        with pytest.raises(LexError) as exc_info:
            lex("x /* never closed")
        assert "unterminated block comment" in str(exc_info.value)

    def test_line_and_column(self):
        tokens = lex("fn main() {\n    return 1;\n}")
        ret = tokens[5]
        assert ret.type == TokenType.RETURN
        assert (ret.line, ret.column) == (2, 5)

    def test_location_includes_filename(self):
        token = list(Lexer("x", "prog.rs").tokenize())[0]
        assert str(token.location) == "prog.rs:1:1"

    def test_eof_position(self):
        tokens = tokenize("a\nb")
        assert tokens[-1].type == TokenType.EOF
        assert tokens[-1].line == 2

    def test_tokenize_is_restartable(self):
        """Each call to tokenize() rescans from the start."""
        lexer = Lexer("let x = 1;", "<test>")
        first = list(lexer.tokenize())
        second = list(lexer.tokenize())
        assert first == second
