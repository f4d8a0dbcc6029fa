"""
ruscom Recursive Descent Parser
===============================

This module implements a recursive descent parser for the ruscom
language. It takes the token list from the lexer and builds an Abstract
Syntax Tree (AST). Parsing stops at the first error.

Grammar (Simplified EBNF)
-------------------------
program         ::= (function | global)*
global          ::= ('static' | 'let') NAME ':' type ('=' expr)? ';'
function        ::= 'fn' NAME '(' (param (',' param)* ','?)? ')' ('->' type)? block
param           ::= NAME ':' type
type            ::= TYPE_NAME | '&' type | '*' type | '[' type (';' INTEGER)? ']'

block           ::= '{' statement* '}'
statement       ::= let_stmt | if_stmt | while_stmt | return_stmt
                  | block | expr_stmt
let_stmt        ::= 'let' NAME (':' type)? ('=' expr)? ';'
if_stmt         ::= 'if' expr block ('else' (if_stmt | block))?
while_stmt      ::= 'while' expr block
return_stmt     ::= 'return' expr? ';'
expr_stmt       ::= expr ';'

Expression Precedence (lowest to highest)
-----------------------------------------
1. assignment     =           (right-associative)
2. logical_or     ||
3. logical_and    &&
4. comparison     == != < <= > >=
5. additive       + -
6. multiplicative * / %
7. unary          - ! & *
8. postfix        () []
9. primary        NAME, INTEGER, STRING, true, false, '(' expr ')'

Borrowed Views
--------------
'&[T]' and '&str' are the two-word borrowed views (data pointer and
length). They parse to the Slice and Str types directly; a bare '[T]'
or 'str' outside a reference is rejected.

Example Usage
-------------
>>> from ruscom.parser import parse_source
>>> program = parse_source('fn main() -> i32 { return 42; }')
>>> program.functions[0].name
'main'
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from ruscom.errors import ParseError, UnexpectedTokenError, MissingTokenError
from ruscom.lexer import Lexer, Token, TokenType
from ruscom.types import (
    Type,
    Pointer,
    Reference,
    Array,
    Slice,
    Str,
    lookup_type_name,
    TYPE_DEFAULT_INT,
)
from ruscom.ast import (
    Program,
    FunctionDef,
    Parameter,
    Declaration,
    Block,
    If,
    While,
    Return,
    ExpressionStatement,
    Statement,
    Expression,
    BinaryOp,
    UnaryOp,
    Index,
    Assignment,
    FunctionCall,
    VariableRef,
    IntegerLiteral,
    BoolLiteral,
    StringLiteral,
    BinaryOperator,
    UnaryOperator,
)


logger = logging.getLogger(__name__)


# Deepest nesting of blocks, parentheses, prefix operators and types
# accepted before the parser gives up with a ParseError
MAX_NESTING = 100

# Binary operator tokens: (precedence, operator), higher binds tighter
BINARY_OPERATORS: dict[TokenType, tuple[int, BinaryOperator]] = {
    TokenType.OR: (1, BinaryOperator.LOGICAL_OR),
    TokenType.AND: (2, BinaryOperator.LOGICAL_AND),
    TokenType.EQ: (3, BinaryOperator.EQUAL),
    TokenType.NE: (3, BinaryOperator.NOT_EQUAL),
    TokenType.LT: (3, BinaryOperator.LESS),
    TokenType.LE: (3, BinaryOperator.LESS_EQ),
    TokenType.GT: (3, BinaryOperator.GREATER),
    TokenType.GE: (3, BinaryOperator.GREATER_EQ),
    TokenType.PLUS: (4, BinaryOperator.ADD),
    TokenType.MINUS: (4, BinaryOperator.SUBTRACT),
    TokenType.STAR: (5, BinaryOperator.MULTIPLY),
    TokenType.SLASH: (5, BinaryOperator.DIVIDE),
    TokenType.PERCENT: (5, BinaryOperator.MODULO),
}


class Parser:
    """
    Recursive descent parser for ruscom.

    Parses a list of tokens into an AST. Statements, declarations and
    prefix operators are parsed by recursive descent; binary operators
    are parsed by precedence with explicit operand and operator stacks,
    so long operator chains do not deepen the Python call stack.

    There is no error recovery: the first malformed construct raises a
    ParseError and no partial tree is returned. Nesting deeper than
    MAX_NESTING levels is also a ParseError.

    Attributes:
        tokens: List of tokens to parse (ending with EOF)
        filename: Source filename for error reporting
    """

    def __init__(
        self,
        tokens: list[Token],
        filename: str = "<input>",
        source_lines: Optional[list[str]] = None,
    ):
        """
        Initialize the parser.

        Args:
            tokens: List of tokens from the lexer
            filename: Source filename for error messages
            source_lines: Original source lines for error context
        """
        self.tokens = tokens
        self.filename = filename
        self.source_lines = source_lines or []
        self._pos = 0
        self._nesting = 0

    def parse(self) -> Program:
        """
        Parse the token list into an AST.

        Returns:
            Program containing functions and globals in source order

        Raises:
            ParseError: If the tokens do not form a valid program
        """
        self._pos = 0
        self._nesting = 0
        location = self._peek().location
        items = []

        while not self._at_end():
            if self._check(TokenType.FN):
                items.append(self._parse_function())
            elif self._check(TokenType.STATIC, TokenType.LET):
                items.append(self._parse_global())
            else:
                raise self._unexpected("'fn' or 'static'")

        logger.debug(f"Parsed {len(items)} top-level items from {self.filename}")
        return Program(location=location, items=items)

    # =========================================================================
    # Token Access Methods
    # =========================================================================

    def _at_end(self) -> bool:
        return self._peek().type == TokenType.EOF

    def _peek(self, offset: int = 0) -> Token:
        pos = self._pos + offset
        if pos >= len(self.tokens):
            return self.tokens[-1]
        return self.tokens[pos]

    def _advance(self) -> Token:
        token = self._peek()
        if not self._at_end():
            self._pos += 1
        return token

    def _check(self, *types: TokenType) -> bool:
        return self._peek().type in types

    def _match(self, *types: TokenType) -> Optional[Token]:
        """Consume the current token if it is one of types."""
        if self._check(*types):
            return self._advance()
        return None

    def _expect(self, token_type: TokenType, description: str) -> Token:
        """
        Consume a token of the given type.

        Args:
            token_type: The required token type
            description: How to name it in the error ("';'", "type")

        Raises:
            MissingTokenError: If the current token is of another type
        """
        if self._check(token_type):
            return self._advance()

        current = self._peek()
        raise MissingTokenError(
            description,
            found=current.describe(),
            location=current.location,
            source_line=self._get_source_line(current.line),
        )

    def _unexpected(self, expected: str) -> ParseError:
        """Build the error for a token that starts no valid construct."""
        current = self._peek()
        if current.type == TokenType.EOF:
            return MissingTokenError(
                expected,
                found=current.describe(),
                location=current.location,
                source_line=self._get_source_line(current.line),
            )
        return UnexpectedTokenError(
            str(current.value) if current.type != TokenType.STRING else '"..."',
            expected=expected,
            location=current.location,
            source_line=self._get_source_line(current.line),
        )

    def _get_source_line(self, line: int) -> Optional[str]:
        if 0 < line <= len(self.source_lines):
            return self.source_lines[line - 1]
        return None

    @contextmanager
    def _nested(self) -> Iterator[None]:
        """
        Track one level of nesting around a recursive parse.

        Raises:
            ParseError: If the nesting goes deeper than MAX_NESTING
        """
        if self._nesting >= MAX_NESTING:
            token = self._peek()
            raise ParseError(
                f"nesting deeper than {MAX_NESTING} levels",
                token.location,
                hint="move inner parts into 'let' bindings or functions",
                source_line=self._get_source_line(token.line),
            )
        self._nesting += 1
        try:
            yield
        finally:
            self._nesting -= 1

    # =========================================================================
    # Top-Level Items
    # =========================================================================

    def _parse_function(self) -> FunctionDef:
        """Parse 'fn NAME(params) (-> TYPE)? { ... }'."""
        location = self._expect(TokenType.FN, "'fn'").location
        name = self._expect(TokenType.IDENTIFIER, "function name").value

        self._expect(TokenType.LPAREN, "'('")
        params = []
        while not self._check(TokenType.RPAREN):
            params.append(self._parse_parameter())
            if not self._match(TokenType.COMMA):
                break
        self._expect(TokenType.RPAREN, "')'")

        return_type = TYPE_DEFAULT_INT
        has_return_type = False
        if self._match(TokenType.ARROW):
            return_type = self._parse_type()
            has_return_type = True

        body = self._parse_block()

        return FunctionDef(
            location=location,
            name=name,
            params=params,
            return_type=return_type,
            body=body,
            explicit_return_type=has_return_type,
        )

    def _parse_parameter(self) -> Parameter:
        token = self._expect(TokenType.IDENTIFIER, "parameter name")
        self._expect(TokenType.COLON, "':'")
        param_type = self._parse_type()
        return Parameter(location=token.location, name=token.value, param_type=param_type)

    def _parse_global(self) -> Declaration:
        """Parse 'static NAME: TYPE (= EXPR)?;' (top-level 'let' is accepted too)."""
        self._advance()
        token = self._expect(TokenType.IDENTIFIER, "variable name")
        self._expect(TokenType.COLON, "':' and a type (globals need an explicit type)")
        declared_type = self._parse_type()

        initializer = None
        if self._match(TokenType.ASSIGN):
            initializer = self._parse_expression()
        self._expect(TokenType.SEMICOLON, "';'")

        return Declaration(
            location=token.location,
            name=token.value,
            declared_type=declared_type,
            initializer=initializer,
            is_global=True,
        )

    # =========================================================================
    # Types
    # =========================================================================

    def _parse_type(self) -> Type:
        """
        Parse a type.

        '&[T]' and '&str' become Slice(T) and Str; any other '&T' becomes
        Reference(T). A '&&' token in type position is two references.
        """
        with self._nested():
            token = self._peek()

            if self._match(TokenType.AMPERSAND):
                return self._parse_reference_target()

            if self._match(TokenType.AND):
                return Reference(self._parse_reference_target())

            if self._match(TokenType.STAR):
                return Pointer(self._parse_type())

            if self._check(TokenType.TYPE_NAME):
                self._advance()
                if token.value == "str":
                    raise ParseError(
                        "'str' can only be used behind a reference",
                        token.location,
                        hint="write '&str'",
                        source_line=self._get_source_line(token.line),
                    )
                return lookup_type_name(token.value)

            if self._check(TokenType.LBRACKET):
                element, length = self._parse_bracket_type()
                if length is None:
                    raise ParseError(
                        "slice type '[T]' can only be used behind a reference",
                        token.location,
                        hint=f"write '&[{element}]'",
                        source_line=self._get_source_line(token.line),
                    )
                return Array(element, length)

            raise self._unexpected("type")

    def _parse_reference_target(self) -> Type:
        """Parse the type after '&', folding in the unsized views."""
        token = self._peek()
        if token.type == TokenType.TYPE_NAME and token.value == "str":
            self._advance()
            return Str()

        if token.type == TokenType.LBRACKET:
            element, length = self._parse_bracket_type()
            if length is None:
                return Slice(element)
            return Reference(Array(element, length))

        return Reference(self._parse_type())

    def _parse_bracket_type(self) -> tuple[Type, Optional[int]]:
        """Parse '[T]' or '[T; N]', returning (T, N or None)."""
        self._expect(TokenType.LBRACKET, "'['")
        element = self._parse_type()

        length = None
        if self._match(TokenType.SEMICOLON):
            length = self._expect(TokenType.INTEGER, "array length").value

        self._expect(TokenType.RBRACKET, "']'")
        return element, length

    # =========================================================================
    # Statements
    # =========================================================================

    def _parse_block(self) -> Block:
        location = self._expect(TokenType.LBRACE, "'{'").location

        statements = []
        with self._nested():
            while not self._check(TokenType.RBRACE) and not self._at_end():
                statements.append(self._parse_statement())

        self._expect(TokenType.RBRACE, "'}'")
        return Block(location=location, statements=statements)

    def _parse_statement(self) -> Statement:
        token = self._peek()

        if token.type == TokenType.LET:
            return self._parse_let()
        if token.type == TokenType.IF:
            return self._parse_if()
        if token.type == TokenType.WHILE:
            return self._parse_while()
        if token.type == TokenType.RETURN:
            return self._parse_return()
        if token.type == TokenType.LBRACE:
            return self._parse_block()
        if token.type == TokenType.STATIC:
            raise self._unexpected("statement ('static' is only allowed at top level)")

        return self._parse_expression_statement()

    def _parse_let(self) -> Declaration:
        """Parse 'let NAME (: TYPE)? (= EXPR)?;'."""
        self._expect(TokenType.LET, "'let'")
        token = self._expect(TokenType.IDENTIFIER, "variable name")

        declared_type = None
        if self._match(TokenType.COLON):
            declared_type = self._parse_type()

        initializer = None
        if self._match(TokenType.ASSIGN):
            initializer = self._parse_expression()

        self._expect(TokenType.SEMICOLON, "';'")

        return Declaration(
            location=token.location,
            name=token.value,
            declared_type=declared_type,
            initializer=initializer,
        )

    def _parse_if(self) -> If:
        """Parse if/else; 'else if' nests an If inside the else block."""
        location = self._expect(TokenType.IF, "'if'").location
        condition = self._parse_expression()
        then_block = self._parse_block()

        else_block = None
        if self._match(TokenType.ELSE):
            if self._check(TokenType.IF):
                with self._nested():
                    nested = self._parse_if()
                else_block = Block(location=nested.location, statements=[nested])
            else:
                else_block = self._parse_block()

        return If(
            location=location,
            condition=condition,
            then_block=then_block,
            else_block=else_block,
        )

    def _parse_while(self) -> While:
        location = self._expect(TokenType.WHILE, "'while'").location
        condition = self._parse_expression()
        body = self._parse_block()
        return While(location=location, condition=condition, body=body)

    def _parse_return(self) -> Return:
        location = self._expect(TokenType.RETURN, "'return'").location

        value = None
        if not self._check(TokenType.SEMICOLON):
            value = self._parse_expression()

        self._expect(TokenType.SEMICOLON, "';'")
        return Return(location=location, value=value)

    def _parse_expression_statement(self) -> ExpressionStatement:
        location = self._peek().location
        expression = self._parse_expression()
        self._expect(TokenType.SEMICOLON, "';'")
        return ExpressionStatement(location=location, expression=expression)

    # =========================================================================
    # Expression Parsing (Operator Precedence)
    # =========================================================================

    def _parse_expression(self) -> Expression:
        with self._nested():
            return self._parse_assignment()

    def _parse_assignment(self) -> Expression:
        """Parse assignment expression (right-associative)."""
        expr = self._parse_binary()

        if self._match(TokenType.ASSIGN):
            with self._nested():
                value = self._parse_assignment()
            return Assignment(location=expr.location, target=expr, value=value)

        return expr

    def _parse_binary(self) -> Expression:
        """
        Parse a chain of binary operators (|| && comparisons + - * / %).

        Operands go on one stack and pending operator tokens on another.
        Before an operator is pushed, every pending operator that binds at
        least as tightly is folded into a BinaryOp, which makes all levels
        left-associative.
        """
        operands = [self._parse_unary()]
        operators: list[Token] = []

        while self._peek().type in BINARY_OPERATORS:
            token = self._advance()
            precedence = BINARY_OPERATORS[token.type][0]
            while operators and BINARY_OPERATORS[operators[-1].type][0] >= precedence:
                self._fold_operator(operands, operators)
            operators.append(token)
            operands.append(self._parse_unary())

        while operators:
            self._fold_operator(operands, operators)

        return operands[0]

    def _fold_operator(self, operands: list[Expression], operators: list[Token]) -> None:
        """Replace the top two operands with a BinaryOp for the top operator."""
        token = operators.pop()
        rhs = operands.pop()
        lhs = operands.pop()
        operands.append(
            BinaryOp(
                location=token.location,
                op=BINARY_OPERATORS[token.type][1],
                lhs=lhs,
                rhs=rhs,
            )
        )

    def _parse_unary(self) -> Expression:
        """Parse prefix operators (- ! & *)."""
        token = self._peek()

        unary_ops = {
            TokenType.MINUS: UnaryOperator.NEGATE,
            TokenType.NOT: UnaryOperator.LOGICAL_NOT,
            TokenType.AMPERSAND: UnaryOperator.ADDRESS_OF,
            TokenType.STAR: UnaryOperator.DEREFERENCE,
        }

        if token.type in unary_ops:
            self._advance()
            with self._nested():
                operand = self._parse_unary()
            return UnaryOp(location=token.location, op=unary_ops[token.type], operand=operand)

        # '&&x' in expression position is '&(&x)'
        if token.type == TokenType.AND:
            self._advance()
            with self._nested():
                operand = self._parse_unary()
            inner = UnaryOp(location=token.location, op=UnaryOperator.ADDRESS_OF, operand=operand)
            return UnaryOp(location=token.location, op=UnaryOperator.ADDRESS_OF, operand=inner)

        return self._parse_postfix()

    def _parse_postfix(self) -> Expression:
        """Parse calls and index expressions."""
        expr = self._parse_primary()

        while True:
            if self._check(TokenType.LPAREN):
                expr = self._parse_call(expr)
            elif self._match(TokenType.LBRACKET):
                index = self._parse_expression()
                self._expect(TokenType.RBRACKET, "']'")
                expr = Index(location=expr.location, base=expr, index=index)
            else:
                break

        return expr

    def _parse_call(self, callee: Expression) -> FunctionCall:
        if not isinstance(callee, VariableRef):
            raise ParseError(
                "only named functions can be called",
                callee.location,
                source_line=self._get_source_line(callee.location.line),
            )

        self._expect(TokenType.LPAREN, "'('")
        args = []
        while not self._check(TokenType.RPAREN):
            args.append(self._parse_expression())
            if not self._match(TokenType.COMMA):
                break
        self._expect(TokenType.RPAREN, "')'")

        return FunctionCall(location=callee.location, name=callee.name, args=args)

    def _parse_primary(self) -> Expression:
        """Parse literals, names and parenthesized expressions."""
        token = self._peek()

        if token.type == TokenType.INTEGER:
            self._advance()
            return IntegerLiteral(location=token.location, value=token.value, suffix=token.suffix)

        if token.type in (TokenType.TRUE, TokenType.FALSE):
            self._advance()
            return BoolLiteral(location=token.location, value=token.type == TokenType.TRUE)

        if token.type == TokenType.STRING:
            self._advance()
            return StringLiteral(location=token.location, value=token.value)

        if token.type == TokenType.IDENTIFIER:
            self._advance()
            return VariableRef(location=token.location, name=token.value)

        if token.type == TokenType.LPAREN:
            self._advance()
            expr = self._parse_expression()
            self._expect(TokenType.RPAREN, "')'")
            return expr

        raise self._unexpected("expression")


# =============================================================================
# Convenience Functions
# =============================================================================

def parse_source(source: str, filename: str = "<input>") -> Program:
    """
    Parse ruscom source code into an AST.

    This is a convenience function that combines lexing and parsing.

    Args:
        source: The ruscom source code
        filename: Source filename for error messages

    Returns:
        The root Program node of the AST

    Raises:
        LexError: If tokenizing fails
        ParseError: If parsing fails
    """
    tokens = list(Lexer(source, filename).tokenize())
    parser = Parser(tokens, filename, source.splitlines())
    return parser.parse()
