"""
ruscom Error Hierarchy
======================

This module defines the exception hierarchy for the ruscom compiler.
Every phase of the pipeline raises the first problem it finds as one of
these exceptions; there is no error recovery.

Exception Hierarchy
-------------------
RuscomError (base for all compiler errors)
├── CompileError - problems in the user's program
│   ├── LexError - invalid characters and literals
│   │   ├── UnterminatedStringError - missing closing quote
│   │   └── InvalidCharacterError - unexpected character
│   ├── ParseError - malformed syntax
│   │   ├── UnexpectedTokenError - token does not fit the grammar
│   │   └── MissingTokenError - required token is absent
│   └── TypeCheckError - type and name binding errors
│       ├── UndeclaredIdentifierError - unknown variable/function
│       ├── DuplicateDeclarationError - name declared twice in a scope
│       ├── TypeMismatchError - operand/argument/return types differ
│       ├── ArgumentCountError - call arity mismatch
│       └── InvalidLValueError - assignment or '&' on a non-place
├── CodegenError - internal invariant violated in the backend
└── ToolchainError - external assembler/linker failed

Error Message Format
--------------------
All errors include source location information when it is known:

    filename:line:column: error: description
        source_line_text
            ^
    hint: suggestion for fixing

Example:
    main.rs:3:12: error: undeclared identifier 'totl'
            return totl;
                   ^
    hint: did you mean 'total'?
"""

from dataclasses import dataclass
from typing import Optional, List


# =============================================================================
# Source Location Tracking
# =============================================================================

@dataclass(frozen=True)
class SourceLocation:
    """
    Represents a location in source code for error reporting.

    Attributes:
        filename: Name of the source file (or "<input>" for string input)
        line: Line number (1-indexed)
        column: Column number (1-indexed)
    """
    filename: str
    line: int
    column: int

    def __str__(self) -> str:
        """Format as 'filename:line:column' for error messages."""
        return f"{self.filename}:{self.line}:{self.column}"


# =============================================================================
# Base Exception
# =============================================================================

class RuscomError(Exception):
    """
    Base exception for all ruscom compiler errors.

    Provides source location tracking, source line context, and an
    optional hint, all folded into the exception message.

    Attributes:
        message: The error description
        location: Where in the source the error occurred
        hint: A suggestion for fixing the error
        source_line: The actual source text at the error location
    """

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
    ):
        self.message = message
        self.location = location
        self.hint = hint
        self.source_line = source_line
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """
        Format the error message with location, source context, and hint.

        Example:

            main.rs:5:12: error: undeclared identifier 'conut'
                let x = conut + 1;
                        ^
            hint: did you mean 'count'?
        """
        parts = []

        if self.location:
            parts.append(f"{self.location}: error: {self.message}")
        else:
            parts.append(f"error: {self.message}")

        if self.source_line is not None and self.location is not None:
            parts.append(f"    {self.source_line}")
            if self.location.column > 0:
                padding = " " * (4 + self.location.column - 1)
                parts.append(f"{padding}^")

        if self.hint:
            parts.append(f"hint: {self.hint}")

        return "\n".join(parts)


class CompileError(RuscomError):
    """
    Base for errors caused by the program being compiled.

    These are the user-facing failures (lexing, parsing, type checking)
    as opposed to bugs in the compiler or a broken toolchain.
    """
    pass


# =============================================================================
# Lexical Errors
# =============================================================================

class LexError(CompileError):
    """
    Error while converting source text into tokens.

    Examples:
        - Unterminated string literal
        - Character that starts no token
        - Malformed integer literal or unknown type suffix
    """
    pass


class UnterminatedStringError(LexError):
    """
    Unterminated string literal.

    Raised when a string literal is not closed before the end of the
    line or file.
    """

    def __init__(
        self,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        super().__init__(
            "unterminated string literal",
            location=location,
            hint="add closing '\"' to complete the string",
            source_line=source_line,
        )


class InvalidCharacterError(LexError):
    """Character that cannot start any token."""

    def __init__(
        self,
        char: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.char = char
        super().__init__(
            f"invalid character '{char}' (0x{ord(char):02X})",
            location=location,
            source_line=source_line,
        )


# =============================================================================
# Syntax Errors
# =============================================================================

class ParseError(CompileError):
    """
    Malformed syntax found by the parser.

    Parsing aborts on the first malformed construct; no partial tree is
    returned.
    """
    pass


class UnexpectedTokenError(ParseError):
    """Token that does not fit the grammar rule being parsed."""

    def __init__(
        self,
        found: str,
        expected: Optional[str] = None,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.found = found
        self.expected = expected

        hint = None
        if expected:
            hint = f"expected {expected}"

        super().__init__(
            f"unexpected token '{found}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class MissingTokenError(ParseError):
    """
    Required token is missing.

    Raised when a required token (like ';' or '}') is not found where
    the grammar demands it, including at end of input.
    """

    def __init__(
        self,
        expected: str,
        found: Optional[str] = None,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.expected = expected
        self.found = found

        message = f"expected {expected}"
        if found:
            message += f", found {found}"

        super().__init__(message, location=location, source_line=source_line)


# =============================================================================
# Type Errors
# =============================================================================

class TypeCheckError(CompileError):
    """
    Type or binding error found by the type resolver.

    The name avoids shadowing the builtin TypeError.

    Examples:
        - Adding a bool to an integer
        - Using an undeclared variable
        - Declaring a variable twice in the same scope
        - Wrong number of function arguments
    """
    pass


class UndeclaredIdentifierError(TypeCheckError):
    """
    Reference to an undeclared identifier.

    Similarly-named identifiers that are in scope are offered as a hint
    to help catch typos.
    """

    def __init__(
        self,
        identifier: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
        similar_identifiers: Optional[List[str]] = None,
        kind: str = "identifier",
    ):
        self.identifier = identifier
        self.similar_identifiers = similar_identifiers or []

        hint = None
        if self.similar_identifiers:
            suggestions = ", ".join(f"'{s}'" for s in self.similar_identifiers[:3])
            hint = f"did you mean {suggestions}?"

        super().__init__(
            f"undeclared {kind} '{identifier}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class DuplicateDeclarationError(TypeCheckError):
    """Identifier declared twice in the same scope."""

    def __init__(
        self,
        identifier: str,
        location: Optional[SourceLocation] = None,
        original_location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.identifier = identifier
        self.original_location = original_location

        hint = None
        if original_location:
            hint = f"'{identifier}' was first declared at {original_location}"

        super().__init__(
            f"redeclaration of '{identifier}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class TypeMismatchError(TypeCheckError):
    """
    Operand, argument, initializer or return value has the wrong type.

    Types are never converted implicitly, so any difference between the
    expected and actual type is reported here.
    """

    def __init__(
        self,
        message: str,
        expected_type: Optional[str] = None,
        actual_type: Optional[str] = None,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.expected_type = expected_type
        self.actual_type = actual_type

        hint = None
        if expected_type and actual_type:
            hint = f"expected '{expected_type}', got '{actual_type}'"

        super().__init__(
            message,
            location=location,
            hint=hint,
            source_line=source_line,
        )


class ArgumentCountError(TypeCheckError):
    """Function called with the wrong number of arguments."""

    def __init__(
        self,
        function_name: str,
        expected: int,
        actual: int,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.function_name = function_name
        self.expected = expected
        self.actual = actual

        word = "argument" if expected == 1 else "arguments"
        super().__init__(
            f"'{function_name}' expects {expected} {word}, got {actual}",
            location=location,
            source_line=source_line,
        )


class InvalidLValueError(TypeCheckError):
    """
    Expression does not denote a storage place.

    Raised for the left side of an assignment and the operand of '&'.
    Valid places are variables, index expressions and dereferences.
    """

    def __init__(
        self,
        operation: str = "assign to",
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.operation = operation
        super().__init__(
            f"cannot {operation} this expression (not an lvalue)",
            location=location,
            hint="use a variable, an index expression, or a dereferenced pointer",
            source_line=source_line,
        )


# =============================================================================
# Backend and Toolchain Errors
# =============================================================================

class CodegenError(RuscomError):
    """
    Internal invariant violated during code generation.

    A type-resolved program should never trigger this; it signals a bug
    in the compiler rather than in the user's program.
    """
    pass


class ToolchainError(RuscomError):
    """
    The external assembler/linker failed or could not be run.

    Attributes:
        command: The command line that was executed
        stderr: Captured error output of the tool
        return_code: Process exit status, if the tool ran
    """

    def __init__(
        self,
        message: str,
        command: Optional[str] = None,
        stderr: Optional[str] = None,
        return_code: Optional[int] = None,
    ):
        self.command = command
        self.stderr = stderr
        self.return_code = return_code
        hint = stderr.strip() if stderr else None
        super().__init__(message, hint=hint)
