"""
ruscom - A Rust-Inspired Language Compiler for x86-64
=====================================================

This package compiles a small, statically-typed, Rust-inspired language
to x86-64 assembly text (GNU as, Intel syntax). gcc then assembles and
links the text into a native executable.

Supported language features:
- Integer types i8..i64 and u8..u64 (plus isize/usize), bool
- Raw pointers (*T), references (&T), arrays ([T; N]), slices (&[T])
  and string slices (&str)
- Local (let) and global (static) variables
- if/else, while, return
- Arithmetic, comparison and short-circuit logical operators
- Functions with any number of parameters

Main Components
---------------
- **lexer**: source text to tokens
- **parser**: tokens to an abstract syntax tree
- **resolver**: name binding, type checking and stack frame layout
- **codegen**: x86-64 assembly generation
- **compiler**: the pipeline, plus building executables with gcc

Quick Start
-----------
Compile to assembly:
    >>> from ruscom import compile_source
    >>> asm = compile_source('fn main() -> i32 { return 42; }')

Compile and build an executable:
    >>> from ruscom import Compiler
    >>> compiler = Compiler()
    >>> result = compiler.compile_file("hello.rs")
    >>> Path("hello.s").write_text(result.assembly)
    >>> compiler.build("hello.s", "hello")

Or use the command-line tool:
    $ ruscom hello.rs && ./hello; echo $?
"""

__version__ = "0.1.0"

# =============================================================================
# Public API Exports
# =============================================================================

from ruscom.errors import (
    SourceLocation,
    RuscomError,
    CompileError,
    LexError,
    UnterminatedStringError,
    InvalidCharacterError,
    ParseError,
    UnexpectedTokenError,
    MissingTokenError,
    TypeCheckError,
    UndeclaredIdentifierError,
    DuplicateDeclarationError,
    TypeMismatchError,
    ArgumentCountError,
    InvalidLValueError,
    CodegenError,
    ToolchainError,
)
from ruscom.lexer import Lexer, Token, TokenType, tokenize
from ruscom.parser import Parser, parse_source
from ruscom.resolver import TypeResolver, FrameLayout, resolve_program
from ruscom.codegen import CodeGenerator
from ruscom.compiler import (
    Compiler,
    CompilerOptions,
    CompilerResult,
    compile_source,
    compile_file,
)
from ruscom.toolchain import assemble_and_link

__all__ = [
    "__version__",
    # Pipeline
    "Lexer",
    "Token",
    "TokenType",
    "tokenize",
    "Parser",
    "parse_source",
    "TypeResolver",
    "FrameLayout",
    "resolve_program",
    "CodeGenerator",
    "Compiler",
    "CompilerOptions",
    "CompilerResult",
    "compile_source",
    "compile_file",
    "assemble_and_link",
    # Exception hierarchy
    "SourceLocation",
    "RuscomError",
    "CompileError",
    "LexError",
    "UnterminatedStringError",
    "InvalidCharacterError",
    "ParseError",
    "UnexpectedTokenError",
    "MissingTokenError",
    "TypeCheckError",
    "UndeclaredIdentifierError",
    "DuplicateDeclarationError",
    "TypeMismatchError",
    "ArgumentCountError",
    "InvalidLValueError",
    "CodegenError",
    "ToolchainError",
]
