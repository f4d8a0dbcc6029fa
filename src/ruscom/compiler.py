"""
ruscom Compiler Main Module
===========================

This module provides the main compiler interface for ruscom.
It orchestrates the complete compilation process:

    Source → Lex → Parse → Resolve → Generate → Assembly

Usage
-----
Command line:
    $ ruscom hello.rs -o hello

Programmatic:
    >>> from ruscom import compile_source
    >>> asm = compile_source('fn main() -> i32 { return 0; }')

The compiler produces x86-64 assembly (GNU as, Intel syntax) suitable
for gcc. The generated assembly includes:
- Function code following the System V calling convention
- Global variables in .data/.bss
- A de-duplicated string literal pool in .rodata

Compilation Pipeline
--------------------
1. **Lexical Analysis**: Convert source to tokens
2. **Parsing**: Build the Abstract Syntax Tree (AST)
3. **Type Resolution**: Bind names, check types, lay out storage
4. **Code Generation**: Convert the decorated AST to assembly

Error Handling
--------------
Each stage raises the first error it finds; nothing is generated for a
program with an error. All stages start from fresh state on every call,
so compiling the same source twice gives identical output.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from ruscom.lexer import Lexer, Token
from ruscom.parser import Parser
from ruscom.resolver import TypeResolver
from ruscom.codegen import CodeGenerator
from ruscom.ast import Program
from ruscom.toolchain import DEFAULT_ASSEMBLER, DEFAULT_TIMEOUT, assemble_and_link


logger = logging.getLogger(__name__)


@dataclass
class CompilerOptions:
    """
    Compiler configuration options.

    Attributes:
        output_comments: Emit '#' comments in the generated assembly
        assembler: gcc-compatible command used by build()
        toolchain_timeout: Seconds to wait for the assembler/linker
    """
    output_comments: bool = True
    assembler: str = DEFAULT_ASSEMBLER
    toolchain_timeout: int = DEFAULT_TIMEOUT


@dataclass
class CompilerResult:
    """
    Result of a successful compilation.

    Failures raise instead of returning a result.

    Attributes:
        filename: Source filename
        assembly: Generated assembly code
        ast: Type-resolved syntax tree
        token_count: Number of tokens lexed, including EOF
    """
    filename: str = ""
    assembly: str = ""
    ast: Optional[Program] = None
    token_count: int = 0


class Compiler:
    """
    ruscom compiler for x86-64.

    This class provides the main interface for compiling ruscom source
    code to x86-64 assembly, and for building an executable from it.

    Example:
        compiler = Compiler()
        result = compiler.compile_file("hello.rs")
        print(result.assembly)

    Attributes:
        options: Compiler configuration options
    """

    def __init__(self, options: Optional[CompilerOptions] = None):
        """
        Initialize the compiler.

        Args:
            options: Compiler configuration (uses defaults if None)
        """
        self.options = options or CompilerOptions()

    def compile_source(self, source: str, filename: str = "<input>") -> CompilerResult:
        """
        Compile ruscom source code to assembly.

        Args:
            source: ruscom source code string
            filename: Source filename for error messages

        Returns:
            CompilerResult containing the assembly and the resolved AST

        Raises:
            CompileError: If the program has a lexical, syntax or type error
            CodegenError: If the code generator hits an internal error
        """
        result = CompilerResult(filename=filename)
        source_lines = source.splitlines()

        # Stage 1: Lexical analysis
        tokens = self._lex(source, filename)
        result.token_count = len(tokens)

        # Stage 2: Parsing
        program = self._parse(tokens, filename, source_lines)

        # Stage 3: Type resolution
        program = self._resolve(program, filename, source_lines)
        result.ast = program

        # Stage 4: Code generation
        result.assembly = self._generate(program)

        logger.debug(f"Compiled {filename}: {len(result.assembly)} bytes of assembly")
        return result

    def compile_file(self, filepath: Union[str, Path]) -> CompilerResult:
        """
        Compile a ruscom source file to assembly.

        Args:
            filepath: Path to the source file

        Returns:
            CompilerResult containing the assembly and the resolved AST

        Raises:
            CompileError: If compilation fails
            FileNotFoundError: If the source file does not exist
        """
        path = Path(filepath)
        if not path.exists():
            raise FileNotFoundError(f"Source file not found: {filepath}")

        source = path.read_text(encoding="utf-8")
        return self.compile_source(source, str(filepath))

    def build(self, asm_path: Union[str, Path], output_path: Union[str, Path]) -> Path:
        """
        Assemble and link an assembly file into an executable.

        Raises:
            ToolchainError: If the external tool fails or is missing
        """
        return assemble_and_link(
            asm_path,
            output_path,
            assembler=self.options.assembler,
            timeout=self.options.toolchain_timeout,
        )

    def _lex(self, source: str, filename: str) -> list[Token]:
        """Tokenize source."""
        lexer = Lexer(source, filename)
        return list(lexer.tokenize())

    def _parse(self, tokens: list[Token], filename: str, source_lines: list[str]) -> Program:
        """Parse tokens into AST."""
        parser = Parser(tokens, filename, source_lines)
        return parser.parse()

    def _resolve(self, program: Program, filename: str, source_lines: list[str]) -> Program:
        """Type-check the AST and attach symbols and frame layouts."""
        resolver = TypeResolver(filename, source_lines)
        return resolver.resolve(program)

    def _generate(self, program: Program) -> str:
        """Generate assembly from the resolved AST."""
        generator = CodeGenerator(output_comments=self.options.output_comments)
        return generator.generate(program)


# =============================================================================
# Convenience Functions
# =============================================================================

def compile_source(source: str, filename: str = "<input>") -> str:
    """
    Compile ruscom source code to x86-64 assembly.

    This is the primary high-level interface for compiling ruscom.

    Args:
        source: ruscom source code
        filename: Source filename for error messages

    Returns:
        Generated assembly code

    Raises:
        CompileError: If compilation fails

    Example:
        >>> asm = compile_source('''
        ... fn main() -> i32 {
        ...     let x: i32 = 40;
        ...     return x + 2;
        ... }
        ... ''')
    """
    return Compiler().compile_source(source, filename).assembly


def compile_file(
    filepath: Union[str, Path],
    output_path: Optional[Union[str, Path]] = None,
) -> str:
    """
    Compile a ruscom source file to x86-64 assembly.

    Args:
        filepath: Path to the source file
        output_path: Optional path to write the assembly to

    Returns:
        Generated assembly code

    Raises:
        CompileError: If compilation fails
        FileNotFoundError: If the source file does not exist

    Example:
        >>> asm = compile_file("hello.rs", "hello.s")
    """
    result = Compiler().compile_file(filepath)

    if output_path:
        Path(output_path).write_text(result.assembly, encoding="utf-8")

    return result.assembly
