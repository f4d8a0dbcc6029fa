"""
ruscom - Compiler Command-Line Interface
========================================

This module implements the command-line interface for the ruscom
compiler.

Usage Examples
--------------
Build an executable (writes hello.s and hello):
    $ ruscom hello.rs

Assembly only:
    $ ruscom -s hello.rs

Choose the output name (writes prog.s and prog):
    $ ruscom hello.rs -o prog

Read the program from standard input (writes a.s and a):
    $ cat hello.rs | ruscom

Show the type-resolved AST:
    $ ruscom --ast hello.rs
"""

import logging
from pathlib import Path
from typing import Optional

import click

from ruscom import __version__
from ruscom.compiler import Compiler
from ruscom.ast import ASTPrinter
from ruscom.cli.errors import handle_cli_exception


logger = logging.getLogger(__name__)

# Output base name when the program is read from stdin
STDIN_OUTPUT_NAME = "a"


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s" if verbose else "%(message)s",
    )


# =============================================================================
# CLI Definition
# =============================================================================

@click.command(context_settings=dict(help_option_names=["-h", "--help"]))
@click.argument(
    "input_file",
    required=False,
    type=click.Path(dir_okay=False, allow_dash=True, path_type=Path),
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output base name: writes NAME.s and NAME (default: input file stem)",
)
@click.option(
    "-s", "--asm",
    "asm_only",
    is_flag=True,
    help="Write NAME.s only; do not assemble or link",
)
@click.option(
    "--ast",
    is_flag=True,
    help="Print the type-resolved AST and exit (for debugging)",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="ruscom")
def main(
    input_file: Optional[Path],
    output: Optional[Path],
    asm_only: bool,
    ast: bool,
    verbose: bool,
) -> None:
    """
    Compile a ruscom program to x86-64 assembly and build it with gcc.

    INPUT_FILE is the source file to compile. When it is omitted or '-',
    the program is read from standard input.

    \b
    Examples:
        ruscom hello.rs              # Writes hello.s and hello
        ruscom -s hello.rs           # Writes hello.s only
        ruscom hello.rs -o prog      # Writes prog.s and prog
        ruscom -v hello.rs           # Verbose output
    """
    setup_logging(verbose)

    from_stdin = input_file is None or str(input_file) == "-"

    if output is None:
        output = Path(STDIN_OUTPUT_NAME) if from_stdin else Path(input_file.stem)
    asm_path = Path(f"{output}.s")

    try:
        if from_stdin:
            filename = "<stdin>"
            source = click.get_text_stream("stdin").read()
        else:
            filename = str(input_file)
            source = input_file.read_text(encoding="utf-8")

        compiler = Compiler()
        result = compiler.compile_source(source, filename)

        # AST dump mode
        if ast:
            click.echo(ASTPrinter().print(result.ast))
            return

        asm_path.write_text(result.assembly, encoding="utf-8")
        logger.debug(f"Wrote {len(result.assembly)} bytes to {asm_path}")

        if asm_only:
            if verbose:
                click.echo(f"Compiled {filename} -> {asm_path}")
            return

        compiler.build(asm_path, output)

        if verbose:
            click.echo(f"Built {filename} -> {output}")

    except Exception as e:
        handle_cli_exception(e, verbose=verbose, error_type="Link")


if __name__ == "__main__":
    main()
