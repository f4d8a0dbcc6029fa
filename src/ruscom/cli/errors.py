"""
CLI Error Handling
==================

Maps exceptions raised by the compiler pipeline to messages on stderr
and process exit codes.
"""

import sys
import traceback
from enum import IntEnum
from typing import NoReturn

import click


class ExitCode(IntEnum):
    """Standard exit codes for the ruscom command."""
    SUCCESS = 0
    BUILD_ERROR = 1      # Compile error, or the assembler/linker failed
    INVALID_ARGS = 2     # Invalid arguments or unreadable input
    INTERNAL_ERROR = 3   # Compiler bug (including CodegenError)


def handle_cli_exception(
    error: Exception,
    verbose: bool = False,
    error_type: str | None = None
) -> NoReturn:
    """
    Report an exception and exit with the matching exit code.

    Args:
        error: The exception that was raised
        verbose: If True, print full traceback for internal errors
        error_type: Optional prefix for toolchain errors (e.g., "Link")

    Raises:
        SystemExit: Always exits with an appropriate exit code
    """
    from ruscom.errors import CompileError, ToolchainError

    if isinstance(error, CompileError):
        # Compile errors already carry location, source line and hint
        click.echo(str(error), err=True)
        sys.exit(ExitCode.BUILD_ERROR)

    elif isinstance(error, ToolchainError):
        prefix = f"{error_type} error: " if error_type else "Error: "
        click.echo(f"{prefix}{error.message}", err=True)
        if error.stderr:
            click.echo(error.stderr.rstrip(), err=True)
        sys.exit(ExitCode.BUILD_ERROR)

    elif isinstance(error, click.BadParameter):
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    elif isinstance(error, (FileNotFoundError, PermissionError, IsADirectoryError)):
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    else:
        # CodegenError and anything unexpected are compiler bugs
        click.echo(f"Internal error: {error}", err=True)
        if verbose:
            traceback.print_exc()
        sys.exit(ExitCode.INTERNAL_ERROR)
