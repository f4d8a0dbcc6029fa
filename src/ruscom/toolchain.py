"""
ruscom Toolchain Driver
=======================

Runs the external assembler/linker on generated assembly. ruscom emits
GNU assembler source, so any gcc-compatible driver (gcc, cc, clang)
can turn it into an executable:

    gcc -o NAME NAME.s

The tool is looked up on PATH when it runs; a missing tool, a
non-zero exit status and a timeout are all reported as ToolchainError.
"""

import logging
import subprocess
from pathlib import Path
from typing import Union

from ruscom.errors import ToolchainError


logger = logging.getLogger(__name__)

DEFAULT_ASSEMBLER = "gcc"
DEFAULT_TIMEOUT = 60


def assemble_and_link(
    asm_path: Union[str, Path],
    output_path: Union[str, Path],
    assembler: str = DEFAULT_ASSEMBLER,
    timeout: int = DEFAULT_TIMEOUT,
) -> Path:
    """
    Assemble and link an assembly file into an executable.

    Args:
        asm_path: Path of the .s file to build
        output_path: Path of the executable to produce
        assembler: gcc-compatible driver command
        timeout: Seconds to wait for the tool before giving up

    Returns:
        The executable's path

    Raises:
        ToolchainError: If the tool is missing, fails, or times out
    """
    output_path = Path(output_path)
    cmd = [assembler, "-o", str(output_path), str(asm_path)]
    command = " ".join(cmd)

    logger.info(f"Running: {command}")

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        raise ToolchainError(
            f"'{assembler}' timed out after {timeout} seconds",
            command=command,
        )
    except FileNotFoundError:
        raise ToolchainError(
            f"'{assembler}' not found - is it installed and on PATH?",
            command=command,
        )

    if result.returncode != 0:
        raise ToolchainError(
            f"'{assembler}' failed with exit status {result.returncode}",
            command=command,
            stderr=result.stderr,
            return_code=result.returncode,
        )

    logger.debug(f"Linked {output_path}")
    return output_path
