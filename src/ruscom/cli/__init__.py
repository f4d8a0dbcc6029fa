"""
ruscom Command-Line Interface
=============================

This package provides the `ruscom` command, a Click-based front end
that compiles a source file to x86-64 assembly and, unless told to stop
there, builds an executable with gcc.
"""

__all__ = ["ruscom"]
