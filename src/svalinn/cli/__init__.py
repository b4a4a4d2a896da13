"""
CLI module for Svalinn.

Provides the command-line interface using Click.
"""

from svalinn.cli.main import cli, main

__all__ = ["main", "cli"]
