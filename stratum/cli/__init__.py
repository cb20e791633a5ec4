"""
Stratum CLI.
"""

from stratum.cli.main import cli, main

__all__ = ["cli", "main"]
