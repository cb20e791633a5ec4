"""
Stratum UI - Console rendering.
"""

from stratum.ui.console import ConsoleUI

__all__ = ["ConsoleUI"]
