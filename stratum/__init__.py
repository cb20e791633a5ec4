"""
Stratum - Declarative infrastructure provisioning engine.

Builds a dependency graph from resource declarations, plans the changes
needed to reconcile recorded state, and applies them through providers.
"""

try:
    from importlib.metadata import PackageNotFoundError, version
    try:
        __version__ = version("stratum")
    except PackageNotFoundError:
        # Package not installed, fallback to pyproject.toml
        __version__ = "0.1.0"
except ImportError:
    __version__ = "0.1.0"

__author__ = "Stratum Contributors"
