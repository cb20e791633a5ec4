"""
Stratum State - Last-applied resource records.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from stratum.state.models import FORMAT_VERSION, StateRecord, parse_record
from stratum.state.sqlite import SQLiteStateStore
from stratum.state.store import MemoryStateStore, StateStore

if TYPE_CHECKING:
    from stratum.config.models import StateConfig


def open_store(config: StateConfig) -> StateStore:
    """Create the store selected by configuration."""
    if config.backend == "memory":
        return MemoryStateStore()
    return SQLiteStateStore(config.path)


__all__ = [
    "FORMAT_VERSION",
    "MemoryStateStore",
    "SQLiteStateStore",
    "StateRecord",
    "StateStore",
    "open_store",
    "parse_record",
]
