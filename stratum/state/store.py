"""
Stratum State - Store protocol and in-memory store.

The store is passed explicitly to the planner and executor; nothing reads
state through globals.
"""

from __future__ import annotations

import asyncio
import copy
from typing import Any, Protocol, runtime_checkable

from stratum.state.models import StateRecord, parse_record


@runtime_checkable
class StateStore(Protocol):
    """
    Persistence of last-applied records.

    Reads reflect every prior write of the same process; writes to
    different node ids never affect each other.
    """

    async def read(self, node_id: str) -> StateRecord | None:
        """Return the record of ``node_id`` or None."""
        ...

    async def write(self, node_id: str, record: StateRecord) -> None:
        """Store ``record`` as the latest apply of ``node_id``."""
        ...

    async def delete(self, node_id: str) -> None:
        """Forget ``node_id``. Missing ids are ignored."""
        ...

    async def list_ids(self) -> list[str]:
        """All recorded node ids, sorted."""
        ...


class MemoryStateStore:
    """
    Dict-backed store for tests and dry runs.

    Records are kept as JSON documents so reads never alias a caller's
    objects, exactly like a persistent backend.
    """

    def __init__(self, documents: dict[str, dict[str, Any]] | None = None) -> None:
        self._documents: dict[str, dict[str, Any]] = dict(documents or {})
        self._lock = asyncio.Lock()
        self.writes: list[str] = []

    async def read(self, node_id: str) -> StateRecord | None:
        document = self._documents.get(node_id)
        if document is None:
            return None
        return parse_record(node_id, copy.deepcopy(document))

    async def write(self, node_id: str, record: StateRecord) -> None:
        if record.node_id != node_id:
            raise ValueError(f"Record for '{record.node_id}' written under '{node_id}'")
        async with self._lock:
            self._documents[node_id] = record.to_document()
            self.writes.append(node_id)

    async def delete(self, node_id: str) -> None:
        async with self._lock:
            self._documents.pop(node_id, None)

    async def list_ids(self) -> list[str]:
        return sorted(self._documents)
