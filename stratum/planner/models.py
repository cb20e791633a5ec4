"""
Stratum Planner - Change-set models.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from stratum.core.types import Operation
from stratum.state.models import StateRecord


@dataclass
class ChangeSetEntry:
    """One planned operation."""

    node_id: str
    kind: str
    operation: Operation
    rank: int = 0
    dependencies: list[str] = field(default_factory=list)
    changed_fields: list[str] = field(default_factory=list)
    reason: str = ""
    # Planned inputs; values not known until apply are UNKNOWN
    inputs: dict[str, Any] = field(default_factory=dict)
    record: StateRecord | None = None
    # Data source outputs read at plan time; None until the executor reads them
    outputs: dict[str, Any] | None = None

    @property
    def declared(self) -> bool:
        return self.operation is not Operation.DELETE


@dataclass
class ChangeSet:
    """Entries in a valid execution order."""

    entries: list[ChangeSetEntry] = field(default_factory=list)

    def __iter__(self) -> Iterator[ChangeSetEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __getitem__(self, node_id: str) -> ChangeSetEntry:
        for entry in self.entries:
            if entry.node_id == node_id:
                return entry
        raise KeyError(node_id)

    def __contains__(self, node_id: object) -> bool:
        return any(entry.node_id == node_id for entry in self.entries)

    @property
    def order(self) -> list[str]:
        return [entry.node_id for entry in self.entries]

    def operations(self) -> dict[str, Operation]:
        return {entry.node_id: entry.operation for entry in self.entries}

    def summary(self) -> dict[Operation, int]:
        """Count of entries per operation, every operation present."""
        counts = {op: 0 for op in Operation}
        for entry in self.entries:
            counts[entry.operation] += 1
        return counts

    @property
    def has_changes(self) -> bool:
        return any(entry.operation.mutates for entry in self.entries)

    def dependents(self) -> dict[str, list[str]]:
        """Reverse of entry dependencies, in change-set order."""
        result: dict[str, list[str]] = {entry.node_id: [] for entry in self.entries}
        for entry in self.entries:
            for dep in entry.dependencies:
                result[dep].append(entry.node_id)
        return result
