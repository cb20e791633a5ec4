"""
Stratum Core - Shared types and enums.
"""

from __future__ import annotations

from enum import StrEnum


class NodeStatus(StrEnum):
    """Lifecycle status of a resource node."""

    PENDING = "pending"  # Parsed, not yet planned
    PLANNED = "planned"
    APPLYING = "applying"
    APPLIED = "applied"
    FAILED = "failed"
    SKIPPED = "skipped"  # Not attempted (failed dependency or cancelled)

    @property
    def is_terminal(self) -> bool:
        """Whether the status ends a run for this node."""
        return self in (NodeStatus.APPLIED, NodeStatus.FAILED, NodeStatus.SKIPPED)


class Operation(StrEnum):
    """Change-set operation kind."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    REPLACE = "replace"
    NO_OP = "no-op"
    READ = "read"  # Data source lookup, never recorded in state

    @property
    def symbol(self) -> str:
        """Short marker used in plan output."""
        return _SYMBOLS[self]

    @property
    def mutates(self) -> bool:
        """Whether the operation changes remote resources and recorded state."""
        return self not in (Operation.NO_OP, Operation.READ)


_SYMBOLS = {
    Operation.CREATE: "+",
    Operation.UPDATE: "~",
    Operation.DELETE: "-",
    Operation.REPLACE: "-/+",
    Operation.NO_OP: " ",
    Operation.READ: "<=",
}
