"""
Stratum Executor - Apply report.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from stratum.core.types import NodeStatus, Operation


@dataclass
class NodeResult:
    """Outcome of one change-set entry."""

    node_id: str
    kind: str
    operation: Operation
    status: NodeStatus = NodeStatus.PENDING
    attempts: int = 0
    error_kind: str | None = None
    error: str | None = None
    reason: str = ""
    duration: float = 0.0
    outputs: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == NodeStatus.APPLIED

    def to_dict(self) -> dict[str, Any]:
        return {
            "node_id": self.node_id,
            "kind": self.kind,
            "operation": str(self.operation),
            "status": str(self.status),
            "attempts": self.attempts,
            "error_kind": self.error_kind,
            "error": self.error,
            "reason": self.reason,
            "duration": round(self.duration, 3),
        }


@dataclass
class ApplyReport:
    """Per-entry results in change-set order, plus resolved stack outputs."""

    results: dict[str, NodeResult] = field(default_factory=dict)
    outputs: dict[str, Any] = field(default_factory=dict)
    cancelled: bool = False
    duration: float = 0.0

    def __getitem__(self, node_id: str) -> NodeResult:
        return self.results[node_id]

    def __iter__(self):
        return iter(self.results.values())

    def __len__(self) -> int:
        return len(self.results)

    def with_status(self, status: NodeStatus) -> list[NodeResult]:
        return [r for r in self.results.values() if r.status == status]

    @property
    def applied(self) -> list[NodeResult]:
        return self.with_status(NodeStatus.APPLIED)

    @property
    def failed(self) -> list[NodeResult]:
        return self.with_status(NodeStatus.FAILED)

    @property
    def skipped(self) -> list[NodeResult]:
        return self.with_status(NodeStatus.SKIPPED)

    @property
    def success(self) -> bool:
        return all(r.ok for r in self.results.values())

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1

    def summary(self) -> dict[str, int]:
        counts = {str(status): 0 for status in (NodeStatus.APPLIED, NodeStatus.FAILED, NodeStatus.SKIPPED)}
        for result in self.results.values():
            counts[str(result.status)] = counts.get(str(result.status), 0) + 1
        return counts
