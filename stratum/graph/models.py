"""
Stratum Graph - Models.

Declarations are what the user wrote; nodes and edges are what the
builder derived from them.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from stratum.core.types import NodeStatus


@dataclass
class ResourceDeclaration:
    """One declared resource or data source."""

    name: str
    kind: str
    properties: dict[str, Any] = field(default_factory=dict)
    depends_on: list[str] = field(default_factory=list)
    # Data sources are read through the provider, never created or recorded
    data: bool = False

    def __post_init__(self) -> None:
        # dependsOn may name a single resource, as in `dependsOn: instance`
        if isinstance(self.depends_on, str):
            self.depends_on = [self.depends_on]
        else:
            self.depends_on = list(self.depends_on)


class EdgeOrigin(StrEnum):
    """Why an edge exists."""

    REFERENCE = "reference"
    EXPLICIT = "explicit"


@dataclass(frozen=True)
class Edge:
    """``source`` depends on ``target``."""

    source: str
    target: str
    origin: EdgeOrigin = EdgeOrigin.REFERENCE


@dataclass
class ResourceNode:
    """A resource in the graph, with its lifecycle status."""

    id: str
    kind: str
    inputs: dict[str, Any]
    index: int
    outputs: dict[str, Any] | None = None
    status: NodeStatus = NodeStatus.PENDING
    data: bool = False


@dataclass
class ResourceGraph:
    """
    Directed acyclic graph of resource nodes.

    Nodes keep declaration order; ``outputs`` are stack-level exports whose
    values may contain references.
    """

    nodes: dict[str, ResourceNode] = field(default_factory=dict)
    edges: set[Edge] = field(default_factory=set)
    outputs: dict[str, Any] = field(default_factory=dict)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    def node(self, node_id: str) -> ResourceNode:
        return self.nodes[node_id]

    def ordered(self) -> list[ResourceNode]:
        """Nodes in declaration order."""
        return sorted(self.nodes.values(), key=lambda n: n.index)

    def dependencies(self, node_id: str) -> list[str]:
        """Ids ``node_id`` depends on, in declaration order."""
        targets = {e.target for e in self.edges if e.source == node_id}
        return [n.id for n in self.ordered() if n.id in targets]

    def dependents(self, node_id: str) -> list[str]:
        """Ids depending directly on ``node_id``, in declaration order."""
        sources = {e.source for e in self.edges if e.target == node_id}
        return [n.id for n in self.ordered() if n.id in sources]

    def transitive_dependents(self, node_ids: Iterable[str]) -> set[str]:
        """Every node reachable against edge direction from ``node_ids``."""
        seen: set[str] = set()
        stack = list(node_ids)
        while stack:
            current = stack.pop()
            for dependent in self.dependents(current):
                if dependent not in seen:
                    seen.add(dependent)
                    stack.append(dependent)
        return seen

    def edge_pairs(self) -> set[tuple[str, str]]:
        """Edges as (source, target) pairs, origin dropped."""
        return {(e.source, e.target) for e in self.edges}
