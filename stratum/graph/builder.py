"""
Stratum Graph - Resource Graph Builder.

Turns an ordered set of declarations into a DAG. Pure: no I/O, no state.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Any

from loguru import logger

from stratum.core.exceptions import CycleError, DanglingReferenceError, DeclarationError
from stratum.graph.models import Edge, EdgeOrigin, ResourceDeclaration, ResourceGraph, ResourceNode
from stratum.graph.references import NODE_ID_PATTERN, iter_references

_NODE_ID_RE = re.compile(rf"^{NODE_ID_PATTERN}$")


def build_graph(
    declarations: Iterable[ResourceDeclaration],
    outputs: dict[str, Any] | None = None,
) -> ResourceGraph:
    """
    Build the resource graph.

    Args:
        declarations: Resource declarations in declaration order
        outputs: Stack outputs, values may contain references

    Returns:
        ResourceGraph whose edges are the union of reference-derived and
        explicit ``depends_on`` dependencies

    Raises:
        DeclarationError: Invalid or duplicate resource names
        DanglingReferenceError: Reference or dependency to an undeclared node
        CycleError: The dependencies form a cycle
    """
    declarations = list(declarations)
    graph = ResourceGraph()

    for index, decl in enumerate(declarations):
        if not isinstance(decl.name, str) or not _NODE_ID_RE.match(decl.name):
            raise DeclarationError(f"Invalid resource name: {decl.name!r}")
        if decl.name in graph.nodes:
            raise DeclarationError(f"Duplicate resource name: {decl.name}", {"name": decl.name})
        if not isinstance(decl.kind, str) or not decl.kind.strip():
            raise DeclarationError(f"Resource '{decl.name}' has no kind", {"name": decl.name})
        graph.nodes[decl.name] = ResourceNode(
            id=decl.name,
            kind=decl.kind,
            inputs=dict(decl.properties),
            index=index,
            data=decl.data,
        )

    for decl in declarations:
        for reference in iter_references(decl.properties):
            if reference.node_id not in graph.nodes:
                raise DanglingReferenceError(decl.name, reference.node_id, reference.field)
            graph.edges.add(Edge(decl.name, reference.node_id, EdgeOrigin.REFERENCE))
        for target in decl.depends_on:
            if target not in graph.nodes:
                raise DanglingReferenceError(decl.name, target)
            graph.edges.add(Edge(decl.name, target, EdgeOrigin.EXPLICIT))

    for name, value in (outputs or {}).items():
        for reference in iter_references(value):
            if reference.node_id not in graph.nodes:
                raise DanglingReferenceError(f"output:{name}", reference.node_id, reference.field)
    graph.outputs = dict(outputs or {})

    cycle = find_cycle(graph)
    if cycle:
        raise CycleError(cycle)

    logger.debug(f"Built graph: {len(graph.nodes)} nodes, {len(graph.edge_pairs())} edges")
    return graph


def find_cycle(graph: ResourceGraph) -> list[str] | None:
    """
    Depth-first search with an explicit recursion stack.

    Returns:
        Node ids of the first cycle found, in dependency order, or None
    """
    adjacency: dict[str, list[str]] = {node_id: [] for node_id in graph.nodes}
    for source, target in sorted(graph.edge_pairs()):
        adjacency[source].append(target)

    visited: set[str] = set()
    for root in (n.id for n in graph.ordered()):
        if root in visited:
            continue
        # Each frame: node id and iterator over its dependencies
        path: list[str] = [root]
        on_path: set[str] = {root}
        frames = [iter(adjacency[root])]
        visited.add(root)
        while frames:
            target = next(frames[-1], None)
            if target is None:
                frames.pop()
                on_path.discard(path.pop())
                continue
            if target in on_path:
                return path[path.index(target):]
            if target not in visited:
                visited.add(target)
                path.append(target)
                on_path.add(target)
                frames.append(iter(adjacency[target]))
    return None
