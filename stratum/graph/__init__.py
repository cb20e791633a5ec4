"""
Stratum Graph - Declarations, references and the resource DAG.
"""

from stratum.graph.builder import build_graph, find_cycle
from stratum.graph.loader import Stack, load_stack, parse_stack
from stratum.graph.models import (
    Edge,
    EdgeOrigin,
    ResourceDeclaration,
    ResourceGraph,
    ResourceNode,
)
from stratum.graph.references import UNKNOWN, Interpolation, Reference, Secret, ref

__all__ = [
    "UNKNOWN",
    "Edge",
    "EdgeOrigin",
    "Interpolation",
    "Reference",
    "ResourceDeclaration",
    "ResourceGraph",
    "ResourceNode",
    "Secret",
    "Stack",
    "build_graph",
    "find_cycle",
    "load_stack",
    "parse_stack",
    "ref",
]
