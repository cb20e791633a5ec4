"""
Stratum Planner - Change-set planning.
"""

from stratum.planner.diff import changed_fields
from stratum.planner.models import ChangeSet, ChangeSetEntry
from stratum.planner.planner import Planner, topological_order

__all__ = [
    "ChangeSet",
    "ChangeSetEntry",
    "Planner",
    "changed_fields",
    "topological_order",
]
