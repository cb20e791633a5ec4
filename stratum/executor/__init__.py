"""
Stratum Executor - Apply change sets.
"""

from stratum.executor.executor import CANCELLED, Executor
from stratum.executor.report import ApplyReport, NodeResult

__all__ = ["CANCELLED", "ApplyReport", "Executor", "NodeResult"]
