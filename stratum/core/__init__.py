"""
Stratum Core - Exceptions, shared types, metrics and resilience helpers.
"""

from stratum.core.exceptions import (
    ConfigurationError,
    CycleError,
    DanglingReferenceError,
    DeclarationError,
    ExecutionError,
    PlanError,
    ProviderError,
    ProviderNotFoundError,
    ProviderTimeoutError,
    ReferenceResolutionError,
    ReplacePolicyError,
    StateCorruptionError,
    StateError,
    StratumError,
)
from stratum.core.types import NodeStatus, Operation

__all__ = [
    "ConfigurationError",
    "CycleError",
    "DanglingReferenceError",
    "DeclarationError",
    "ExecutionError",
    "NodeStatus",
    "Operation",
    "PlanError",
    "ProviderError",
    "ProviderNotFoundError",
    "ProviderTimeoutError",
    "ReferenceResolutionError",
    "ReplacePolicyError",
    "StateCorruptionError",
    "StateError",
    "StratumError",
]
