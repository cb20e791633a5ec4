"""
Core Exceptions - Unified error hierarchy for Stratum.

Graph and plan errors are fatal and raised before any provider call.
Execution errors are scoped to a single node and recorded in the report.
"""

from __future__ import annotations


class StratumError(Exception):
    """Base exception for all Stratum errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | {self.details}"
        return self.message


# =============================================================================
# Declaration / Graph Errors
# =============================================================================

class DeclarationError(StratumError):
    """Resource declarations are malformed."""
    pass


class CycleError(StratumError):
    """Dependency graph contains a cycle."""

    def __init__(self, node_ids: list[str]):
        path = " -> ".join([*node_ids, node_ids[0]]) if node_ids else ""
        super().__init__(
            f"Dependency cycle detected: {path}",
            {"node_ids": list(node_ids)}
        )
        self.node_ids = list(node_ids)


# =============================================================================
# Planning Errors
# =============================================================================

class PlanError(StratumError):
    """Change-set could not be planned."""
    pass


class DanglingReferenceError(PlanError):
    """A reference or dependency points at something that does not exist."""

    def __init__(self, node_id: str, target: str, field: str | None = None):
        if field:
            message = f"Resource '{node_id}' references unknown output '{target}.{field}'"
        else:
            message = f"Resource '{node_id}' references unknown resource '{target}'"
        super().__init__(message, {"node_id": node_id, "target": target, "field": field})
        self.node_id = node_id
        self.target = target
        self.field = field


class ReplacePolicyError(PlanError):
    """Replacement required but forbidden while the node has dependents."""

    def __init__(self, node_id: str, kind: str, dependents: list[str]):
        super().__init__(
            f"Resource '{node_id}' ({kind}) must be replaced but is depended upon by "
            f"{', '.join(dependents)}",
            {"node_id": node_id, "kind": kind, "dependents": list(dependents)}
        )
        self.node_id = node_id
        self.dependents = list(dependents)


class ProviderNotFoundError(PlanError):
    """No provider registered for a resource kind."""

    def __init__(self, kind: str):
        super().__init__(f"No provider registered for kind '{kind}'", {"kind": kind})
        self.kind = kind


# =============================================================================
# Execution Errors
# =============================================================================

class ExecutionError(StratumError):
    """A change-set entry could not be applied."""
    pass


class ProviderError(ExecutionError):
    """Provider call failed.

    Providers tag transient failures with ``retryable=True``; the executor
    retries those with exponential backoff.
    """

    def __init__(self, message: str, retryable: bool = False, details: dict | None = None):
        super().__init__(message, {**(details or {}), "retryable": retryable})
        self.retryable = retryable


class ProviderTimeoutError(ProviderError):
    """Provider call exceeded its timeout."""

    def __init__(self, operation: str, node_id: str, timeout_seconds: float):
        super().__init__(
            f"{operation} of '{node_id}' timed out after {timeout_seconds}s",
            retryable=True,
            details={"operation": operation, "node_id": node_id, "timeout": timeout_seconds},
        )


class ReferenceResolutionError(ExecutionError):
    """An upstream output needed by a reference is missing at apply time."""

    def __init__(self, node_id: str, target: str, field: str):
        super().__init__(
            f"Resource '{node_id}' cannot resolve '{target}.{field}'",
            {"node_id": node_id, "target": target, "field": field}
        )


# =============================================================================
# State Errors
# =============================================================================

class StateError(StratumError):
    """State store operation failed."""
    pass


class StateCorruptionError(StateError):
    """A persisted state record failed schema validation."""

    def __init__(self, node_id: str, reason: str):
        super().__init__(
            f"State record for '{node_id}' is corrupt: {reason}",
            {"node_id": node_id, "reason": reason}
        )
        self.node_id = node_id
        self.reason = reason


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(StratumError):
    """Configuration error."""
    pass
