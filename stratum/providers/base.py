"""
Stratum Providers - Provider capability interface.

A provider turns change-set operations into remote API calls for the kinds
it handles. Failures are raised as ProviderError; ``retryable=True`` marks
transient ones.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from stratum.core.exceptions import ProviderError


class Provider(ABC):
    """
    Base class for all providers.

    ``create`` and ``update`` return the resource outputs; ``outputs["id"]``
    is the remote identifier later passed to ``update`` and ``delete``.
    Idempotency of remote calls is the provider's responsibility.
    """

    name: str = "provider"

    @abstractmethod
    async def create(self, kind: str, attrs: dict[str, Any]) -> dict[str, Any]:
        """Create a resource and return its outputs."""

    @abstractmethod
    async def update(self, kind: str, resource_id: str, attrs: dict[str, Any]) -> dict[str, Any]:
        """Update a resource in place and return its outputs."""

    @abstractmethod
    async def delete(self, kind: str, resource_id: str) -> None:
        """Delete a resource."""

    async def read(self, kind: str, attrs: dict[str, Any]) -> dict[str, Any]:
        """
        Look up a data source and return its outputs.

        Reads have no side effects; the planner calls them to resolve
        references before diffing.
        """
        raise ProviderError(f"Provider {self.name} has no data source '{kind}'", details={"kind": kind})

    def immutable_fields(self, kind: str) -> set[str]:
        """Input fields whose change forces a replace."""
        return set()

    def protect_replace(self, kind: str) -> bool:
        """Whether the kind refuses replacement while other nodes depend on it."""
        return False

    def is_retryable(self, error: Exception) -> bool:
        """Whether ``error`` is transient and worth retrying."""
        return isinstance(error, ProviderError) and error.retryable
