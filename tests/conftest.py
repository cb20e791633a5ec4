"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pytest

from stratum.config import StratumConfig
from stratum.core.exceptions import ProviderError
from stratum.core.metrics import reset_metrics
from stratum.providers import Provider, ProviderRegistry
from stratum.state import MemoryStateStore, SQLiteStateStore
from stratum.utils.security import clear_secrets

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Generator

# Use pytest-asyncio's built-in event loop management
# See: https://pytest-asyncio.readthedocs.io/en/latest/concepts.html
pytest_plugins = ("pytest_asyncio",)

FIXTURES = Path(__file__).parent / "fixtures"


class ScriptedProvider(Provider):
    """
    Test provider with per-kind scripted failures and delays.

    Each test resource uses its own kind (``test:A``) so calls can be
    attributed to nodes.
    """

    name = "scripted"

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.failures: dict[tuple[str, str], list[Exception]] = defaultdict(list)
        self.delays: dict[str, float] = {}
        self.immutable: dict[str, set[str]] = {}
        self.protected: set[str] = set()
        self.data: dict[str, dict[str, Any]] = {
            "aws:index/getAvailabilityZones": {"names": ["us-east-1a", "us-east-1b", "us-east-1c"]},
        }
        self.active = 0
        self.max_active = 0
        self._counter = 0

    def fail(self, operation: str, kind: str, *errors: Exception) -> None:
        """Queue errors raised by the next calls of ``operation`` on ``kind``."""
        self.failures[(operation, kind)].extend(errors)

    def ops(self, operation: str | None = None) -> list[str]:
        return [kind for op, kind in self.calls if operation is None or op == operation]

    async def _enter(self, operation: str, kind: str) -> None:
        self.calls.append((operation, kind))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            delay = self.delays.get(kind, 0.0)
            if delay:
                await asyncio.sleep(delay)
            else:
                await asyncio.sleep(0)
            queued = self.failures.get((operation, kind))
            if queued:
                raise queued.pop(0)
        finally:
            self.active -= 1

    async def create(self, kind: str, attrs: dict[str, Any]) -> dict[str, Any]:
        await self._enter("create", kind)
        self._counter += 1
        resource_id = f"{kind.split(':')[-1].lower()}-{self._counter}"
        return {**attrs, "id": resource_id, "arn": f"arn:{resource_id}"}

    async def update(self, kind: str, resource_id: str, attrs: dict[str, Any]) -> dict[str, Any]:
        await self._enter("update", kind)
        return {**attrs, "id": resource_id, "arn": f"arn:{resource_id}"}

    async def delete(self, kind: str, resource_id: str) -> None:
        await self._enter("delete", kind)

    async def read(self, kind: str, attrs: dict[str, Any]) -> dict[str, Any]:
        await self._enter("read", kind)
        if kind not in self.data:
            return await super().read(kind, attrs)
        return {**attrs, **self.data[kind]}

    def immutable_fields(self, kind: str) -> set[str]:
        return self.immutable.get(kind, set())

    def protect_replace(self, kind: str) -> bool:
        return kind in self.protected


def transient(message: str = "throttled") -> ProviderError:
    return ProviderError(message, retryable=True)


def permanent(message: str = "invalid parameter") -> ProviderError:
    return ProviderError(message, retryable=False)


@pytest.fixture(autouse=True)
def clean_globals() -> Generator[None, None, None]:
    """Reset metrics and registered secrets between tests."""
    reset_metrics()
    clear_secrets()
    yield
    reset_metrics()
    clear_secrets()


@pytest.fixture
def provider() -> ScriptedProvider:
    return ScriptedProvider()


@pytest.fixture
def registry(provider: ScriptedProvider) -> ProviderRegistry:
    return ProviderRegistry(default=provider)


@pytest.fixture
def config() -> StratumConfig:
    """Engine config with fast retries."""
    return StratumConfig.model_validate(
        {
            "engine": {"max_workers": 4, "call_timeout": 5},
            "retry": {"max_attempts": 3, "initial_delay": 0.001, "max_delay": 0.01},
        }
    )


@pytest.fixture
def memory_store() -> MemoryStateStore:
    return MemoryStateStore()


@pytest.fixture
async def sqlite_store(tmp_path: Path) -> AsyncGenerator[SQLiteStateStore, None]:
    store = SQLiteStateStore(tmp_path / "state.db")
    await store.initialize()
    yield store


@pytest.fixture
def web_stack_path() -> Path:
    return FIXTURES / "web_stack.yaml"


@pytest.fixture
def stratum_config_path() -> Path:
    return FIXTURES / "stratum.yaml"
