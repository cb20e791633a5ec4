"""
Stratum Providers - Simulated provider.

In-memory stand-in for a cloud API. Outputs echo the inputs plus a
generated ``id`` and ``arn`` and any computed fields configured per kind,
e.g. ``dnsName: "{id}.elb.local"``. Kinds configured with ``data`` can be
read as data sources. Calls are idempotent: updating or
deleting an unknown id is accepted, so state written by an earlier process
stays usable.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import TYPE_CHECKING, Any

from loguru import logger

from stratum.core.exceptions import ProviderError
from stratum.providers.base import Provider

if TYPE_CHECKING:
    from stratum.config.models import SimulatedKindConfig


class SimulatedProvider(Provider):
    """Fake cloud keeping resources in a dict."""

    name = "simulated"

    def __init__(
        self,
        kinds: dict[str, SimulatedKindConfig] | None = None,
        latency: float = 0.0,
    ) -> None:
        """
        Args:
            kinds: Per-kind immutable fields, replace protection and computed outputs
            latency: Seconds each call sleeps, to make concurrency observable
        """
        self._kinds = dict(kinds or {})
        self._latency = latency
        self.resources: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, str, str | None]] = []

    def immutable_fields(self, kind: str) -> set[str]:
        settings = self._kinds.get(kind)
        return set(settings.immutable_fields) if settings else set()

    def protect_replace(self, kind: str) -> bool:
        settings = self._kinds.get(kind)
        return bool(settings and settings.protect_replace)

    def _outputs(self, kind: str, resource_id: str, attrs: dict[str, Any]) -> dict[str, Any]:
        outputs = {**attrs, "id": resource_id, "arn": f"arn:stratum:{kind}:{resource_id}"}
        settings = self._kinds.get(kind)
        if settings:
            values = {**attrs, "id": resource_id, "kind": kind}
            for field, template in settings.computed.items():
                try:
                    outputs[field] = template.format_map(values)
                except (KeyError, IndexError, ValueError) as e:
                    raise ProviderError(
                        f"Cannot compute output '{field}' of {kind}: {e}",
                        details={"template": template},
                    ) from e
        return outputs

    async def create(self, kind: str, attrs: dict[str, Any]) -> dict[str, Any]:
        if self._latency:
            await asyncio.sleep(self._latency)
        short = kind.rsplit("/", 1)[-1].split(":")[-1].lower() or "res"
        resource_id = f"{short}-{uuid.uuid4().hex[:12]}"
        outputs = self._outputs(kind, resource_id, attrs)
        self.resources[resource_id] = {"kind": kind, "outputs": outputs}
        self.calls.append(("create", kind, resource_id))
        logger.debug(f"Simulated create {kind} -> {resource_id}")
        return outputs

    async def update(self, kind: str, resource_id: str, attrs: dict[str, Any]) -> dict[str, Any]:
        if self._latency:
            await asyncio.sleep(self._latency)
        outputs = self._outputs(kind, resource_id, attrs)
        self.resources[resource_id] = {"kind": kind, "outputs": outputs}
        self.calls.append(("update", kind, resource_id))
        logger.debug(f"Simulated update {kind} {resource_id}")
        return outputs

    async def read(self, kind: str, attrs: dict[str, Any]) -> dict[str, Any]:
        if self._latency:
            await asyncio.sleep(self._latency)
        settings = self._kinds.get(kind)
        if settings is None or settings.data is None:
            raise ProviderError(f"No simulated data source for kind '{kind}'", details={"kind": kind})
        self.calls.append(("read", kind, None))
        logger.debug(f"Simulated read {kind}")
        return {**attrs, **settings.data}

    async def delete(self, kind: str, resource_id: str) -> None:
        if self._latency:
            await asyncio.sleep(self._latency)
        self.resources.pop(resource_id, None)
        self.calls.append(("delete", kind, resource_id))
        logger.debug(f"Simulated delete {kind} {resource_id}")
