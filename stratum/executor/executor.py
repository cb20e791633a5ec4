"""
Stratum Executor - Concurrent change-set application.

A fixed pool of asyncio workers drains a ready queue. Each entry carries a
counter of unfinished predecessors; when an entry completes, its
dependents' counters are decremented under a lock and the ones reaching
zero are queued. Workers only suspend on provider calls and backoff
sleeps.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any

from loguru import logger

from stratum.config.models import StratumConfig
from stratum.core.exceptions import (
    ExecutionError,
    ProviderTimeoutError,
    ReferenceResolutionError,
)
from stratum.core.metrics import timing, track_inflight, track_operation
from stratum.core.resilience import RetryPolicy, call_with_retry
from stratum.core.types import NodeStatus, Operation
from stratum.executor.report import ApplyReport, NodeResult
from stratum.graph.references import (
    UNKNOWN,
    Reference,
    Secret,
    contains_unknown,
    lookup_field,
    resolve,
    reveal,
    to_snapshot,
)
from stratum.planner.diff import changed_fields
from stratum.state.models import StateRecord
from stratum.utils.logger import log_prefix

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from stratum.graph.models import ResourceGraph
    from stratum.planner.models import ChangeSet, ChangeSetEntry
    from stratum.providers.base import Provider
    from stratum.providers.registry import ProviderRegistry
    from stratum.state.store import StateStore

CANCELLED = "cancelled"


def _collect_secrets(value: Any, found: dict[str, Secret]) -> dict[str, Secret]:
    if isinstance(value, Secret):
        found[value.reveal()] = value
    elif isinstance(value, dict):
        for item in value.values():
            _collect_secrets(item, found)
    elif isinstance(value, (list, tuple)):
        for item in value:
            _collect_secrets(item, found)
    return found


def _wrap_secrets(value: Any, secrets: dict[str, Secret]) -> Any:
    """Re-wrap provider outputs that echo a secret input."""
    if isinstance(value, str) and value in secrets:
        return secrets[value]
    if isinstance(value, dict):
        return {k: _wrap_secrets(v, secrets) for k, v in value.items()}
    if isinstance(value, list):
        return [_wrap_secrets(v, secrets) for v in value]
    return value


class _Run:
    """Mutable bookkeeping for a single apply."""

    def __init__(self, change_set: ChangeSet, graph: ResourceGraph | None) -> None:
        self.graph = graph
        self.entries = {entry.node_id: entry for entry in change_set}
        self.dependents = change_set.dependents()
        self.waiting = {entry.node_id: len(entry.dependencies) for entry in change_set}
        self.results = {
            entry.node_id: NodeResult(entry.node_id, entry.kind, entry.operation, status=NodeStatus.PLANNED)
            for entry in change_set
        }
        self.outputs: dict[str, dict[str, Any]] = {}
        self.unfinished = len(self.entries)
        self.queue: asyncio.Queue[str | None] = asyncio.Queue()
        self.lock = asyncio.Lock()
        self.done = asyncio.Event()
        if not self.entries:
            self.done.set()

    def is_terminal(self, node_id: str) -> bool:
        return self.results[node_id].status.is_terminal


class Executor:
    """
    Applies a ChangeSet against providers and records results in the state store.

    Args:
        providers: Registry resolving kinds to providers
        store: State store receiving one write per completed node
        config: Engine and retry settings
        max_workers: Overrides ``config.engine.max_workers``
    """

    def __init__(
        self,
        providers: ProviderRegistry,
        store: StateStore,
        config: StratumConfig | None = None,
        max_workers: int | None = None,
    ) -> None:
        self.providers = providers
        self.store = store
        self.config = config or StratumConfig()
        self.max_workers = max_workers or self.config.engine.max_workers
        self.call_timeout = float(self.config.engine.call_timeout)
        self.retry_policy = RetryPolicy(
            max_attempts=self.config.retry.max_attempts,
            initial_delay=self.config.retry.initial_delay,
            max_delay=self.config.retry.max_delay,
            exponential_base=self.config.retry.exponential_base,
        )
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Stop dispatching new entries and retrying failed calls; in-flight calls finish."""
        if not self._cancelled:
            logger.warning(f"{log_prefix('🛑')} Cancellation requested, waiting for in-flight operations")
        self._cancelled = True

    async def apply(self, change_set: ChangeSet, graph: ResourceGraph | None = None) -> ApplyReport:
        """
        Execute every entry of ``change_set`` respecting its dependencies.

        ``graph`` supplies the unresolved inputs of declared nodes and the
        stack outputs; it may be omitted for delete-only change sets.

        Returns:
            ApplyReport with one result per entry
        """
        if graph is None and any(entry.declared for entry in change_set):
            raise ExecutionError("A resource graph is required to apply declared resources")

        self._cancelled = False
        run = _Run(change_set, graph)
        start = time.monotonic()
        logger.info(
            f"{log_prefix('🚀')} Applying {len(change_set)} entries with {self.max_workers} workers"
        )

        for entry in change_set:
            if run.waiting[entry.node_id] == 0:
                run.queue.put_nowait(entry.node_id)

        workers = [
            asyncio.create_task(self._worker(run, graph), name=f"stratum-worker-{i}")
            for i in range(self.max_workers)
        ]
        try:
            await run.done.wait()
        finally:
            for _ in workers:
                run.queue.put_nowait(None)
            await asyncio.gather(*workers)

        report = ApplyReport(
            results={node_id: run.results[node_id] for node_id in change_set.order},
            outputs=self._stack_outputs(run, graph),
            cancelled=self._cancelled,
            duration=time.monotonic() - start,
        )
        counts = report.summary()
        logger.info(
            f"{log_prefix('✅' if report.success else '❌')} Apply finished in {report.duration:.2f}s: "
            f"{counts['applied']} applied, {counts['failed']} failed, {counts['skipped']} skipped"
        )
        return report

    async def _worker(self, run: _Run, graph: ResourceGraph | None) -> None:
        while True:
            node_id = await run.queue.get()
            if node_id is None:
                return
            if run.is_terminal(node_id):
                continue
            if self._cancelled:
                async with run.lock:
                    self._skip(run, node_id, CANCELLED)
                    self._skip_downstream(run, node_id, CANCELLED)
                continue

            entry = run.entries[node_id]
            succeeded = await self._execute(run, entry, graph)
            async with run.lock:
                if succeeded:
                    self._finish(run, node_id)
                    for dependent in run.dependents[node_id]:
                        run.waiting[dependent] -= 1
                        if run.waiting[dependent] == 0 and not run.is_terminal(dependent):
                            run.queue.put_nowait(dependent)
                else:
                    self._finish(run, node_id)
                    self._skip_downstream(run, node_id, f"dependency '{node_id}' failed")

    def _finish(self, run: _Run, node_id: str) -> None:
        run.unfinished -= 1
        if run.unfinished == 0:
            run.done.set()

    def _skip(self, run: _Run, node_id: str, reason: str) -> None:
        result = run.results[node_id]
        if result.status.is_terminal:
            return
        result.status = NodeStatus.SKIPPED
        result.reason = reason
        if run.graph is not None and run.entries[node_id].declared and node_id in run.graph:
            run.graph.node(node_id).status = NodeStatus.SKIPPED
        logger.info(f"{log_prefix('⏭️')} Skipped {node_id}: {reason}")
        self._finish(run, node_id)

    def _skip_downstream(self, run: _Run, node_id: str, reason: str) -> None:
        stack = list(run.dependents[node_id])
        while stack:
            current = stack.pop()
            if run.is_terminal(current):
                continue
            self._skip(run, current, reason)
            stack.extend(run.dependents[current])

    async def _execute(self, run: _Run, entry: ChangeSetEntry, graph: ResourceGraph | None) -> bool:
        """Run one entry; the result is recorded in ``run.results``."""
        result = run.results[entry.node_id]
        result.status = NodeStatus.APPLYING
        node = graph.node(entry.node_id) if graph is not None and entry.declared else None
        if node is not None:
            node.status = NodeStatus.APPLYING

        with track_inflight(), timing(str(entry.operation), node_id=entry.node_id) as timer:
            try:
                outputs = await self._dispatch(run, entry, result, graph)
            except Exception as e:
                result.status = NodeStatus.FAILED
                result.error_kind = type(e).__name__
                result.error = str(e)
                logger.error(f"{log_prefix('❌')} {entry.operation} {entry.node_id} failed: {e}")
            else:
                result.status = NodeStatus.APPLIED
                if outputs is not None:
                    run.outputs[entry.node_id] = outputs
                    result.outputs = outputs
                logger.info(f"{log_prefix('✅')} {entry.operation} {entry.node_id} ({entry.kind})")
        result.duration = timer.duration

        if result.attempts or entry.operation.mutates:
            track_operation(entry.kind, str(entry.operation), result.duration, str(result.status))
        if node is not None:
            node.status = result.status
            if result.ok:
                node.outputs = result.outputs
        return result.ok

    async def _dispatch(
        self,
        run: _Run,
        entry: ChangeSetEntry,
        result: NodeResult,
        graph: ResourceGraph | None,
    ) -> dict[str, Any] | None:
        record = entry.record
        provider = self.providers.resolve(entry.kind)

        if entry.operation is Operation.DELETE:
            await self._delete(provider, entry, record, result)
            await self.store.delete(entry.node_id)
            return None

        assert graph is not None
        inputs = self._resolve_inputs(run, entry.node_id, graph)
        dependencies = graph.dependencies(entry.node_id)

        if entry.operation is Operation.NO_OP:
            assert record is not None
            return await self._keep(entry, record, inputs, dependencies)

        if entry.operation is Operation.READ:
            outputs = entry.outputs
            if outputs is None:
                attrs = reveal(inputs)
                outputs = await self._call(provider, "read", entry, result, lambda: provider.read(entry.kind, attrs))
            return _wrap_secrets(dict(outputs or {}), _collect_secrets(inputs, {}))

        if entry.operation is Operation.UPDATE and contains_unknown(entry.inputs):
            assert record is not None
            if not changed_fields(inputs, record.inputs):
                result.reason = "unchanged once references resolved"
                logger.debug(f"{log_prefix('⏭️')} {entry.node_id} {result.reason}")
                return await self._keep(entry, record, inputs, dependencies)

        attrs = reveal(inputs)
        if entry.operation is Operation.CREATE:
            outputs = await self._call(provider, "create", entry, result, lambda: provider.create(entry.kind, attrs))
        elif entry.operation is Operation.UPDATE:
            assert record is not None
            resource_id = self._resource_id(entry, record)
            outputs = await self._call(
                provider, "update", entry, result, lambda: provider.update(entry.kind, resource_id, attrs)
            )
        else:
            await self._delete(self.providers.resolve(record.kind) if record else provider, entry, record, result)
            try:
                outputs = await self._call(
                    provider, "create", entry, result, lambda: provider.create(entry.kind, attrs)
                )
            except Exception:
                await self.store.delete(entry.node_id)
                raise

        outputs = _wrap_secrets(dict(outputs or {}), _collect_secrets(inputs, {}))
        await self.store.write(
            entry.node_id,
            StateRecord(
                node_id=entry.node_id,
                kind=entry.kind,
                inputs=to_snapshot(inputs),
                outputs=to_snapshot(outputs),
                dependencies=dependencies,
                version=record.version + 1 if record else 1,
            ),
        )
        return outputs

    async def _keep(
        self,
        entry: ChangeSetEntry,
        record: StateRecord,
        inputs: dict[str, Any],
        dependencies: list[str],
    ) -> dict[str, Any]:
        """Leave the resource untouched; only refresh recorded dependencies."""
        if record.dependencies != dependencies:
            await self.store.write(entry.node_id, record.model_copy(update={"dependencies": dependencies}))
        return _wrap_secrets(record.outputs, _collect_secrets(inputs, {}))

    async def _delete(
        self,
        provider: Provider,
        entry: ChangeSetEntry,
        record: StateRecord | None,
        result: NodeResult,
    ) -> None:
        if record is None:
            return
        resource_id = record.resource_id
        if resource_id is None:
            logger.warning(f"{log_prefix('⚠️')} {entry.node_id} has no recorded id, removing from state only")
            return
        await self._call(provider, "delete", entry, result, lambda: provider.delete(record.kind, resource_id))

    @staticmethod
    def _resource_id(entry: ChangeSetEntry, record: StateRecord) -> str:
        resource_id = record.resource_id
        if resource_id is None:
            raise ExecutionError(
                f"Cannot update {entry.node_id}: state record has no 'id' output",
                {"node_id": entry.node_id},
            )
        return resource_id

    def _resolve_inputs(self, run: _Run, node_id: str, graph: ResourceGraph) -> dict[str, Any]:
        def lookup(reference: Reference) -> Any:
            upstream = run.outputs.get(reference.node_id)
            if upstream is None:
                raise ReferenceResolutionError(node_id, reference.node_id, reference.field)
            try:
                return lookup_field(upstream, reference.field)
            except KeyError:
                raise ReferenceResolutionError(node_id, reference.node_id, reference.field) from None

        return resolve(graph.node(node_id).inputs, lookup)

    async def _call(
        self,
        provider: Provider,
        operation: str,
        entry: ChangeSetEntry,
        result: NodeResult,
        func: Callable[[], Awaitable[Any]],
    ) -> Any:
        """One provider call with timeout and retry; attempts add to ``result``."""

        async def attempt() -> Any:
            try:
                return await asyncio.wait_for(func(), timeout=self.call_timeout)
            except asyncio.TimeoutError:
                raise ProviderTimeoutError(operation, entry.node_id, self.call_timeout) from None

        def on_attempt(_: int) -> None:
            result.attempts += 1

        outcome = await call_with_retry(
            attempt,
            self.retry_policy,
            lambda e: isinstance(e, ProviderTimeoutError) or provider.is_retryable(e),
            name=f"{operation} {entry.node_id}",
            should_stop=lambda: self._cancelled,
            on_attempt=on_attempt,
        )
        return outcome.value

    def _stack_outputs(self, run: _Run, graph: ResourceGraph | None) -> dict[str, Any]:
        if graph is None or not graph.outputs:
            return {}

        def lookup(reference: Reference) -> Any:
            upstream = run.outputs.get(reference.node_id)
            if upstream is None:
                return UNKNOWN
            try:
                return lookup_field(upstream, reference.field)
            except KeyError:
                logger.warning(f"{log_prefix('⚠️')} Output field {reference} not found")
                return UNKNOWN

        return {name: resolve(value, lookup) for name, value in graph.outputs.items()}
