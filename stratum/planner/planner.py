"""
Stratum Planner - Desired graph vs recorded state.

Classifies every node, then orders the entries with Kahn's algorithm:
creates and updates follow their dependencies, deletes follow every node
that depended on them. Data sources with known inputs are read while
planning; every error is raised before the executor makes a single
provider call.
"""

from __future__ import annotations

import asyncio
import heapq
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from loguru import logger

from stratum.config.models import EngineConfig
from stratum.core.exceptions import DanglingReferenceError, PlanError, ProviderError, ReplacePolicyError
from stratum.core.types import NodeStatus, Operation
from stratum.graph.references import (
    UNKNOWN,
    Reference,
    contains_unknown,
    iter_references,
    lookup_field,
    resolve,
    reveal,
)
from stratum.planner.diff import changed_fields
from stratum.planner.models import ChangeSet, ChangeSetEntry
from stratum.utils.logger import log_prefix

if TYPE_CHECKING:
    from stratum.graph.models import ResourceGraph, ResourceNode
    from stratum.providers.registry import ProviderRegistry
    from stratum.state.models import StateRecord
    from stratum.state.store import StateStore


def topological_order(graph: ResourceGraph) -> list[str]:
    """Node ids with dependencies first, ties broken by declaration order."""
    indegree = {node_id: len(graph.dependencies(node_id)) for node_id in graph.nodes}
    ready = [(graph.node(n).index, n) for n, count in indegree.items() if count == 0]
    heapq.heapify(ready)
    order: list[str] = []
    while ready:
        _, node_id = heapq.heappop(ready)
        order.append(node_id)
        for dependent in graph.dependents(node_id):
            indegree[dependent] -= 1
            if indegree[dependent] == 0:
                heapq.heappush(ready, (graph.node(dependent).index, dependent))
    if len(order) != len(graph.nodes):
        raise PlanError("Resource graph is not acyclic")
    return order


class Planner:
    """
    Builds a ChangeSet from a desired graph and a state store.

    Args:
        providers: Registry supplying per-kind immutable fields and replace protection
        config: Engine settings (replace policy)
    """

    def __init__(self, providers: ProviderRegistry, config: EngineConfig | None = None) -> None:
        self.providers = providers
        self.config = config or EngineConfig()

    async def plan(self, graph: ResourceGraph, store: StateStore) -> ChangeSet:
        """
        Plan the operations reconciling ``store`` with ``graph``.

        Raises:
            ProviderNotFoundError: A kind has no provider
            DanglingReferenceError: A reference targets an unknown node or output
            ReplacePolicyError: A protected kind would be replaced under its dependents
            StateCorruptionError: A state record is invalid
            PlanError: A data source read failed or collides with a recorded id
        """
        for node in graph.ordered():
            self.providers.resolve(node.kind)
            for reference in iter_references(node.inputs):
                if reference.node_id not in graph:
                    raise DanglingReferenceError(node.id, reference.node_id, reference.field)

        recorded_ids = await store.list_ids()
        records: dict[str, StateRecord] = {}
        for node_id in dict.fromkeys([*graph.nodes, *recorded_ids]):
            record = await store.read(node_id)
            if record is not None:
                records[node_id] = record

        entries: dict[str, ChangeSetEntry] = {}
        for node_id in topological_order(graph):
            node = graph.node(node_id)
            if node.data:
                entries[node_id] = await self._read(node, entries, records)
            else:
                entries[node_id] = self._classify(node, graph, records.get(node_id), entries, records)

        for node_id in sorted(set(records) - set(graph.nodes)):
            record = records[node_id]
            self.providers.resolve(record.kind)
            entries[node_id] = ChangeSetEntry(
                node_id=node_id,
                kind=record.kind,
                operation=Operation.DELETE,
                reason="no longer declared",
                record=record,
            )

        for node_id, entry in entries.items():
            if entry.declared:
                entry.dependencies = graph.dependencies(node_id)
        _add_delete_dependencies(entries, records)

        change_set = ChangeSet(_order(entries, graph))
        for node in graph.nodes.values():
            node.status = NodeStatus.PLANNED

        counts = change_set.summary()
        logger.info(
            f"{log_prefix('📋')} Plan: {counts[Operation.CREATE]} to create, "
            f"{counts[Operation.UPDATE]} to update, {counts[Operation.REPLACE]} to replace, "
            f"{counts[Operation.DELETE]} to delete, {counts[Operation.NO_OP]} unchanged"
        )
        return change_set

    async def plan_destroy(self, store: StateStore) -> ChangeSet:
        """Plan deletion of every recorded node, dependents first."""
        records: dict[str, StateRecord] = {}
        for node_id in await store.list_ids():
            record = await store.read(node_id)
            if record is not None:
                self.providers.resolve(record.kind)
                records[node_id] = record

        entries = {
            node_id: ChangeSetEntry(
                node_id=node_id,
                kind=record.kind,
                operation=Operation.DELETE,
                reason="destroy",
                record=record,
            )
            for node_id, record in sorted(records.items())
        }
        _add_delete_dependencies(entries, records)
        change_set = ChangeSet(_order(entries, None))
        logger.info(f"{log_prefix('📋')} Destroy plan: {len(change_set)} to delete")
        return change_set

    def _lookup(
        self,
        node: ResourceNode,
        planned: dict[str, ChangeSetEntry],
        records: dict[str, StateRecord],
    ) -> Callable[[Reference], Any]:
        """
        Resolve references against what is known at plan time.

        Outputs of a node being created or replaced are unknown. An update
        keeps ``id`` and the outputs echoing unchanged inputs; changed inputs
        and other computed outputs are unknown until it runs. Data sources
        resolve from their plan-time read.
        """

        def lookup(reference: Reference) -> Any:
            upstream = planned[reference.node_id]
            if upstream.operation is Operation.READ:
                outputs = upstream.outputs
            elif upstream.operation is Operation.NO_OP:
                outputs = records[reference.node_id].outputs
            elif upstream.operation is Operation.UPDATE and _kept_by_update(upstream, reference.field):
                outputs = records[reference.node_id].outputs
            else:
                return UNKNOWN
            if outputs is None:
                return UNKNOWN
            try:
                return lookup_field(outputs, reference.field)
            except KeyError:
                raise DanglingReferenceError(node.id, reference.node_id, reference.field) from None

        return lookup

    async def _read(
        self,
        node: ResourceNode,
        planned: dict[str, ChangeSetEntry],
        records: dict[str, StateRecord],
    ) -> ChangeSetEntry:
        """Read a data source now if its inputs are known, else defer to apply."""
        if node.id in records:
            raise PlanError(
                f"Data source {node.id} collides with a recorded resource",
                {"node_id": node.id},
            )
        inputs = resolve(node.inputs, self._lookup(node, planned, records))
        entry = ChangeSetEntry(node_id=node.id, kind=node.kind, operation=Operation.READ, inputs=inputs)
        if contains_unknown(inputs):
            entry.reason = "inputs known after apply"
            return entry

        provider = self.providers.resolve(node.kind)
        try:
            entry.outputs = await asyncio.wait_for(
                provider.read(node.kind, reveal(inputs)), timeout=self.config.call_timeout
            )
        except asyncio.TimeoutError:
            raise PlanError(
                f"Reading data source {node.id} timed out after {self.config.call_timeout}s",
                {"node_id": node.id},
            ) from None
        except ProviderError as e:
            raise PlanError(f"Reading data source {node.id} failed: {e.message}", {"node_id": node.id}) from e
        entry.reason = "read at plan time"
        logger.debug(f"{log_prefix('🔎')} Read data source {node.id}")
        return entry

    def _classify(
        self,
        node: ResourceNode,
        graph: ResourceGraph,
        record: StateRecord | None,
        planned: dict[str, ChangeSetEntry],
        records: dict[str, StateRecord],
    ) -> ChangeSetEntry:
        inputs = resolve(node.inputs, self._lookup(node, planned, records))
        entry = ChangeSetEntry(node_id=node.id, kind=node.kind, operation=Operation.NO_OP, inputs=inputs, record=record)

        if record is None:
            entry.operation = Operation.CREATE
            entry.reason = "not in state"
            return entry

        if record.kind != node.kind:
            entry.operation = Operation.REPLACE
            entry.changed_fields = ["kind"]
            entry.reason = f"kind changed from {record.kind}"
        else:
            entry.changed_fields = changed_fields(inputs, record.inputs)
            if not entry.changed_fields:
                return entry
            forcing = sorted(set(entry.changed_fields) & self.providers.resolve(node.kind).immutable_fields(node.kind))
            if forcing:
                entry.operation = Operation.REPLACE
                entry.reason = f"immutable fields changed: {', '.join(forcing)}"
            else:
                entry.operation = Operation.UPDATE
                entry.reason = f"changed: {', '.join(entry.changed_fields)}"

        if entry.operation is Operation.REPLACE and self.config.replace_policy == "enforce":
            dependents = graph.dependents(node.id)
            if dependents and self.providers.resolve(node.kind).protect_replace(node.kind):
                raise ReplacePolicyError(node.id, node.kind, dependents)
        return entry


def _add_delete_dependencies(entries: dict[str, ChangeSetEntry], records: dict[str, StateRecord]) -> None:
    """A delete waits for every planned node that last depended on it."""
    for node_id, record in sorted(records.items()):
        if node_id not in entries:
            continue
        for target in record.dependencies:
            target_entry = entries.get(target)
            if target_entry is None or target_entry.operation is not Operation.DELETE:
                continue
            if node_id not in target_entry.dependencies:
                target_entry.dependencies.append(node_id)


def _order(entries: dict[str, ChangeSetEntry], graph: ResourceGraph | None) -> list[ChangeSetEntry]:
    """Kahn's algorithm; declared nodes by declaration order, then deletes by id."""

    def priority(node_id: str) -> tuple[int, int, str]:
        if graph is not None and node_id in graph:
            return (0, graph.node(node_id).index, node_id)
        return (1, 0, node_id)

    indegree = {node_id: len(entry.dependencies) for node_id, entry in entries.items()}
    dependents: dict[str, list[str]] = {node_id: [] for node_id in entries}
    for node_id, entry in entries.items():
        for dep in entry.dependencies:
            dependents[dep].append(node_id)

    ready = [(priority(n), n) for n, count in indegree.items() if count == 0]
    heapq.heapify(ready)
    ordered: list[ChangeSetEntry] = []
    while ready:
        _, node_id = heapq.heappop(ready)
        entry = entries[node_id]
        entry.rank = 1 + max((entries[d].rank for d in entry.dependencies), default=-1)
        ordered.append(entry)
        for dependent in dependents[node_id]:
            indegree[dependent] -= 1
            if indegree[dependent] == 0:
                heapq.heappush(ready, (priority(dependent), dependent))

    if len(ordered) != len(entries):
        stuck = sorted(n for n, count in indegree.items() if count > 0)
        raise PlanError(
            f"Recorded dependencies form a cycle: {', '.join(stuck)}",
            {"node_ids": stuck},
        )
    return ordered


def _kept_by_update(entry: ChangeSetEntry, field: str) -> bool:
    """Whether an output of an updated node keeps its recorded value."""
    head = field.split(".", 1)[0]
    if head == "id":
        return True
    return entry.record is not None and head in entry.record.inputs and head not in entry.changed_fields
