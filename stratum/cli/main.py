"""
Stratum CLI - Main entry point.

Commands:
- plan: show the change set for a stack file
- apply: plan then execute
- destroy: delete every resource recorded in state
- output: show stack outputs from state
- state list / state show: inspect the state store
"""

from __future__ import annotations

import asyncio
import signal
import sys
from pathlib import Path
from typing import Any, NoReturn

import click
from loguru import logger
from rich.markup import escape

from stratum import __version__
from stratum.config import StratumConfig, load_config
from stratum.core.exceptions import StratumError
from stratum.core.metrics import get_metrics_summary
from stratum.executor import ApplyReport, Executor
from stratum.graph import ResourceGraph, build_graph, load_stack
from stratum.graph.references import UNKNOWN, Reference, lookup_field, resolve
from stratum.planner import ChangeSet, Planner
from stratum.providers import ProviderRegistry
from stratum.state import StateStore, open_store
from stratum.ui import ConsoleUI
from stratum.utils.logger import setup_logger

ui = ConsoleUI()

stack_file_option = click.option(
    "--file",
    "-f",
    "stack_file",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Stack file (YAML)",
)


class Context:
    """Objects shared by every command."""

    def __init__(self, config: StratumConfig, verbose: bool = False) -> None:
        self.config = config
        self.verbose = verbose
        self.providers = ProviderRegistry.from_config(config.providers)
        self.store: StateStore = open_store(config.state)

    def planner(self) -> Planner:
        return Planner(self.providers, self.config.engine)

    def executor(self, max_workers: int | None = None) -> Executor:
        return Executor(self.providers, self.store, self.config, max_workers=max_workers)


def _load_graph(stack_file: Path) -> ResourceGraph:
    stack = load_stack(stack_file)
    return build_graph(stack.resources, stack.outputs)


def _fail(error: StratumError) -> NoReturn:
    ui.error(f"Error: {escape(str(error))}")
    sys.exit(1)


async def _run_with_interrupt(executor: Executor, change_set: ChangeSet, graph: ResourceGraph | None) -> ApplyReport:
    """Apply, turning Ctrl+C into a graceful cancel."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, executor.cancel)
        installed = True
    except (NotImplementedError, RuntimeError) as e:
        logger.debug(f"SIGINT handler not installed: {e}")
        installed = False
    try:
        return await executor.apply(change_set, graph)
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


@click.group()
@click.version_option(version=__version__, prog_name="stratum")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: ./stratum.yaml if present)",
)
@click.option(
    "--state",
    "state_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="SQLite state database path",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, state_path: Path | None, verbose: bool) -> None:
    """
    Stratum - Declarative infrastructure provisioning engine.
    """
    try:
        config = load_config(config_path)
        if state_path is not None:
            config.state.backend = "sqlite"
            config.state.path = state_path
        setup_logger(verbose=verbose, config=config.logging)
        ctx.obj = Context(config, verbose=verbose)
    except StratumError as e:
        _fail(e)


@cli.command()
@stack_file_option
@click.option("--show-unchanged", is_flag=True, help="Also list unchanged resources")
@click.pass_obj
def plan(obj: Context, stack_file: Path, show_unchanged: bool) -> None:
    """Show the operations needed to reach the declared stack."""

    async def run() -> ChangeSet:
        graph = _load_graph(stack_file)
        return await obj.planner().plan(graph, obj.store)

    try:
        change_set = asyncio.run(run())
    except StratumError as e:
        _fail(e)

    ui.change_set(change_set, show_unchanged=show_unchanged)


@cli.command()
@stack_file_option
@click.option("--workers", "-w", type=click.IntRange(1, 64), default=None, help="Concurrent provider calls")
@click.option("--show-unchanged", is_flag=True, help="Also list unchanged resources")
@click.pass_obj
def apply(obj: Context, stack_file: Path, workers: int | None, show_unchanged: bool) -> None:
    """Plan, then create, update and delete resources to match the stack."""

    async def run() -> tuple[ChangeSet, ApplyReport]:
        graph = _load_graph(stack_file)
        change_set = await obj.planner().plan(graph, obj.store)
        ui.change_set(change_set, show_unchanged=show_unchanged)
        report = await _run_with_interrupt(obj.executor(workers), change_set, graph)
        return change_set, report

    try:
        _, report = asyncio.run(run())
    except StratumError as e:
        _fail(e)

    ui.report(report)
    if obj.verbose:
        ui.muted(get_metrics_summary())
    ui.outputs(report.outputs)
    sys.exit(report.exit_code)


@cli.command()
@click.option("--workers", "-w", type=click.IntRange(1, 64), default=None, help="Concurrent provider calls")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_obj
def destroy(obj: Context, workers: int | None, yes: bool) -> None:
    """Delete every resource recorded in state, dependents first."""
    try:
        change_set = asyncio.run(obj.planner().plan_destroy(obj.store))
    except StratumError as e:
        _fail(e)

    if not len(change_set):
        ui.muted("Nothing to destroy")
        return

    ui.change_set(change_set)
    if not yes and not click.confirm(f"Delete {len(change_set)} resources?", default=False):
        ui.warning("Destroy cancelled")
        sys.exit(1)

    try:
        report = asyncio.run(_run_with_interrupt(obj.executor(workers), change_set, None))
    except StratumError as e:
        _fail(e)

    ui.report(report)
    if obj.verbose:
        ui.muted(get_metrics_summary())
    sys.exit(report.exit_code)


@cli.command()
@stack_file_option
@click.pass_obj
def output(obj: Context, stack_file: Path) -> None:
    """Show stack outputs computed from recorded state."""

    async def run() -> dict[str, Any]:
        graph = _load_graph(stack_file)
        recorded: dict[str, dict[str, Any]] = {}
        for node_id in graph.nodes:
            record = await obj.store.read(node_id)
            if record is not None:
                recorded[node_id] = record.outputs

        def lookup(reference: Reference) -> Any:
            try:
                return lookup_field(recorded[reference.node_id], reference.field)
            except KeyError:
                return UNKNOWN

        return {name: resolve(value, lookup) for name, value in graph.outputs.items()}

    try:
        outputs = asyncio.run(run())
    except StratumError as e:
        _fail(e)

    ui.outputs(outputs)


@cli.group()
def state() -> None:
    """Inspect the state store."""


@state.command("list")
@click.pass_obj
def state_list(obj: Context) -> None:
    """List recorded resources."""

    async def run() -> list:
        records = []
        for node_id in await obj.store.list_ids():
            record = await obj.store.read(node_id)
            if record is not None:
                records.append(record)
        return records

    try:
        records = asyncio.run(run())
    except StratumError as e:
        _fail(e)

    ui.records(records)


@state.command("show")
@click.argument("node_id")
@click.pass_obj
def state_show(obj: Context, node_id: str) -> None:
    """Show the recorded snapshot of one resource."""
    try:
        record = asyncio.run(obj.store.read(node_id))
    except StratumError as e:
        _fail(e)

    if record is None:
        ui.error(f"No state recorded for '{node_id}'")
        sys.exit(1)
    ui.record(record)


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
