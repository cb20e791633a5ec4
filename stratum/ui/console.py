"""
Stratum UI - Console implementation.

Rich-based rendering of change sets, apply reports and stack outputs.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme

from stratum.core.types import NodeStatus, Operation
from stratum.graph.references import to_display
from stratum.utils.security import is_sensitive_key

if TYPE_CHECKING:
    from stratum.executor.report import ApplyReport
    from stratum.planner.models import ChangeSet
    from stratum.state.models import StateRecord

# Custom theme
STRATUM_THEME = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "red bold",
        "success": "green",
        "muted": "dim",
        "highlight": "magenta",
    }
)

OPERATION_STYLES = {
    Operation.CREATE: "green",
    Operation.UPDATE: "yellow",
    Operation.DELETE: "red",
    Operation.REPLACE: "magenta",
    Operation.NO_OP: "dim",
    Operation.READ: "cyan",
}

STATUS_ICONS = {
    NodeStatus.APPLIED: "[green]✅[/green]",
    NodeStatus.FAILED: "[red]❌[/red]",
    NodeStatus.SKIPPED: "[dim]⏭️[/dim]",
}


def _format_value(value: Any) -> str:
    shown = to_display(value)
    if isinstance(shown, str):
        return shown
    return json.dumps(shown, default=str)


class ConsoleUI:
    """
    Console user interface.

    Provides rich formatting for output.
    """

    def __init__(self, console: Console | None = None, theme: Theme | None = None) -> None:
        """Initialize console."""
        self.console = console or Console(theme=theme or STRATUM_THEME)

    def print(self, *args: Any, **kwargs: Any) -> None:
        """Print to console."""
        self.console.print(*args, **kwargs)

    def panel(self, content: str, title: str | None = None, style: str = "info") -> None:
        """Display a panel."""
        self.console.print(Panel(content, title=title, border_style=style))

    def success(self, message: str) -> None:
        self.console.print(f"[success]{message}[/success]")

    def error(self, message: str) -> None:
        self.console.print(f"[error]{message}[/error]")

    def warning(self, message: str) -> None:
        self.console.print(f"[warning]{message}[/warning]")

    def info(self, message: str) -> None:
        self.console.print(f"[info]{message}[/info]")

    def muted(self, message: str) -> None:
        self.console.print(f"[muted]{message}[/muted]")

    def newline(self) -> None:
        self.console.print()

    def table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: str | None = None,
    ) -> None:
        """Display a table."""
        table = Table(title=title, show_header=True, header_style="bold")

        for header in headers:
            table.add_column(header)

        for row in rows:
            table.add_row(*row)

        self.console.print(table)

    def change_set(self, change_set: ChangeSet, show_unchanged: bool = False) -> None:
        """Display planned operations in execution order."""
        table = Table(title="Plan", show_header=True, header_style="bold")
        table.add_column("", width=3)
        table.add_column("Resource")
        table.add_column("Kind")
        table.add_column("Operation")
        table.add_column("Rank", justify="right")
        table.add_column("Details", overflow="fold")

        for entry in change_set:
            if not show_unchanged and (
                entry.operation is Operation.NO_OP
                or (entry.operation is Operation.READ and entry.outputs is not None)
            ):
                continue
            style = OPERATION_STYLES[entry.operation]
            details = entry.reason
            if entry.changed_fields and entry.operation is Operation.UPDATE:
                details = ", ".join(
                    f"{name}=(sensitive)"
                    if is_sensitive_key(name)
                    else f"{name}={_format_value(entry.inputs.get(name))}"
                    for name in entry.changed_fields
                )
            table.add_row(
                f"[{style}]{entry.operation.symbol}[/{style}]",
                entry.node_id,
                entry.kind,
                f"[{style}]{entry.operation}[/{style}]",
                str(entry.rank),
                escape(details),
            )

        self.console.print(table)
        counts = change_set.summary()
        self.console.print(
            f"Plan: [green]{counts[Operation.CREATE]} to create[/green], "
            f"[yellow]{counts[Operation.UPDATE]} to update[/yellow], "
            f"[magenta]{counts[Operation.REPLACE]} to replace[/magenta], "
            f"[red]{counts[Operation.DELETE]} to delete[/red], "
            f"[dim]{counts[Operation.NO_OP]} unchanged[/dim]"
        )

    def report(self, report: ApplyReport) -> None:
        """Display per-node apply results."""
        table = Table(title="Apply", show_header=True, header_style="bold")
        table.add_column("", width=3)
        table.add_column("Resource")
        table.add_column("Operation")
        table.add_column("Attempts", justify="right")
        table.add_column("Duration", justify="right")
        table.add_column("Details", overflow="fold")

        for result in report:
            details = result.error or result.reason
            if result.error_kind:
                details = f"{result.error_kind}: {details}"
            table.add_row(
                STATUS_ICONS.get(result.status, "❓"),
                result.node_id,
                str(result.operation),
                str(result.attempts),
                f"{result.duration:.2f}s",
                escape(details),
            )

        self.console.print(table)
        counts = report.summary()
        style = "success" if report.success else "error"
        suffix = " (cancelled)" if report.cancelled else ""
        self.console.print(
            f"[{style}]Apply complete{suffix}: {counts['applied']} applied, "
            f"{counts['failed']} failed, {counts['skipped']} skipped[/{style}]"
        )

    def outputs(self, outputs: dict[str, Any]) -> None:
        """Display stack outputs."""
        if not outputs:
            self.muted("No outputs")
            return
        self.table(
            ["Output", "Value"],
            [[name, _format_value(value)] for name, value in outputs.items()],
            title="Outputs",
        )

    def records(self, records: list[StateRecord]) -> None:
        """Display a summary of state records."""
        if not records:
            self.muted("State is empty")
            return
        self.table(
            ["Resource", "Kind", "Id", "Version"],
            [
                [record.node_id, record.kind, record.resource_id or "-", str(record.version)]
                for record in records
            ],
            title="State",
        )

    def record(self, record: StateRecord) -> None:
        """Display one state record as JSON."""
        self.panel(
            json.dumps(record.to_document(), indent=2, sort_keys=True),
            title=f"{record.node_id} ({record.kind})",
        )
