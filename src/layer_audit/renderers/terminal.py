"""Terminal renderer for layer-audit output."""

from __future__ import annotations

import io
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from layer_audit.models.audit import AuditOutcome, AuditResult
from layer_audit.renderers.base import BaseRenderer, OutputFormat, RenderContext

OUTCOME_STYLES = {
    AuditOutcome.PASSED: ("PASSED", "bold green"),
    AuditOutcome.TRIVIAL_PASS: ("PASSED (trivial)", "bold green"),
    AuditOutcome.TAMPERED: ("TAMPERED", "bold red"),
    AuditOutcome.NO_DATABASE: ("NO DATABASE", "bold red"),
    AuditOutcome.ERROR: ("ERROR", "bold red"),
}


class TerminalRenderer(BaseRenderer):
    """Renderer for rich terminal output.

    Example:
        renderer = TerminalRenderer()
        renderer.render(audit_result, context)
    """

    def __init__(self, console: Console | None = None) -> None:
        """Initialize the terminal renderer.

        Args:
            console: Rich console to use. Creates a new one if None.
        """
        self._console = console or Console()

    @property
    def format(self) -> OutputFormat:
        """The output format this renderer produces."""
        return OutputFormat.TERMINAL

    def render(self, data: Any, context: RenderContext) -> str:
        """Render data to the terminal.

        Note: This method prints to the console and returns an empty string.
        For capturing output, use Console.capture().
        """
        if isinstance(data, AuditResult):
            self._render_result(data, context)
        else:
            self._console.print(data)
        return ""

    def render_to_file(self, data: Any, context: RenderContext) -> None:
        """Record the terminal output and write it as text, styled if ``context.color``."""
        path = self._require_path(context)
        file_console = Console(file=io.StringIO(), record=True, force_terminal=context.color)
        previous_console = self._console
        self._console = file_console

        try:
            self.render(data, context)
            output = file_console.export_text(styles=context.color)
            path.write_text(output, encoding="utf-8")
        finally:
            self._console = previous_console

    def _render_result(self, result: AuditResult, context: RenderContext) -> None:
        label, style = OUTCOME_STYLES[result.outcome]
        report = result.report

        lines = []
        if report is not None:
            lines.append(f"[bold]Image:[/bold] {report.reference or '-'}")
        lines.append(f"[bold]Status:[/bold] [{style}]{label}[/{style}]")
        if report is not None:
            lines.append(
                f"[bold]Database layer:[/bold] {report.database_layer_index} "
                f"({report.database_layer_digest})"
            )

        self._console.print()
        self._console.print(Panel("\n".join(lines), title="Layer Audit Report"))

        if result.errors:
            self._console.print()
            self._console.print("[bold red]Errors[/bold red]")
            for error in result.errors:
                self._console.print(f"  [red]![/red] {escape(str(error))}")
            return

        if report is None or result.outcome == AuditOutcome.TRIVIAL_PASS:
            return

        self._console.print()
        table = Table(title="Summary", show_header=False)
        table.add_column("Metric", style="bold")
        table.add_column("Count")
        table.add_row("Layers", str(report.layer_count))
        table.add_row("Packages", str(report.baseline.package_count))
        table.add_row("Tracked Files", str(len(report.baseline)))
        table.add_row("Layers Scanned", str(len(report.change_sets)))
        table.add_row(
            "Disallowed",
            f"[red]{len(report.disallowed)}[/red]" if report.disallowed else "[green]0[/green]",
        )
        self._console.print(table)

        if report.disallowed:
            self._console.print()
            table = Table(title="Disallowed Modifications")
            table.add_column("Path")
            table.add_column("Package", style="dim")
            table.add_column("Layer")
            for path, digest in sorted(report.disallowed.items()):
                table.add_row(f"[red]{path}[/red]", report.baseline.owner(path) or "-", digest)
            self._console.print(table)

        if context.verbose and report.change_sets:
            self._console.print()
            table = Table(title="Scanned Layers")
            table.add_column("Layer")
            table.add_column("Touched Paths")
            for change_set in report.change_sets:
                table.add_row(change_set.digest, str(len(change_set.paths)))
            self._console.print(table)
