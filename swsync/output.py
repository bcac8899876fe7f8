"""User-facing output formatting."""

import json
import sys
from typing import Any, Optional

from rich.console import Console
from rich.table import Table

from .utils import format_size


class OutputFormatter:
    """Write messages, summaries and JSON results to the terminal.

    Diagnostic tracing goes through :mod:`logging`; this class only
    renders what the user is meant to read.
    """

    def __init__(
        self,
        json_output: bool = False,
        quiet: bool = False,
        console: Optional[Console] = None,
    ):
        self.json_output = json_output
        self.quiet = quiet
        self.console = console or Console(highlight=False)
        self.err_console = Console(stderr=True, highlight=False)

    def _silent(self) -> bool:
        return self.quiet or self.json_output

    def print(self, message: str = "") -> None:
        """Print a plain message."""
        if not self._silent():
            self.console.print(message)

    def info(self, message: str) -> None:
        """Print an informational message."""
        if not self._silent():
            self.console.print(message)

    def success(self, message: str) -> None:
        """Print a success message in green."""
        if not self._silent():
            self.console.print(f"[green]{message}[/green]")

    def warning(self, message: str) -> None:
        """Print a warning; shown even in quiet mode."""
        if not self.json_output:
            self.err_console.print(f"[yellow]{message}[/yellow]")

    def error(self, message: str) -> None:
        """Print an error; always shown."""
        if self.json_output:
            print(json.dumps({"error": message}), file=sys.stderr)
        else:
            self.err_console.print(f"[red]Error:[/red] {message}")

    def progress_message(self, message: str) -> None:
        """Print a dimmed progress line."""
        if not self._silent():
            self.console.print(f"[dim]{message}[/dim]")

    def output_json(self, data: Any) -> None:
        """Print data as JSON regardless of quiet mode."""
        print(json.dumps(data, indent=2, default=str))

    def print_summary(self, title: str, items: list[tuple[str, str]]) -> None:
        """Print a two-column summary table.

        Args:
            title: Table title
            items: (label, value) rows
        """
        if self.json_output:
            self.output_json({label: value for label, value in items})
            return
        if self.quiet:
            return

        table = Table(title=title, show_header=False, title_justify="left")
        table.add_column("Field", style="bold")
        table.add_column("Value")
        for label, value in items:
            table.add_row(label, value)
        self.console.print(table)

    def format_size(self, size_bytes: int) -> str:
        """Format a byte count for display."""
        return format_size(size_bytes)
