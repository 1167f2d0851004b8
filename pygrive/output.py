"""Console output formatting for the pygrive CLI."""

import json
import sys
from typing import Any, Optional

from rich.console import Console
from rich.table import Table
from rich.tree import Tree


class OutputFormatter:
    """Writes user-facing messages to the terminal.

    Diagnostics go to the ``logging`` module; this class only renders what
    the user asked for.
    """

    def __init__(
        self,
        json_output: bool = False,
        quiet: bool = False,
        console: Optional[Console] = None,
    ):
        """Initialize output formatter.

        Args:
            json_output: Emit machine readable JSON instead of rich text
            quiet: Suppress informational messages
            console: Optional rich console (stdout by default)
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = console or Console(highlight=False)
        self.err_console = Console(stderr=True, highlight=False)

    def print(self, message: Any = "") -> None:
        """Print a message unconditionally."""
        self.console.print(message)

    def info(self, message: str) -> None:
        """Print an informational message (suppressed when quiet or JSON)."""
        if self.quiet or self.json_output:
            return
        self.console.print(message)

    def success(self, message: str) -> None:
        """Print a success message."""
        if self.quiet or self.json_output:
            return
        self.console.print(f"[green]{message}[/green]")

    def warning(self, message: str) -> None:
        """Print a warning to stderr."""
        self.err_console.print(f"[yellow]Warning:[/yellow] {message}")

    def error(self, message: str) -> None:
        """Print an error to stderr."""
        self.err_console.print(f"[red]Error:[/red] {message}")

    def output_json(self, data: Any) -> None:
        """Write data as JSON to stdout."""
        sys.stdout.write(json.dumps(data, indent=2) + "\n")
        sys.stdout.flush()

    def print_tree(self, tree: Tree) -> None:
        """Render a rich tree."""
        self.console.print(tree)

    def print_summary(self, title: str, rows: list[tuple[str, str]]) -> None:
        """Print a two-column summary table.

        Args:
            title: Table title
            rows: (label, value) pairs
        """
        if self.json_output:
            self.output_json({label: value for label, value in rows})
            return

        table = Table(title=title, show_header=False)
        table.add_column("Field", style="bold")
        table.add_column("Value")
        for label, value in rows:
            table.add_row(label, value)
        self.console.print(table)
