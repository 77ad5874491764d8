"""Console output for the command line interface."""

import json
from typing import Any, Optional, Sequence

from rich.console import Console
from rich.table import Table


class OutputFormatter:
    """Prints messages, tables and JSON, honouring --quiet and --json."""

    def __init__(
        self,
        json_output: bool = False,
        quiet: bool = False,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
    ):
        self.json_output = json_output
        self.quiet = quiet
        self.console = console or Console(highlight=False, soft_wrap=True)
        self.err_console = err_console or Console(
            stderr=True, highlight=False, soft_wrap=True
        )

    def print(self, message: str = "") -> None:
        if not self.quiet and not self.json_output:
            self.console.print(message, markup=False)

    def info(self, message: str) -> None:
        if not self.quiet and not self.json_output:
            self.console.print(message, markup=False)

    def success(self, message: str) -> None:
        if not self.quiet and not self.json_output:
            self.console.print(message, style="green", markup=False)

    def warning(self, message: str) -> None:
        if not self.quiet:
            self.err_console.print(message, style="yellow", markup=False)

    def error(self, message: str) -> None:
        self.err_console.print(message, style="bold red", markup=False)

    def output_json(self, data: Any) -> None:
        self.console.print_json(json.dumps(data))

    def output_table(
        self, columns: Sequence[str], rows: Sequence[Sequence[str]], title: str = ""
    ) -> None:
        """Print rows as a table (or as a list of objects in JSON mode)."""
        if self.json_output:
            self.output_json([dict(zip(columns, row)) for row in rows])
            return
        table = Table(title=title or None)
        for column in columns:
            table.add_column(column)
        for row in rows:
            table.add_row(*row)
        self.console.print(table)
