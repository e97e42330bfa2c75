"""Output and logging utilities using Rich.

Provides:
- Colored, formatted console output
- Verbosity level control
- SQL echo in debug mode
- Structured summaries of a reset
"""

from enum import IntEnum
from typing import Any

from rich.console import Console as RichConsole
from rich.panel import Panel
from rich.syntax import Syntax


class Verbosity(IntEnum):
    """Output verbosity levels."""
    QUIET = 0    # Errors only
    NORMAL = 1   # Standard output
    VERBOSE = 2  # Additional details
    DEBUG = 3    # Everything, including SQL


class Console:
    """Centralized console output with Rich integration.

    Warnings and errors go to stderr so they survive pytest's stdout
    capture in ``-s``-less runs.
    """

    def __init__(self) -> None:
        self._console = RichConsole(highlight=False)
        self._err_console = RichConsole(stderr=True, highlight=False)
        self.verbosity = Verbosity.NORMAL
        self.no_color = False

    def configure(
        self,
        verbosity: int = 1,
        no_color: bool = False,
    ) -> None:
        """Configure console output settings."""
        self.verbosity = Verbosity(max(min(verbosity, Verbosity.DEBUG), Verbosity.QUIET))
        self.no_color = no_color
        if no_color:
            self._console = RichConsole(highlight=False, no_color=True)
            self._err_console = RichConsole(stderr=True, highlight=False, no_color=True)

    # Basic output methods
    def info(self, message: str) -> None:
        """Print info message (green)."""
        if self.verbosity >= Verbosity.NORMAL:
            self._console.print(f"[green][INFO][/green] {message}")

    def success(self, message: str) -> None:
        """Print success message (green checkmark)."""
        if self.verbosity >= Verbosity.NORMAL:
            self._console.print(f"[green][OK][/green] {message}")

    def warn(self, message: str) -> None:
        """Print warning message (yellow) to stderr."""
        self._err_console.print(f"[yellow][WARN][/yellow] {message}")

    def error(self, message: str) -> None:
        """Print error message (red) to stderr."""
        self._err_console.print(f"[red][ERROR][/red] {message}")

    def debug(self, message: str) -> None:
        """Print debug message (cyan) - only in debug mode."""
        if self.verbosity >= Verbosity.DEBUG:
            self._console.print(f"[cyan][DEBUG][/cyan] {message}")

    def verbose(self, message: str) -> None:
        """Print verbose message (dim) - only in verbose mode."""
        if self.verbosity >= Verbosity.VERBOSE:
            self._console.print(f"[dim]{message}[/dim]")

    def step(self, message: str) -> None:
        """Print a step indicator (blue arrow)."""
        if self.verbosity >= Verbosity.NORMAL:
            self._console.print(f"[blue]->[/blue] {message}")

    def sql(self, sql: str, title: str = "SQL") -> None:
        """Print formatted SQL code - only in debug mode."""
        if self.verbosity >= Verbosity.DEBUG:
            syntax = Syntax(sql.strip(), "sql", theme="monokai", line_numbers=False)
            self._console.print(Panel(syntax, title=title, border_style="green"))

    def summary(self, title: str, items: dict[str, Any]) -> None:
        """Print a key-value panel (verbose mode). None renders as "-"."""
        if self.verbosity < Verbosity.VERBOSE:
            return

        content_lines = []
        for key, value in items.items():
            if value is None:
                value_str = "[dim]-[/dim]"
            elif isinstance(value, bool):
                value_str = "[green]Yes[/green]" if value else "[yellow]No[/yellow]"
            else:
                value_str = str(value)
            content_lines.append(f"[bold]{key}:[/bold] {value_str}")

        self._console.print(Panel("\n".join(content_lines), title=title, border_style="blue"))


# Global console instance
console = Console()
