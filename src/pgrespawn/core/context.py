"""Execution context for checkpoint operations.

The ExecutionContext holds the options and output settings that affect
how a reset runs. It is passed to the executor and every service.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from pgrespawn.core.config import CheckpointOptions, RespawnSettings, load_options
from pgrespawn.core.output import Console, console, Verbosity


@dataclass
class ExecutionContext:
    """Execution context passed to the executor and services.

    Attributes:
        options: Checkpoint options
        verbosity: Output verbosity level (0-3)
        no_color: If True, disable colored output
    """

    options: CheckpointOptions = field(default_factory=CheckpointOptions)
    verbosity: int = Verbosity.NORMAL
    no_color: bool = False

    _console: Console = field(default_factory=lambda: console, repr=False)

    def __post_init__(self) -> None:
        """Configure console after initialization."""
        self._console.configure(
            verbosity=self.verbosity,
            no_color=self.no_color,
        )

    @property
    def console(self) -> Console:
        """Get console for output."""
        return self._console

    @property
    def command_timeout(self) -> Optional[int]:
        """Statement timeout in seconds, if configured."""
        return self.options.command_timeout

    @property
    def is_verbose(self) -> bool:
        """Check if verbose output is enabled."""
        return self.verbosity >= Verbosity.VERBOSE

    @property
    def is_debug(self) -> bool:
        """Check if debug output is enabled."""
        return self.verbosity >= Verbosity.DEBUG

    def with_options(self, options: CheckpointOptions) -> "ExecutionContext":
        """Create a new context with different options."""
        return ExecutionContext(
            options=options,
            verbosity=self.verbosity,
            no_color=self.no_color,
            _console=self._console,
        )


def create_context(
    options: Optional[CheckpointOptions] = None,
    *,
    config: Optional[Path] = None,
    verbose: Optional[int] = None,
    quiet: bool = False,
    no_color: bool = False,
) -> ExecutionContext:
    """Create an execution context.

    Options come from ``options`` if given, otherwise from the options
    file and PGRESPAWN_* environment. Verbosity defaults to
    PGRESPAWN_VERBOSITY.

    Args:
        options: Pre-built options
        config: Path to options file
        verbose: Verbosity level (0-3)
        quiet: Suppress non-essential output
        no_color: Disable colored output

    Returns:
        Configured execution context
    """
    settings = RespawnSettings()
    if options is None:
        options = load_options(config, settings=settings)

    if quiet:
        verbosity = Verbosity.QUIET
    elif verbose is not None:
        verbosity = min(max(verbose, Verbosity.QUIET), Verbosity.DEBUG)
    else:
        verbosity = min(max(settings.verbosity, Verbosity.QUIET), Verbosity.DEBUG)

    return ExecutionContext(
        options=options,
        verbosity=verbosity,
        no_color=no_color,
    )
