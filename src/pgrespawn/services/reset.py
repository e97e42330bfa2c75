"""Reset engine interface.

The row-level reset (emptying tables in foreign-key order) is done by
an engine supplied by the caller. The checkpoint hands it the scope
options untouched and a live connection to the target database.
"""

from dataclasses import dataclass
from typing import Callable, Optional, Protocol, runtime_checkable

import psycopg

from pgrespawn.core.config import CheckpointOptions, TableRef


@dataclass(frozen=True)
class ResetScope:
    """What the reset engine should (and should not) touch."""
    tables_to_ignore: tuple[TableRef, ...] = ()
    schemas_to_include: tuple[str, ...] = ()
    schemas_to_exclude: tuple[str, ...] = ()
    command_timeout: Optional[int] = None

    @classmethod
    def from_options(cls, options: CheckpointOptions) -> "ResetScope":
        return cls(
            tables_to_ignore=tuple(options.tables_to_ignore),
            schemas_to_include=tuple(options.schemas_to_include),
            schemas_to_exclude=tuple(options.schemas_to_exclude),
            command_timeout=options.command_timeout,
        )


@runtime_checkable
class ResetEngine(Protocol):
    """Restores a database to its empty/seeded state via row deletion."""

    def reset(self, connection: psycopg.Connection) -> None:
        """Reset the database ``connection`` is bound to.

        May raise ResetError (or any other exception); the checkpoint
        propagates it unchanged.
        """
        ...


ResetEngineFactory = Callable[[ResetScope], ResetEngine]
