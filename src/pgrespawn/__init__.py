"""
pgrespawn - Fast, known-state PostgreSQL databases for tests.

Resets a test database through a physical template cache that is
reused for as long as the database's structure is unchanged.
"""

from pgrespawn.core.config import CheckpointOptions, TableRef, load_options
from pgrespawn.core.exceptions import RespawnError
from pgrespawn.core.pool import PoolManager
from pgrespawn.services.checkpoint import CheckpointState, PostgresCheckpoint, ResetOutcome
from pgrespawn.services.reset import ResetEngine, ResetEngineFactory, ResetScope

__version__ = "1.0.0"

__all__ = [
    "CheckpointOptions",
    "CheckpointState",
    "PoolManager",
    "PostgresCheckpoint",
    "ResetEngine",
    "ResetEngineFactory",
    "ResetOutcome",
    "ResetScope",
    "RespawnError",
    "TableRef",
    "load_options",
]
