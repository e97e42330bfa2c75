"""Core framework components for pgrespawn."""

from pgrespawn.core.exceptions import (
    RespawnError,
    ConfigurationError,
    ValidationError,
    InvalidArgumentError,
    InvalidConnectionDescriptorError,
    InvalidIdentifierError,
    HashUnavailableError,
    BackendOperationError,
    CloneConflictError,
    SourceUnavailableError,
    ResetError,
)

from pgrespawn.core.context import ExecutionContext, create_context
from pgrespawn.core.output import console, Console, Verbosity
from pgrespawn.core.config import CheckpointOptions, RespawnSettings, TableRef, load_options
from pgrespawn.core.validation import DatabaseName, validate_identifier
from pgrespawn.core.pool import PoolManager
from pgrespawn.core.executor import MutationSaga, SqlExecutor

__all__ = [
    # Exceptions
    "RespawnError",
    "ConfigurationError",
    "ValidationError",
    "InvalidArgumentError",
    "InvalidConnectionDescriptorError",
    "InvalidIdentifierError",
    "HashUnavailableError",
    "BackendOperationError",
    "CloneConflictError",
    "SourceUnavailableError",
    "ResetError",
    # Context
    "ExecutionContext",
    "create_context",
    # Output
    "console",
    "Console",
    "Verbosity",
    # Config
    "CheckpointOptions",
    "RespawnSettings",
    "TableRef",
    "load_options",
    # Validation
    "DatabaseName",
    "validate_identifier",
    # Execution
    "PoolManager",
    "MutationSaga",
    "SqlExecutor",
]
