"""PostgreSQL service abstraction.

Database-level operations the checkpoint needs: existence checks,
session draining, template cloning and extension bootstrap. Every
method runs against the *system* database connection string.

Literal values are bound as parameters. Database and extension names
cannot be bound in CREATE/DROP, so they are interpolated only after
passing ``validate_identifier``.
"""

from typing import Optional

from pgrespawn.core.context import ExecutionContext
from pgrespawn.core.exceptions import (
    BackendOperationError,
    CloneConflictError,
    SourceUnavailableError,
)
from pgrespawn.core.executor import MutationSaga, SqlExecutor
from pgrespawn.core.validation import DatabaseName, validate_extension_name, validate_identifier


# SQLSTATEs raised by CREATE DATABASE ... TEMPLATE
DUPLICATE_DATABASE = "42P04"
INVALID_CATALOG_NAME = "3D000"
OBJECT_IN_USE = "55006"


class PostgreSQLService:
    """Database-level operations for the template cache.

    All operations:
    - Validate identifiers before building DDL
    - Drain sessions before DROP or clone-as-template
    - Surface backend errors as BackendOperationError subclasses
    """

    def __init__(self, ctx: ExecutionContext, executor: SqlExecutor) -> None:
        """Initialize PostgreSQL service.

        Args:
            ctx: Execution context
            executor: SQL executor
        """
        self.ctx = ctx
        self.executor = executor

    # =========================================================================
    # Lookups
    # =========================================================================

    def database_exists(self, system_conninfo: str, name: str) -> bool:
        """Check if a database exists.

        Args:
            system_conninfo: Connection string for the system database
            name: Database name

        Returns:
            True if database exists
        """
        name = validate_identifier(name, "database")
        result = self.executor.scalar(
            system_conninfo,
            "SELECT 1 FROM pg_database WHERE datname = %s",
            (str(name),),
        )
        return result is not None

    # =========================================================================
    # Extensions
    # =========================================================================

    def create_extension_if_not_exists(self, system_conninfo: str, extension: str) -> None:
        """Idempotently create an extension in the system database."""
        extension = validate_extension_name(extension)
        self.executor.run(
            system_conninfo,
            f'CREATE EXTENSION IF NOT EXISTS "{extension}"',
            description=f"Ensure extension '{extension}'",
        )

    # =========================================================================
    # Draining
    # =========================================================================

    def drain(self, system_conninfo: str, name: str) -> int:
        """Terminate every session attached to a database, except our own.

        Clients mid-query against ``name`` will see their connection
        drop. Draining a database nobody is connected to (or that does
        not exist) is a no-op.

        Args:
            system_conninfo: Connection string for the system database
            name: Database whose sessions are terminated

        Returns:
            Number of sessions terminated
        """
        name = validate_identifier(name, "database")
        terminated = self.executor.scalar(
            system_conninfo,
            """
            SELECT count(*) FILTER (WHERE pg_terminate_backend(pid))
            FROM pg_stat_activity
            WHERE datname = %s
            AND pid <> pg_backend_pid()
            """,
            (str(name),),
        )
        count = int(terminated or 0)
        if count:
            self.ctx.console.verbose(f"Terminated {count} session(s) on '{name}'")
        return count

    # =========================================================================
    # Cloning
    # =========================================================================

    def clone_if_absent(self, system_conninfo: str, target: str, source: str) -> bool:
        """Create ``target`` as a copy of ``source`` unless it already exists.

        Args:
            system_conninfo: Connection string for the system database
            target: Database to create
            source: Template database

        Returns:
            True if the database was created, False if it already existed

        Raises:
            CloneConflictError: If ``target`` appeared concurrently
            SourceUnavailableError: If ``source`` is missing or still in use
        """
        target = validate_identifier(target, "database")
        source = validate_identifier(source, "database")

        if self.database_exists(system_conninfo, target):
            self.ctx.console.verbose(f"Database '{target}' already exists; not cloning")
            return False

        saga = MutationSaga(f"Clone '{target}' from '{source}'")
        with saga.step(f"Terminate sessions on '{source}'"):
            self.drain(system_conninfo, source)
        with saga.step(f"Terminate sessions on '{target}'"):
            self.drain(system_conninfo, target)
        with saga.step(f"Create '{target}' from template '{source}'"):
            self._create_from_template(system_conninfo, target, source)
        return True

    def force_clone(self, system_conninfo: str, target: str, source: str) -> None:
        """Replace ``target`` with a fresh copy of ``source``.

        Drains both databases, drops ``target`` if present, then clones.
        If the clone fails after the drop, ``target`` stays absent; the
        raised error says so in its details.

        Args:
            system_conninfo: Connection string for the system database
            target: Database to (re)create
            source: Template database

        Raises:
            CloneConflictError: If ``target`` reappeared between drop and create
            SourceUnavailableError: If ``source`` is missing or still in use
        """
        target = validate_identifier(target, "database")
        source = validate_identifier(source, "database")

        saga = MutationSaga(f"Replace '{target}' with a copy of '{source}'")
        with saga.step(f"Terminate sessions on '{source}'"):
            self.drain(system_conninfo, source)
        with saga.step(f"Terminate sessions on '{target}'"):
            self.drain(system_conninfo, target)
        with saga.step(f"Drop '{target}'", leaves=f"database '{target}' is absent"):
            self._drop_if_exists(system_conninfo, target)
        with saga.step(f"Create '{target}' from template '{source}'"):
            self._create_from_template(system_conninfo, target, source)

    def _drop_if_exists(self, system_conninfo: str, name: DatabaseName) -> None:
        self.executor.run(
            system_conninfo,
            f"DROP DATABASE IF EXISTS {name.quoted()}",
            description=f"Drop database '{name}'",
        )

    def _create_from_template(
        self,
        system_conninfo: str,
        target: DatabaseName,
        source: DatabaseName,
    ) -> None:
        try:
            self.executor.run(
                system_conninfo,
                f"CREATE DATABASE {target.quoted()} TEMPLATE {source.quoted()}",
                description=f"Clone '{source}' into '{target}'",
            )
        except BackendOperationError as e:
            classified = _classify_clone_error(e, target, source)
            if classified is None:
                raise
            raise classified from e

        self.ctx.console.success(f"Database '{target}' cloned from '{source}'")


def _classify_clone_error(
    error: BackendOperationError,
    target: DatabaseName,
    source: DatabaseName,
) -> Optional[BackendOperationError]:
    """Map CREATE DATABASE failures onto the clone error taxonomy."""
    if error.sqlstate == DUPLICATE_DATABASE:
        return CloneConflictError(
            f"Database '{target}' was created concurrently by another session",
            sqlstate=error.sqlstate,
            diagnostic=error.diagnostic,
            hint="Another process is refreshing the same cache; rerun the reset",
        )
    if error.sqlstate in (INVALID_CATALOG_NAME, OBJECT_IN_USE):
        return SourceUnavailableError(
            f"Template database '{source}' is unavailable for cloning",
            sqlstate=error.sqlstate,
            diagnostic=error.diagnostic,
            hint="The template must exist and have no sessions attached",
        )
    return None
