"""SQL execution with saga bookkeeping.

Provides:
- Statement and scalar execution over pooled connections
- Translation of driver errors into BackendOperationError
- MutationSaga: ordered record of non-transactional DDL steps
"""

from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from typing import Any, Generator, Optional, Sequence

import psycopg

from pgrespawn.core.context import ExecutionContext
from pgrespawn.core.exceptions import BackendOperationError, RespawnError
from pgrespawn.core.output import console
from pgrespawn.core.pool import PoolManager


# SQLSTATE -> hint for errors a test setup commonly hits
_SQLSTATE_HINTS: dict[str, str] = {
    "42501": "The connecting role needs CREATEDB and permission to terminate backends",
    "28P01": "Check the password in the connection string",
    "3D000": "The database does not exist on this server",
    "57014": "Statement cancelled; raise command_timeout or unset it",
}

# Connection failures carry no SQLSTATE; match libpq's message instead
_MESSAGE_HINTS: tuple[tuple[str, str], ...] = (
    ("password authentication failed", "Check the user and password in the connection string"),
    ("Connection refused", "Check that the server is running and listening on that host and port"),
    ("does not exist", "Check the database and role names in the connection string"),
)


def backend_error(
    message: str,
    error: psycopg.Error,
    error_class: type[BackendOperationError] = BackendOperationError,
) -> BackendOperationError:
    """Wrap a psycopg error, keeping the server's diagnostic text."""
    sqlstate = getattr(error, "sqlstate", None)
    diagnostic = str(error).strip() or type(error).__name__
    hint = _SQLSTATE_HINTS.get(sqlstate or "")
    if sqlstate is None:
        hint = next((h for text, h in _MESSAGE_HINTS if text in diagnostic), None)
    return error_class(
        message,
        sqlstate=sqlstate,
        diagnostic=diagnostic,
        hint=hint,
    )


@dataclass
class SagaStep:
    """A completed saga step."""
    description: str
    leaves: Optional[str] = None  # system state once this step has run


class MutationSaga:
    """Ordered record of database-level mutations that cannot be rolled back.

    CREATE/DROP DATABASE are not transactional, so a multi-step clone
    is a saga: each step either completes or the sequence stops where it
    is. Nothing is undone. When a step fails, the error is annotated
    with what already ran and the state the server was left in.

    Usage:
        saga = MutationSaga("Clone 'a' from 'b'")
        with saga.step("Drop 'a'", leaves="database 'a' is absent"):
            drop()
        with saga.step("Create 'a' from 'b'"):
            create()
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self.completed: list[SagaStep] = []

    @property
    def state(self) -> Optional[str]:
        """State left behind by the most recent step that declared one."""
        for step in reversed(self.completed):
            if step.leaves:
                return step.leaves
        return None

    @contextmanager
    def step(
        self,
        description: str,
        *,
        leaves: Optional[str] = None,
    ) -> Generator[None, None, None]:
        """Run one step; annotate RespawnErrors raised inside it."""
        console.debug(f"{self.name}: {description}")
        try:
            yield
        except RespawnError as e:
            self._annotate(e, description)
            raise
        self.completed.append(SagaStep(description, leaves))

    def _annotate(self, error: RespawnError, failed_step: str) -> None:
        error.details.append(f"Failed step: {failed_step}")
        if self.completed:
            done = "; ".join(s.description for s in self.completed)
            error.details.append(f"Completed steps: {done}")

        state = self.state
        if state:
            error.details.append(f"Resulting state: {state}")
            if not error.hint:
                error.hint = "Treat this as a fatal setup failure and run the reset again"
            console.warn(f"{self.name} interrupted; {state}")


class SqlExecutor:
    """Runs SQL over pooled connections.

    Every psycopg error leaving this class is a BackendOperationError
    chained to the original exception.
    """

    def __init__(self, ctx: ExecutionContext, pools: PoolManager) -> None:
        """Initialize executor.

        Args:
            ctx: Execution context
            pools: Pool manager to borrow connections from
        """
        self.ctx = ctx
        self.pools = pools

    @contextmanager
    def connection(
        self,
        conninfo: str,
        *,
        description: Optional[str] = None,
    ) -> Generator[psycopg.Connection, None, None]:
        """Borrow a pooled autocommit connection.

        Only the checkout is translated; errors raised by the caller's
        block, driver errors included, propagate as they are.

        Raises:
            BackendOperationError: If a connection cannot be obtained
        """
        if description:
            self.ctx.console.step(description)
        with ExitStack() as stack:
            try:
                conn = stack.enter_context(self.pools.connection(conninfo))
            except psycopg.Error as e:
                raise backend_error(
                    f"Could not connect: {description or 'connection'}", e
                ) from e
            yield conn

    def run(
        self,
        conninfo: str,
        sql: str,
        params: Optional[Sequence[Any]] = None,
        *,
        description: Optional[str] = None,
    ) -> int:
        """Execute a statement.

        Args:
            conninfo: Connection string of the database to run in
            sql: SQL statement
            params: Bound parameters (literals only; never identifiers)
            description: Human-readable description for logging

        Returns:
            Rows affected (or returned) as reported by the driver
        """
        self.ctx.console.sql(sql, title=description or "SQL")
        with self.connection(conninfo, description=description) as conn:
            try:
                cur = conn.execute(sql, params)
            except psycopg.Error as e:
                raise backend_error(
                    f"SQL failed: {description or sql.strip().splitlines()[0]}", e
                ) from e
            return cur.rowcount

    def scalar(
        self,
        conninfo: str,
        sql: str,
        params: Optional[Sequence[Any]] = None,
        *,
        description: Optional[str] = None,
    ) -> Any:
        """Execute a query and return the first column of the first row.

        Returns:
            The value, or None if the query returned no rows
        """
        self.ctx.console.sql(sql, title=description or "SQL")
        with self.connection(conninfo, description=description) as conn:
            try:
                row = conn.execute(sql, params).fetchone()
            except psycopg.Error as e:
                raise backend_error(
                    f"SQL failed: {description or sql.strip().splitlines()[0]}", e
                ) from e
        return row[0] if row else None
