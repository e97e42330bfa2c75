"""Shared fixtures for unit tests.

FakeServer stands in for SqlExecutor: it records every statement in
order and simulates just enough of pg_database, session draining,
CREATE/DROP DATABASE and the fingerprint query.
"""

import re
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Generator, Optional
from unittest.mock import MagicMock

import pytest
from psycopg.conninfo import conninfo_to_dict

from pgrespawn.core.config import CheckpointOptions
from pgrespawn.core.context import ExecutionContext
from pgrespawn.core.exceptions import BackendOperationError
from pgrespawn.core.pool import PoolManager
from pgrespawn.core.output import Verbosity


_CREATE = re.compile(r'CREATE DATABASE "([^"]+)" TEMPLATE "([^"]+)"')
_DROP = re.compile(r'DROP DATABASE IF EXISTS "([^"]+)"')


@dataclass
class Call:
    """One recorded executor call."""
    kind: str
    database: str
    sql: str
    params: Optional[tuple] = None


@dataclass
class FakeServer:
    """Recording, in-memory stand-in for SqlExecutor."""

    # database name -> structure fingerprint (None = hash unavailable)
    databases: dict[str, Optional[int]] = field(
        default_factory=lambda: {"postgres": 1, "orders_test": 42}
    )
    sessions: dict[str, int] = field(default_factory=dict)
    calls: list[Call] = field(default_factory=list)
    # regex on SQL -> exception to raise instead of executing
    failures: dict[str, Exception] = field(default_factory=dict)
    on_create: Optional[Callable[[str, str], None]] = None

    def _database(self, conninfo: str) -> str:
        return str(conninfo_to_dict(conninfo)["dbname"])

    def _maybe_fail(self, sql: str) -> None:
        for pattern, error in self.failures.items():
            if re.search(pattern, sql):
                raise error

    @contextmanager
    def connection(self, conninfo: str, *, description: Optional[str] = None) -> Generator[Any, None, None]:
        database = self._database(conninfo)
        self.calls.append(Call("connect", database, ""))
        conn = MagicMock(name=f"connection[{database}]")
        conn.info.dbname = database
        yield conn

    def run(self, conninfo: str, sql: str, params: Optional[tuple] = None, *, description: Optional[str] = None) -> int:
        database = self._database(conninfo)
        self.calls.append(Call("run", database, sql, params))
        self._maybe_fail(sql)

        if match := _DROP.search(sql):
            self.databases.pop(match.group(1), None)
        elif match := _CREATE.search(sql):
            target, source = match.groups()
            if self.on_create:
                self.on_create(target, source)
            if target in self.databases:
                raise BackendOperationError("duplicate", sqlstate="42P04", diagnostic="already exists")
            if source not in self.databases:
                raise BackendOperationError("missing", sqlstate="3D000", diagnostic="does not exist")
            self.databases[target] = self.databases[source]
        return 0

    def scalar(self, conninfo: str, sql: str, params: Optional[tuple] = None, *, description: Optional[str] = None) -> Any:
        database = self._database(conninfo)
        self.calls.append(Call("scalar", database, sql, params))
        self._maybe_fail(sql)

        if "FROM pg_database" in sql:
            return 1 if params[0] in self.databases else None
        if "pg_terminate_backend" in sql:
            return self.sessions.pop(params[0], 0)
        if "md5" in sql:
            return self.databases[database]
        raise AssertionError(f"Unexpected query: {sql}")

    # Helpers for assertions

    def statements(self) -> list[str]:
        """Compact, ordered description of what ran."""
        result = []
        for call in self.calls:
            if call.kind == "connect":
                result.append(f"connect {call.database}")
            elif "pg_terminate_backend" in call.sql:
                result.append(f"drain {call.params[0]}")
            elif "FROM pg_database" in call.sql:
                result.append(f"exists {call.params[0]}")
            elif "md5" in call.sql:
                result.append(f"fingerprint {call.database}")
            elif match := _DROP.search(call.sql):
                result.append(f"drop {match.group(1)}")
            elif match := _CREATE.search(call.sql):
                result.append(f"clone {match.group(2)} -> {match.group(1)}")
            else:
                result.append(call.sql.strip())
        return result


class RecordingEngine:
    """Reset engine that records the connections it was handed."""

    def __init__(self, scope: Any = None) -> None:
        self.scope = scope
        self.connections: list[Any] = []

    def reset(self, connection: Any) -> None:
        self.connections.append(connection)

    @property
    def call_count(self) -> int:
        return len(self.connections)


@pytest.fixture
def ctx() -> ExecutionContext:
    """Quiet context with default options."""
    return ExecutionContext(options=CheckpointOptions(), verbosity=Verbosity.QUIET)


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def engine() -> RecordingEngine:
    return RecordingEngine()


@pytest.fixture
def pools() -> MagicMock:
    return MagicMock(spec=PoolManager)
