"""Connection pool management.

One psycopg_pool.ConnectionPool per connection string. Draining a
database terminates sessions behind the pool's back, so after every
reset the checkpoint calls ``clear_all()`` and the next checkout gets
a fresh connection instead of a dead one.
"""

import threading
from contextlib import contextmanager
from typing import Generator, Optional

import psycopg
from psycopg.conninfo import conninfo_to_dict
from psycopg_pool import ConnectionPool


DEFAULT_CHECKOUT_TIMEOUT = 30.0


class PoolManager:
    """Process-wide registry of autocommit connection pools.

    Connections are autocommit because CREATE/DROP DATABASE refuse to
    run inside a transaction block. When ``command_timeout`` is set it
    becomes the server-side ``statement_timeout`` of every connection
    and also bounds how long a checkout may wait.
    """

    def __init__(
        self,
        *,
        command_timeout: Optional[int] = None,
        max_size: int = 4,
    ) -> None:
        """Initialize pool manager.

        Args:
            command_timeout: Statement timeout in seconds
            max_size: Maximum connections per pool
        """
        self.command_timeout = command_timeout
        self.max_size = max_size
        self._pools: dict[str, ConnectionPool] = {}
        self._lock = threading.Lock()

    def _connect_kwargs(self, conninfo: str) -> dict[str, object]:
        kwargs: dict[str, object] = {"autocommit": True}
        if self.command_timeout:
            # Keep any -c settings already present in the connection string
            existing = conninfo_to_dict(conninfo).get("options")
            timeout = f"-c statement_timeout={self.command_timeout * 1000}"
            kwargs["options"] = f"{existing} {timeout}" if existing else timeout
        return kwargs

    @property
    def checkout_timeout(self) -> float:
        if self.command_timeout:
            return float(self.command_timeout)
        return DEFAULT_CHECKOUT_TIMEOUT

    def get(self, conninfo: str) -> ConnectionPool:
        """Get (or lazily open) the pool for a connection string.

        Raises:
            psycopg.OperationalError: If the server cannot be reached or
                refuses the credentials (with libpq's own message)
        """
        with self._lock:
            pool = self._pools.get(conninfo)
            if pool is None:
                kwargs = self._connect_kwargs(conninfo)
                self._check_reachable(conninfo, kwargs)
                pool = ConnectionPool(
                    conninfo,
                    min_size=1,
                    max_size=self.max_size,
                    kwargs=kwargs,
                    timeout=self.checkout_timeout,
                    open=True,
                )
                self._pools[conninfo] = pool
            return pool

    def _check_reachable(self, conninfo: str, kwargs: dict[str, object]) -> None:
        # Pool workers only log connect failures; a direct connect raises
        # libpq's own error instead of a PoolTimeout
        conn = psycopg.connect(
            conninfo,
            connect_timeout=max(1, int(self.checkout_timeout)),
            **kwargs,
        )
        conn.close()

    @contextmanager
    def connection(self, conninfo: str) -> Generator[psycopg.Connection, None, None]:
        """Borrow a connection for the duration of the block."""
        with self.get(conninfo).connection() as conn:
            yield conn

    def clear_all(self) -> int:
        """Close and forget every pool.

        Returns:
            Number of pools closed
        """
        with self._lock:
            pools = list(self._pools.values())
            self._pools.clear()

        for pool in pools:
            pool.close()
        return len(pools)

    def __len__(self) -> int:
        return len(self._pools)

    def __enter__(self) -> "PoolManager":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.clear_all()
