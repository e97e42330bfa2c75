"""Schema-hash-gated template cache for test databases.

``PostgresCheckpoint.reset(conninfo)`` brings a target database back
to a known state. It keeps a physical copy of the freshly reset
target in ``<target>__respawn_cache``. When the target's structure
still matches that copy, the target is simply re-cloned from it.
Otherwise the reset engine runs and the copy is refreshed.

Flow:
    IDLE -> CACHE_LOOKUP -> CACHE_HIT -> DONE
                         -> CACHE_MISS -> REBUILDING -> CACHE_REFRESH -> DONE
    any state -> FAILED (error propagates)

The cache is only ever written from a target that the reset engine
has just reset, never from another cache generation.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from pgrespawn.core.config import CheckpointOptions
from pgrespawn.core.context import ExecutionContext, create_context
from pgrespawn.core.exceptions import InvalidArgumentError
from pgrespawn.core.executor import SqlExecutor
from pgrespawn.core.pool import PoolManager
from pgrespawn.services.connection import (
    extract_database_name,
    to_system_conninfo,
    with_database,
)
from pgrespawn.services.fingerprint import StructureHasher
from pgrespawn.services.postgresql import PostgreSQLService
from pgrespawn.services.reset import ResetEngineFactory, ResetScope


class CheckpointState(Enum):
    """States of a single reset."""
    IDLE = "idle"
    CACHE_LOOKUP = "cache_lookup"
    CACHE_HIT = "cache_hit"
    CACHE_MISS = "cache_miss"
    REBUILDING = "rebuilding"
    CACHE_REFRESH = "cache_refresh"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ResetOutcome:
    """What a reset did."""

    target: str
    cache: str
    states: list[CheckpointState] = field(default_factory=list)
    target_fingerprint: Optional[int] = None
    cache_fingerprint: Optional[int] = None
    cache_created: bool = False
    elapsed: float = 0.0

    @property
    def state(self) -> CheckpointState:
        """Current (or final) state."""
        return self.states[-1] if self.states else CheckpointState.IDLE

    @property
    def cache_hit(self) -> bool:
        """True if the target was restored from the cache."""
        return CheckpointState.CACHE_HIT in self.states

    @property
    def path(self) -> str:
        return "hit" if self.cache_hit else "miss"


class PostgresCheckpoint:
    """Resets PostgreSQL test databases through a template cache.

    Args:
        options: Checkpoint options (file/environment defaults if None)
        reset_engine_factory: Builds the row-level reset engine from the
            forwarded scope options
        pools: Pool manager to use and clear; one is created from the
            options if None
        ctx: Execution context (created from ``options`` if None)
    """

    def __init__(
        self,
        options: Optional[CheckpointOptions] = None,
        *,
        reset_engine_factory: ResetEngineFactory,
        pools: Optional[PoolManager] = None,
        ctx: Optional[ExecutionContext] = None,
    ) -> None:
        if ctx is None:
            ctx = create_context(options)
        elif options is not None:
            ctx = ctx.with_options(options)

        self.ctx = ctx
        self.options = ctx.options
        if pools is None:
            pools = PoolManager(
                command_timeout=self.options.command_timeout,
                max_size=self.options.pool_max_size,
            )
        self.pools = pools
        self.executor = SqlExecutor(ctx, self.pools)
        self.pg = PostgreSQLService(ctx, self.executor)
        self.hasher = StructureHasher(ctx, self.executor)
        self.engine = reset_engine_factory(ResetScope.from_options(self.options))

    def reset(self, conninfo: str) -> ResetOutcome:
        """Bring the database ``conninfo`` points at back to its reset state.

        Args:
            conninfo: Connection string of the target database

        Returns:
            Outcome describing the path taken

        Raises:
            InvalidArgumentError: If the connection string is empty or invalid
            InvalidIdentifierError: If a derived name fails the allow-list
            HashUnavailableError: If a fingerprint cannot be computed
            BackendOperationError: On any backend failure (incl. clone errors)
        """
        target = extract_database_name(conninfo)
        if target == self.options.system_database:
            raise InvalidArgumentError(
                f"Refusing to reset the system database '{target}'",
                hint="Point the connection string at a dedicated test database",
            )
        cache = target.with_suffix(self.options.cache_suffix)
        system = to_system_conninfo(conninfo, self.options.system_database)
        cache_conninfo = with_database(conninfo, cache)

        outcome = ResetOutcome(target=str(target), cache=str(cache))
        started = time.monotonic()
        self._enter(outcome, CheckpointState.IDLE)

        try:
            self._enter(outcome, CheckpointState.CACHE_LOOKUP)
            if self.options.auto_create_extensions:
                for extension in self.options.extensions:
                    self.pg.create_extension_if_not_exists(system, extension)

            cache_exists = self.pg.database_exists(system, cache)
            hit = False
            if cache_exists:
                outcome.target_fingerprint = self.hasher.fingerprint(conninfo)
                outcome.cache_fingerprint = self.hasher.fingerprint(cache_conninfo)
                hit = outcome.target_fingerprint == outcome.cache_fingerprint

            if hit:
                self._enter(outcome, CheckpointState.CACHE_HIT)
                self.ctx.console.info(f"Cache hit: restoring '{target}' from '{cache}'")
                self.pg.force_clone(system, target, cache)
            else:
                self._enter(outcome, CheckpointState.CACHE_MISS)
                if cache_exists:
                    self.ctx.console.info(f"Cache '{cache}' is stale: structure of '{target}' changed")
                else:
                    self.ctx.console.info(f"No cache for '{target}' yet")

                self._enter(outcome, CheckpointState.REBUILDING)
                with self.executor.connection(conninfo, description=f"Reset rows in '{target}'") as conn:
                    self.engine.reset(conn)

                self._enter(outcome, CheckpointState.CACHE_REFRESH)
                if cache_exists:
                    self.pg.force_clone(system, cache, target)
                else:
                    outcome.cache_created = self.pg.clone_if_absent(system, cache, target)
                    if not outcome.cache_created:
                        self.ctx.console.warn(
                            f"Cache '{cache}' was created by another process during this reset; "
                            "it will be verified on the next reset"
                        )

            self._enter(outcome, CheckpointState.DONE)
        except Exception:
            self._enter(outcome, CheckpointState.FAILED)
            self.ctx.console.error(f"Reset of '{target}' failed in state {outcome.states[-2].value}")
            raise
        finally:
            # Drained sessions may still sit in the pools as "healthy"
            self.pools.clear_all()
            outcome.elapsed = time.monotonic() - started

        self.ctx.console.success(f"Database '{target}' reset ({outcome.path}, {outcome.elapsed:.2f}s)")
        self.ctx.console.summary(
            "Reset",
            {
                "Target": outcome.target,
                "Cache": outcome.cache,
                "Cache hit": outcome.cache_hit,
                "Target fingerprint": outcome.target_fingerprint,
                "Cache fingerprint": outcome.cache_fingerprint,
            },
        )
        return outcome

    def close(self) -> None:
        """Close every pooled connection."""
        self.pools.clear_all()

    def __enter__(self) -> "PostgresCheckpoint":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _enter(self, outcome: ResetOutcome, state: CheckpointState) -> None:
        outcome.states.append(state)
        self.ctx.console.debug(f"{outcome.target}: {state.value}")
