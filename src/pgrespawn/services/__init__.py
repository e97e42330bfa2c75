"""Service abstractions for interacting with PostgreSQL."""

from pgrespawn.services.postgresql import PostgreSQLService
from pgrespawn.services.fingerprint import StructureHasher
from pgrespawn.services.checkpoint import PostgresCheckpoint

__all__ = [
    "PostgreSQLService",
    "StructureHasher",
    "PostgresCheckpoint",
]
