"""Database structure fingerprint.

One query over the system catalogs produces a single number that
summarises a database's structure: namespaces, columns (name, type,
collation, nullability, defaults, storage), relations (kind, access
method, storage options), constraints with their full definitions and
the tables they reference.

Algorithm:
    1. Join one row per (column, constraint-on-that-column).
    2. Concatenate the tracked fields of each row in a fixed order,
       NULLs rendered as ''.
    3. md5 the row text; reinterpret the low 64 bits as a signed bigint.
    4. SUM the per-row values.

Summing (rather than hashing an ordered concatenation) makes the
result independent of the order the catalog returns rows in, while any
added, removed or changed row still moves the total. Volatile
statistics (relpages, reltuples, relfilenode, ...) are not tracked, so
TRUNCATE, VACUUM and ANALYZE leave the fingerprint alone. Neither is
relnatts, which keeps counting dropped columns.
"""

from decimal import Decimal
from typing import Union

from pgrespawn.core.context import ExecutionContext
from pgrespawn.core.exceptions import HashUnavailableError
from pgrespawn.core.executor import SqlExecutor
from pgrespawn.services.connection import describe


# (alias, column) pairs, concatenated in exactly this order.
# n = pg_namespace, f = pg_attribute, p = pg_constraint,
# g = referenced pg_class, c = pg_class, t = pg_type, d = pg_attrdef
TRACKED_FIELDS: tuple[tuple[str, str], ...] = (
    ("n", "nspname"),
    ("f", "attname"),
    ("f", "attnum"),
    ("f", "atttypmod"),
    ("f", "attndims"),
    ("f", "attnotnull"),
    ("f", "atthasdef"),
    ("f", "attidentity"),
    ("f", "attgenerated"),
    ("f", "attstorage"),
    ("f", "attalign"),
    ("f", "attlen"),
    ("f", "attcollation"),
    ("p", "conname"),
    ("p", "contype"),
    ("p", "condeferrable"),
    ("p", "condeferred"),
    ("p", "convalidated"),
    ("p", "confupdtype"),
    ("p", "confdeltype"),
    ("p", "confmatchtype"),
    ("p", "conkey"),
    ("p", "confkey"),
    ("g", "relname"),
    ("c", "relname"),
    ("c", "relkind"),
    ("c", "relpersistence"),
    ("c", "relispartition"),
    ("c", "relrowsecurity"),
    ("c", "relreplident"),
    ("c", "relam"),
    ("c", "reloptions"),
    ("t", "typname"),
    ("t", "typtype"),
    ("t", "typlen"),
    ("t", "typcategory"),
)

# Defaults and CHECK bodies are stored as node trees; compare their text
# form. Appended after TRACKED_FIELDS in this order.
_EXPRESSIONS: tuple[str, ...] = (
    "pg_get_expr(d.adbin, d.adrelid)",
    "pg_get_constraintdef(p.oid)",
)

_FROM_CLAUSE = """
FROM pg_attribute f
JOIN pg_class c ON c.oid = f.attrelid
JOIN pg_type t ON t.oid = f.atttypid
LEFT JOIN pg_attrdef d ON d.adrelid = c.oid AND d.adnum = f.attnum
LEFT JOIN pg_namespace n ON n.oid = c.relnamespace
LEFT JOIN pg_constraint p ON p.conrelid = c.oid AND f.attnum = ANY (p.conkey)
LEFT JOIN pg_class g ON g.oid = p.confrelid
WHERE NOT f.attisdropped
"""


def build_fingerprint_query() -> str:
    """Build the fingerprint SQL from TRACKED_FIELDS."""
    parts = [f"coalesce({alias}.{column}::text, '')" for alias, column in TRACKED_FIELDS]
    parts.extend(f"coalesce({expression}, '')" for expression in _EXPRESSIONS)
    row_text = "\n        || ' ' || ".join(parts)
    return (
        "SELECT SUM(('x' || right(md5(\n"
        f"        {row_text}\n"
        "    ), 16))::bit(64)::bigint)"
        f"{_FROM_CLAUSE}"
    )


FINGERPRINT_QUERY = build_fingerprint_query()


class StructureHasher:
    """Computes structure fingerprints for databases."""

    def __init__(self, ctx: ExecutionContext, executor: SqlExecutor) -> None:
        self.ctx = ctx
        self.executor = executor

    def fingerprint(self, conninfo: str) -> int:
        """Fingerprint the database a connection string points at.

        Args:
            conninfo: Connection string of the database to inspect

        Returns:
            Structure fingerprint

        Raises:
            HashUnavailableError: If the catalog query returned no rows
        """
        label = describe(conninfo)
        result: Union[Decimal, int, None] = self.executor.scalar(
            conninfo,
            FINGERPRINT_QUERY,
            description=f"Fingerprint structure of {label}",
        )
        if result is None:
            raise HashUnavailableError(
                f"Could not determine database structure hash for {label}",
                hint="The catalog query returned no rows; check the role can read pg_catalog",
            )

        value = int(result)
        self.ctx.console.debug(f"Structure fingerprint of {label}: {value}")
        return value
