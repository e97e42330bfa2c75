"""Connection string helpers.

Derives the database a connection string points at, and builds sibling
connection strings for other databases on the same server (the system
database for DDL, the cache database for fingerprinting). Both libpq
key/value strings and postgresql:// URLs are accepted.
"""

from typing import Optional

import psycopg
from psycopg.conninfo import conninfo_to_dict, make_conninfo

from pgrespawn.core.config import DEFAULT_SYSTEM_DATABASE
from pgrespawn.core.exceptions import (
    InvalidArgumentError,
    InvalidConnectionDescriptorError,
)
from pgrespawn.core.validation import DatabaseName, validate_identifier


def parse_conninfo(conninfo: Optional[str]) -> dict[str, object]:
    """Parse a connection string into libpq parameters.

    Raises:
        InvalidArgumentError: If the string is empty
        InvalidConnectionDescriptorError: If the string cannot be parsed
    """
    if not conninfo or not conninfo.strip():
        raise InvalidArgumentError(
            "Connection string cannot be empty",
            hint="Pass e.g. 'host=localhost dbname=app_test user=postgres'",
        )

    try:
        return dict(conninfo_to_dict(conninfo))
    except psycopg.Error as e:
        raise InvalidConnectionDescriptorError(
            "The provided connection string is invalid",
            details=[str(e)],
        ) from e


def extract_database_name(conninfo: Optional[str]) -> DatabaseName:
    """Get the (validated) database name a connection string points at.

    Raises:
        InvalidConnectionDescriptorError: If no database name is present
        InvalidIdentifierError: If the name fails the identifier allow-list
    """
    params = parse_conninfo(conninfo)
    name = params.get("dbname")
    if not name:
        raise InvalidConnectionDescriptorError(
            "No database name could be extracted from the connection string",
            hint="Add dbname=<name> (or a /<name> path to the URL)",
        )
    return validate_identifier(str(name), "database")


def with_database(conninfo: str, name: str) -> str:
    """Same server and credentials, different database."""
    name = validate_identifier(name, "database")
    parse_conninfo(conninfo)
    return make_conninfo(conninfo, dbname=str(name))


def to_system_conninfo(
    conninfo: str,
    system_database: str = DEFAULT_SYSTEM_DATABASE,
) -> str:
    """Point a connection string at the server's bootstrap database.

    DROP/CREATE DATABASE and session termination run from there, since
    a session cannot drop the database it is connected to.
    """
    return with_database(conninfo, system_database)


def describe(conninfo: str) -> str:
    """Password-free ``dbname@host:port`` label for output."""
    params = parse_conninfo(conninfo)
    host = params.get("host") or "localhost"
    port = params.get("port") or 5432
    return f"{params.get('dbname', '?')}@{host}:{port}"
