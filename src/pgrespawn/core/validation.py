"""Input validation utilities.

Every database or extension name that ends up inside a CREATE/DROP
statement goes through ``validate_identifier`` first. PostgreSQL cannot
bind identifiers as parameters for those statements, so this allow-list
is the only thing standing between a name and the DDL text.

All validators return the validated value or raise a ValidationError
subclass.
"""

import re
from typing import Any, Optional

from pgrespawn.core.exceptions import InvalidIdentifierError, ValidationError


# ASCII letters, digits, '-' and '_' only
IDENTIFIER_PATTERN = re.compile(r"[A-Za-z0-9_-]+")

# NAMEDATALEN - 1; longer names are silently truncated by the server
MAX_IDENTIFIER_LENGTH = 63

_CONSTRUCTION_TOKEN = object()


class DatabaseName(str):
    """A database identifier that has passed ``validate_identifier``.

    Only the validator can build one, so any function that demands a
    DatabaseName cannot be handed raw user input by accident. String
    operations (concatenation, slicing) return plain ``str`` and lose
    the validated status.
    """

    def __new__(cls, value: str, _token: Optional[object] = None) -> "DatabaseName":
        if _token is not _CONSTRUCTION_TOKEN:
            raise TypeError(
                "DatabaseName cannot be constructed directly; use validate_identifier()"
            )
        return super().__new__(cls, value)

    def __reduce__(self) -> tuple[Any, ...]:
        return (validate_identifier, (str(self),))

    def with_suffix(self, suffix: str) -> "DatabaseName":
        """Derive a sibling name (e.g. the cache database), revalidated."""
        return validate_identifier(f"{self}{suffix}", "database")

    def quoted(self) -> str:
        """Double-quoted form for DDL interpolation."""
        return f'"{self}"'


def validate_identifier(
    value: Optional[str],
    identifier_type: str = "identifier",
) -> DatabaseName:
    """Validate a PostgreSQL identifier destined for unescaped DDL.

    Rules:
    - Must not be empty
    - ASCII letters, digits, '-' and '_' only
    - Max 63 characters

    Args:
        value: The identifier to validate
        identifier_type: Type for error messages (e.g., "database", "extension")

    Returns:
        The validated identifier

    Raises:
        InvalidIdentifierError: If validation fails
    """
    if not value:
        raise InvalidIdentifierError(
            f"{identifier_type.title()} name cannot be empty",
            hint="Provide a valid name",
        )

    if not isinstance(value, str):
        raise InvalidIdentifierError(
            f"{identifier_type.title()} name must be a string, got {type(value).__name__}",
        )

    if len(value) > MAX_IDENTIFIER_LENGTH:
        raise InvalidIdentifierError(
            f"{identifier_type.title()} name exceeds maximum length "
            f"({len(value)} > {MAX_IDENTIFIER_LENGTH})",
            hint=f"Use a name with {MAX_IDENTIFIER_LENGTH} or fewer characters",
            details=[f"Provided: {value[:50]}..."],
        )

    if not IDENTIFIER_PATTERN.fullmatch(value):
        raise InvalidIdentifierError(
            f"Invalid {identifier_type} name: {value!r}",
            hint="Only ASCII letters, digits, '-' and '_' are allowed",
            details=[_suggest_valid_name(value)],
        )

    if isinstance(value, DatabaseName):
        return value
    return DatabaseName(value, _CONSTRUCTION_TOKEN)


def validate_extension_name(value: Optional[str]) -> str:
    """Validate an extension name for CREATE EXTENSION."""
    return str(validate_identifier(value, "extension"))


def validate_timeout(value: Optional[int]) -> Optional[int]:
    """Validate a command timeout in seconds (None disables it).

    Raises:
        ValidationError: If timeout is not positive
    """
    if value is None:
        return None
    if value <= 0:
        raise ValidationError(
            f"Invalid command timeout: {value}",
            hint="Timeout must be a positive number of seconds, or unset",
        )
    return value


def _suggest_valid_name(identifier: str) -> str:
    """Generate a suggestion for a valid identifier from an invalid one."""
    cleaned = re.sub(r"[^A-Za-z0-9_-]", "_", identifier)

    if not cleaned.strip("_"):
        cleaned = "unnamed"

    suggestion = cleaned[:MAX_IDENTIFIER_LENGTH]
    return f"Suggestion: {suggestion}"
