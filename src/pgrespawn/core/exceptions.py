"""Custom exceptions for pgrespawn.

All exceptions provide:
- Clear error messages
- Optional hints for resolution
- Optional details for debugging
"""

from typing import Optional


class RespawnError(Exception):
    """Base exception for all pgrespawn errors.

    Attributes:
        message: Human-readable error description
        hint: Suggested action to resolve the error
        details: Additional context for debugging
    """

    def __init__(
        self,
        message: str,
        *,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.details = details or []

    def __str__(self) -> str:
        return self.message


class ConfigurationError(RespawnError):
    """Configuration file or settings errors.

    Raised when:
    - Options file unreadable
    - Invalid YAML syntax
    - Invalid option values
    """


class ValidationError(RespawnError):
    """Input validation errors, raised before any backend call."""


class InvalidArgumentError(ValidationError):
    """Missing or empty argument (e.g. an empty connection string)."""


class InvalidConnectionDescriptorError(InvalidArgumentError):
    """Connection string cannot be parsed or names no database."""


class InvalidIdentifierError(ValidationError):
    """Identifier rejected by the allow-list.

    Raised when:
    - Database or extension name is empty
    - Name contains characters other than ASCII letters, digits, '-' and '_'
    - Name exceeds the PostgreSQL identifier length
    """


class HashUnavailableError(RespawnError):
    """Structure fingerprint query returned no rows."""


class BackendOperationError(RespawnError):
    """PostgreSQL reported an error while connecting or executing.

    The original backend diagnostic is kept verbatim in ``diagnostic``
    and appended to ``details``.
    """

    def __init__(
        self,
        message: str,
        *,
        sqlstate: Optional[str] = None,
        diagnostic: Optional[str] = None,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        if not details:
            details = []
        if sqlstate:
            details.append(f"SQLSTATE: {sqlstate}")
        if diagnostic:
            details.append(f"Backend said: {diagnostic}")
        super().__init__(message, hint=hint, details=details)
        self.sqlstate = sqlstate
        self.diagnostic = diagnostic


class CloneConflictError(BackendOperationError):
    """Clone target appeared concurrently (another process won the race)."""


class SourceUnavailableError(BackendOperationError):
    """Clone source missing or still has sessions attached."""


class ResetError(RespawnError):
    """Raised by reset engines when a target cannot be emptied/seeded."""
