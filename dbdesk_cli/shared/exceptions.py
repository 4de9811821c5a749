"""Project-wide custom exceptions."""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """Machine-readable failure codes callers may branch on."""

    CONNECTION_NOT_FOUND = "CONNECTION_NOT_FOUND"
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    PERMISSION_ERROR = "PERMISSION_ERROR"
    ENCRYPTION_ERROR = "ENCRYPTION_ERROR"
    SQL_SYNTAX_ERROR = "SQL_SYNTAX_ERROR"
    SQL_CONSTRAINT_ERROR = "SQL_CONSTRAINT_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    EMPTY_DATABASE = "EMPTY_DATABASE"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class DbDeskError(Exception):
    """Base exception for the dbdesk tool suite."""


class ConfigurationError(DbDeskError):
    """Raised when configuration loading or validation fails."""


class DatabaseError(DbDeskError):
    """Raised for database-related issues.

    ``code`` classifies the failure; ``suggestions`` and ``documentation_url``
    are filled in when the driver message matched a known pattern.
    """

    default_code = ErrorCode.UNKNOWN_ERROR

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        suggestions: tuple[str, ...] = (),
        troubleshooting_steps: tuple[str, ...] = (),
        documentation_url: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.suggestions = tuple(suggestions)
        self.troubleshooting_steps = tuple(troubleshooting_steps)
        self.documentation_url = documentation_url


class ConnectionNotFoundError(DatabaseError):
    """Raised when an operation names a connection id that is not registered."""

    default_code = ErrorCode.CONNECTION_NOT_FOUND

    def __init__(self, connection_id: str) -> None:
        super().__init__(f"Connection not found: {connection_id}")
        self.connection_id = connection_id


class EncryptionError(DatabaseError):
    """Raised when an encrypted database could not be opened."""

    default_code = ErrorCode.ENCRYPTION_ERROR
    needs_password = False


class PasswordRequiredError(EncryptionError):
    """Raised when a database looks encrypted and no password was supplied."""

    needs_password = True


class IntrospectionError(DatabaseError):
    """Raised when schema introspection fails anywhere."""


class ChangeApplyError(DatabaseError):
    """Raised when a batch of pending changes was rolled back."""

    def __init__(self, message: str, *, change_id: str | None = None, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.change_id = change_id


class DiffError(DbDeskError):
    """Raised when a data comparison cannot be set up."""
