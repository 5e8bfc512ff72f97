"""Exceptions raised by the database layer."""


class DatabaseError(Exception):
    """Base exception for database operations."""

    pass


class ConfigurationError(DatabaseError):
    """Raised when no usable connection string is configured."""

    pass


class ConnectionError(DatabaseError):
    """Raised when establishing the database connection fails."""

    pass


class OperationError(DatabaseError):
    """Raised when a single collection operation fails."""

    def __init__(self, message: str, operation: str | None = None):
        super().__init__(message)
        self.operation = operation
