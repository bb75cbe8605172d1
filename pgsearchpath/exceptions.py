"""
Exception hierarchy for pgsearchpath.

All custom exceptions inherit from PgSearchPathError base class.
"""


class PgSearchPathError(Exception):
    """Base exception for all pgsearchpath errors."""
    pass


# Search path Errors
class SearchPathError(PgSearchPathError):
    """Base exception for search path related errors."""
    pass


class ValidationError(SearchPathError, ValueError):
    """Raised when a search path name is empty or contains disallowed characters."""

    def __init__(self, value, operation: str, message: str = None):
        self.value = value
        self.operation = operation
        if message is None:
            message = (
                f"{operation}(): search_path {value!r} may only contain "
                "letters, numbers and _"
            )
        super().__init__(message)


class UsageError(PgSearchPathError, TypeError):
    """Raised when an operation is called with the wrong arguments or too early."""
    pass


# Storage Errors
class StorageError(PgSearchPathError):
    """Base exception for storage-related errors."""
    pass


class ConnectionError(StorageError):
    """Raised when connecting or executing a statement against PostgreSQL fails.

    ``value`` carries the search path the failed statement was issued for, if any.
    """

    def __init__(self, message: str, operation: str = None, value: str = None):
        self.operation = operation
        self.value = value
        super().__init__(message)


# Configuration Errors
class ConfigurationError(PgSearchPathError):
    """Base exception for configuration-related errors."""
    pass


class UnsupportedConfigError(ConfigurationError):
    """Raised when connect info is not a mapping or ConnectionConfig with a dsn."""
    pass


class InvalidConfigurationError(ConfigurationError):
    """Raised when configuration is invalid or malformed."""
    pass


class ConfigurationLoadError(ConfigurationError):
    """Raised when loading configuration fails."""
    pass
