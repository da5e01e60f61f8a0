"""Custom exception definitions for phpapidoc."""

from typing import Any


class ApiDocsError(Exception):
    """Base exception for all phpapidoc errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Error message.
            details: Additional error details.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class PhpSyntaxError(ApiDocsError):
    """Exception raised when a source unit cannot be parsed."""

    def __init__(
        self,
        message: str,
        path: str | None = None,
        line: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize syntax error.

        Args:
            message: Error message.
            path: Path of the unit that failed to parse.
            line: 1-based line of the first syntax error.
            details: Additional error details.
        """
        details = details or {}
        if path:
            details["path"] = path
        if line:
            details["line"] = line
        super().__init__(message, details)
        self.path = path
        self.line = line


class ExtractionError(ApiDocsError):
    """Exception raised when a unit does not hold exactly one declaration."""

    NO_DECLARATION = "no declaration"
    AMBIGUOUS = "ambiguous"

    def __init__(
        self,
        message: str,
        reason: str,
        path: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize extraction error.

        Args:
            message: Error message.
            reason: Either ``no declaration`` or ``ambiguous``.
            path: Path of the unit.
            details: Additional error details.
        """
        details = details or {}
        details["reason"] = reason
        if path:
            details["path"] = path
        super().__init__(message, details)
        self.reason = reason
        self.path = path


class ConfigurationError(ApiDocsError):
    """Exception raised for configuration errors."""

    def __init__(
        self,
        message: str,
        config_key: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize configuration error.

        Args:
            message: Error message.
            config_key: Configuration key that caused the error.
            details: Additional error details.
        """
        details = details or {}
        if config_key:
            details["config_key"] = config_key
        super().__init__(message, details)
