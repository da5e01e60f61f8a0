"""Exception definitions module."""

from phpapidoc.core.exceptions.errors import (
    ApiDocsError,
    ConfigurationError,
    ExtractionError,
    PhpSyntaxError,
)

__all__ = ["ApiDocsError", "PhpSyntaxError", "ExtractionError", "ConfigurationError"]
