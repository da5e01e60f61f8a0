"""Logging setup."""

from phpapidoc.core.logger.logger import get_console, get_logger, setup_logging

__all__ = ["get_console", "get_logger", "setup_logging"]
