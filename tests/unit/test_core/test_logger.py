"""Tests for logging setup."""

import logging

from rich.logging import RichHandler

from phpapidoc.core.config.settings import LoggingSettings
from phpapidoc.core.logger import get_console, get_logger, setup_logging


class TestLogging:
    """Tests for the package logger configuration."""

    def test_rich_handler(self):
        """Test the package logger renders through Rich."""
        setup_logging(LoggingSettings(level="DEBUG", use_rich=True))
        package_logger = logging.getLogger("phpapidoc")

        assert package_logger.level == logging.DEBUG
        assert package_logger.propagate is False
        assert isinstance(package_logger.handlers[0], RichHandler)

    def test_plain_handler_and_file(self, temp_dir):
        """Test the plain stream handler and an extra file handler."""
        log_file = temp_dir / "logs" / "phpapidoc.log"
        setup_logging(LoggingSettings(level="INFO", use_rich=False, file=str(log_file)))
        package_logger = logging.getLogger("phpapidoc")

        get_logger("phpapidoc.tests").info("hello")
        for handler in package_logger.handlers:
            handler.flush()

        assert not isinstance(package_logger.handlers[0], RichHandler)
        assert isinstance(package_logger.handlers[1], logging.FileHandler)
        assert "hello" in log_file.read_text(encoding="utf-8")

        for handler in package_logger.handlers:
            handler.close()
        package_logger.handlers.clear()

    def test_get_logger_name(self):
        """Test loggers are returned by name."""
        assert get_logger("phpapidoc.api.parser").name == "phpapidoc.api.parser"

    def test_get_console(self):
        """Test the shared console is reused."""
        assert get_console() is get_console()
