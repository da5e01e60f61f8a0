"""Logging setup for phpapidoc, rendered through Rich when available."""

import logging
import sys

from rich.console import Console
from rich.logging import RichHandler

from phpapidoc.core.config.settings import LoggingSettings, get_settings

_console: Console | None = None
_configured = False


def setup_logging(settings: LoggingSettings | None = None) -> None:
    """Configure the ``phpapidoc`` logger hierarchy.

    Only the package logger is touched, so embedding applications keep
    control of the root logger.

    Args:
        settings: Logging settings. Uses global settings if not provided.
    """
    global _console, _configured

    if settings is None:
        settings = get_settings().logging

    level = getattr(logging, settings.level)
    package_logger = logging.getLogger("phpapidoc")
    package_logger.setLevel(level)
    package_logger.handlers.clear()
    package_logger.propagate = False

    handler: logging.Handler
    if settings.use_rich:
        _console = Console(stderr=True)
        handler = RichHandler(
            console=_console,
            show_path=False,
            show_time=True,
            rich_tracebacks=True,
            markup=False,
        )
        handler.setFormatter(logging.Formatter(settings.format))
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(settings.format))
    package_logger.addHandler(handler)

    if settings.file:
        settings.file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(settings.file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        package_logger.addHandler(file_handler)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Get a logger, configuring the package hierarchy on first use.

    Args:
        name: Logger name (typically __name__).

    Returns:
        Logger instance.
    """
    if not _configured and name.startswith("phpapidoc"):
        setup_logging()
    return logging.getLogger(name)


def get_console() -> Console:
    """Get the Rich console used by the log handler.

    Returns:
        Console instance.
    """
    global _console
    if _console is None:
        _console = Console(stderr=True)
    return _console
