"""Configuration management for phpapidoc."""

from phpapidoc.core.config.loader import ConfigLoader
from phpapidoc.core.config.settings import (
    LoggingSettings,
    ParserSettings,
    Settings,
    get_settings,
)

__all__ = [
    "ConfigLoader",
    "LoggingSettings",
    "ParserSettings",
    "Settings",
    "get_settings",
]
