"""Application settings using Pydantic Settings.

Values are resolved in the order: init arguments, environment variables,
``.env``, the YAML configuration file, then field defaults.
"""

from contextvars import ContextVar
from functools import lru_cache
from pathlib import Path
from typing import Any, ClassVar

from pydantic import Field, field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from phpapidoc.core.config.loader import ConfigLoader

_active_loader: ContextVar[ConfigLoader | None] = ContextVar("phpapidoc_config_loader", default=None)


class YamlSectionSource(PydanticBaseSettingsSource):
    """Settings source reading one section of a loaded YAML configuration."""

    def __init__(self, settings_cls: type[BaseSettings], loader: ConfigLoader, section: str) -> None:
        super().__init__(settings_cls)
        self.loader = loader
        self.section = section

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        return self.loader.get(f"{self.section}.{field_name}"), field_name, False

    def __call__(self) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for field_name, field in self.settings_cls.model_fields.items():
            value, key, _ = self.get_field_value(field, field_name)
            if value is not None:
                values[key] = value
        return values


class SectionSettings(BaseSettings):
    """Settings backed by one section of the YAML configuration.

    The YAML source ranks below environment variables and ``.env``, so
    ``PHPAPIDOC_<SECTION>_*`` variables always win over the file.
    """

    yaml_section: ClassVar[str] = ""

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        loader = _active_loader.get()
        if loader is None:
            return init_settings, env_settings, dotenv_settings, file_secret_settings
        yaml_settings = YamlSectionSource(settings_cls, loader, cls.yaml_section)
        return init_settings, env_settings, dotenv_settings, yaml_settings, file_secret_settings


class ParserSettings(SectionSettings):
    """API parser configuration settings."""

    yaml_section: ClassVar[str] = "parser"

    model_config = SettingsConfigDict(
        env_prefix="PHPAPIDOC_PARSER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    extensions: list[str] = Field(
        default_factory=lambda: [".php"],
        description="Source file extensions to scan",
    )
    max_workers: int = Field(
        default=1,
        ge=1,
        le=64,
        description="Worker threads for the parse and extract phase",
    )
    max_file_size: int = Field(
        default=2 * 1024 * 1024,
        ge=1,
        description="Files larger than this many bytes are reported as failed",
    )
    global_namespace: str = Field(
        default="__GLOBAL__",
        description="Namespace assigned to units without a namespace declaration",
    )
    markdown_extensions: list[str] = Field(
        default_factory=lambda: ["fenced_code", "tables"],
        description="Python-Markdown extensions used to render doc comments",
    )
    encoding: str = Field(
        default="utf-8",
        description="Encoding used to decode source files",
    )

    @field_validator("extensions", mode="after")
    @classmethod
    def validate_extensions(cls, v: list[str]) -> list[str]:
        """Normalise extensions to lowercase with a leading dot."""
        return [ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in v]


class LoggingSettings(SectionSettings):
    """Logging configuration settings."""

    yaml_section: ClassVar[str] = "logging"

    model_config = SettingsConfigDict(
        env_prefix="PHPAPIDOC_LOGGING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    level: str = Field(
        default="INFO",
        description="Log level",
    )
    format: str = Field(
        default="[%(name)s] %(message)s",
        description="Log format string",
    )
    file: Path | None = Field(
        default=None,
        description="Log file path",
    )
    use_rich: bool = Field(
        default=True,
        description="Use Rich console for output",
    )

    @field_validator("level", mode="before")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper

    @field_validator("file", mode="before")
    @classmethod
    def validate_file(cls, v: str | None) -> Path | None:
        """Validate and convert file to Path."""
        if v is None or v == "":
            return None
        return Path(v)


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="PHPAPIDOC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    parser: ParserSettings = Field(default_factory=ParserSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def from_loader(cls, loader: ConfigLoader) -> "Settings":
        """Build settings with a loaded configuration as the YAML source.

        Args:
            loader: Loader holding the parsed YAML configuration.

        Returns:
            Settings instance.
        """
        token = _active_loader.set(loader)
        try:
            return cls(parser=ParserSettings(), logging=LoggingSettings())
        finally:
            _active_loader.reset(token)

    @classmethod
    def from_yaml(cls, path: Path) -> "Settings":
        """Load settings from YAML file.

        Args:
            path: Path to YAML configuration file.

        Returns:
            Settings instance with values from YAML, overridden by the
            environment.
        """
        loader = ConfigLoader(path)
        loader.load()
        return cls.from_loader(loader)

    @classmethod
    def load(cls) -> "Settings":
        """Load settings from default locations.

        Priority: Environment variables > .env > config/default.yaml > defaults

        Returns:
            Settings instance.
        """
        return cls.from_loader(ConfigLoader.default())


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings singleton.
    """
    return Settings.load()
