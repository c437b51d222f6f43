"""
Configuration management for chatpipe.

Loads and validates configuration from YAML files with environment variable support.
"""

import logging
import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_serializer, field_validator

from chatpipe.core.exceptions import ConfigurationError
from chatpipe.models.message import FrozenMap, freeze, thaw

CONFIG_DIR_ENV = "CHATPIPE_CONFIG_DIR"
SETTINGS_FILE = "settings.yaml"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _resolve_env_vars(value: Any) -> Any:
    """Resolve environment variable references in configuration values.

    Supports format: ${VAR_NAME:default_value} or ${VAR_NAME}
    """
    if isinstance(value, str):
        pattern = r'\$\{([^}:]+)(?::([^}]*))?\}'

        def replacer(match):
            var_name = match.group(1)
            default = match.group(2) if match.group(2) is not None else ""
            return os.environ.get(var_name, default)

        return re.sub(pattern, replacer, value)
    elif isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_resolve_env_vars(v) for v in value]
    return value


def load_yaml_config(path: Path) -> dict:
    """Load a YAML configuration file with environment variable resolution."""
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}", {"path": str(path)})

    try:
        with open(path, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Malformed configuration file {path}: {e}", {"path": str(path)}) from e

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigurationError(
            f"Configuration file {path} must contain a mapping, got {type(config).__name__}",
            {"path": str(path)},
        )

    return _resolve_env_vars(config)


# --- Settings Models ---

class BotSettings(BaseModel):
    """Bot identity and message handling."""
    model_config = ConfigDict(frozen=True)

    name: str = "chatpipe"
    # Sigil that starts a command, e.g. "#weather Seattle"
    command_prefix: str = "#"
    # Fields every message must carry when it enters the pipeline
    required_fields: tuple[str, ...] = ()


class StorageSettings(BaseModel):
    """Persistent store configuration."""
    model_config = ConfigDict(frozen=True)

    # SQLite file backing Bot.store(); stores are unavailable when unset
    path: str | None = None
    wal_mode: bool = True


class LoggingSettings(BaseModel):
    """Logging configuration."""
    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    format: str = LOG_FORMAT

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Ensure the level is one the logging module knows."""
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v}")
        return level


class ServerSettings(BaseModel):
    """HTTP ingestion API configuration."""
    model_config = ConfigDict(frozen=True)

    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False
    # HMAC secret for inbound message signatures; verification is off when empty
    webhook_secret: str = ""


class Settings(BaseModel):
    """Main application settings."""
    model_config = ConfigDict(frozen=True)

    bot: BotSettings = Field(default_factory=BotSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    # Free-form configuration consumed by individual services and bundles
    services: Mapping[str, Any] = Field(default_factory=FrozenMap)

    @field_validator("services", mode="after")
    @classmethod
    def freeze_services(cls, v: Mapping[str, Any]) -> FrozenMap:
        """Make per-service configuration read-only."""
        return freeze(v)

    @field_serializer("services")
    def serialize_services(self, v: Mapping[str, Any]) -> dict[str, Any]:
        return thaw(v)

    def service_config(self, name: str) -> FrozenMap:
        """Get the configuration block for one service (empty if absent)."""
        return self.services.get(name) or FrozenMap()

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "Settings":
        """Build settings from a plain mapping, reporting problems as ConfigurationError."""
        try:
            return cls(**dict(config))
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    @classmethod
    def load(cls, config_dir: Path | str | None = None) -> "Settings":
        """Load settings from configuration file.

        With no directory given and CHATPIPE_CONFIG_DIR unset, defaults are
        used. A directory that was asked for but does not exist is an error.
        """
        if config_dir is None:
            env_dir = os.environ.get(CONFIG_DIR_ENV)
            if not env_dir:
                return cls()
            config_dir = env_dir

        config_dir = Path(config_dir)
        if not config_dir.is_dir():
            raise ConfigurationError(
                f"Configuration directory not found: {config_dir}",
                {"config_dir": str(config_dir)},
            )

        settings_path = config_dir / SETTINGS_FILE

        if settings_path.exists():
            return cls.from_mapping(load_yaml_config(settings_path))

        return cls()


def configure_logging(settings: LoggingSettings | None = None) -> None:
    """Configure root logging for entry points (CLI, API server)."""
    settings = settings or LoggingSettings()
    logging.basicConfig(
        level=getattr(logging, settings.level),
        format=settings.format,
    )
