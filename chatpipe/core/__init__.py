"""Core module for chatpipe configuration, errors and shared state."""

from chatpipe.core.config import (
    Settings,
    BotSettings,
    StorageSettings,
    LoggingSettings,
    ServerSettings,
    configure_logging,
    load_yaml_config,
)
from chatpipe.core.key_value_atom import KeyValueAtom

__all__ = [
    "Settings",
    "BotSettings",
    "StorageSettings",
    "LoggingSettings",
    "ServerSettings",
    "configure_logging",
    "load_yaml_config",
    "KeyValueAtom",
]
