"""
Custom exceptions for chatpipe.

Only setup-time problems are raised to callers. Failures inside processors
are reported through the bot's logger and never surface here.
"""

from typing import Any


class ChatpipeError(Exception):
    """Base exception for all chatpipe errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(ChatpipeError):
    """Configuration-related errors."""
    pass


class BundleError(ConfigurationError):
    """A bundle passed to Bot.use cannot register itself."""
    pass


class UnknownStageError(ChatpipeError):
    """A stage name that the bot does not know about."""

    def __init__(self, stage: str, known: list[str] | None = None):
        known = known or []
        super().__init__(
            f"Unknown stage: {stage!r} (known stages: {', '.join(known) or 'none'})",
            {"stage": stage, "known": known},
        )
        self.stage = stage


class InvalidMessageError(ChatpipeError):
    """A message rejected at the pipeline entry boundary."""
    pass


class StorageError(ChatpipeError):
    """Persistent store errors."""
    pass
