"""Services module."""

from chatpipe.services.base import Service, on_command, on_hear, on_listen, on_message

__all__ = [
    "Service",
    "on_message",
    "on_command",
    "on_hear",
    "on_listen",
]
