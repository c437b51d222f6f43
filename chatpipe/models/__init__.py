"""Models module for chatpipe."""

from chatpipe.models.message import FrozenMap, Message, as_message, freeze, thaw

__all__ = [
    "FrozenMap",
    "Message",
    "as_message",
    "freeze",
    "thaw",
]
