"""chatpipe - a message-processing pipeline for chat bots."""

from chatpipe.bot import Bot, Stage
from chatpipe.models.message import Message
from chatpipe.pipeline import (
    Discard,
    Failure,
    Forward,
    Postprocessor,
    Preprocessor,
    ProcessorChain,
    ProcessorGroup,
    ProcessorRegistry,
    Sender,
    Stop,
)
from chatpipe.services import Service, on_command, on_hear, on_listen, on_message

__version__ = "0.1.0"

__all__ = [
    "Bot",
    "Stage",
    "Message",
    "Forward",
    "Discard",
    "Stop",
    "Failure",
    "Preprocessor",
    "Postprocessor",
    "Sender",
    "ProcessorChain",
    "ProcessorGroup",
    "ProcessorRegistry",
    "Service",
    "on_message",
    "on_command",
    "on_hear",
    "on_listen",
]
