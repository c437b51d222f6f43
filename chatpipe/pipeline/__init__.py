"""Pipeline module for message processing."""

from chatpipe.pipeline.base import Discard, Failure, Forward, Outcome, Processor, Stop
from chatpipe.pipeline.chain import ProcessorChain
from chatpipe.pipeline.group import ProcessorGroup
from chatpipe.pipeline.processors import (
    POSTPROCESSOR,
    PREPROCESSOR,
    SENDER,
    SERVICE,
    Postprocessor,
    Preprocessor,
    Sender,
    StageProcessor,
)
from chatpipe.pipeline.registry import ProcessorRegistry
from chatpipe.pipeline.replies import process_replies

__all__ = [
    "Forward",
    "Discard",
    "Stop",
    "Failure",
    "Outcome",
    "Processor",
    "ProcessorChain",
    "ProcessorGroup",
    "ProcessorRegistry",
    "StageProcessor",
    "Preprocessor",
    "Postprocessor",
    "Sender",
    "PREPROCESSOR",
    "SERVICE",
    "POSTPROCESSOR",
    "SENDER",
    "process_replies",
]
