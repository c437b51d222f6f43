"""
Processor registry for one pipeline stage.

Components register processors into a stage's registry during setup; the
bot builds a fresh chain or group from a snapshot of the registry each time
a message enters that stage.
"""

import logging
from collections.abc import Iterator
from typing import Any

from chatpipe.pipeline.failures import describe_handle

logger = logging.getLogger(__name__)


class ProcessorRegistry:
    """Insertion-ordered, deduplicating set of processor handles.

    Registration is meant for the setup phase only; it is not safe to
    register while messages are being processed.
    """

    def __init__(self, stage: str | None = None):
        self.stage = stage
        # dict keys keep insertion order and give identity-based dedup
        self._processors: dict[Any, None] = {}

    def register(self, processor: Any) -> bool:
        """Register a processor.

        Args:
            processor: A processor class or a ``fn(bot, message, emit)`` callable.

        Returns:
            True if the registration was new, False if it was already present.
        """
        if processor in self._processors:
            logger.debug(f"Processor {describe_handle(processor)} already registered for stage {self.stage}")
            return False

        self._processors[processor] = None
        logger.debug(f"Registered processor {describe_handle(processor)} for stage {self.stage}")
        return True

    def list(self) -> list[Any]:
        """Get a snapshot of registered processors in registration order."""
        return list(self._processors)

    tasks = list

    def __contains__(self, processor: Any) -> bool:
        return processor in self._processors

    def __len__(self) -> int:
        return len(self._processors)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.list())

    def __repr__(self) -> str:
        names = ", ".join(describe_handle(p) for p in self._processors)
        return f"ProcessorRegistry(stage={self.stage!r}, processors=[{names}])"
