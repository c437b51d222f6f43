"""
Parallel fan-out composition of processors.

Every processor in a group receives the same message; none of them sees the
others' outputs. Results reach the acceptor as they are produced, in no
particular order.
"""

import asyncio
from collections.abc import Iterable
from typing import Any

from chatpipe.models.message import as_message
from chatpipe.pipeline.base import Acceptor, run_processor


class ProcessorGroup:
    """Fans a message out to a snapshot of processors concurrently."""

    def __init__(self, processors: Iterable[Any]):
        self._processors = tuple(processors)

    @property
    def processors(self) -> tuple[Any, ...]:
        return self._processors

    def __len__(self) -> int:
        return len(self._processors)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({list(self._processors)!r})"

    async def call(self, bot: Any, message: Any, acceptor: Acceptor) -> None:
        """Process a message with every processor in the group.

        Returns once all processors and their deliveries have finished. A
        failing processor is logged and does not affect the others.
        """
        message = as_message(message)
        source = type(self).__name__

        await asyncio.gather(*(
            run_processor(processor, bot, message, acceptor, source)
            for processor in self._processors
        ))

    async def __call__(self, bot: Any, message: Any, emit: Acceptor) -> None:
        await self.call(bot, message, emit)
