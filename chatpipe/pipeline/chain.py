"""
Serial, forking composition of processors.

A chain passes a message through its processors in order. A processor that
drops a message ends that path; a processor that produces several messages
forks the chain, and each output continues through the remaining processors
independently and concurrently.
"""

from collections.abc import Iterable
from typing import Any

from chatpipe.models.message import as_message
from chatpipe.pipeline.base import Acceptor, deliver, run_processor


class ProcessorChain:
    """Runs a message through an ordered snapshot of processors.

    Holds no per-message state, so one instance may serve any number of
    concurrent traversals. Chains are themselves function-form processors
    and can be nested inside other chains or groups.
    """

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
        """Process a message with the chain.

        Args:
            bot: Context handed to every processor.
            message: The message to process; frozen before use.
            acceptor: Receives every message that makes it through the whole
                chain. With no processors, receives ``message`` exactly once.
        """
        message = as_message(message)
        source = type(self).__name__

        if not self._processors:
            await deliver(bot, acceptor, message, source)
            return

        first = self._processors[0]
        rest = type(self)(self._processors[1:])

        async def continue_with(output):
            await rest.call(bot, output, acceptor)

        await run_processor(first, bot, message, continue_with, source)

    async def __call__(self, bot: Any, message: Any, emit: Acceptor) -> None:
        await self.call(bot, message, emit)
