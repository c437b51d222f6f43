"""
Console chat adapter.

Turns lines read from a text stream into messages for the bot and prints
replies addressed to the console. Useful for trying out services locally::

    bot = Bot()
    bot.use(console)
    await console.run_console(bot, sys.stdin)
"""

import asyncio
import logging
import sys
from typing import Any, TextIO

from chatpipe.models.message import Message
from chatpipe.pipeline.processors import Sender

logger = logging.getLogger(__name__)

SERVICE_NAME = "console"
DEFAULT_GROUP = "console"


class ConsoleSender(Sender):
    """Prints console replies as ``[group] text``.

    Writes to the stream kept in the bot's ``console`` cache, or to
    ``sys.stdout`` when none was given.
    """

    def process(self, message: Message):
        if message.service != SERVICE_NAME:
            return None

        stream = self.bot.cache(SERVICE_NAME).get("stream") or sys.stdout
        stream.write(f"[{message.group}] {message.text}\n")
        stream.flush()
        return self.stop_processing("delivered")


def register_into(bot: Any, stream: TextIO | None = None) -> None:
    """Register the console sender, optionally writing to ``stream``.

    Registering again is a no-op apart from switching the output stream.
    """
    if stream is not None:
        bot.cache(SERVICE_NAME)["stream"] = stream
    bot.sender.register(ConsoleSender)


def line_to_message(line: str, group: str = DEFAULT_GROUP) -> dict[str, Any]:
    """Build an inbound message from one line of console input."""
    return {"service": SERVICE_NAME, "group": group, "text": line.rstrip("\r\n")}


async def run_console(bot: Any, stream: TextIO, group: str = DEFAULT_GROUP) -> int:
    """Feed every line of ``stream`` to the bot until end of input.

    Each line is processed to completion before the next is read, so
    replies come out in input order. Returns the number of lines handled.
    """
    loop = asyncio.get_running_loop()
    handled = 0

    while True:
        line = await loop.run_in_executor(None, stream.readline)
        if not line:
            break
        await bot.accept(line_to_message(line, group))
        handled += 1

    logger.info(f"Console input closed after {handled} message(s)")
    return handled
