"""
Built-in processors every bot tends to want.

``bot.use(builtin)`` registers all of them:

* StripWhitespace - trims surrounding whitespace from message text
* DropEmpty - stops messages that carry no text
* Ping - answers ``#ping`` with ``pong``
* Help - answers ``#help`` with the commands of every registered service
"""

from typing import Any

from chatpipe.models.message import Message
from chatpipe.pipeline.processors import Preprocessor
from chatpipe.services.base import Service, on_command


class StripWhitespace(Preprocessor):
    """Trim leading and trailing whitespace from ``text``."""

    def process(self, message: Message):
        text = message.text
        if not isinstance(text, str) or text == text.strip():
            return message
        return message.evolve(text=text.strip())


class DropEmpty(Preprocessor):
    """Stop messages whose text is missing or blank."""

    def process(self, message: Message):
        text = message.text
        if not isinstance(text, str) or not text.strip():
            return self.stop_processing("empty message")
        return message


class Ping(Service):
    """Liveness check from inside a chat."""

    @on_command("ping")
    def ping(self, command, arguments, message):
        return "pong"


class Help(Service):
    """Lists the commands of every service registered with the bot."""

    @on_command("help")
    def help(self, command, arguments, message):
        prefix = self.resolve_command_prefix()
        commands = []
        for handle in self.bot.service.list():
            if isinstance(handle, type) and issubclass(handle, Service):
                for name in handle.commands():
                    if name not in commands:
                        commands.append(name)

        if not commands:
            return "No commands available."
        return "Commands: " + ", ".join(f"{prefix}{name}" for name in sorted(commands))


PREPROCESSORS = (StripWhitespace, DropEmpty)
SERVICES = (Ping, Help)


def register_into(bot: Any) -> None:
    """Register the built-in preprocessors and services."""
    for processor in PREPROCESSORS + SERVICES:
        bot.use(processor)
