"""
Stage-specific processor base classes.

Each class knows which stage it belongs to, so subclasses can be handed
straight to ``Bot.use``::

    class Shout(Postprocessor):
        def process(self, message):
            return message.evolve(text=message.text.upper())

    bot.use(Shout)
"""

from typing import Any

from chatpipe.pipeline.base import Processor

PREPROCESSOR = "preprocessor"
SERVICE = "service"
POSTPROCESSOR = "postprocessor"
SENDER = "sender"


class StageProcessor(Processor):
    """A processor that registers itself into ``stage`` when used."""

    stage: str = ""

    @classmethod
    def register_into(cls, bot: Any, *args: Any, **kwargs: Any) -> None:
        bot.registry(cls.stage).register(cls)


class Preprocessor(StageProcessor):
    """Runs on every inbound message before services see it."""
    stage = PREPROCESSOR


class Postprocessor(StageProcessor):
    """Runs on every reply produced by services before it is sent."""
    stage = POSTPROCESSOR


class Sender(StageProcessor):
    """Delivers fully processed messages to a chat service.

    Senders run as a group: every sender sees every outgoing message and
    should ignore messages for services it does not handle.
    """
    stage = SENDER
