"""
Base class for chat services with declarative handlers.

Services do most of a bot's real work: they look at inbound messages and
produce replies. Handlers are plain methods marked with decorators::

    class Weather(Service):
        @on_command("weather")
        def forecast(self, command, arguments, message):
            return f"Sunny in {arguments}"

        @on_hear(r"\\bumbrella\\b", re.IGNORECASE)
        def umbrella(self, match, message):
            return "Bring one."

        @on_message
        def count(self, message):
            self.bot.cache("weather").swap(lambda c: {**c, "seen": c.get("seen", 0) + 1})

Returning a string replies to the message's service and group; returning
``None`` sends nothing; returning a list sends each element.
Synchronous handlers run on executor threads, so shared state belongs in
the bot's caches and stores.

Three handler kinds exist:

* message handlers run for every message: ``handler(self, message)``
* command handlers run when the text starts with the command prefix and the
  command, followed by whitespace or the end of the text:
  ``handler(self, command, arguments, message)`` where ``arguments`` is the
  rest of the text or ``None``
* listen handlers run when the text matches a regex:
  ``handler(self, match, message)``

Per kind, a handler runs at most once per message. When several commands or
patterns lead to the same handler, the first one registered that matches
wins.
"""

import asyncio
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from chatpipe.models.message import Message
from chatpipe.pipeline.base import Discard, Failure, Forward, Stop, call_blocking, to_outcome
from chatpipe.pipeline.failures import describe_handle, log_failure
from chatpipe.pipeline.processors import SERVICE, StageProcessor
from chatpipe.pipeline.replies import process_replies

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_PREFIX = "#"

_TRIGGERS_ATTR = "__chatpipe_triggers__"


@dataclass(frozen=True)
class Trigger:
    """What makes a handler run."""
    kind: str  # "message", "command" or "hear"
    key: Any = None  # command name or compiled pattern


def _add_trigger(func: Callable, trigger: Trigger) -> Callable:
    # Decorators apply bottom-up; prepend so stacked triggers keep source order
    existing = getattr(func, _TRIGGERS_ATTR, ())
    setattr(func, _TRIGGERS_ATTR, (trigger,) + existing)
    return func


def on_message(func: Callable) -> Callable:
    """Call the decorated method with every message received."""
    return _add_trigger(func, Trigger("message"))


def on_command(command: str) -> Callable[[Callable], Callable]:
    """Call the decorated method when a message starts with a command.

    A command is the prefix (``#`` by default) followed by a word; arguments
    are all text after it. For "#weather Seattle, WA" the command is
    "weather" and the arguments are "Seattle, WA".
    """
    command = str(command)

    def decorator(func: Callable) -> Callable:
        return _add_trigger(func, Trigger("command", command))

    return decorator


def on_hear(pattern: str | re.Pattern, flags: int = 0) -> Callable[[Callable], Callable]:
    """Call the decorated method when a message's text matches ``pattern``.

    Matching uses ``re.search``. Include ``re.IGNORECASE`` for
    case-insensitive matches.
    """
    compiled = re.compile(pattern, flags) if isinstance(pattern, str) else pattern

    def decorator(func: Callable) -> Callable:
        return _add_trigger(func, Trigger("hear", compiled))

    return decorator


on_listen = on_hear


def _command_regex(prefix: str, command: str) -> re.Pattern:
    return re.compile(rf"{re.escape(prefix)}{re.escape(command)}(?:\s|\Z)")


class Service(StageProcessor):
    """A service processor dispatching messages to decorated handlers."""

    stage = SERVICE

    # Overrides the bot's configured command prefix when set
    command_prefix: str | None = None

    _handler_entries: tuple[tuple[Trigger, str, Callable], ...] = ()
    message_handlers: tuple[Callable, ...] = ()
    command_handlers: dict[str, Callable] = {}
    listen_handlers: tuple[tuple[re.Pattern, Callable], ...] = ()

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)

        # Inherited handlers, minus any this class overrides by name
        entries = [e for e in cls._handler_entries if e[1] not in cls.__dict__]
        for attr_name, value in cls.__dict__.items():
            for trigger in getattr(value, _TRIGGERS_ATTR, ()):
                entry = (trigger, attr_name, value)
                if entry not in entries:
                    entries.append(entry)
        cls._handler_entries = tuple(entries)

        message_handlers: list[Callable] = []
        command_handlers: dict[str, Callable] = {}
        listen_handlers: list[tuple[re.Pattern, Callable]] = []
        for trigger, _, func in entries:
            if trigger.kind == "message":
                if func not in message_handlers:
                    message_handlers.append(func)
            elif trigger.kind == "command":
                command_handlers[trigger.key] = func
            elif trigger.kind == "hear":
                listen_handlers.append((trigger.key, func))

        cls.message_handlers = tuple(message_handlers)
        cls.command_handlers = command_handlers
        cls.listen_handlers = tuple(listen_handlers)

    @classmethod
    def commands(cls) -> list[str]:
        """Commands this service responds to, in registration order."""
        return list(cls.command_handlers)

    def resolve_command_prefix(self) -> str:
        """The command prefix for this service."""
        if self.command_prefix:
            return self.command_prefix
        configured = getattr(self.bot, "command_prefix", None)
        return configured if isinstance(configured, str) and configured else DEFAULT_COMMAND_PREFIX

    def matching_handlers(self, message: Message) -> list[tuple[Callable, tuple]]:
        """Work out which handlers run for ``message`` and with which arguments."""
        cls = type(self)
        calls: list[tuple[Callable, tuple]] = [(func, (message,)) for func in cls.message_handlers]

        text = message.get("text")
        if not isinstance(text, str):
            return calls

        prefix = self.resolve_command_prefix()
        seen: set[Callable] = set()
        for command, func in cls.command_handlers.items():
            if func in seen or not _command_regex(prefix, command).match(text):
                continue
            seen.add(func)
            arguments = " ".join(text.split()[1:]) or None
            calls.append((func, (command, arguments, message)))

        seen = set()
        for pattern, func in cls.listen_handlers:
            if func in seen:
                continue
            match = pattern.search(text)
            if match:
                seen.add(func)
                calls.append((func, (match, message)))

        return calls

    async def _run_handler(self, func: Callable, args: tuple, message: Message) -> tuple[Message, ...]:
        try:
            outcome = to_outcome(await call_blocking(func, self, *args), message)
        except Exception as e:
            outcome = Failure(e)

        if isinstance(outcome, Forward):
            return outcome.messages
        if isinstance(outcome, Failure):
            log_failure(
                self.bot,
                f"{describe_handle(type(self))} -> {func.__name__}",
                error=outcome.error,
                message=message,
            )
        elif isinstance(outcome, (Stop, Discard)):
            logger.debug(f"{self.name}.{func.__name__} produced no reply")
        return ()

    async def process(self, message: Message) -> Forward:
        """Run every matching handler concurrently and merge their replies."""
        calls = self.matching_handlers(message)
        results = await asyncio.gather(*(
            self._run_handler(func, args, message) for func, args in calls
        ))
        return Forward(process_replies(results, message))
