"""
Processor contract and processing outcomes.

A processor is either:

* a class instantiated per invocation as ``cls(bot)`` whose ``process(message)``
  returns a message, a collection of messages, a string reply, ``None`` or an
  ``Outcome``; or
* a callable ``fn(bot, message, emit)`` that calls ``emit(output)`` zero or
  more times and may return an ``Outcome`` such as ``Stop()``.

Either form may be a coroutine. Whatever a processor does is mapped to one
of four outcomes: ``Forward``, ``Discard``, ``Stop`` or ``Failure``. Chains
and groups switch on the outcome; only ``Failure`` is logged.
"""

import asyncio
import functools
import inspect
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Union

from chatpipe.models.message import Message
from chatpipe.pipeline.failures import describe_handle, log_failure
from chatpipe.pipeline.replies import process_replies


@dataclass(frozen=True)
class Forward:
    """Pass these messages on to whatever comes next."""
    messages: tuple[Message, ...] = ()


@dataclass(frozen=True)
class Discard:
    """Nothing to say. The path ends without a log entry."""


@dataclass(frozen=True)
class Stop:
    """Deliberately end this path, e.g. after a sender delivered a message."""
    reason: str | None = None


@dataclass(frozen=True)
class Failure:
    """The processor raised. The path ends and the error is logged."""
    error: BaseException


Outcome = Union[Forward, Discard, Stop, Failure]

Acceptor = Callable[[Message], Any]


def to_outcome(result: Any, original: Message | None = None) -> Outcome:
    """Map a processor's return value to an Outcome."""
    if isinstance(result, (Discard, Stop, Failure)):
        return result
    if isinstance(result, Forward):
        result = result.messages
    messages = process_replies(result, original)
    return Forward(messages) if messages else Discard()


class Processor(ABC):
    """Base class for class-form processors.

    Subclasses must implement:
    - process(): handle one message and return the outputs

    Optionally override:
    - register_into(): register the class into a bot stage, so the class can
      be passed to ``Bot.use``
    """

    def __init__(self, bot: Any):
        self.bot = bot

    @classmethod
    def register_into(cls, bot: Any, *args: Any, **kwargs: Any) -> None:
        """Register this processor into the appropriate stage of ``bot``."""
        raise NotImplementedError(f"{cls.__name__} does not support Bot.use")

    @property
    def name(self) -> str:
        """Human-readable name of the processor."""
        return self.__class__.__name__

    @abstractmethod
    def process(self, message: Message) -> Any:
        """Process a message.

        May return the message unchanged, a new message, several messages,
        a string reply, ``None`` to discard, or an explicit Outcome. Raising
        is treated as a processing failure.
        """

    def stop_processing(self, reason: str | None = None) -> Stop:
        """Outcome that silently ends processing of this message on this path.

        Within preprocessing and postprocessing chains this is the same as
        discarding the message. Senders use it once delivery is confirmed.
        """
        return Stop(reason)

    discard_message = stop_processing


async def maybe_await(value: Any) -> Any:
    """Await ``value`` if it is awaitable, otherwise return it as is."""
    if inspect.isawaitable(value):
        return await value
    return value


def is_async_callable(func: Any) -> bool:
    """True for coroutine functions and objects with an async ``__call__``."""
    return inspect.iscoroutinefunction(func) or inspect.iscoroutinefunction(
        getattr(func, "__call__", None)
    )


async def call_blocking(func: Callable, *args: Any) -> Any:
    """Call ``func`` without blocking the event loop.

    Coroutine functions are awaited directly. Anything else runs in the
    loop's default executor, so slow synchronous processors in a group or
    in other in-flight messages run side by side.
    """
    if is_async_callable(func):
        return await func(*args)
    loop = asyncio.get_running_loop()
    return await maybe_await(await loop.run_in_executor(None, functools.partial(func, *args)))


def threadsafe_emit(emit: Callable[[Any], None]) -> Callable[[Any], None]:
    """Wrap ``emit`` so executor threads can call it.

    The call is handed to the event loop and waits for it, so outputs keep
    their order and anything ``emit`` raises reaches the processor.
    """
    loop = asyncio.get_running_loop()

    async def emit_on_loop(output: Any) -> None:
        emit(output)

    def wrapper(output: Any) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            emit(output)
        else:
            asyncio.run_coroutine_threadsafe(emit_on_loop(output), loop).result()

    return wrapper


async def invoke(handle: Any, bot: Any, message: Message, emit: Callable[[Any], None]) -> Outcome:
    """Run one processor handle and report what happened as an Outcome.

    Synchronous processors run on executor threads; see ``call_blocking``.
    """
    try:
        if inspect.isclass(handle):
            result = await call_blocking(handle(bot).process, message)
            return to_outcome(result, message)

        result = await call_blocking(handle, bot, message, threadsafe_emit(emit))
        if isinstance(result, (Forward, Discard, Stop, Failure)):
            return to_outcome(result, message)
        # Function-form outputs go through emit; other return values are ignored
        return Discard()
    except Exception as e:
        return Failure(e)


async def deliver(bot: Any, acceptor: Acceptor, message: Message, source: str) -> None:
    """Hand a message to an acceptor, logging anything it raises."""
    try:
        await maybe_await(acceptor(message))
    except Exception as e:
        log_failure(bot, f"{source} (delivery)", error=e, message=message)


async def run_processor(
    handle: Any,
    bot: Any,
    message: Message,
    on_output: Acceptor,
    source: str,
) -> Outcome:
    """Invoke a processor and forward each of its outputs to ``on_output``.

    Every output is delivered on its own task as soon as it is produced, so
    forks proceed concurrently. Returns once the processor and all
    deliveries it triggered have finished.
    """
    pending: list[asyncio.Future] = []

    def emit(output: Any) -> None:
        for forwarded in process_replies(output, message):
            pending.append(asyncio.ensure_future(deliver(bot, on_output, forwarded, source)))

    outcome = await invoke(handle, bot, message, emit)

    if isinstance(outcome, Forward):
        for forwarded in outcome.messages:
            pending.append(asyncio.ensure_future(deliver(bot, on_output, forwarded, source)))
    elif isinstance(outcome, Failure):
        log_failure(bot, f"{source} -> {describe_handle(handle)}", error=outcome.error, message=message)

    if pending:
        await asyncio.gather(*pending)

    return outcome
