"""
Failure reports for processors that raised while handling a message.

Reports are plain text handed to ``bot.log``. They name the failing
processor and the message it was given, and carry the exception and an
indented traceback.
"""

import traceback
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any


def _utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def describe_handle(handle: Any) -> str:
    """Human-readable identity for a processor handle."""
    name = getattr(handle, "__qualname__", None) or getattr(handle, "__name__", None)
    if name is None:
        return repr(handle)
    module = getattr(handle, "__module__", None)
    return f"{module}.{name}" if module else name


def indent_lines(lines: list[str], indent: int = 6) -> str:
    """Indent each line by ``indent`` spaces."""
    pad = " " * indent
    return "\n".join(pad + line for line in lines)


def format_failure(
    source: str,
    error: BaseException | None = None,
    message: Any = None,
) -> str:
    """Render a failure report.

    Args:
        source: Who failed, e.g. "ProcessorChain -> myapp.Greeter".
        error: The exception that was raised.
        message: The message being processed when it was raised.
    """
    lines = [f"({_utcnow().isoformat()}) Error in {source}"]
    if message is not None:
        shown = message.to_dict() if hasattr(message, "to_dict") else message
        if isinstance(shown, Mapping):
            shown = dict(shown)
        lines.append(f"  => message = {shown!r}")
    if error is not None:
        lines.append(f"  => exception = {error!r}")
        trace = traceback.format_exception(type(error), error, error.__traceback__)
        trace_lines = "".join(trace).rstrip("\n").splitlines()
        lines.append("  => backtrace:\n" + indent_lines(trace_lines))
    return "\n".join(lines)


def log_failure(bot: Any, source: str, error: BaseException | None = None, message: Any = None) -> None:
    """Report a failure through the bot's logger collaborator."""
    bot.log(format_failure(source, error=error, message=message))
