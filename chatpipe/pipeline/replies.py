"""
Normalisation of processor and handler return values into messages.

Higher-level processors may return ``None``, a string, a message or any
nesting of lists of those. ``process_replies`` maps all of that back to a
flat tuple of frozen messages.
"""

from collections.abc import Iterable, Mapping
from typing import Any

from chatpipe.models.message import Message, as_message


def _flatten(replies: Any) -> Iterable[Any]:
    if isinstance(replies, (str, bytes, Mapping)):
        yield replies
    elif isinstance(replies, Iterable):
        for reply in replies:
            yield from _flatten(reply)
    else:
        yield replies


def process_replies(replies: Any, original: Mapping | None) -> tuple[Message, ...]:
    """Flatten replies, drop ``None`` and turn strings into reply messages.

    String replies are addressed to the service and group of ``original``.
    """
    outputs = []
    for reply in _flatten(replies):
        if reply is None:
            continue
        if isinstance(reply, str):
            original = original or {}
            outputs.append(Message(
                service=original.get("service"),
                group=original.get("group"),
                text=reply,
            ))
        elif isinstance(reply, Mapping):
            outputs.append(as_message(reply))
        else:
            raise TypeError(
                f"Cannot forward {type(reply).__name__} as a message; "
                "return a mapping, a string, None, or a list of those"
            )
    return tuple(outputs)
