"""
Immutable message records.

Messages travel through chains and groups that may run concurrently, so
every value handed to a processor is deep-frozen first. Processors never
mutate a message; they build a new one with ``evolve`` or ``merge``.
"""

from collections.abc import Iterator, Mapping, Set
from typing import Any


class FrozenMap(Mapping):
    """A read-only mapping whose nested values are frozen as well."""

    __slots__ = ("_data",)

    def __init__(self, data: Mapping | None = None, **fields: Any):
        merged = dict(data or {})
        merged.update(fields)
        object.__setattr__(self, "_data", {k: freeze(v) for k, v in merged.items()})

    def __getitem__(self, key: Any) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.to_dict()!r})"

    def __reduce__(self):
        return (type(self), (self._data,))

    def merge(self, other: Mapping) -> "FrozenMap":
        """Return a copy with the keys of ``other`` layered on top."""
        return type(self)({**self._data, **other})

    def evolve(self, **changes: Any) -> "FrozenMap":
        """Return a copy with the given fields replaced."""
        return self.merge(changes)

    def without(self, *keys: Any) -> "FrozenMap":
        """Return a copy with the given keys removed."""
        return type(self)({k: v for k, v in self._data.items() if k not in keys})

    def to_dict(self) -> dict:
        """Return a deep, mutable copy."""
        return {k: thaw(v) for k, v in self._data.items()}


class Message(FrozenMap):
    """A chat message flowing through the pipeline.

    Messages are structurally typed: any string-keyed fields are allowed.
    ``service``, ``group`` and ``text`` are the fields chat adapters and
    services rely on.
    """

    __slots__ = ()

    @property
    def service(self) -> Any:
        return self._data.get("service")

    @property
    def group(self) -> Any:
        return self._data.get("group")

    @property
    def text(self) -> str | None:
        return self._data.get("text")

    def reply(self, text: str, **extra: Any) -> "Message":
        """Build a reply addressed to this message's service and group."""
        return Message(service=self.service, group=self.group, text=text, **extra)


def freeze(value: Any) -> Any:
    """Convert nested data to immutable equivalents."""
    if isinstance(value, FrozenMap):
        return value
    if isinstance(value, Mapping):
        return FrozenMap(value)
    if isinstance(value, (list, tuple)):
        return tuple(freeze(v) for v in value)
    if isinstance(value, Set) and not isinstance(value, frozenset):
        return frozenset(value)
    return value


def thaw(value: Any) -> Any:
    """Inverse of ``freeze``: produce plain dicts and lists."""
    if isinstance(value, Mapping):
        return {k: thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [thaw(v) for v in value]
    if isinstance(value, frozenset):
        return set(value)
    return value


def as_message(value: Mapping) -> Message:
    """Freeze a mapping into a Message, reusing it when already one."""
    if isinstance(value, Message):
        return value
    return Message(value)
