"""
A thread-safe key-value cell.

The cell always holds a complete, frozen mapping. Every update builds a new
snapshot and replaces the old one under a lock, so readers never observe a
partially applied write.
"""

import threading
from collections.abc import Callable, Mapping
from typing import Any

from chatpipe.models.message import FrozenMap, freeze


class KeyValueAtom:
    """Mutable reference to an immutable mapping."""

    def __init__(self, initial: Mapping | None = None):
        self._lock = threading.RLock()
        self._value = FrozenMap(initial or {})

    @property
    def value(self) -> FrozenMap:
        """The current snapshot."""
        return self._value

    def __getitem__(self, key: Any) -> Any:
        return self._value[key]

    def __setitem__(self, key: Any, value: Any) -> None:
        self.set(key, value)

    def __contains__(self, key: Any) -> bool:
        return key in self._value

    def __len__(self) -> int:
        return len(self._value)

    def __repr__(self) -> str:
        return f"KeyValueAtom({self._value.to_dict()!r})"

    def get(self, key: Any, default: Any = None) -> Any:
        return self._value.get(key, default)

    def set(self, key: Any, value: Any) -> FrozenMap:
        """Atomically merge a single key into the mapping."""
        return self.swap(lambda current: {**current, key: value})

    def delete(self, key: Any) -> FrozenMap:
        return self.swap(lambda current: {k: v for k, v in current.items() if k != key})

    def swap(self, fn: Callable[..., Mapping], *args: Any, **kwargs: Any) -> FrozenMap:
        """Replace the value with ``fn(current, *args, **kwargs)``.

        ``fn`` must return a mapping; the result is frozen before it becomes
        visible. Returns the new snapshot.
        """
        with self._lock:
            updated = fn(self._value, *args, **kwargs)
            if not isinstance(updated, Mapping):
                raise TypeError(
                    f"KeyValueAtom.swap expects a mapping, got {type(updated).__name__}"
                )
            self._value = freeze(updated)
            return self._value

    def reset(self, value: Mapping | None = None) -> FrozenMap:
        """Unconditionally replace the whole mapping."""
        return self.swap(lambda _: value or {})
