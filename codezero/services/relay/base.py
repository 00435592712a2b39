"""
Relay store interface.

The relay is a path-addressable tree of JSON values used as the out-of-band
channel for call signaling. Listeners always receive the full current value
at their path, never a diff.
"""

from __future__ import annotations

import abc
from typing import Any, Awaitable, Callable

ValueListener = Callable[[Any], Awaitable[None]]
Unsubscribe = Callable[[], None]

_FORBIDDEN = set(".#$[]")


class RelayError(RuntimeError):
    """Raised when the relay connection is closed or rejects an operation."""


def split_path(path: str) -> tuple[str, ...]:
    segments = tuple(part for part in str(path).strip("/").split("/"))
    if not segments or any(not part for part in segments):
        raise ValueError(f"Invalid relay path: {path!r}")
    for part in segments:
        if _FORBIDDEN & set(part):
            raise ValueError(f"Relay path segment {part!r} contains a forbidden character")
    return segments


def join_path(*segments: str) -> str:
    return "/".join(split_path("/".join(str(s) for s in segments)))


class RelayStore(abc.ABC):
    """One client's view of the relay."""

    @abc.abstractmethod
    async def subscribe(self, path: str, listener: ValueListener) -> Unsubscribe:
        """
        Call ``listener`` with the value at ``path`` now and after every change
        at, above or below it. The returned callable stops delivery at once.
        """

    @abc.abstractmethod
    async def write(self, path: str, value: Any) -> None:
        ...

    @abc.abstractmethod
    async def remove(self, path: str) -> None:
        ...

    @abc.abstractmethod
    async def remove_on_disconnect(self, path: str) -> None:
        """Have the store delete ``path`` once this client goes away."""


__all__ = [
    "RelayError",
    "RelayStore",
    "Unsubscribe",
    "ValueListener",
    "join_path",
    "split_path",
]
