"""
In-memory relay hub.

The hub owns the value tree and a single dispatcher task. Clients talk to it
through :class:`RelayConnection`, which tracks their subscriptions and the
removals to run when they disconnect. Notifications are queued on every
change and the value is read when the notification is delivered, so a
listener always sees the latest state of its path.
"""

from __future__ import annotations

import asyncio
import contextlib
import copy
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .base import RelayError, RelayStore, Unsubscribe, ValueListener, split_path

logger = logging.getLogger(__name__)

Path = tuple[str, ...]


@dataclass(eq=False)
class _Subscription:
    id: int
    path: Path
    listener: ValueListener
    active: bool = True


@dataclass
class _ConnectionState:
    subscriptions: List[_Subscription] = field(default_factory=list)
    disconnect_removals: List[Path] = field(default_factory=list)


def _related(a: Path, b: Path) -> bool:
    shorter = min(len(a), len(b))
    return a[:shorter] == b[:shorter]


class RelayHub:
    def __init__(self) -> None:
        self._root: Dict[str, Any] = {}
        self._subscriptions: List[_Subscription] = []
        self._ids = itertools.count(1)
        self._queue: Optional[asyncio.Queue] = None
        self._dispatcher: Optional[asyncio.Task] = None

    def connect(self) -> "RelayConnection":
        return RelayConnection(self)

    def snapshot(self, path: str) -> Any:
        return copy.deepcopy(self._get(split_path(path)))

    async def settle(self) -> None:
        """Wait until every queued notification has been delivered."""
        if self._queue is not None:
            await self._queue.join()

    async def close(self) -> None:
        task, self._dispatcher = self._dispatcher, None
        self._queue = None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    # --- tree -----------------------------------------------------------

    def _get(self, path: Path) -> Any:
        node: Any = self._root
        for part in path:
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return node

    def _set(self, path: Path, value: Any) -> None:
        if value is None:
            self._delete(path)
            return
        node = self._root
        for part in path[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = node[part] = {}
            node = child
        node[path[-1]] = copy.deepcopy(value)

    def _delete(self, path: Path) -> None:
        trail = [self._root]
        for part in path[:-1]:
            child = trail[-1].get(part)
            if not isinstance(child, dict):
                return
            trail.append(child)
        trail[-1].pop(path[-1], None)
        # Drop parents left empty.
        for depth in range(len(trail) - 1, 0, -1):
            if trail[depth]:
                break
            trail[depth - 1].pop(path[depth - 1], None)

    # --- notifications --------------------------------------------------

    def _ensure_dispatcher(self) -> asyncio.Queue:
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._dispatcher is None or self._dispatcher.done():
            self._dispatcher = asyncio.get_running_loop().create_task(self._dispatch(self._queue))
        return self._queue

    def _notify(self, path: Path) -> None:
        queue = self._ensure_dispatcher()
        for sub in list(self._subscriptions):
            if sub.active and _related(sub.path, path):
                queue.put_nowait(sub)

    async def _dispatch(self, queue: asyncio.Queue) -> None:
        while True:
            sub = await queue.get()
            try:
                if sub.active:
                    await sub.listener(copy.deepcopy(self._get(sub.path)))
            except Exception:  # noqa: BLE001
                logger.exception("Relay listener for %s failed", "/".join(sub.path))
            finally:
                queue.task_done()

    async def _subscribe(self, path: Path, listener: ValueListener) -> _Subscription:
        sub = _Subscription(id=next(self._ids), path=path, listener=listener)
        self._subscriptions.append(sub)
        self._ensure_dispatcher().put_nowait(sub)
        return sub

    def _unsubscribe(self, sub: _Subscription) -> None:
        sub.active = False
        with contextlib.suppress(ValueError):
            self._subscriptions.remove(sub)

    async def _write(self, path: Path, value: Any) -> None:
        self._set(path, value)
        self._notify(path)

    async def _remove(self, path: Path) -> None:
        self._delete(path)
        self._notify(path)


class RelayConnection(RelayStore):
    """A single client of a :class:`RelayHub`."""

    def __init__(self, hub: RelayHub) -> None:
        self._hub = hub
        self._state = _ConnectionState()
        self.closed = False

    def _check_open(self) -> None:
        if self.closed:
            raise RelayError("Relay connection is closed")

    async def subscribe(self, path: str, listener: ValueListener) -> Unsubscribe:
        self._check_open()
        sub = await self._hub._subscribe(split_path(path), listener)
        self._state.subscriptions.append(sub)

        def unsubscribe() -> None:
            self._hub._unsubscribe(sub)
            with contextlib.suppress(ValueError):
                self._state.subscriptions.remove(sub)

        return unsubscribe

    async def write(self, path: str, value: Any) -> None:
        self._check_open()
        await self._hub._write(split_path(path), value)

    async def remove(self, path: str) -> None:
        self._check_open()
        await self._hub._remove(split_path(path))

    async def remove_on_disconnect(self, path: str) -> None:
        self._check_open()
        self._state.disconnect_removals.append(split_path(path))

    async def disconnect(self) -> None:
        if self.closed:
            return
        self.closed = True
        state, self._state = self._state, _ConnectionState()
        for sub in state.subscriptions:
            self._hub._unsubscribe(sub)
        for path in state.disconnect_removals:
            logger.info("Relay client gone; removing %s", "/".join(path))
            await self._hub._remove(path)


__all__ = ["RelayConnection", "RelayHub"]
