"""
Relay client speaking the ``/api/relay/ws`` protocol.

Every request carries an id and waits for the server's ``ack`` or ``error``.
Value events are handed to a separate delivery task so that a listener may
itself write to the relay while the reader keeps consuming acks.
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import json
import logging
from typing import Any, Dict, Optional

import websockets
from websockets.exceptions import ConnectionClosed

from .base import RelayError, RelayStore, Unsubscribe, ValueListener, join_path

logger = logging.getLogger(__name__)


class WebSocketRelayStore(RelayStore):
    def __init__(self, url: str, *, request_timeout: float = 10.0) -> None:
        self.url = url
        self.request_timeout = request_timeout
        self._ws = None
        self._ids = itertools.count(1)
        self._pending: Dict[int, asyncio.Future] = {}
        self._listeners: Dict[int, ValueListener] = {}
        self._events: asyncio.Queue = asyncio.Queue()
        self._reader: Optional[asyncio.Task] = None
        self._delivery: Optional[asyncio.Task] = None

    async def connect(self) -> "WebSocketRelayStore":
        self._ws = await websockets.connect(self.url, max_size=None)
        self._reader = asyncio.create_task(self._read_loop())
        self._delivery = asyncio.create_task(self._deliver_loop())
        logger.info("Connected to relay at %s", self.url)
        return self

    async def close(self) -> None:
        """Close the socket; the server then runs this client's on-disconnect removals."""
        for task in (self._reader, self._delivery):
            if task is not None:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._reader = self._delivery = None
        self._listeners.clear()
        if self._ws is not None:
            await self._ws.close()
            self._ws = None
        self._fail_pending(RelayError("Relay connection is closed"))

    async def __aenter__(self) -> "WebSocketRelayStore":
        return await self.connect()

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def subscribe(self, path: str, listener: ValueListener) -> Unsubscribe:
        request_id = next(self._ids)
        self._listeners[request_id] = listener
        try:
            await self._request({"op": "subscribe", "id": request_id, "path": join_path(path)})
        except RelayError:
            self._listeners.pop(request_id, None)
            raise

        def unsubscribe() -> None:
            self._listeners.pop(request_id, None)
            if self._ws is None:
                return
            payload = {"op": "unsubscribe", "id": next(self._ids), "target": request_id}
            # Local delivery already stopped; the server side is told without waiting.
            asyncio.get_running_loop().create_task(self._send_quietly(payload))

        return unsubscribe

    async def write(self, path: str, value: Any) -> None:
        await self._request({"op": "set", "id": next(self._ids), "path": join_path(path), "value": value})

    async def remove(self, path: str) -> None:
        await self._request({"op": "remove", "id": next(self._ids), "path": join_path(path)})

    async def remove_on_disconnect(self, path: str) -> None:
        await self._request({"op": "onDisconnectRemove", "id": next(self._ids), "path": join_path(path)})

    async def _request(self, payload: dict) -> None:
        if self._ws is None:
            raise RelayError("Relay connection is closed")
        future = asyncio.get_running_loop().create_future()
        self._pending[payload["id"]] = future
        try:
            await self._ws.send(json.dumps(payload))
            await asyncio.wait_for(future, timeout=self.request_timeout)
        except ConnectionClosed as exc:
            raise RelayError(f"Relay connection closed: {exc}") from exc
        except asyncio.TimeoutError as exc:
            raise RelayError(f"Relay did not answer {payload['op']} in time") from exc
        finally:
            self._pending.pop(payload["id"], None)

    async def _send_quietly(self, payload: dict) -> None:
        ws = self._ws
        if ws is None:
            return
        try:
            await ws.send(json.dumps(payload))
        except ConnectionClosed:
            logger.debug("Relay closed before %s could be sent", payload["op"])

    async def _read_loop(self) -> None:
        try:
            async for raw in self._ws:
                message = json.loads(raw)
                event = message.get("event")
                if event == "value":
                    self._events.put_nowait((message.get("id"), message.get("value")))
                elif event in ("ack", "error"):
                    future = self._pending.get(message.get("id"))
                    if future is None or future.done():
                        continue
                    if event == "ack":
                        future.set_result(None)
                    else:
                        future.set_exception(RelayError(message.get("message") or "relay error"))
                else:
                    logger.debug("Ignoring unknown relay event %r", event)
        except ConnectionClosed as exc:
            logger.warning("Relay connection lost: %s", exc)
        finally:
            self._fail_pending(RelayError("Relay connection is closed"))

    async def _deliver_loop(self) -> None:
        while True:
            request_id, value = await self._events.get()
            listener = self._listeners.get(request_id)
            if listener is None:
                continue
            try:
                await listener(value)
            except Exception:  # noqa: BLE001
                logger.exception("Relay listener %s failed", request_id)

    def _fail_pending(self, exc: Exception) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(exc)


__all__ = ["WebSocketRelayStore"]
