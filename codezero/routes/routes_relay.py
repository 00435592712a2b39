import asyncio
import json
import logging
from typing import Any, Dict

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from ..models import RelayClientMessage
from ..services.relay import RelayConnection, RelayHub
from ..services.relay.base import Unsubscribe

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/relay", tags=["relay"])


def get_relay_hub(websocket: WebSocket) -> RelayHub:
    return websocket.app.state.relay_hub


class _RelaySocket:
    """Bridges one websocket client to one hub connection."""

    def __init__(self, websocket: WebSocket, connection: RelayConnection) -> None:
        self.websocket = websocket
        self.connection = connection
        self.subscriptions: Dict[int, Unsubscribe] = {}
        self._send_lock = asyncio.Lock()

    async def send(self, payload: dict) -> None:
        async with self._send_lock:
            await self.websocket.send_json(payload)

    async def handle(self, text: str) -> None:
        try:
            raw = json.loads(text)
        except ValueError as exc:
            await self.send({"event": "error", "id": None, "message": f"Invalid JSON: {exc}"})
            return
        request_id = raw.get("id") if isinstance(raw, dict) else None
        try:
            message = RelayClientMessage.model_validate(raw)
            await self._apply(message)
        except (ValidationError, ValueError) as exc:
            await self.send({"event": "error", "id": request_id, "message": str(exc)})
            return
        await self.send({"event": "ack", "id": message.id})

    async def _apply(self, message: RelayClientMessage) -> None:
        if message.op == "subscribe":
            path = message.path

            async def listener(value: Any) -> None:
                await self.send({"event": "value", "id": message.id, "path": path, "value": value})

            self.subscriptions[message.id] = await self.connection.subscribe(path, listener)
        elif message.op == "unsubscribe":
            unsubscribe = self.subscriptions.pop(message.target, None)
            if unsubscribe is not None:
                unsubscribe()
        elif message.op == "set":
            await self.connection.write(message.path, message.value)
        elif message.op == "remove":
            await self.connection.remove(message.path)
        elif message.op == "onDisconnectRemove":
            await self.connection.remove_on_disconnect(message.path)


@router.websocket("/ws")
async def relay_socket(websocket: WebSocket) -> None:
    """
    Relay protocol for call signaling.

    Client messages: ``{op, id, path?, value?, target?}``; the server answers
    each with ``ack`` or ``error`` and pushes ``value`` events for
    subscriptions. Closing the socket runs the client's on-disconnect removals.
    """
    await websocket.accept()
    hub = get_relay_hub(websocket)
    connection = hub.connect()
    bridge = _RelaySocket(websocket, connection)
    try:
        while True:
            text = await websocket.receive_text()
            await bridge.handle(text)
    except WebSocketDisconnect:
        logger.info("Relay client disconnected")
    finally:
        await connection.disconnect()
