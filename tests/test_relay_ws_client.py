"""A full call where both peers reach the relay through the websocket client."""

import pytest
import websockets

from codezero.services.call import CallSessionController, CallState, SyntheticMediaProvider
from codezero.services.relay import RelayError
from codezero.services.relay.websocket_client import WebSocketRelayStore

from helpers import FakePeerConnection, LoopbackSocket, eventually


@pytest.fixture
def loopback(hub, monkeypatch):
    async def fake_connect(url, **kwargs):
        return LoopbackSocket(hub)

    monkeypatch.setattr(websockets, "connect", fake_connect)
    return hub


@pytest.mark.asyncio
async def test_call_over_websocket_relay(loopback):
    hub = loopback
    async with WebSocketRelayStore("ws://relay.test/api/relay/ws") as relay_a, WebSocketRelayStore(
        "ws://relay.test/api/relay/ws"
    ) as relay_b:
        creator = CallSessionController(
            relay_a, SyntheticMediaProvider(), peer_factory=FakePeerConnection, clock=lambda: 5_000_000
        )
        joiner = CallSessionController(relay_b, SyntheticMediaProvider(), peer_factory=FakePeerConnection)

        room = await creator.start_or_join()
        assert room == "5"
        await eventually(lambda: (hub.snapshot("rooms/5/signaling") or {}).get("type") == "offer")

        await joiner.start_or_join(room)
        await eventually(lambda: creator.state is CallState.CONNECTED and joiner.state is CallState.CONNECTED)
        await eventually(
            lambda: len(creator.peer_connection.added_candidates) == 2
            and len(joiner.peer_connection.added_candidates) == 2
        )

        await joiner.end()
        await eventually(lambda: hub.snapshot("rooms/5") is None)
        await creator.end()
    await hub.close()


@pytest.mark.asyncio
async def test_closing_the_creator_socket_removes_its_room(loopback):
    hub = loopback
    relay = await WebSocketRelayStore("ws://relay.test/api/relay/ws").connect()
    creator = CallSessionController(
        relay, SyntheticMediaProvider(), peer_factory=FakePeerConnection, clock=lambda: 6_000_000
    )
    await creator.start_or_join()
    assert hub.snapshot("rooms/6") is not None

    await relay.close()

    assert hub.snapshot("rooms/6") is None
    with pytest.raises(RelayError):
        await relay.write("rooms/7", {"createdAt": 7})
    await creator.end()
    assert creator.state is CallState.IDLE
    await hub.close()


@pytest.mark.asyncio
async def test_listener_stops_after_unsubscribe(loopback):
    hub = loopback
    seen = []

    async def listener(value):
        seen.append(value)

    async with WebSocketRelayStore("ws://relay.test/api/relay/ws") as relay:
        unsubscribe = await relay.subscribe("rooms/1", listener)
        await eventually(lambda: seen == [None])
        await relay.write("rooms/1", {"createdAt": 1})
        await eventually(lambda: seen == [None, {"createdAt": 1}])

        unsubscribe()
        await relay.write("rooms/1", {"createdAt": 2})
        await hub.settle()

    assert seen == [None, {"createdAt": 1}]
    await hub.close()
