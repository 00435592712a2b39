"""Tests covering the in-memory relay hub semantics."""

import pytest

from codezero.services.relay import RelayError, split_path


def _recorder():
    seen = []

    async def listener(value):
        seen.append(value)

    return seen, listener


@pytest.mark.asyncio
async def test_subscribe_delivers_current_value_first(hub):
    client = hub.connect()
    await client.write("rooms/1/signaling", {"type": "offer", "sdp": "x"})
    seen, listener = _recorder()

    await client.subscribe("rooms/1/signaling", listener)
    await hub.settle()

    assert seen == [{"type": "offer", "sdp": "x"}]
    await hub.close()


@pytest.mark.asyncio
async def test_listener_receives_whole_collection_on_child_write(hub):
    client = hub.connect()
    seen, listener = _recorder()
    await client.subscribe("rooms/1/iceCandidates", listener)
    await hub.settle()

    await client.write("rooms/1/iceCandidates/a", {"candidate": "one"})
    await hub.settle()
    await client.write("rooms/1/iceCandidates/b", {"candidate": "two"})
    await hub.settle()

    assert seen[0] is None
    assert seen[-1] == {"a": {"candidate": "one"}, "b": {"candidate": "two"}}
    await hub.close()


@pytest.mark.asyncio
async def test_listeners_are_notified_when_an_ancestor_is_removed(hub):
    client = hub.connect()
    await client.write("rooms/1/signaling", {"type": "offer", "sdp": "x"})
    seen, listener = _recorder()
    await client.subscribe("rooms/1/signaling", listener)
    await hub.settle()

    await client.remove("rooms/1")
    await hub.settle()

    assert seen == [{"type": "offer", "sdp": "x"}, None]
    assert hub.snapshot("rooms") is None
    await hub.close()


@pytest.mark.asyncio
async def test_writing_none_removes_and_prunes_empty_parents(hub):
    client = hub.connect()
    await client.write("rooms/1/iceCandidates/a", {"candidate": "one"})
    await client.write("rooms/2", {"createdAt": 1})

    await client.write("rooms/1/iceCandidates/a", None)

    assert hub.snapshot("rooms") == {"2": {"createdAt": 1}}
    await hub.close()


@pytest.mark.asyncio
async def test_snapshots_are_copies(hub):
    client = hub.connect()
    value = {"type": "offer", "sdp": "x"}
    await client.write("rooms/1/signaling", value)
    value["sdp"] = "mutated"

    snapshot = hub.snapshot("rooms/1/signaling")
    snapshot["sdp"] = "also mutated"

    assert hub.snapshot("rooms/1/signaling") == {"type": "offer", "sdp": "x"}
    await hub.close()


@pytest.mark.asyncio
async def test_unsubscribe_drops_already_queued_notifications(hub):
    client = hub.connect()
    seen, listener = _recorder()
    unsubscribe = await client.subscribe("rooms/1", listener)
    await client.write("rooms/1", {"createdAt": 1})

    unsubscribe()
    await hub.settle()

    assert seen == []
    assert hub._subscriptions == []  # type: ignore[attr-defined]
    await hub.close()


@pytest.mark.asyncio
async def test_disconnect_runs_on_disconnect_removals(hub):
    creator = hub.connect()
    watcher = hub.connect()
    await creator.write("rooms/42", {"createdAt": 1})
    await creator.remove_on_disconnect("rooms/42")
    seen, listener = _recorder()
    await watcher.subscribe("rooms/42", listener)
    await hub.settle()

    await creator.disconnect()
    await creator.disconnect()
    await hub.settle()

    assert seen == [{"createdAt": 1}, None]
    assert hub.snapshot("rooms/42") is None
    with pytest.raises(RelayError):
        await creator.write("rooms/43", {"createdAt": 2})
    await hub.close()


@pytest.mark.asyncio
async def test_failing_listener_does_not_stop_delivery(hub):
    client = hub.connect()

    async def broken(value):
        raise RuntimeError("boom")

    seen, listener = _recorder()
    await client.subscribe("rooms/1", broken)
    await client.subscribe("rooms/1", listener)
    await client.write("rooms/1", {"createdAt": 1})
    await hub.settle()

    assert seen[-1] == {"createdAt": 1}
    await hub.close()


@pytest.mark.parametrize("path", ["", "rooms//1", "rooms/1.5", "rooms/$x", "rooms/[0]"])
def test_invalid_paths_are_rejected(path):
    with pytest.raises(ValueError):
        split_path(path)
