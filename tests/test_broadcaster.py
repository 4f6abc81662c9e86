"""Test room fan-out and per-connection delivery."""
import asyncio

import pytest

from core.realtime import Broadcaster, ChatEvent


class Recorder:
    """Captures envelopes delivered to one fake client."""

    def __init__(self):
        self.frames = []

    async def send(self, envelope):
        self.frames.append(envelope)

    async def wait_for(self, count, timeout=1.0):
        async def _poll():
            while len(self.frames) < count:
                await asyncio.sleep(0.005)
        await asyncio.wait_for(_poll(), timeout)
        return self.frames


@pytest.mark.asyncio
async def test_connect_requires_start():
    broadcaster = Broadcaster()
    with pytest.raises(RuntimeError):
        broadcaster.connect(Recorder().send)


@pytest.mark.asyncio
async def test_emit_reaches_room_members_only():
    broadcaster = Broadcaster()
    await broadcaster.start()
    inside, outside = Recorder(), Recorder()
    a = broadcaster.connect(inside.send, user_id="u1")
    broadcaster.connect(outside.send, user_id="u2")

    assert broadcaster.join(a, "room-1")
    assert broadcaster.emit("room-1", ChatEvent.NEW_MESSAGE, {"id": "m1"}) == 1

    frames = await inside.wait_for(1)
    assert frames == [{"event": "new_message", "data": {"id": "m1"}}]
    await asyncio.sleep(0.01)
    assert outside.frames == []
    await broadcaster.stop()


@pytest.mark.asyncio
async def test_events_arrive_in_emit_order():
    broadcaster = Broadcaster()
    await broadcaster.start()
    client = Recorder()
    conn = broadcaster.connect(client.send)
    broadcaster.join(conn, "room-1")

    for i in range(20):
        broadcaster.emit("room-1", ChatEvent.MESSAGE_UPDATE, {"n": i})

    frames = await client.wait_for(20)
    assert [f["data"]["n"] for f in frames] == list(range(20))
    await broadcaster.stop()


@pytest.mark.asyncio
async def test_leave_stops_delivery():
    broadcaster = Broadcaster()
    await broadcaster.start()
    client = Recorder()
    conn = broadcaster.connect(client.send)
    broadcaster.join(conn, "room-1")

    assert broadcaster.leave(conn, "room-1")
    assert not broadcaster.leave(conn, "room-1")
    assert broadcaster.members("room-1") == set()
    assert broadcaster.emit("room-1", ChatEvent.NEW_MESSAGE, {}) == 0
    await broadcaster.stop()


@pytest.mark.asyncio
async def test_full_queue_drops_without_blocking():
    broadcaster = Broadcaster(queue_size=1)
    await broadcaster.start()
    gate = asyncio.Event()
    delivered = []

    async def slow_send(envelope):
        await gate.wait()
        delivered.append(envelope)

    conn = broadcaster.connect(slow_send)
    broadcaster.join(conn, "room-1")

    broadcaster.emit("room-1", ChatEvent.NEW_MESSAGE, {"n": 0})
    await asyncio.sleep(0.01)  # sender picks up n=0 and blocks
    assert broadcaster.emit("room-1", ChatEvent.NEW_MESSAGE, {"n": 1}) == 1
    assert broadcaster.emit("room-1", ChatEvent.NEW_MESSAGE, {"n": 2}) == 0

    gate.set()
    await asyncio.sleep(0.01)
    assert [e["data"]["n"] for e in delivered] == [0, 1]
    await broadcaster.stop()


@pytest.mark.asyncio
async def test_disconnect_cleans_up_rooms():
    broadcaster = Broadcaster()
    await broadcaster.start()
    conn = broadcaster.connect(Recorder().send)
    broadcaster.join(conn, "room-1")
    broadcaster.join(conn, "room-2")

    await broadcaster.disconnect(conn)
    await broadcaster.disconnect(conn)

    assert broadcaster.members("room-1") == set()
    assert broadcaster.members("room-2") == set()
    assert not broadcaster.join(conn, "room-1")
    assert not broadcaster.send_to(conn, "joined", {})
    await broadcaster.stop()


@pytest.mark.asyncio
async def test_failed_send_disconnects():
    broadcaster = Broadcaster()
    await broadcaster.start()

    async def broken_send(envelope):
        raise ConnectionError("socket gone")

    conn = broadcaster.connect(broken_send)
    broadcaster.join(conn, "room-1")
    broadcaster.emit("room-1", ChatEvent.MESSAGE_DELETED, "m1")
    await asyncio.sleep(0.01)

    assert broadcaster.members("room-1") == set()
    await broadcaster.stop()
