import asyncio
import json

import pytest

from application.ports.realtime import TransportClosed
from core.config import RealtimeSettings
from infrastructure.realtime.client import Client
from infrastructure.realtime.inmemory import InMemoryMessageStore


pytestmark = pytest.mark.asyncio


def _client(hub, transport, store, *, room_id=3, user_id=7, username="alice", **options):
    return Client(
        hub=hub,
        transport=transport,
        message_store=store,
        room_id=room_id,
        user_id=user_id,
        username=username,
        options=RealtimeSettings(**options),
    )


def _messages(documents):
    return [d for d in documents if d["type"] == "message"]


async def test_message_is_persisted_and_echoed_to_whole_room(hub, transport, make_stub, eventually):
    store = InMemoryMessageStore(first_id=101)
    bob = make_stub(3, 8, "bob")
    await hub.register(bob)
    alice = _client(hub, transport, store)
    session = asyncio.create_task(alice.serve())

    transport.feed(json.dumps({"type": "message", "content": "hi"}))
    await eventually(lambda: _messages(transport.documents()))

    [echo] = _messages(transport.documents())
    created_at = echo["message"].pop("created_at")
    assert echo == {
        "type": "message",
        "room_id": 3,
        "message": {"id": 101, "room_id": 3, "user_id": 7, "username": "alice", "content": "hi"},
    }
    assert created_at.endswith("Z")
    assert store.messages[0].id == 101

    await hub.flush()
    bob_messages = _messages(bob.received())
    assert [m["message"]["id"] for m in bob_messages] == [101]

    transport.feed(TransportClosed(1001))
    await asyncio.wait_for(session, timeout=2)


async def test_disconnect_unregisters_and_notifies_room(hub, transport, make_stub):
    bob = make_stub(3, 8, "bob")
    await hub.register(bob)
    alice = _client(hub, transport, InMemoryMessageStore())
    session = asyncio.create_task(alice.serve())
    await hub.flush()

    transport.feed(TransportClosed(None, unexpected=False))
    await asyncio.wait_for(session, timeout=2)
    await hub.flush()

    assert alice.queue.closed
    assert transport.closed
    assert hub.get_room_clients(3) == [bob]
    assert bob.received()[-1] == {"type": "leave", "room_id": 3, "user_id": 7, "username": "alice"}


async def test_persistence_failure_reports_error_to_sender_only(hub, transport, make_stub, eventually):
    store = InMemoryMessageStore()
    store.fail_with = "database unavailable"
    bob = make_stub(3, 8, "bob")
    await hub.register(bob)
    alice = _client(hub, transport, store)
    session = asyncio.create_task(alice.serve())

    transport.feed(json.dumps({"type": "message", "content": "lost"}))
    await eventually(lambda: any(d["type"] == "error" for d in transport.documents()))

    errors = [d for d in transport.documents() if d["type"] == "error"]
    assert errors == [{"type": "error", "room_id": 3, "error": "Failed to save message"}]
    await hub.flush()
    assert [d["type"] for d in bob.received()] == ["join", "join"]
    # The connection survives a failed save
    assert not session.done()
    assert hub.get_room_client_count(3) == 2

    transport.feed(TransportClosed(1000))
    await asyncio.wait_for(session, timeout=2)


async def test_unknown_event_types_are_ignored(hub, transport, eventually):
    store = InMemoryMessageStore()
    alice = _client(hub, transport, store)
    session = asyncio.create_task(alice.serve())

    transport.feed(json.dumps({"type": "typing"}))
    transport.feed(json.dumps({"content": "no type"}))
    transport.feed(json.dumps({"type": "message", "content": "real", "extra": True}))
    await eventually(lambda: _messages(transport.documents()))

    assert [m.content for m in store.messages] == ["real"]
    assert not session.done()
    transport.feed(TransportClosed(1000))
    await asyncio.wait_for(session, timeout=2)


@pytest.mark.parametrize("frame", ["not json", '{"type": "message", "content": 42}', "[1, 2]"])
async def test_protocol_violation_ends_the_connection(hub, transport, frame):
    store = InMemoryMessageStore()
    alice = _client(hub, transport, store)
    session = asyncio.create_task(alice.serve())

    transport.feed(frame)
    await asyncio.wait_for(session, timeout=2)
    await hub.flush()

    assert store.messages == []
    assert transport.closed
    assert hub.get_room_client_count(3) == 0


async def test_read_timeout_triggers_cleanup(hub, transport, make_stub):
    bob = make_stub(3, 8, "bob")
    await hub.register(bob)
    alice = _client(hub, transport, InMemoryMessageStore())
    session = asyncio.create_task(alice.serve())

    transport.feed(TimeoutError())
    await asyncio.wait_for(session, timeout=2)
    await hub.flush()

    assert hub.get_room_clients(3) == [bob]
    assert transport.closed


async def test_read_deadline_is_extended_by_events_and_pongs(hub, transport, eventually):
    alice = _client(hub, transport, InMemoryMessageStore(), pong_wait_s=60.0)
    session = asyncio.create_task(alice.serve())
    await eventually(lambda: transport.pong_handler is not None)
    assert transport.read_deadlines == [60.0]

    transport.pong_handler()
    transport.feed(json.dumps({"type": "typing"}))
    await eventually(lambda: len(transport.read_deadlines) == 3)
    assert transport.read_deadlines == [60.0, 60.0, 60.0]

    transport.feed(TransportClosed(1000))
    await asyncio.wait_for(session, timeout=2)


async def test_write_pump_coalesces_queued_payloads(hub, transport, eventually):
    alice = _client(hub, transport, InMemoryMessageStore())
    for payload in ('{"n":1}', '{"n":2}', '{"n":3}'):
        alice.queue.offer(payload)
    pump = asyncio.create_task(alice.write_pump())

    await eventually(lambda: transport.frames)
    assert transport.frames[0] == '{"n":1}\n{"n":2}\n{"n":3}'

    alice.queue.close()
    await asyncio.wait_for(pump, timeout=2)
    assert transport.close_frames == 1
    assert transport.closed


async def test_write_pump_sends_close_frame_when_queue_closes(hub, transport):
    alice = _client(hub, transport, InMemoryMessageStore())
    pump = asyncio.create_task(alice.write_pump())
    await asyncio.sleep(0)
    alice.queue.close()
    await asyncio.wait_for(pump, timeout=2)
    assert transport.frames == []
    assert transport.close_frames == 1


async def test_write_pump_pings_on_period(hub, transport, eventually):
    alice = _client(hub, transport, InMemoryMessageStore(), pong_wait_s=0.5, ping_period_s=0.05)
    pump = asyncio.create_task(alice.write_pump())
    await eventually(lambda: transport.pings >= 2)
    alice.queue.close()
    await asyncio.wait_for(pump, timeout=2)


async def test_write_failure_tears_down_both_pumps(hub, transport, make_stub):
    bob = make_stub(3, 8, "bob")
    await hub.register(bob)
    transport.fail_writes = True
    alice = _client(hub, transport, InMemoryMessageStore())
    session = asyncio.create_task(alice.serve())

    # The join notice is the first write; it fails and closes the transport
    await asyncio.wait_for(session, timeout=2)
    await hub.flush()

    assert transport.closed
    assert hub.get_room_clients(3) == [bob]
    assert bob.received()[-1]["type"] == "leave"
