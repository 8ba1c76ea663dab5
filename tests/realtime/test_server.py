import asyncio
import json

import pytest
from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed, InvalidStatus

from core.config import RealtimeSettings
from infrastructure.realtime.hub import Hub
from infrastructure.realtime.inmemory import InMemoryMessageStore, StaticMembership
from infrastructure.realtime.server import ChatWebSocketServer


pytestmark = pytest.mark.asyncio


@pytest.fixture
async def make_server():
    started = []

    async def _start(**options):
        hub = Hub()
        hub.start()
        ws_server = ChatWebSocketServer(
            hub,
            message_store=InMemoryMessageStore(first_id=101),
            membership=StaticMembership({3: {7, 8}}),
            options=RealtimeSettings(host="127.0.0.1", port=0, **options),
        )
        await ws_server.start()
        started.append(ws_server)
        return ws_server

    try:
        yield _start
    finally:
        for ws_server in started:
            await ws_server.stop()
            await ws_server.hub.stop()


@pytest.fixture
async def server(make_server):
    return await make_server()


def _uri(server, path="/ws/rooms/3"):
    return f"ws://127.0.0.1:{server.port}{path}"


def _headers(user_id, username=None):
    headers = {"X-User-Id": str(user_id)}
    if username:
        headers["X-Username"] = username
    return headers


async def _next_documents(ws, wanted_type, timeout=2.0):
    """Read frames until one contains a document of ``wanted_type``."""
    async with asyncio.timeout(timeout):
        while True:
            frame = await ws.recv()
            docs = [json.loads(part) for part in frame.split("\n")]
            matching = [d for d in docs if d["type"] == wanted_type]
            if matching:
                return matching


async def test_member_joins_and_receives_own_message(server):
    async with connect(_uri(server), additional_headers=_headers(7, "alice")) as alice:
        [join] = await _next_documents(alice, "join")
        assert join == {"type": "join", "room_id": 3, "user_id": 7, "username": "alice"}

        await alice.send(json.dumps({"type": "message", "content": "hi"}))
        [echo] = await _next_documents(alice, "message")
        assert echo["message"]["id"] == 101
        assert echo["message"]["content"] == "hi"
        assert echo["message"]["created_at"].endswith("Z")


async def test_message_reaches_other_member(server):
    async with connect(_uri(server), additional_headers=_headers(7, "alice")) as alice:
        await _next_documents(alice, "join")
        async with connect(_uri(server), additional_headers=_headers(8, "bob")) as bob:
            [join] = await _next_documents(alice, "join")
            assert join["user_id"] == 8
            assert server.hub.get_room_client_count(3) == 2

            await alice.send(json.dumps({"type": "message", "content": "hello bob"}))
            [received] = await _next_documents(bob, "message")
            assert received["message"]["username"] == "alice"

        [leave] = await _next_documents(alice, "leave")
        assert leave == {"type": "leave", "room_id": 3, "user_id": 8, "username": "bob"}


@pytest.mark.parametrize(
    "path, headers, status",
    [
        ("/ws/rooms/3", {}, 401),
        ("/ws/rooms/3", {"X-User-Id": "abc"}, 401),
        ("/ws/rooms/3", {"X-User-Id": "9"}, 403),
        ("/ws/rooms/4", {"X-User-Id": "7"}, 403),
        ("/ws/chat/3", {"X-User-Id": "7"}, 404),
        ("/ws/rooms/abc", {"X-User-Id": "7"}, 400),
    ],
)
async def test_handshake_rejections(server, path, headers, status):
    with pytest.raises(InvalidStatus) as exc_info:
        async with connect(_uri(server, path), additional_headers=headers):
            pass
    assert exc_info.value.response.status_code == status
    assert server.hub.room_ids() == []


async def test_oversized_frame_closes_connection(server):
    async with connect(_uri(server), additional_headers=_headers(8, "bob")) as bob:
        await _next_documents(bob, "join")
        async with connect(_uri(server), additional_headers=_headers(7, "alice"), max_size=None) as alice:
            await _next_documents(bob, "join")
            await alice.send(json.dumps({"type": "message", "content": "x" * 1024}))
            with pytest.raises(ConnectionClosed) as exc_info:
                async with asyncio.timeout(2):
                    while True:
                        await alice.recv()
            assert exc_info.value.rcvd.code == 1009

        [leave] = await _next_documents(bob, "leave")
        assert leave["user_id"] == 7
        assert server.hub.get_room_client_count(3) == 1


async def test_parse_room_id():
    ws_server = ChatWebSocketServer(Hub(), message_store=InMemoryMessageStore(), membership=StaticMembership())
    assert ws_server.parse_room_id("/ws/rooms/12") == 12
    assert ws_server.parse_room_id("/ws/rooms/12?token=x") == 12
    assert ws_server.parse_room_id("/ws/rooms/-1") == -1
    assert ws_server.parse_room_id("/ws/rooms/１２") == -1
    assert ws_server.parse_room_id("/ws/rooms/") is None
    assert ws_server.parse_room_id("/ws/rooms/1/extra") is None


async def test_idle_peer_answering_pings_stays_connected(make_server):
    server = await make_server(pong_wait_s=0.6, ping_period_s=0.2)
    async with connect(_uri(server), additional_headers=_headers(7, "alice")) as alice:
        await _next_documents(alice, "join")
        # Several read deadlines pass with no inbound data; only pongs extend them
        await asyncio.sleep(2.0)
        assert server.hub.get_room_client_count(3) == 1


async def test_peer_that_stops_reading_is_dropped(make_server, eventually):
    server = await make_server(pong_wait_s=0.6, ping_period_s=0.2)
    async with connect(_uri(server), additional_headers=_headers(7, "alice"), close_timeout=0.5) as alice:
        await _next_documents(alice, "join")
        assert server.hub.get_room_client_count(3) == 1

        # Pings go unanswered, so the read deadline expires
        alice.transport.pause_reading()
        await eventually(lambda: server.hub.get_room_client_count(3) == 0, timeout=3.0)
        alice.transport.resume_reading()
