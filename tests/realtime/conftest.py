import asyncio
import json
from typing import Callable, List, Optional

import pytest

from application.ports.realtime import TransportClosed
from infrastructure.realtime.hub import Hub
from infrastructure.realtime.outbound_queue import OutboundQueue


class StubClient:
    """Just enough of a client for the hub: identity plus an outbound queue."""

    def __init__(self, room_id: int, user_id: int, username: str, queue_size: int = 16) -> None:
        self.room_id = room_id
        self.user_id = user_id
        self.username = username
        self.queue = OutboundQueue(maxsize=queue_size)

    def __repr__(self) -> str:
        return f"<StubClient {self.username}@{self.room_id}>"

    def received(self) -> List[dict]:
        return [json.loads(item) for item in self.queue.drain_nowait()]


class FakeTransport:
    """Scriptable in-memory transport.

    Feed strings (or exceptions to raise) into the read side; inspect
    frames, pings and close frames on the write side.
    """

    def __init__(self) -> None:
        self.inbound: asyncio.Queue = asyncio.Queue()
        self.frames: List[str] = []
        self.pings = 0
        self.close_frames = 0
        self.close_calls = 0
        self.read_deadlines: List[float] = []
        self.pong_handler: Optional[Callable[[], None]] = None
        self.fail_writes = False
        self.closed = False

    def feed(self, item) -> None:
        self.inbound.put_nowait(item)

    def set_read_deadline(self, seconds: float) -> None:
        self.read_deadlines.append(seconds)

    def set_pong_handler(self, handler: Callable[[], None]) -> None:
        self.pong_handler = handler

    async def read_message(self) -> str:
        item = await self.inbound.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def write_message(self, data: str, timeout: float) -> None:
        if self.closed or self.fail_writes:
            raise TransportClosed(1006, unexpected=False)
        self.frames.append(data)

    async def write_ping(self, timeout: float) -> None:
        if self.closed:
            raise TransportClosed(1006)
        self.pings += 1

    async def write_close(self, timeout: float) -> None:
        self.close_frames += 1
        await self.close()

    async def close(self) -> None:
        self.close_calls += 1
        if not self.closed:
            self.closed = True
            # Wake a pending read the way a real socket would
            self.feed(TransportClosed(1000))

    def documents(self) -> List[dict]:
        """Every JSON document written so far, coalesced frames split apart."""
        return [json.loads(part) for frame in self.frames for part in frame.split("\n")]


@pytest.fixture
async def hub():
    hub = Hub(queue_size=64)
    hub.start()
    try:
        yield hub
    finally:
        await hub.stop()


@pytest.fixture
def make_stub():
    def _make(room_id: int, user_id: int, username: Optional[str] = None, queue_size: int = 16) -> StubClient:
        return StubClient(room_id, user_id, username or f"user{user_id}", queue_size)
    return _make


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def eventually():
    async def _wait(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met in time")
            await asyncio.sleep(0.01)
    return _wait
