"""``Transport`` adapter over a ``websockets`` server connection.

Adds the deadline semantics the pumps rely on: a read deadline that can be
pushed back while a read is pending (by a pong, or by the read pump
itself) and a per-write deadline. Library-level keepalive must be
disabled on the server; pings are driven by the write pump.
"""
from __future__ import annotations

import asyncio
from typing import Callable, Optional

from websockets.asyncio.server import ServerConnection
from websockets.exceptions import ConnectionClosed
from websockets.frames import CloseCode

from application.ports.realtime import TransportClosed
from core.logging_config import get_logger


logger = get_logger(__name__)

_EXPECTED_CLOSE_CODES = {CloseCode.NORMAL_CLOSURE, CloseCode.GOING_AWAY}


def _to_transport_closed(exc: ConnectionClosed) -> TransportClosed:
    frame = exc.rcvd or exc.sent
    if frame is None:
        # Dropped without a close handshake (1006)
        return TransportClosed(CloseCode.ABNORMAL_CLOSURE, "", unexpected=False)
    return TransportClosed(
        int(frame.code),
        frame.reason,
        unexpected=frame.code not in _EXPECTED_CLOSE_CODES,
    )


class WebSocketTransport:
    def __init__(self, connection: ServerConnection) -> None:
        self._ws = connection
        self._read_deadline: Optional[float] = None
        self._pending_read: Optional[asyncio.Timeout] = None
        self._pong_handler: Optional[Callable[[], None]] = None
        self._closed = False

    def set_read_deadline(self, seconds: float) -> None:
        self._read_deadline = asyncio.get_running_loop().time() + seconds
        pending = self._pending_read
        if pending is not None and not pending.expired():
            pending.reschedule(self._read_deadline)

    def set_pong_handler(self, handler: Callable[[], None]) -> None:
        self._pong_handler = handler

    async def read_message(self) -> str:
        try:
            async with asyncio.timeout_at(self._read_deadline) as pending:
                self._pending_read = pending
                try:
                    data = await self._ws.recv()
                finally:
                    self._pending_read = None
        except ConnectionClosed as exc:
            raise _to_transport_closed(exc) from exc
        if isinstance(data, bytes):
            return data.decode("utf-8", errors="replace")
        return data

    async def write_message(self, data: str, timeout: float) -> None:
        try:
            async with asyncio.timeout(timeout):
                await self._ws.send(data)
        except ConnectionClosed as exc:
            raise _to_transport_closed(exc) from exc

    async def write_ping(self, timeout: float) -> None:
        try:
            async with asyncio.timeout(timeout):
                pong_waiter = await self._ws.ping()
        except ConnectionClosed as exc:
            raise _to_transport_closed(exc) from exc
        pong_waiter.add_done_callback(self._on_pong)

    def _on_pong(self, waiter: asyncio.Future) -> None:
        if waiter.cancelled() or waiter.exception() is not None:
            return
        if self._pong_handler is not None:
            self._pong_handler()

    async def write_close(self, timeout: float) -> None:
        self._closed = True
        try:
            async with asyncio.timeout(timeout):
                await self._ws.close(CloseCode.NORMAL_CLOSURE)
        except ConnectionClosed as exc:
            raise _to_transport_closed(exc) from exc

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._ws.close()
