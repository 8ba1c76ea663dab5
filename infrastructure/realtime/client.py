"""Per-connection chat session and its read/write pumps.

A ``Client`` is created once a connection has been admitted to a room.
``serve`` registers it with the hub and runs two independent tasks:

- the read pump decodes inbound events, persists chat messages and
  submits them to the hub for fan-out;
- the write pump drains the outbound queue to the transport and keeps
  the connection alive with periodic pings.

The pumps share nothing but the outbound queue and the transport. Either
one may end the connection; all cleanup steps are idempotent.
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError

from application.ports.realtime import (
    Envelope,
    InboundEvent,
    MessageStorePort,
    Transport,
    TransportClosed,
)
from core.config import RealtimeSettings
from core.logging_config import get_logger
from domain.chat.entity import ChatMessage
from domain.common.exceptions import MessagePersistenceException
from infrastructure.realtime.hub import Hub
from infrastructure.realtime.outbound_queue import OutboundQueue


logger = get_logger(__name__)

# Separates JSON documents coalesced into one frame
FRAME_DELIMITER = "\n"


class Client:
    def __init__(
        self,
        *,
        hub: Hub,
        transport: Transport,
        message_store: MessageStorePort,
        room_id: int,
        user_id: int,
        username: str,
        options: Optional[RealtimeSettings] = None,
    ) -> None:
        self.options = options or RealtimeSettings()
        self.hub = hub
        self.transport = transport
        self.message_store = message_store
        self.room_id = room_id
        self.user_id = user_id
        self.username = username
        self.queue = OutboundQueue(maxsize=self.options.send_queue_size)

    def __repr__(self) -> str:
        return f"<Client(user_id={self.user_id}, username='{self.username}', room_id={self.room_id})>"

    async def serve(self) -> None:
        """Register with the hub and run both pumps until both have exited."""
        await self.hub.register(self)
        await asyncio.gather(self.write_pump(), self.read_pump())

    # -------------------- inbound --------------------
    async def read_pump(self) -> None:
        pong_wait = self.options.pong_wait_s
        self.transport.set_read_deadline(pong_wait)
        self.transport.set_pong_handler(lambda: self.transport.set_read_deadline(pong_wait))
        try:
            while True:
                raw = await self.transport.read_message()
                self.transport.set_read_deadline(pong_wait)
                try:
                    event = InboundEvent.model_validate_json(raw)
                except ValidationError as exc:
                    logger.info("ws_protocol_violation", error_count=exc.error_count())
                    break
                if event.type == "message":
                    await self._handle_chat_message(event)
        except TransportClosed as exc:
            if exc.unexpected:
                logger.warning("ws_read_error", code=exc.code, reason=exc.reason)
            else:
                logger.debug("ws_read_closed", code=exc.code)
        except TimeoutError:
            logger.info("ws_read_timeout", pong_wait_s=pong_wait)
        finally:
            await self.hub.unregister(self)
            await self.transport.close()

    async def _handle_chat_message(self, event: InboundEvent) -> None:
        message = ChatMessage(
            id=None,
            room_id=self.room_id,
            user_id=self.user_id,
            username=self.username,
            content=event.content,
            created_at=datetime.now(timezone.utc),
        )
        try:
            saved = await self.message_store.persist(message)
        except MessagePersistenceException as exc:
            logger.warning("ws_message_not_saved", error=exc.message, details=exc.details)
            await self.hub.send(self, Envelope.failure(self.room_id, exc.message).to_wire())
            return
        # No exclusion: the sender receives its own message back as confirmation
        await self.hub.broadcast(self.room_id, Envelope.chat(saved).to_wire())

    # -------------------- outbound --------------------
    async def write_pump(self) -> None:
        loop = asyncio.get_running_loop()
        write_wait = self.options.write_wait_s
        ping_period = self.options.ping_period_s
        next_ping = loop.time() + ping_period
        try:
            while True:
                try:
                    async with asyncio.timeout_at(next_ping):
                        payload = await self.queue.get()
                except TimeoutError:
                    next_ping = loop.time() + ping_period
                    await self.transport.write_ping(write_wait)
                    continue

                if payload is None:
                    # The hub closed the queue
                    await self.transport.write_close(write_wait)
                    return

                batch = [payload, *self.queue.drain_nowait()]
                await self.transport.write_message(FRAME_DELIMITER.join(batch), write_wait)
        except TransportClosed as exc:
            logger.debug("ws_write_closed", code=exc.code)
        except TimeoutError:
            logger.info("ws_write_timeout", write_wait_s=write_wait)
        finally:
            await self.transport.close()
