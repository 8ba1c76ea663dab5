"""
Realtime port and message DTOs (contracts-first).

This module defines the wire-level envelopes exchanged with chat clients
and the protocols the hub depends on (transport, message store,
membership authority), so the connection pumps stay decoupled from the
concrete WebSocket library and database.
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, Protocol

from pydantic import BaseModel, ConfigDict, field_serializer

from domain.chat.entity import ChatMessage


def _iso_z(ts: datetime) -> str:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    else:
        ts = ts.astimezone(timezone.utc)
    return ts.isoformat().replace("+00:00", "Z")


class EnvelopeType(str, Enum):
    MESSAGE = "message"
    JOIN = "join"
    LEAVE = "leave"
    ERROR = "error"


class MessagePayload(BaseModel):
    """A persisted chat message as it appears on the wire."""

    id: int
    room_id: int
    user_id: int
    username: str
    content: str
    created_at: datetime

    @field_serializer("created_at")
    def _serialize_created_at(self, created_at: datetime) -> str:
        return _iso_z(created_at)

    @classmethod
    def from_entity(cls, message: ChatMessage) -> "MessagePayload":
        if message.id is None:
            raise ValueError("message has not been persisted")
        return cls(
            id=message.id,
            room_id=message.room_id,
            user_id=message.user_id,
            username=message.username,
            content=message.content,
            created_at=message.created_at,
        )


class Envelope(BaseModel):
    """Hub -> client event.

    Fields that do not apply to a given ``type`` are left unset and are
    omitted from the JSON sent to clients.
    """

    type: EnvelopeType
    room_id: Optional[int] = None
    message: Optional[MessagePayload] = None
    user_id: Optional[int] = None
    username: Optional[str] = None
    error: Optional[str] = None

    def to_wire(self) -> str:
        return self.model_dump_json(exclude_none=True)

    @classmethod
    def chat(cls, message: ChatMessage) -> "Envelope":
        return cls(
            type=EnvelopeType.MESSAGE,
            room_id=message.room_id,
            message=MessagePayload.from_entity(message),
        )

    @classmethod
    def join(cls, room_id: int, user_id: int, username: str) -> "Envelope":
        return cls(type=EnvelopeType.JOIN, room_id=room_id, user_id=user_id, username=username)

    @classmethod
    def leave(cls, room_id: int, user_id: int, username: str) -> "Envelope":
        return cls(type=EnvelopeType.LEAVE, room_id=room_id, user_id=user_id, username=username)

    @classmethod
    def failure(cls, room_id: int, error: str) -> "Envelope":
        return cls(type=EnvelopeType.ERROR, room_id=room_id, error=error)


class InboundEvent(BaseModel):
    """Client -> hub event. Only ``type == "message"`` is acted upon."""

    model_config = ConfigDict(extra="ignore")

    type: str = ""
    content: str = ""


class TransportClosed(Exception):
    """The peer closed the connection, or it was closed underneath us.

    ``unexpected`` is False for normal and going-away closures and for
    connections that dropped without a close frame.
    """

    def __init__(self, code: Optional[int] = None, reason: str = "", *, unexpected: bool = False) -> None:
        self.code = code
        self.reason = reason
        self.unexpected = unexpected
        super().__init__(f"connection closed (code={code}, reason={reason!r})")


class Transport(Protocol):
    """One client connection, as seen by the pumps.

    Reads fail with ``TimeoutError`` once the read deadline passes and
    writes fail with ``TimeoutError`` once their own deadline passes.
    Both raise ``TransportClosed`` when the connection is gone.
    """

    def set_read_deadline(self, seconds: float) -> None: ...

    def set_pong_handler(self, handler: Callable[[], None]) -> None: ...

    async def read_message(self) -> str: ...

    async def write_message(self, data: str, timeout: float) -> None: ...

    async def write_ping(self, timeout: float) -> None: ...

    async def write_close(self, timeout: float) -> None: ...

    async def close(self) -> None: ...


class MessageStorePort(Protocol):
    """Persists chat messages; raises ``MessagePersistenceException`` on failure."""

    async def persist(self, message: ChatMessage) -> ChatMessage: ...


class MembershipPort(Protocol):
    async def verify_membership(self, user_id: int, room_id: int) -> bool: ...


__all__ = [
    "Envelope",
    "EnvelopeType",
    "MessagePayload",
    "InboundEvent",
    "TransportClosed",
    "Transport",
    "MessageStorePort",
    "MembershipPort",
]
