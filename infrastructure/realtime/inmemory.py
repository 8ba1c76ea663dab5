"""In-memory message store and membership authority.

Single-process only. Useful for local dev and tests.
"""
from __future__ import annotations

import asyncio
import itertools
from typing import Dict, Iterable, List, Optional, Set

from domain.chat.entity import ChatMessage
from domain.common.exceptions import MessagePersistenceException


class InMemoryMessageStore:
    def __init__(self, *, first_id: int = 1) -> None:
        self._ids = itertools.count(first_id)
        self._lock = asyncio.Lock()
        self.messages: List[ChatMessage] = []
        # Set to make every subsequent persist call fail
        self.fail_with: Optional[str] = None

    async def persist(self, message: ChatMessage) -> ChatMessage:
        async with self._lock:
            if self.fail_with is not None:
                raise MessagePersistenceException(message.room_id, reason=self.fail_with)
            saved = message.with_id(next(self._ids))
            self.messages.append(saved)
        return saved


class StaticMembership:
    """Membership from a fixed ``room_id -> user ids`` mapping.

    With no mapping every user may join every room.
    """

    def __init__(self, rooms: Optional[Dict[int, Iterable[int]]] = None) -> None:
        self._rooms: Optional[Dict[int, Set[int]]] = None
        if rooms is not None:
            self._rooms = {room_id: set(users) for room_id, users in rooms.items()}

    def grant(self, room_id: int, user_id: int) -> None:
        if self._rooms is None:
            self._rooms = {}
        self._rooms.setdefault(room_id, set()).add(user_id)

    async def verify_membership(self, user_id: int, room_id: int) -> bool:
        if self._rooms is None:
            return True
        return user_id in self._rooms.get(room_id, ())
