"""
聊天消息领域实体
"""
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional


@dataclass
class ChatMessage:
    """A chat message posted to a room.

    ``id`` is assigned by the message store; a message that has not been
    persisted yet carries ``None``.
    """

    id: Optional[int]
    room_id: int
    user_id: int
    username: str
    content: str
    created_at: datetime

    @property
    def is_persisted(self) -> bool:
        return self.id is not None

    def with_id(self, message_id: int) -> "ChatMessage":
        return replace(self, id=message_id)
