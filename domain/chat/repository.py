"""
聊天消息仓储接口
"""
from abc import ABC, abstractmethod

from .entity import ChatMessage


class MessageRepository(ABC):
    """消息仓储抽象接口"""

    @abstractmethod
    async def add(self, message: ChatMessage) -> ChatMessage:
        """保存消息并返回带有存储分配 ID 的消息"""
        pass
