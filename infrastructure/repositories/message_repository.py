"""
消息仓储实现 - 使用SQLAlchemy实现数据访问
"""
from sqlalchemy.ext.asyncio import AsyncSession

from domain.chat.entity import ChatMessage
from domain.chat.repository import MessageRepository
from infrastructure.models.message import MessageModel


class SQLAlchemyMessageRepository(MessageRepository):
    """消息仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_model(self, entity: ChatMessage) -> MessageModel:
        return MessageModel(
            room_id=entity.room_id,
            user_id=entity.user_id,
            content=entity.content,
            created_at=entity.created_at,
        )

    async def add(self, message: ChatMessage) -> ChatMessage:
        """保存消息

        username 不落库（由 users 表关联得到），返回值沿用调用方传入的显示名。
        """
        db_message = self._to_model(message)
        self.session.add(db_message)
        await self.session.flush()  # 获取生成的ID
        return message.with_id(db_message.id)
