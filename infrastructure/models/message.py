"""
聊天消息数据库模型
"""
from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey, Index
from datetime import datetime, timezone

from .base import Base


class MessageModel(Base):
    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_room_created", "room_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, comment="房间ID")
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, comment="发送者ID")
    content = Column(Text, nullable=False, comment="消息内容")
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="发送时间"
    )

    def __repr__(self):
        return f"<MessageModel(id={self.id}, room_id={self.room_id}, user_id={self.user_id})>"
