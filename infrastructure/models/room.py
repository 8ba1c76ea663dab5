"""
聊天室与成员数据库模型
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, UniqueConstraint
from datetime import datetime, timezone

from .base import Base


class RoomModel(Base):
    """聊天室

    房间的创建、邀请和成员管理在本服务之外完成；hub 只读取成员关系。
    """
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, comment="房间名称")
    description = Column(Text, nullable=True, comment="房间描述")
    creator_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, comment="创建者ID")
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="创建时间"
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="更新时间"
    )

    def __repr__(self):
        return f"<RoomModel(id={self.id}, name='{self.name}')>"


class RoomMemberModel(Base):
    __tablename__ = "room_members"
    __table_args__ = (
        UniqueConstraint("room_id", "user_id", name="uq_room_members_room_user"),
    )

    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True, comment="房间ID")
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True, comment="用户ID")
    # creator | member
    role = Column(String(20), nullable=False, default="member", comment="成员角色")
    joined_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="加入时间"
    )

    def __repr__(self):
        return f"<RoomMemberModel(room_id={self.room_id}, user_id={self.user_id}, role='{self.role}')>"
