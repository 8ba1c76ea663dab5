"""
房间成员仓储实现
"""
from sqlalchemy import select, exists
from sqlalchemy.ext.asyncio import AsyncSession

from domain.room.repository import RoomMemberRepository
from infrastructure.models.room import RoomMemberModel


class SQLAlchemyRoomMemberRepository(RoomMemberRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def is_member(self, room_id: int, user_id: int) -> bool:
        stmt = select(
            exists().where(
                RoomMemberModel.room_id == room_id,
                RoomMemberModel.user_id == user_id,
            )
        )
        result = await self.session.execute(stmt)
        return bool(result.scalar())
