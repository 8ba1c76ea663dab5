"""
房间成员仓储接口
"""
from abc import ABC, abstractmethod


class RoomMemberRepository(ABC):
    """房间成员关系的只读访问"""

    @abstractmethod
    async def is_member(self, room_id: int, user_id: int) -> bool:
        """检查用户是否是房间成员"""
        pass
