"""
数据传输对象（DTO）- 诊断接口的响应模型
"""
from typing import List
from pydantic import BaseModel, Field


class OnlineClientDTO(BaseModel):
    """房间内的一个在线连接"""
    user_id: int
    username: str


class RoomPresenceDTO(BaseModel):
    """房间在线快照"""
    room_id: int
    count: int = Field(..., description="在线连接数")
    clients: List[OnlineClientDTO] = Field(default_factory=list)


class ActiveRoomsDTO(BaseModel):
    rooms: List[RoomPresenceDTO] = Field(default_factory=list)
