"""Room presence diagnostics.

Read-only views over the hub's membership snapshots; room administration
lives in a separate service.
"""
from fastapi import APIRouter, Depends, Path

from api.dependencies import get_hub
from application.dto import ActiveRoomsDTO, OnlineClientDTO, RoomPresenceDTO
from core.response import Response, success_response
from infrastructure.realtime.hub import Hub


router = APIRouter(prefix="/rooms", tags=["Rooms"])


def _presence(hub: Hub, room_id: int) -> RoomPresenceDTO:
    clients = hub.get_room_clients(room_id)
    return RoomPresenceDTO(
        room_id=room_id,
        count=hub.get_room_client_count(room_id),
        clients=[OnlineClientDTO(user_id=c.user_id, username=c.username) for c in clients],
    )


@router.get("/online", response_model=Response[ActiveRoomsDTO])
async def active_rooms(hub: Hub = Depends(get_hub)):
    """所有当前有在线连接的房间"""
    rooms = [_presence(hub, room_id) for room_id in sorted(hub.room_ids())]
    return success_response(data=ActiveRoomsDTO(rooms=rooms))


@router.get("/{room_id}/online", response_model=Response[RoomPresenceDTO])
async def room_presence(room_id: int = Path(..., ge=1), hub: Hub = Depends(get_hub)):
    """房间在线连接快照；房间不存在或无人在线时 count 为 0"""
    return success_response(data=_presence(hub, room_id))
