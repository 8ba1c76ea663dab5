"""Infrastructure models package exports."""
from .base import Base, metadata
from .user import UserModel
from .room import RoomModel, RoomMemberModel
from .message import MessageModel

__all__ = [
    "Base",
    "metadata",
    "UserModel",
    "RoomModel",
    "RoomMemberModel",
    "MessageModel",
]
