"""
聊天应用服务（application/services）- hub 的外部协作者

- ChatMessageService: 消息存储，入站泵在广播前同步调用
- RoomAccessService: 成员校验，握手阶段在连接交给 hub 之前调用一次
"""
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError

from domain.chat.entity import ChatMessage
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.common.exceptions import MessagePersistenceException
from core.logging_config import get_logger


logger = get_logger(__name__)

# asyncpg 在数据库不可达时抛出的 OSError 不会被 SQLAlchemy 包装
_STORE_ERRORS = (SQLAlchemyError, OSError)


class ChatMessageService:
    """Persist chat messages through a unit of work."""

    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork]):
        self._uow_factory = uow_factory

    async def persist(self, message: ChatMessage) -> ChatMessage:
        try:
            async with self._uow_factory() as uow:
                saved = await uow.message_repository.add(message)
                await uow.commit()
        except _STORE_ERRORS as exc:
            logger.error(
                "message_persist_failed",
                room_id=message.room_id,
                user_id=message.user_id,
                error=str(exc),
            )
            raise MessagePersistenceException(message.room_id, reason=type(exc).__name__) from exc
        return saved


class RoomAccessService:
    """Answer "is this user a member of this room" for the handshake."""

    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork]):
        self._uow_factory = uow_factory

    async def verify_membership(self, user_id: int, room_id: int) -> bool:
        try:
            async with self._uow_factory(readonly=True) as uow:
                return await uow.room_member_repository.is_member(room_id, user_id)
        except _STORE_ERRORS as exc:
            # A failed lookup denies access, same as a non-member
            logger.error("membership_lookup_failed", room_id=room_id, user_id=user_id, error=str(exc))
            return False
