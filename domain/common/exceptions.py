"""领域层业务异常定义，供领域与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class MessagePersistenceException(BusinessException):
    """The message store could not persist a chat message."""

    def __init__(self, room_id: int, reason: Optional[str] = None):
        details = {"room_id": room_id}
        if reason:
            details["reason"] = reason
        super().__init__(
            code=BusinessCode.MESSAGE_PERSIST_FAILED,
            message="Failed to save message",
            error_type="MessagePersistenceError",
            details=details,
        )
