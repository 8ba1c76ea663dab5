"""
业务状态码（HTTP 诊断接口与领域异常共用）

WebSocket 连接不使用这些码：握手失败直接返回 HTTP 状态，连接内的错误以
"error" 事件下发。
"""
from enum import IntEnum


class BusinessCode(IntEnum):
    SUCCESS = 0

    # 参数 (1xxxx)
    PARAM_ERROR = 10000
    PARAM_VALIDATION_ERROR = 10003

    # 聊天 (2xxxx)
    NOT_FOUND = 20006
    MESSAGE_PERSIST_FAILED = 20201

    # 身份与权限 (3xxxx)
    UNAUTHORIZED = 30001
    FORBIDDEN = 30002

    # 系统 (4xxxx)
    SYSTEM_ERROR = 40000
    SERVICE_UNAVAILABLE = 40003
