"""
FastAPI应用主入口

HTTP 只承载健康检查和在线诊断；聊天连接由独立端口上的 WebSocket 服务器接入。
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from api.routes import rooms as rooms_routes
from api.middleware import RequestIDMiddleware
from application.ports.realtime import MembershipPort, MessageStorePort
from application.services.chat_service import ChatMessageService, RoomAccessService
from core.config import settings, RealtimeSettings
from core.exceptions import register_exception_handlers
from core.response import success_response
from core.logging_config import get_logger, configure_logging
from infrastructure.database import create_tables, dispose_engine
from infrastructure.realtime.hub import Hub
from infrastructure.realtime.inmemory import InMemoryMessageStore, StaticMembership
from infrastructure.realtime.server import ChatWebSocketServer
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


# 初始化日志：在入口处显式配置，避免模块导入时的副作用
configure_logging()
logger = get_logger(__name__)


def build_collaborators(options: RealtimeSettings) -> tuple[MessageStorePort, MembershipPort]:
    """根据 REALTIME__STORE 选择消息存储与成员校验实现"""
    if options.store == "memory":
        return InMemoryMessageStore(), StaticMembership()
    return ChatMessageService(SQLAlchemyUnitOfWork), RoomAccessService(SQLAlchemyUnitOfWork)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    options = settings.realtime
    uses_database = options.store == "database"
    # 启动时创建数据库表（仅开发环境）。生产应使用 Alembic 迁移
    if uses_database and settings.DEBUG:
        await create_tables()
        logger.info("database_initialized", message="Database tables created (development)")

    hub = Hub(queue_size=options.hub_queue_size)
    hub.start()
    message_store, membership = build_collaborators(options)
    ws_server = ChatWebSocketServer(
        hub,
        message_store=message_store,
        membership=membership,
        options=options,
    )
    await ws_server.start()
    app.state.hub = hub
    app.state.ws_server = ws_server
    logger.info("realtime_initialized", store=options.store)

    try:
        yield
    finally:
        # 先关闭连接（各连接的泵会向 hub 注销），再停止 hub
        await ws_server.stop()
        await hub.stop()
        if uses_database:
            await dispose_engine()
        logger.info("application_shutdown", message="Application shutdown")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

app.add_middleware(RequestIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(rooms_routes.router, prefix="/api/v1")


@app.get("/health", tags=["Health"])
async def health_check():
    """健康检查端点"""
    hub = getattr(app.state, "hub", None)
    return success_response(data={
        "status": "healthy",
        "hub_running": bool(hub and hub.running),
    })


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
