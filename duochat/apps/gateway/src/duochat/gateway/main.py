"""FastAPI 应用主文件

app 创建 + lifespan 管理：DB 初始化/关闭、EventBus 与附件存储初始化、路由注册。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from duochat.core.config import get_db_path, load_storage_config
from duochat.core.store import LocalFileStorage, create_store_group

from .middleware.logging_config import setup_logfire, setup_logging
from .middleware.request_context import RequestContextMiddleware
from .routes import health, hub, messages, stream
from .routes.errors import register_error_handlers
from .services.event_bus import EventBus

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时初始化 DB、附件存储和事件总线，关闭时清理"""
    storage_config = app.state.storage_config

    store_group = await create_store_group(get_db_path())
    app.state.store_group = store_group
    app.state.file_storage = LocalFileStorage(
        storage_config.uploads_dir,
        base_url=storage_config.base_url,
    )
    app.state.event_bus = EventBus()

    log.info(
        "gateway_started",
        uploads_dir=str(storage_config.uploads_dir),
        max_attachment_bytes=storage_config.max_attachment_bytes,
    )

    yield

    await app.state.event_bus.close()
    if app.state.store_group:
        await app.state.store_group.conn.close()


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="DuoChat Gateway",
        version="0.1.0",
        description="DuoChat 双人实时聊天 API",
        lifespan=lifespan,
    )

    storage_config = load_storage_config()
    app.state.storage_config = storage_config

    app.add_middleware(RequestContextMiddleware)

    setup_logging()
    setup_logfire(app)

    app.include_router(messages.router, tags=["messages"])
    app.include_router(hub.router, tags=["hub"])
    app.include_router(stream.router, tags=["stream"])
    app.include_router(health.router, tags=["health"])
    register_error_handlers(app)

    # base_url 为相对路径时由本服务直接提供附件下载
    if storage_config.base_url.startswith("/"):
        app.mount(
            storage_config.base_url.rstrip("/"),
            StaticFiles(directory=str(storage_config.uploads_dir), check_dir=False),
            name="uploads",
        )

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
