"""apps/gateway 测试配置 -- FastAPI app + httpx AsyncClient + ChatService fixture"""

import os
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from duochat.core.store import LocalFileStorage
from httpx import ASGITransport, AsyncClient

_ENV_KEYS = [
    "DUOCHAT_DB_PATH",
    "DUOCHAT_UPLOADS_DIR",
    "DUOCHAT_MAX_ATTACHMENT_BYTES",
    "DUOCHAT_LOGFIRE_SEND",
]


@pytest.fixture
def uploads_dir(tmp_path: Path) -> Path:
    path = tmp_path / "uploads"
    path.mkdir(parents=True, exist_ok=True)
    return path


@pytest.fixture
def file_storage(uploads_dir: Path) -> LocalFileStorage:
    return LocalFileStorage(uploads_dir, base_url="/uploads/")


@pytest.fixture
def event_bus():
    from duochat.gateway.services.event_bus import EventBus

    return EventBus(queue_maxsize=10)


@pytest.fixture
def chat_service(store_group, event_bus, file_storage):
    """直接构造的 ChatService（附件上限 1 KiB）"""
    from duochat.gateway.services.chat_service import ChatService

    return ChatService(store_group, event_bus, file_storage, max_attachment_bytes=1024)


@pytest_asyncio.fixture
async def app(tmp_db_path: Path, uploads_dir: Path, store_group, event_bus, file_storage):
    """创建测试用 FastAPI app，手动初始化 lifespan 状态"""
    os.environ["DUOCHAT_DB_PATH"] = str(tmp_db_path)
    os.environ["DUOCHAT_UPLOADS_DIR"] = str(uploads_dir)
    os.environ["DUOCHAT_MAX_ATTACHMENT_BYTES"] = "1024"
    os.environ["DUOCHAT_LOGFIRE_SEND"] = "false"

    from duochat.gateway.main import create_app

    application = create_app()
    application.state.store_group = store_group
    application.state.event_bus = event_bus
    application.state.file_storage = file_storage

    yield application

    for key in _ENV_KEYS:
        os.environ.pop(key, None)


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """提供 httpx AsyncClient 用于测试"""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
