"""集成测试配置 -- 真实 app + 两个用户的 ChatApiClient

lifespan 不执行，app.state 手动装配；推送通过直接在 EventBus 上
注册连接队列来观察（SSE 长连接不经过 ASGITransport）。
"""

import os
from pathlib import Path

import pytest
import pytest_asyncio
from duochat.client import ChatApiClient
from duochat.core.store import LocalFileStorage
from httpx import ASGITransport, AsyncClient

_ENV_KEYS = [
    "DUOCHAT_DB_PATH",
    "DUOCHAT_UPLOADS_DIR",
    "DUOCHAT_LOGFIRE_SEND",
]


@pytest.fixture
def uploads_dir(tmp_path: Path) -> Path:
    path = tmp_path / "uploads"
    path.mkdir(parents=True, exist_ok=True)
    return path


@pytest_asyncio.fixture
async def app(tmp_db_path: Path, uploads_dir: Path, store_group):
    from duochat.gateway.main import create_app
    from duochat.gateway.services.event_bus import EventBus

    os.environ["DUOCHAT_DB_PATH"] = str(tmp_db_path)
    os.environ["DUOCHAT_UPLOADS_DIR"] = str(uploads_dir)
    os.environ["DUOCHAT_LOGFIRE_SEND"] = "false"

    application = create_app()
    application.state.store_group = store_group
    application.state.event_bus = EventBus()
    application.state.file_storage = LocalFileStorage(uploads_dir, base_url="/uploads/")

    yield application

    await application.state.event_bus.close()
    for key in _ENV_KEYS:
        os.environ.pop(key, None)


@pytest.fixture
def event_bus(app):
    return app.state.event_bus


@pytest_asyncio.fixture
async def alice_api(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
        yield ChatApiClient("http://test", "alice", http_client=http_client)


@pytest_asyncio.fixture
async def bob_api(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
        yield ChatApiClient("http://test", "bob", http_client=http_client)
