"""全局 pytest 配置 -- 临时 SQLite 数据库 + 已注册用户的 StoreGroup"""

from collections.abc import AsyncGenerator
from pathlib import Path

import aiosqlite
import pytest_asyncio

# 测试用户：user_id -> 显示名
TEST_USERS = {
    "alice": "Alice",
    "bob": "Bob",
    "carol": "Carol",
}


@pytest_asyncio.fixture
async def tmp_db_path(tmp_path: Path) -> Path:
    """提供临时 SQLite 数据库路径"""
    return tmp_path / "test.db"


@pytest_asyncio.fixture
async def db_conn(tmp_db_path: Path) -> AsyncGenerator[aiosqlite.Connection, None]:
    """提供已初始化的临时 SQLite 数据库连接"""
    from duochat.core.store.sqlite_init import init_db

    conn = await aiosqlite.connect(str(tmp_db_path))
    await init_db(conn)
    yield conn
    await conn.close()


@pytest_asyncio.fixture
async def store_group(tmp_db_path: Path):
    """提供已注册测试用户的 StoreGroup"""
    from duochat.core.store import create_store_group

    group = await create_store_group(str(tmp_db_path))
    async with group.transaction():
        for user_id, display_name in TEST_USERS.items():
            await group.user_directory.upsert_user(user_id, display_name)
    yield group
    await group.conn.close()
