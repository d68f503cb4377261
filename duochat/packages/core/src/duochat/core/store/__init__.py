"""DuoChat Core Store -- SQLite 持久化实现

提供工厂函数创建共享数据库连接的 Store 实例组。
"""

import asyncio
from contextlib import AbstractAsyncContextManager
from pathlib import Path

import aiosqlite

from .conversation_store import SqliteConversationStore
from .file_storage import LocalFileStorage
from .message_store import SqliteMessageStore
from .sqlite_init import init_db
from .transaction import (
    add_message_and_touch_conversation,
    delete_message_and_refresh_preview,
    edit_message_text,
    mark_messages_read,
    write_transaction,
)
from .user_directory import SqliteUserDirectory


class StoreGroup:
    """Store 实例组 -- 共享同一个数据库连接与写锁"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self.conn = conn
        self.write_lock = asyncio.Lock()
        self.message_store = SqliteMessageStore(conn)
        self.conversation_store = SqliteConversationStore(conn)
        self.user_directory = SqliteUserDirectory(conn)

    def transaction(self) -> AbstractAsyncContextManager[None]:
        """开启一个串行化写事务"""
        return write_transaction(self.conn, self.write_lock)


async def create_store_group(db_path: str) -> StoreGroup:
    """创建 Store 实例组

    Args:
        db_path: SQLite 数据库文件路径

    Returns:
        StoreGroup 实例
    """
    # 确保数据库目录存在
    db_dir = Path(db_path).parent
    db_dir.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row
    await init_db(conn)

    return StoreGroup(conn=conn)


__all__ = [
    "StoreGroup",
    "create_store_group",
    "SqliteMessageStore",
    "SqliteConversationStore",
    "SqliteUserDirectory",
    "LocalFileStorage",
    "init_db",
    "write_transaction",
    "add_message_and_touch_conversation",
    "mark_messages_read",
    "edit_message_text",
    "delete_message_and_refresh_preview",
]
