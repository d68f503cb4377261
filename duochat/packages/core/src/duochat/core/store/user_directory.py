"""UserDirectory SQLite 实现

用户资料的增删改属于外部系统，这里只提供聊天需要的显示名查询、
存在性校验，以及一个 upsert 入口用于同步/初始化用户。
"""

from datetime import UTC, datetime

import aiosqlite

from ..models.user import User
from .message_store import format_ts


class SqliteUserDirectory:
    """UserDirectory 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def upsert_user(self, user_id: str, display_name: str) -> None:
        """写入或更新用户显示名（不自动提交事务）"""
        await self._conn.execute(
            """
            INSERT INTO users (user_id, display_name, created_at)
            VALUES (?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET display_name = excluded.display_name
            """,
            (user_id, display_name, format_ts(datetime.now(UTC))),
        )

    async def get_user(self, user_id: str) -> User | None:
        cursor = await self._conn.execute(
            "SELECT user_id, display_name, created_at FROM users WHERE user_id = ?",
            (user_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return User(
            user_id=row[0],
            display_name=row[1],
            created_at=datetime.fromisoformat(row[2]),
        )

    async def exists(self, user_id: str) -> bool:
        cursor = await self._conn.execute(
            "SELECT 1 FROM users WHERE user_id = ?",
            (user_id,),
        )
        return await cursor.fetchone() is not None

    async def get_display_name(self, user_id: str) -> str:
        """查询显示名，用户不存在时返回空字符串"""
        names = await self.get_display_names([user_id])
        return names.get(user_id, "")

    async def get_display_names(self, user_ids: list[str]) -> dict[str, str]:
        """批量查询显示名

        一次查询覆盖所有 id，缺失的用户不出现在结果中。
        """
        unique_ids = sorted(set(user_ids))
        if not unique_ids:
            return {}
        placeholders = ", ".join("?" for _ in unique_ids)
        cursor = await self._conn.execute(
            f"SELECT user_id, display_name FROM users WHERE user_id IN ({placeholders})",
            unique_ids,
        )
        rows = await cursor.fetchall()
        return {row[0]: row[1] for row in rows}
