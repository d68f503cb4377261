"""ConversationStore SQLite 实现

每个无序用户对一行，(user_low, user_high) 唯一索引兜底并发创建。
注意：所有写方法都不自动提交事务，需由调用方管理事务。
"""

from datetime import UTC, datetime

import aiosqlite
import structlog
from ulid import ULID

from ..models.conversation import Conversation, normalize_pair
from .message_store import format_ts

log = structlog.get_logger()

_COLUMNS = "conversation_id, user_low, user_high, last_message, last_message_at, created_at"


def is_pair_conflict(error: Exception) -> bool:
    """判断 IntegrityError 是否来自会话用户对唯一约束"""
    if not isinstance(error, aiosqlite.IntegrityError):
        return False
    text = str(error)
    return "idx_conversations_pair" in text or "conversations.user_low" in text


class SqliteConversationStore:
    """ConversationStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def get_conversation(self, user_a: str, user_b: str) -> Conversation | None:
        """按无序用户对查询会话（查询对称）"""
        low, high = normalize_pair(user_a, user_b)
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM conversations WHERE user_low = ? AND user_high = ?",
            (low, high),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_conversation(row)

    async def get_conversation_by_id(self, conversation_id: str) -> Conversation | None:
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM conversations WHERE conversation_id = ?",
            (conversation_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_conversation(row)

    async def get_or_create_conversation(
        self,
        user_a: str,
        user_b: str,
        now: datetime | None = None,
    ) -> Conversation:
        """并发安全的 get-or-create

        先查询；不存在则插入。若并发创建者抢先插入导致唯一约束冲突，
        回查并返回胜出者的行，而不是报错。
        """
        existing = await self.get_conversation(user_a, user_b)
        if existing is not None:
            return existing

        now = now or datetime.now(UTC)
        low, high = normalize_pair(user_a, user_b)
        conversation = Conversation(
            conversation_id=str(ULID()),
            user_low=low,
            user_high=high,
            last_message="",
            last_message_at=now,
            created_at=now,
        )
        try:
            await self._conn.execute(
                f"""
                INSERT INTO conversations ({_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    conversation.conversation_id,
                    low,
                    high,
                    conversation.last_message,
                    format_ts(conversation.last_message_at),
                    format_ts(conversation.created_at),
                ),
            )
        except aiosqlite.IntegrityError as e:
            if not is_pair_conflict(e):
                raise
            # 冲突只中止当前语句，事务内之前的写入保留
            winner = await self.get_conversation(user_a, user_b)
            if winner is None:
                raise
            log.info(
                "conversation_create_conflict_recovered",
                conversation_id=winner.conversation_id,
            )
            return winner
        return conversation

    async def touch_conversation(
        self,
        conversation_id: str,
        preview: str,
        last_message_at: datetime,
    ) -> None:
        """更新会话预览和最近消息时间"""
        await self._conn.execute(
            """
            UPDATE conversations
            SET last_message = ?, last_message_at = ?
            WHERE conversation_id = ?
            """,
            (preview, format_ts(last_message_at), conversation_id),
        )

    async def set_preview(self, conversation_id: str, preview: str) -> None:
        """只更新预览，不改动 last_message_at"""
        await self._conn.execute(
            "UPDATE conversations SET last_message = ? WHERE conversation_id = ?",
            (preview, conversation_id),
        )

    async def list_conversations(self, user_id: str) -> list[Conversation]:
        """查询用户参与的所有会话，按最近消息时间倒序"""
        cursor = await self._conn.execute(
            f"""
            SELECT {_COLUMNS} FROM conversations
            WHERE user_low = ? OR user_high = ?
            ORDER BY last_message_at DESC
            """,
            (user_id, user_id),
        )
        rows = await cursor.fetchall()
        return [self._row_to_conversation(row) for row in rows]

    async def list_all_conversations(self) -> list[Conversation]:
        """查询全部会话（用于预览重建）"""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM conversations ORDER BY created_at ASC"
        )
        rows = await cursor.fetchall()
        return [self._row_to_conversation(row) for row in rows]

    @staticmethod
    def _row_to_conversation(row: aiosqlite.Row) -> Conversation:
        """将数据库行转换为 Conversation 模型"""
        return Conversation(
            conversation_id=row[0],
            user_low=row[1],
            user_high=row[2],
            last_message=row[3] or "",
            last_message_at=datetime.fromisoformat(row[4]),
            created_at=datetime.fromisoformat(row[5]),
        )
