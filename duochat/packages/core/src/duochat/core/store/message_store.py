"""MessageStore SQLite 实现

只负责 messages 表的读写，不包含业务规则。
注意：所有写方法都不自动提交事务，需由调用方管理事务。
"""

from datetime import datetime

import aiosqlite

from ..models.enums import AttachmentKind
from ..models.message import Attachment, Message

_COLUMNS = (
    "id, conversation_id, sender_id, receiver_id, text_content, attachment_url, "
    "attachment_type, original_file_name, sent_at, is_read, edited_at, correlation_id"
)


def format_ts(ts: datetime) -> str:
    """统一的时间戳存储格式（固定微秒精度，保证字典序即时间序）"""
    return ts.isoformat(timespec="microseconds")


class SqliteMessageStore:
    """MessageStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def insert_message(self, message: Message) -> Message:
        """插入消息并返回带自增 id 的副本

        调用前 message.sent_at 与 conversation_id 必须已赋值。
        """
        attachment = message.attachment
        cursor = await self._conn.execute(
            """
            INSERT INTO messages (conversation_id, sender_id, receiver_id, text_content,
                                  attachment_url, attachment_type, original_file_name,
                                  sent_at, is_read, edited_at, correlation_id)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                message.conversation_id,
                message.sender_id,
                message.receiver_id,
                message.text_content,
                attachment.url if attachment else None,
                attachment.kind.value if attachment else None,
                attachment.original_file_name if attachment else None,
                format_ts(message.sent_at),
                int(message.is_read),
                format_ts(message.edited_at) if message.edited_at else None,
                message.correlation_id,
            ),
        )
        return message.model_copy(update={"id": cursor.lastrowid})

    async def get_message(self, message_id: int) -> Message | None:
        """根据 id 查询消息"""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM messages WHERE id = ?",
            (message_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_message(row)

    async def get_message_by_correlation(
        self, sender_id: str, correlation_id: str
    ) -> Message | None:
        """按发送者 + 客户端关联 ID 查询消息（重试去重用）"""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM messages WHERE sender_id = ? AND correlation_id = ?",
            (sender_id, correlation_id),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_message(row)

    async def list_conversation_messages(
        self,
        user_a: str,
        user_b: str,
        page_size: int = 50,
        page: int = 1,
    ) -> list[Message]:
        """分页查询两人之间的消息，按 sent_at / id 倒序（最新一页在前）

        page 从 1 开始，skip = (page - 1) * page_size。
        """
        skip = (page - 1) * page_size
        cursor = await self._conn.execute(
            f"""
            SELECT {_COLUMNS} FROM messages
            WHERE (sender_id = ? AND receiver_id = ?)
               OR (sender_id = ? AND receiver_id = ?)
            ORDER BY sent_at DESC, id DESC
            LIMIT ? OFFSET ?
            """,
            (user_a, user_b, user_b, user_a, page_size, skip),
        )
        rows = await cursor.fetchall()
        return [self._row_to_message(row) for row in rows]

    async def get_latest_message(self, conversation_id: str) -> Message | None:
        """查询会话中最新的一条消息"""
        cursor = await self._conn.execute(
            f"""
            SELECT {_COLUMNS} FROM messages
            WHERE conversation_id = ?
            ORDER BY sent_at DESC, id DESC
            LIMIT 1
            """,
            (conversation_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_message(row)

    async def update_message(self, message: Message) -> None:
        """更新可变字段（文本内容、编辑时间、已读状态）"""
        await self._conn.execute(
            """
            UPDATE messages
            SET text_content = ?, edited_at = ?, is_read = ?
            WHERE id = ?
            """,
            (
                message.text_content,
                format_ts(message.edited_at) if message.edited_at else None,
                int(message.is_read),
                message.id,
            ),
        )

    async def delete_message(self, message_id: int) -> None:
        """物理删除消息（不改动会话预览）"""
        await self._conn.execute("DELETE FROM messages WHERE id = ?", (message_id,))

    async def mark_read(self, sender_id: str, receiver_id: str) -> int:
        """将 sender -> receiver 的所有未读消息置为已读

        单条 UPDATE 语句完成，返回本次被翻转的行数。
        """
        cursor = await self._conn.execute(
            """
            UPDATE messages SET is_read = 1
            WHERE sender_id = ? AND receiver_id = ? AND is_read = 0
            """,
            (sender_id, receiver_id),
        )
        return cursor.rowcount

    async def count_unread(self, user_id: str) -> int:
        """统计发给指定用户的全部未读消息数"""
        cursor = await self._conn.execute(
            "SELECT COUNT(*) FROM messages WHERE receiver_id = ? AND is_read = 0",
            (user_id,),
        )
        row = await cursor.fetchone()
        return row[0] if row else 0

    async def count_unread_from(self, sender_id: str, receiver_id: str) -> int:
        """统计 sender 发给 receiver 的未读消息数"""
        cursor = await self._conn.execute(
            """
            SELECT COUNT(*) FROM messages
            WHERE sender_id = ? AND receiver_id = ? AND is_read = 0
            """,
            (sender_id, receiver_id),
        )
        row = await cursor.fetchone()
        return row[0] if row else 0

    @staticmethod
    def _row_to_message(row: aiosqlite.Row) -> Message:
        """将数据库行转换为 Message 模型"""
        attachment = None
        if row[5]:
            attachment = Attachment(
                url=row[5],
                kind=AttachmentKind(row[6] or AttachmentKind.FILE.value),
                original_file_name=row[7] or "",
            )
        return Message(
            id=row[0],
            conversation_id=row[1],
            sender_id=row[2],
            receiver_id=row[3],
            text_content=row[4],
            attachment=attachment,
            sent_at=datetime.fromisoformat(row[8]),
            is_read=bool(row[9]),
            edited_at=datetime.fromisoformat(row[10]) if row[10] else None,
            correlation_id=row[11],
        )
