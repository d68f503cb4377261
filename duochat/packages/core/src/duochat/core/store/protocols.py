"""Store Protocol 接口定义

定义存储层与外部协作者的抽象接口，
使用 Python Protocol 实现结构化子类型（duck typing）。
"""

from datetime import datetime
from typing import Protocol

from ..models.conversation import Conversation
from ..models.message import Message


class MessageStore(Protocol):
    """Message 存储接口（写方法不提交事务）"""

    async def insert_message(self, message: Message) -> Message:
        """插入消息，返回带 id 的副本"""
        ...

    async def get_message(self, message_id: int) -> Message | None:
        """根据 id 查询消息"""
        ...

    async def get_message_by_correlation(
        self, sender_id: str, correlation_id: str
    ) -> Message | None:
        """按发送者 + 客户端关联 ID 查询消息"""
        ...

    async def list_conversation_messages(
        self,
        user_a: str,
        user_b: str,
        page_size: int = 50,
        page: int = 1,
    ) -> list[Message]:
        """分页查询两人之间的消息，最新在前"""
        ...

    async def update_message(self, message: Message) -> None:
        """更新消息可变字段"""
        ...

    async def delete_message(self, message_id: int) -> None:
        """删除消息"""
        ...

    async def mark_read(self, sender_id: str, receiver_id: str) -> int:
        """批量标记已读，返回翻转行数"""
        ...


class ConversationStore(Protocol):
    """Conversation 存储接口（写方法不提交事务）"""

    async def get_conversation(self, user_a: str, user_b: str) -> Conversation | None:
        """按无序用户对查询会话"""
        ...

    async def get_or_create_conversation(
        self,
        user_a: str,
        user_b: str,
        now: datetime | None = None,
    ) -> Conversation:
        """并发安全的 get-or-create"""
        ...

    async def touch_conversation(
        self,
        conversation_id: str,
        preview: str,
        last_message_at: datetime,
    ) -> None:
        """更新预览与最近消息时间"""
        ...


class FileStorage(Protocol):
    """附件存储协作者接口"""

    async def store(
        self,
        content: bytes,
        filename: str,
        content_type: str | None = None,
    ) -> str:
        """存储附件并返回持久 URL，失败抛 StorageFailureError"""
        ...

    async def delete(self, url: str) -> None:
        """删除附件，失败抛 StorageFailureError"""
        ...


class UserDirectory(Protocol):
    """用户目录协作者接口"""

    async def exists(self, user_id: str) -> bool:
        """用户是否存在"""
        ...

    async def get_display_name(self, user_id: str) -> str:
        """查询显示名"""
        ...

    async def get_display_names(self, user_ids: list[str]) -> dict[str, str]:
        """批量查询显示名"""
        ...
