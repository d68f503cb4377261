"""对外视图模型 -- HTTP 响应与客户端共享的消息表示

对外 JSON 字段统一使用 camelCase（alias），Python 侧仍用 snake_case。
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .message import Message


class CamelModel(BaseModel):
    """camelCase 序列化基类"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class MessageView(CamelModel):
    """权威消息的对外表示，is_sent_by_current_user 相对调用方计算"""

    id: int
    sender_id: str
    sender_name: str = ""
    receiver_id: str
    message_content: str | None = None
    attachment_url: str | None = None
    attachment_type: str | None = None
    original_file_name: str | None = None
    sent_at: datetime
    edited_at: datetime | None = None
    is_read: bool = False
    is_sent_by_current_user: bool = False
    correlation_id: str | None = None

    @classmethod
    def from_message(
        cls,
        message: Message,
        current_user_id: str,
        display_names: dict[str, str],
    ) -> "MessageView":
        """由 Message 构建视图

        Args:
            message: 已持久化的消息
            current_user_id: 调用方 ID
            display_names: 批量查询得到的 user_id -> 显示名
        """
        attachment = message.attachment
        return cls(
            id=message.id,
            sender_id=message.sender_id,
            sender_name=display_names.get(message.sender_id, ""),
            receiver_id=message.receiver_id,
            message_content=message.text_content,
            attachment_url=attachment.url if attachment else None,
            attachment_type=attachment.kind.value if attachment else None,
            original_file_name=attachment.original_file_name if attachment else None,
            sent_at=message.sent_at,
            edited_at=message.edited_at,
            is_read=message.is_read,
            is_sent_by_current_user=message.sender_id == current_user_id,
            correlation_id=message.correlation_id,
        )


class ChatView(CamelModel):
    """聊天初始视图：最近一页消息，按时间正序"""

    current_user_id: str
    chat_user_id: str
    chat_user_name: str
    messages: list[MessageView] = Field(default_factory=list)


class ConversationSummary(CamelModel):
    """会话列表项"""

    conversation_id: str
    user_id: str
    user_name: str = ""
    last_message: str = ""
    last_message_at: datetime
    unread_count: int = 0
