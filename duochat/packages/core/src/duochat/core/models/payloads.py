"""推送事件 Payload 子类型

所有推送事件的结构化 payload 定义，字段以 camelCase 上线。
"""

from datetime import datetime

from .views import CamelModel


class ReceiveMessagePayload(CamelModel):
    """ReceiveMessage 事件 payload"""

    id: int
    sender_id: str
    sender_name: str = ""
    receiver_id: str
    message: str | None = None
    attachment_url: str | None = None
    attachment_type: str | None = None
    original_file_name: str | None = None
    sent_at: datetime
    correlation_id: str | None = None


class MessageEditedPayload(CamelModel):
    """MessageEdited 事件 payload"""

    message_id: int
    new_content: str
    edited_at: datetime | None = None


class MessageDeletedPayload(CamelModel):
    """MessageDeleted 事件 payload"""

    message_id: int


class UserRefPayload(CamelModel):
    """只携带 userId 的事件 payload

    用于 MessagesRead / UserTyping / UserOnline / UserOffline。
    """

    user_id: str
