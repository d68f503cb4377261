"""DuoChat Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .conversation import Conversation, normalize_pair
from .enums import (
    AttachmentKind,
    PushEventType,
    classify_content_type,
)
from .event import PushEvent
from .message import Attachment, AttachmentUpload, Message
from .payloads import (
    MessageDeletedPayload,
    MessageEditedPayload,
    ReceiveMessagePayload,
    UserRefPayload,
)
from .user import User
from .views import CamelModel, ChatView, ConversationSummary, MessageView

__all__ = [
    # 枚举
    "AttachmentKind",
    "PushEventType",
    "classify_content_type",
    # Message
    "Message",
    "Attachment",
    "AttachmentUpload",
    # Conversation
    "Conversation",
    "normalize_pair",
    # User
    "User",
    # Event
    "PushEvent",
    # Payloads
    "ReceiveMessagePayload",
    "MessageEditedPayload",
    "MessageDeletedPayload",
    "UserRefPayload",
    # Views
    "CamelModel",
    "MessageView",
    "ChatView",
    "ConversationSummary",
]
