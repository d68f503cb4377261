"""枚举定义

包含附件类型 AttachmentKind、推送事件类型 PushEventType，
以及按 Content-Type 归类附件的 classify_content_type。
"""

from enum import StrEnum


class AttachmentKind(StrEnum):
    """附件类型"""

    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"
    FILE = "file"


class PushEventType(StrEnum):
    """推送通道事件类型（服务端 -> 客户端）

    取值即推送通道上的事件名。
    """

    RECEIVE_MESSAGE = "ReceiveMessage"
    MESSAGE_EDITED = "MessageEdited"
    MESSAGE_DELETED = "MessageDeleted"
    MESSAGES_READ = "MessagesRead"
    USER_TYPING = "UserTyping"
    USER_ONLINE = "UserOnline"
    USER_OFFLINE = "UserOffline"


def classify_content_type(content_type: str | None) -> AttachmentKind:
    """按声明的 Content-Type 归类附件

    Args:
        content_type: MIME 类型，如 "image/png"；缺失时按普通文件处理

    Returns:
        AttachmentKind
    """
    if not content_type:
        return AttachmentKind.FILE
    major = content_type.split("/", 1)[0].strip().lower()
    if major == "image":
        return AttachmentKind.IMAGE
    if major == "audio":
        return AttachmentKind.AUDIO
    if major == "video":
        return AttachmentKind.VIDEO
    return AttachmentKind.FILE
