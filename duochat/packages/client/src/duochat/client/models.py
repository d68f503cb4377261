"""客户端数据模型

RenderedMessage 是客户端本地渲染的一条消息：发送中时以 correlation id
为键，收到服务端权威记录后改以服务端 ID 为键。
"""

from datetime import datetime
from enum import StrEnum
from typing import Any

from duochat.core.models import AttachmentUpload
from pydantic import BaseModel, ConfigDict, Field


class DeliveryStatus(StrEnum):
    """本地消息的投递状态

    自己发出的：SENDING -> SENT -> SEEN，或 SENDING -> FAILED
    对方发来的：RECEIVED
    """

    SENDING = "sending"
    SENT = "sent"
    SEEN = "seen"
    FAILED = "failed"
    RECEIVED = "received"


class RenderedMessage(BaseModel):
    """本地渲染的消息"""

    model_config = ConfigDict(validate_assignment=True)

    correlation_id: str | None = Field(default=None, description="客户端生成的关联 ID")
    server_id: int | None = Field(default=None, description="服务端分配的 ID，确认前为 None")
    sender_id: str
    receiver_id: str
    text: str | None = None
    attachment_url: str | None = None
    attachment_type: str | None = None
    original_file_name: str | None = None
    sent_at: datetime | None = None
    edited_at: datetime | None = None
    status: DeliveryStatus = DeliveryStatus.SENDING
    error: str | None = Field(default=None, description="最近一次发送失败的原因")
    local_seq: int = Field(default=0, description="本地渲染顺序，用于排列未确认消息")

    # 失败重试时需要原始附件；不参与展示
    pending_attachment: AttachmentUpload | None = Field(default=None, exclude=True, repr=False)

    @property
    def key(self) -> int | str:
        """当前渲染键：确认后为服务端 ID，否则为 correlation id"""
        return self.server_id if self.server_id is not None else self.correlation_id

    @property
    def is_pending(self) -> bool:
        return self.server_id is None


def canonical_fields(data: dict[str, Any]) -> dict[str, Any]:
    """把服务端消息 JSON 统一为 RenderedMessage 字段

    同时兼容 HTTP 返回的消息视图（messageContent）和
    ReceiveMessage 推送 payload（message）。
    """
    text = data.get("messageContent", data.get("message"))
    return {
        "server_id": data["id"],
        "correlation_id": data.get("correlationId"),
        "sender_id": data["senderId"],
        "receiver_id": data["receiverId"],
        "text": text,
        "attachment_url": data.get("attachmentUrl"),
        "attachment_type": data.get("attachmentType"),
        "original_file_name": data.get("originalFileName"),
        "sent_at": data.get("sentAt"),
        "edited_at": data.get("editedAt"),
    }
