"""Message Domain Model

服务端持久化的权威消息。id 与 sent_at 由存储层分配，
sender_id / receiver_id 创建后不可变。
"""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import AttachmentKind


class Attachment(BaseModel):
    """已存储的消息附件"""

    url: str = Field(description="附件访问 URL（由文件存储服务返回）")
    kind: AttachmentKind = Field(description="附件类型")
    original_file_name: str = Field(default="", description="原始文件名")


class AttachmentUpload(BaseModel):
    """待上传的附件（发送请求中的原始字节流）"""

    content: bytes = Field(description="附件字节内容")
    filename: str = Field(default="", description="原始文件名")
    content_type: str | None = Field(default=None, description="声明的 MIME 类型")


class Message(BaseModel):
    """Message 数据模型

    创建时 text_content 与 attachment 至少有一个。
    is_read 只能由接收方的已读操作修改。
    """

    id: int | None = Field(default=None, description="服务端分配的自增 ID")
    conversation_id: str = Field(default="", description="所属会话 ID")
    sender_id: str = Field(description="发送者 ID")
    receiver_id: str = Field(description="接收者 ID")
    text_content: str | None = Field(default=None, description="文本内容")
    attachment: Attachment | None = Field(default=None, description="附件")
    sent_at: datetime | None = Field(default=None, description="服务端 UTC 发送时间")
    is_read: bool = Field(default=False, description="接收方是否已读")
    edited_at: datetime | None = Field(default=None, description="最后编辑时间")
    correlation_id: str | None = Field(
        default=None,
        description="客户端生成的关联 ID，原样回传",
    )
