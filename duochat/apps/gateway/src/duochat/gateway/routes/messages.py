"""消息读写路由

POST /messages: 发送消息（multipart，可带附件），返回权威消息
GET /messages: 分页查询与某个用户之间的消息，最新在前
GET /messages/unread-count: 调用方的未读总数
GET /chats/{user_id}: 聊天初始视图，同时标记已读
GET /conversations: 会话列表
"""

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from duochat.core.exceptions import MessageValidationError
from duochat.core.models import AttachmentUpload, ChatView, ConversationSummary, MessageView

from ..deps import get_chat_service, get_current_user_id
from ..services.chat_service import ChatService

router = APIRouter()


async def read_upload(file: UploadFile, limit: int) -> bytes:
    """读取上传内容，最多读 limit + 1 字节

    Raises:
        MessageValidationError: 声明大小或实际内容超过 limit
    """
    if file.size is not None and file.size > limit:
        raise MessageValidationError(f"Attachment exceeds {limit} bytes")
    content = await file.read(limit + 1)
    if len(content) > limit:
        raise MessageValidationError(f"Attachment exceeds {limit} bytes")
    return content


@router.post("/messages", response_model=MessageView, status_code=201)
async def send_message(
    receiver_id: str = Form(alias="receiverId"),
    message_content: str | None = Form(default=None, alias="messageContent"),
    correlation_id: str | None = Form(default=None, alias="correlationId"),
    file: UploadFile | None = File(default=None),
    caller_id: str = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    """发送消息

    文本与附件至少有一个；空文件视为无附件。超限附件在读入内存前拒绝。
    """
    attachment = None
    if file is not None:
        attachment = AttachmentUpload(
            content=await read_upload(file, service.max_attachment_bytes),
            filename=file.filename or "",
            content_type=file.content_type,
        )

    return await service.send_message(
        caller_id,
        receiver_id,
        text=message_content,
        attachment=attachment,
        correlation_id=correlation_id,
    )


@router.get("/messages", response_model=list[MessageView])
async def get_messages(
    user_id: str = Query(alias="userId"),
    page: int = Query(default=1),
    caller_id: str = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    """分页查询消息（1 起始，每页 50 条）"""
    return await service.get_messages(caller_id, user_id, page=page)


@router.get("/messages/unread-count")
async def get_unread_count(
    caller_id: str = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    return {"unreadCount": await service.unread_count(caller_id)}


@router.get("/chats/{user_id}", response_model=ChatView)
async def get_chat(
    user_id: str,
    caller_id: str = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    """打开聊天：返回最近一页（时间正序），并把对方的消息标记为已读"""
    return await service.get_chat(caller_id, user_id)


@router.get("/conversations", response_model=list[ConversationSummary])
async def list_conversations(
    caller_id: str = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    return await service.list_conversations(caller_id)
