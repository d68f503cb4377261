"""推送通道调用路由 -- 客户端 -> 服务端的轻量操作

POST /hub/mark-as-read: 标记对方发来的消息为已读
POST /hub/edit-message: 编辑自己的消息
POST /hub/delete-message: 删除自己的消息
POST /hub/user-typing: 转发输入中提示
GET /hub/presence/{user_id}: 查询用户是否在线
"""

from fastapi import APIRouter, Depends
from duochat.core.models import CamelModel, MessageView
from starlette.responses import Response

from ..deps import get_chat_service, get_current_user_id, get_event_bus
from ..services.chat_service import ChatService
from ..services.event_bus import EventBus

router = APIRouter(prefix="/hub")


class OtherUserRequest(CamelModel):
    """只携带对端用户 ID 的请求体"""

    other_user_id: str


class EditMessageRequest(CamelModel):
    message_id: int
    new_content: str


class DeleteMessageRequest(CamelModel):
    message_id: int


class MarkAsReadResponse(CamelModel):
    marked_count: int


class DeleteMessageResponse(CamelModel):
    message_id: int
    receiver_id: str


class PresenceResponse(CamelModel):
    user_id: str
    online: bool


@router.post("/mark-as-read", response_model=MarkAsReadResponse)
async def mark_as_read(
    body: OtherUserRequest,
    caller_id: str = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    marked = await service.mark_read(caller_id, body.other_user_id)
    return MarkAsReadResponse(marked_count=marked)


@router.post("/edit-message", response_model=MessageView)
async def edit_message(
    body: EditMessageRequest,
    caller_id: str = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    return await service.edit_message(caller_id, body.message_id, body.new_content)


@router.post("/delete-message", response_model=DeleteMessageResponse)
async def delete_message(
    body: DeleteMessageRequest,
    caller_id: str = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    receiver_id = await service.delete_message(caller_id, body.message_id)
    return DeleteMessageResponse(message_id=body.message_id, receiver_id=receiver_id)


@router.post("/user-typing", status_code=204)
async def user_typing(
    body: OtherUserRequest,
    caller_id: str = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    await service.user_typing(caller_id, body.other_user_id)
    return Response(status_code=204)


@router.get("/presence/{user_id}", response_model=PresenceResponse)
async def get_presence(
    user_id: str,
    caller_id: str = Depends(get_current_user_id),
    event_bus: EventBus = Depends(get_event_bus),
):
    return PresenceResponse(user_id=user_id, online=event_bus.is_online(user_id))
