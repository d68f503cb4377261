"""依赖注入模块 -- 通过 FastAPI Depends 注入 Store / EventBus / ChatService

实例通过 app.state 管理，在 lifespan 中初始化/清理。
"""

from fastapi import Depends, Request
from duochat.core.exceptions import UnauthenticatedError
from duochat.core.store import StoreGroup

from .middleware.request_context import USER_ID_HEADER
from .services.chat_service import ChatService
from .services.event_bus import EventBus


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_event_bus(request: Request) -> EventBus:
    """从 app.state 获取 EventBus 实例"""
    return request.app.state.event_bus


def get_file_storage(request: Request):
    """从 app.state 获取附件存储实例"""
    return request.app.state.file_storage


def get_current_user_id(request: Request) -> str:
    """从 X-User-Id 请求头获取调用方身份

    Raises:
        UnauthenticatedError: 请求头缺失或为空
    """
    user_id = request.headers.get(USER_ID_HEADER, "").strip()
    if not user_id:
        raise UnauthenticatedError(f"Missing {USER_ID_HEADER} header")
    return user_id


def get_chat_service(
    request: Request,
    store_group: StoreGroup = Depends(get_store_group),
    event_bus: EventBus = Depends(get_event_bus),
) -> ChatService:
    """按请求构造 ChatService"""
    return ChatService(
        store_group,
        event_bus,
        file_storage=get_file_storage(request),
        max_attachment_bytes=request.app.state.storage_config.max_attachment_bytes,
    )
