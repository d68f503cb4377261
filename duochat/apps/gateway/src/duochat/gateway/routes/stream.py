"""SSE 推送通道路由

GET /stream: 调用方的实时推送通道。连接建立即在 EventBus 注册，
断开时注销；第一条连接上线、最后一条连接断开时广播在线状态。
不补发离线期间的事件，客户端重连后通过读接口补齐。
"""

import asyncio
import json
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends
from duochat.core.config import SSE_HEARTBEAT_INTERVAL
from duochat.core.models import PushEvent
from sse_starlette.sse import EventSourceResponse

from ..deps import get_current_user_id, get_event_bus
from ..services.event_bus import EventBus

router = APIRouter()


def _event_to_sse_data(event: PushEvent) -> dict:
    """将 PushEvent 转换为 SSE data JSON"""
    return {
        "eventId": event.event_id,
        "type": event.type,
        "ts": event.ts.isoformat(),
        "payload": event.payload,
    }


async def user_event_stream(
    user_id: str,
    event_bus: EventBus,
    heartbeat_interval: float = SSE_HEARTBEAT_INTERVAL,
) -> AsyncIterator[dict]:
    """注册连接并持续产出 SSE 消息，退出时注销连接"""
    queue = await event_bus.register(user_id)
    try:
        while True:
            try:
                event = await asyncio.wait_for(queue.get(), timeout=heartbeat_interval)
                yield {
                    "id": event.event_id,
                    "event": event.type,
                    "data": json.dumps(_event_to_sse_data(event), ensure_ascii=False),
                }
            except TimeoutError:
                # 心跳保活
                yield {"comment": "heartbeat"}
    finally:
        await event_bus.unregister(user_id, queue)


@router.get("/stream")
async def stream_events(
    caller_id: str = Depends(get_current_user_id),
    event_bus: EventBus = Depends(get_event_bus),
):
    """SSE 事件流端点

    事件名即推送类型：ReceiveMessage / MessageEdited / MessageDeleted /
    MessagesRead / UserTyping / UserOnline / UserOffline。
    """
    return EventSourceResponse(user_event_stream(caller_id, event_bus))
