"""会话预览 Projection 模块

conversations.last_message 是 messages 的派生视图。
支持单条消息的预览推导、单会话重算和全量重建三种模式。
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

import structlog

from .config import CONVERSATION_PREVIEW_MAX, MESSAGE_PREVIEW_LENGTH
from .models.enums import AttachmentKind
from .models.message import Message

if TYPE_CHECKING:
    from .store import StoreGroup

log = structlog.get_logger()

# 无文本时按附件类型展示的固定标签
ATTACHMENT_PREVIEW_LABELS: dict[AttachmentKind, str] = {
    AttachmentKind.IMAGE: "📷 Sent a photo",
    AttachmentKind.AUDIO: "🎤 Sent a voice message",
    AttachmentKind.VIDEO: "🎬 Sent a video",
    AttachmentKind.FILE: "📎 Sent a file",
}

FALLBACK_PREVIEW = "New message"


def derive_preview(message: Message) -> str:
    """推导会话预览文本

    - 有文本：截断到 50 字符，超出追加 "..."
    - 无文本有附件：按附件类型的固定标签
    - 都没有：兜底 "New message"（创建校验保证不可达）
    """
    if message.text_content:
        text = message.text_content
        if len(text) > MESSAGE_PREVIEW_LENGTH:
            text = text[:MESSAGE_PREVIEW_LENGTH] + "..."
        return text[:CONVERSATION_PREVIEW_MAX]
    if message.attachment is not None:
        return ATTACHMENT_PREVIEW_LABELS[message.attachment.kind]
    return FALLBACK_PREVIEW


async def refresh_conversation_preview(store_group: StoreGroup, conversation_id: str) -> str:
    """按会话中最新的剩余消息重算预览（不提交事务）

    会话已无消息时预览置为空字符串，last_message_at 保持不变。

    Returns:
        重算后的预览文本
    """
    latest = await store_group.message_store.get_latest_message(conversation_id)
    if latest is None:
        await store_group.conversation_store.set_preview(conversation_id, "")
        return ""
    preview = derive_preview(latest)
    await store_group.conversation_store.touch_conversation(
        conversation_id, preview, latest.sent_at
    )
    return preview


async def rebuild_all(store_group: StoreGroup) -> int:
    """重建全部会话的预览

    Returns:
        处理的会话总数
    """
    start_time = time.monotonic()

    conversations = await store_group.conversation_store.list_all_conversations()
    await log.ainfo(
        "preview_rebuild_started",
        conversation_count=len(conversations),
    )

    async with store_group.transaction():
        for conversation in conversations:
            await refresh_conversation_preview(store_group, conversation.conversation_id)

    elapsed_ms = int((time.monotonic() - start_time) * 1000)
    await log.ainfo(
        "preview_rebuild_completed",
        conversation_count=len(conversations),
        elapsed_ms=elapsed_ms,
    )
    return len(conversations)
