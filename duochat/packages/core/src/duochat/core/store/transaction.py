"""写事务封装

共享连接上的写操作统一经由 write_transaction：持有写锁串行化写者，
成功提交、失败回滚，保证消息写入与会话预览更新、批量已读标记
都以单个事务原子落盘。
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import aiosqlite

from ..exceptions import NotFoundError
from ..models.message import Message
from ..projection import derive_preview, refresh_conversation_preview

if TYPE_CHECKING:
    from . import StoreGroup


@asynccontextmanager
async def write_transaction(
    conn: aiosqlite.Connection,
    lock: asyncio.Lock,
) -> AsyncIterator[None]:
    """串行化的写事务

    Args:
        conn: 数据库连接（需在同一连接上操作以保证事务性）
        lock: 该连接的写锁

    Raises:
        Exception: 事务体或提交失败时回滚后原样抛出
    """
    async with lock:
        try:
            yield
            await conn.commit()
        except Exception:
            await conn.rollback()
            raise


async def add_message_and_touch_conversation(
    store_group: StoreGroup,
    message: Message,
) -> Message:
    """在同一事务内写入消息并更新所属会话的预览与时间

    流程：
    1. 同一发送者已用过该 correlation_id 时直接返回既有消息
    2. get-or-create 会话（唯一约束 + 冲突回查）
    3. 分配 sent_at，插入消息
    4. 更新会话 last_message / last_message_at

    Returns:
        带 id / sent_at / conversation_id 的已持久化消息
    """
    async with store_group.transaction():
        if message.correlation_id is not None:
            existing = await store_group.message_store.get_message_by_correlation(
                message.sender_id, message.correlation_id
            )
            if existing is not None:
                return existing

        sent_at = datetime.now(UTC)
        conversation = await store_group.conversation_store.get_or_create_conversation(
            message.sender_id, message.receiver_id, now=sent_at
        )
        persisted = await store_group.message_store.insert_message(
            message.model_copy(
                update={
                    "conversation_id": conversation.conversation_id,
                    "sent_at": sent_at,
                    "is_read": False,
                }
            )
        )
        await store_group.conversation_store.touch_conversation(
            conversation.conversation_id,
            derive_preview(persisted),
            sent_at,
        )
    return persisted


async def mark_messages_read(
    store_group: StoreGroup,
    sender_id: str,
    receiver_id: str,
) -> int:
    """单事务批量标记 sender -> receiver 的未读消息为已读

    Returns:
        本次被翻转的行数
    """
    async with store_group.transaction():
        return await store_group.message_store.mark_read(sender_id, receiver_id)


async def edit_message_text(
    store_group: StoreGroup,
    message_id: int,
    new_text: str,
    edited_at: datetime,
) -> Message:
    """单事务改写消息文本

    在写锁内重新读取当前行，只改文本与编辑时间，其余字段以库中为准。

    Raises:
        NotFoundError: 消息不存在（含并发删除）
    """
    async with store_group.transaction():
        current = await store_group.message_store.get_message(message_id)
        if current is None:
            raise NotFoundError("message", message_id)
        edited = current.model_copy(
            update={"text_content": new_text, "edited_at": edited_at}
        )
        await store_group.message_store.update_message(edited)
    return edited


async def delete_message_and_refresh_preview(
    store_group: StoreGroup,
    message_id: int,
) -> Message:
    """单事务删除消息并按剩余最新消息重算会话预览

    Returns:
        被删除的消息（写锁内读到的最后状态）

    Raises:
        NotFoundError: 消息不存在（含并发删除）
    """
    async with store_group.transaction():
        current = await store_group.message_store.get_message(message_id)
        if current is None:
            raise NotFoundError("message", message_id)
        await store_group.message_store.delete_message(message_id)
        await refresh_conversation_preview(store_group, current.conversation_id)
    return current
