"""ChatService -- 消息发送/编辑/删除/已读业务逻辑

发送流程：
1. 校验文本与附件，确认接收方存在
2. 上传附件（不持有写锁，不在事务内）
3. 单事务写入消息 + 更新会话预览
4. 向接收方与发送方的所有设备推送 ReceiveMessage

所有变更先持久化、再推送；推送失败不影响已提交的写入。
"""

from collections.abc import Iterable
from datetime import UTC, datetime

import structlog
from duochat.core.config import (
    DEFAULT_PAGE_SIZE,
    MAX_ATTACHMENT_BYTES,
    MAX_MESSAGE_LENGTH,
)
from duochat.core.exceptions import (
    MessageValidationError,
    NotFoundError,
    StorageFailureError,
    UnauthorizedError,
)
from duochat.core.models import (
    Attachment,
    AttachmentUpload,
    ChatView,
    ConversationSummary,
    Message,
    MessageDeletedPayload,
    MessageEditedPayload,
    MessageView,
    PushEvent,
    PushEventType,
    ReceiveMessagePayload,
    UserRefPayload,
    classify_content_type,
)
from duochat.core.store import StoreGroup
from duochat.core.store.protocols import FileStorage
from duochat.core.store.transaction import (
    add_message_and_touch_conversation,
    delete_message_and_refresh_preview,
    edit_message_text,
    mark_messages_read,
)

from .event_bus import EventBus

log = structlog.get_logger()


def _normalize_text(text: str | None) -> str | None:
    """纯空白文本视为无文本，其余原样保留"""
    if text is None or not text.strip():
        return None
    return text


class ChatService:
    """聊天业务服务"""

    def __init__(
        self,
        store_group: StoreGroup,
        event_bus: EventBus | None = None,
        file_storage: FileStorage | None = None,
        max_attachment_bytes: int = MAX_ATTACHMENT_BYTES,
    ) -> None:
        self._stores = store_group
        self._event_bus = event_bus
        self._file_storage = file_storage
        self._max_attachment_bytes = max_attachment_bytes

    @property
    def max_attachment_bytes(self) -> int:
        return self._max_attachment_bytes

    async def send_message(
        self,
        sender_id: str,
        receiver_id: str,
        text: str | None = None,
        attachment: AttachmentUpload | None = None,
        correlation_id: str | None = None,
    ) -> MessageView:
        """发送消息

        Args:
            sender_id: 调用方（发送者）
            receiver_id: 接收者
            text: 文本内容，可选
            attachment: 附件上传，可选；空字节流视为无附件
            correlation_id: 客户端关联 ID，原样回传；同一发送者重复提交时
                返回首次落库的消息，不再写入与推送

        Returns:
            权威消息视图（相对发送者）

        Raises:
            MessageValidationError: 无内容、文本超长、附件超大、发给自己
            NotFoundError: 接收方不存在
            StorageFailureError: 附件上传失败
        """
        text = _normalize_text(text)
        if attachment is not None and not attachment.content:
            attachment = None

        if text is None and attachment is None:
            raise MessageValidationError("Message must contain text or an attachment")
        if text is not None and len(text) > MAX_MESSAGE_LENGTH:
            raise MessageValidationError(
                f"Message text exceeds {MAX_MESSAGE_LENGTH} characters"
            )
        if receiver_id == sender_id:
            raise MessageValidationError("Cannot send a message to yourself")
        if attachment is not None and len(attachment.content) > self._max_attachment_bytes:
            raise MessageValidationError(
                f"Attachment exceeds {self._max_attachment_bytes} bytes"
            )
        if not await self._stores.user_directory.exists(receiver_id):
            raise NotFoundError("user", receiver_id)

        if correlation_id is not None:
            existing = await self._stores.message_store.get_message_by_correlation(
                sender_id, correlation_id
            )
            if existing is not None:
                log.info(
                    "message_send_deduplicated",
                    message_id=existing.id,
                    correlation_id=correlation_id,
                )
                names = await self._stores.user_directory.get_display_names(
                    [sender_id, receiver_id]
                )
                return MessageView.from_message(existing, sender_id, names)

        stored_attachment = None
        if attachment is not None:
            stored_attachment = await self._upload(attachment)

        message = Message(
            sender_id=sender_id,
            receiver_id=receiver_id,
            text_content=text,
            attachment=stored_attachment,
            correlation_id=correlation_id,
        )
        try:
            persisted = await add_message_and_touch_conversation(self._stores, message)
        except Exception:
            # 写入失败时回收已上传的附件
            if stored_attachment is not None:
                await self._discard_attachment(stored_attachment.url)
            raise

        if stored_attachment is not None and persisted.attachment != stored_attachment:
            # 并发重试已先落库，本次上传的文件没有消息引用
            await self._discard_attachment(stored_attachment.url)

        names = await self._stores.user_directory.get_display_names([sender_id, receiver_id])
        view = MessageView.from_message(persisted, sender_id, names)

        log.info(
            "message_sent",
            message_id=persisted.id,
            conversation_id=persisted.conversation_id,
            has_attachment=stored_attachment is not None,
        )

        event = PushEvent.build(
            PushEventType.RECEIVE_MESSAGE,
            ReceiveMessagePayload(
                id=view.id,
                sender_id=view.sender_id,
                sender_name=view.sender_name,
                receiver_id=view.receiver_id,
                message=view.message_content,
                attachment_url=view.attachment_url,
                attachment_type=view.attachment_type,
                original_file_name=view.original_file_name,
                sent_at=view.sent_at,
                correlation_id=view.correlation_id,
            ),
        )
        await self._publish([receiver_id, sender_id], event)
        return view

    async def edit_message(self, caller_id: str, message_id: int, new_text: str) -> MessageView:
        """编辑消息文本（仅发送者）

        Raises:
            NotFoundError: 消息不存在（含编辑途中被删除）
            UnauthorizedError: 调用方不是发送者
            MessageValidationError: 新文本为空或超长
        """
        await self._get_owned_message(caller_id, message_id, action="edit")

        if _normalize_text(new_text) is None:
            raise MessageValidationError("Message text cannot be empty")
        if len(new_text) > MAX_MESSAGE_LENGTH:
            raise MessageValidationError(
                f"Message text exceeds {MAX_MESSAGE_LENGTH} characters"
            )

        edited = await edit_message_text(
            self._stores, message_id, new_text, datetime.now(UTC)
        )

        log.info("message_edited", message_id=message_id)

        event = PushEvent.build(
            PushEventType.MESSAGE_EDITED,
            MessageEditedPayload(
                message_id=message_id,
                new_content=new_text,
                edited_at=edited.edited_at,
            ),
        )
        await self._publish([edited.receiver_id, edited.sender_id], event)

        names = await self._stores.user_directory.get_display_names(
            [edited.sender_id, edited.receiver_id]
        )
        return MessageView.from_message(edited, caller_id, names)

    async def delete_message(self, caller_id: str, message_id: int) -> str:
        """删除消息（仅发送者），返回接收方 ID

        并发删除同一条消息时只有一方成功并推送，另一方得到 NotFoundError。

        Raises:
            NotFoundError: 消息不存在（包括已删除）
            UnauthorizedError: 调用方不是发送者
        """
        await self._get_owned_message(caller_id, message_id, action="delete")

        message = await delete_message_and_refresh_preview(self._stores, message_id)
        if message.attachment is not None:
            await self._discard_attachment(message.attachment.url)

        log.info(
            "message_deleted",
            message_id=message_id,
            conversation_id=message.conversation_id,
        )

        event = PushEvent.build(
            PushEventType.MESSAGE_DELETED,
            MessageDeletedPayload(message_id=message_id),
        )
        await self._publish([message.receiver_id, message.sender_id], event)
        return message.receiver_id

    async def get_messages(
        self,
        caller_id: str,
        other_user_id: str,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> list[MessageView]:
        """分页查询两人之间的消息，最新在前"""
        if page < 1:
            raise MessageValidationError("Page must be >= 1")

        messages = await self._stores.message_store.list_conversation_messages(
            caller_id, other_user_id, page_size=page_size, page=page
        )
        names = await self._stores.user_directory.get_display_names(
            [caller_id, other_user_id]
        )
        return [MessageView.from_message(m, caller_id, names) for m in messages]

    async def get_chat(self, caller_id: str, other_user_id: str) -> ChatView:
        """聊天初始视图：最近一页正序，同时把对方发来的消息标记为已读

        Raises:
            NotFoundError: 对方用户不存在
        """
        if not await self._stores.user_directory.exists(other_user_id):
            raise NotFoundError("user", other_user_id)

        flipped = await mark_messages_read(self._stores, other_user_id, caller_id)
        if flipped:
            await self._publish_read(caller_id, other_user_id, flipped)

        messages = await self._stores.message_store.list_conversation_messages(
            caller_id, other_user_id, page_size=DEFAULT_PAGE_SIZE, page=1
        )
        names = await self._stores.user_directory.get_display_names(
            [caller_id, other_user_id]
        )
        return ChatView(
            current_user_id=caller_id,
            chat_user_id=other_user_id,
            chat_user_name=names.get(other_user_id, ""),
            messages=[
                MessageView.from_message(m, caller_id, names) for m in reversed(messages)
            ],
        )

    async def mark_read(self, caller_id: str, other_user_id: str) -> int:
        """把 other_user_id 发给调用方的未读消息全部标记为已读

        无论是否有行被翻转，都通知对方。

        Returns:
            被翻转的行数
        """
        flipped = await mark_messages_read(self._stores, other_user_id, caller_id)
        await self._publish_read(caller_id, other_user_id, flipped)
        return flipped

    async def user_typing(self, caller_id: str, other_user_id: str) -> None:
        """转发输入中提示，不落盘"""
        event = PushEvent.build(PushEventType.USER_TYPING, UserRefPayload(user_id=caller_id))
        await self._publish([other_user_id], event)

    async def unread_count(self, caller_id: str) -> int:
        return await self._stores.message_store.count_unread(caller_id)

    async def list_conversations(self, caller_id: str) -> list[ConversationSummary]:
        """调用方的会话列表，最近活跃在前"""
        conversations = await self._stores.conversation_store.list_conversations(caller_id)
        peers = [c.peer_of(caller_id) for c in conversations]
        names = await self._stores.user_directory.get_display_names(peers)

        summaries: list[ConversationSummary] = []
        for conversation, peer_id in zip(conversations, peers, strict=True):
            unread = await self._stores.message_store.count_unread_from(peer_id, caller_id)
            summaries.append(
                ConversationSummary(
                    conversation_id=conversation.conversation_id,
                    user_id=peer_id,
                    user_name=names.get(peer_id, ""),
                    last_message=conversation.last_message,
                    last_message_at=conversation.last_message_at,
                    unread_count=unread,
                )
            )
        return summaries

    # ============================================================
    # 内部辅助
    # ============================================================

    async def _get_owned_message(self, caller_id: str, message_id: int, action: str) -> Message:
        message = await self._stores.message_store.get_message(message_id)
        if message is None:
            raise NotFoundError("message", message_id)
        if message.sender_id != caller_id:
            log.warning(
                "message_mutation_rejected",
                message_id=message_id,
                action=action,
            )
            raise UnauthorizedError(f"You can only {action} your own messages")
        return message

    async def _upload(self, attachment: AttachmentUpload) -> Attachment:
        if self._file_storage is None:
            raise StorageFailureError("No attachment storage configured")
        try:
            url = await self._file_storage.store(
                attachment.content,
                attachment.filename,
                attachment.content_type,
            )
        except StorageFailureError:
            raise
        except Exception as e:
            log.error("attachment_upload_failed", error_type=type(e).__name__)
            raise StorageFailureError("Failed to store attachment", original_error=e) from e

        return Attachment(
            url=url,
            kind=classify_content_type(attachment.content_type),
            original_file_name=attachment.filename,
        )

    async def _discard_attachment(self, url: str) -> None:
        """删除附件文件，失败只记录日志"""
        if self._file_storage is None:
            return
        try:
            await self._file_storage.delete(url)
        except Exception as e:
            log.warning(
                "attachment_cleanup_failed",
                url=url,
                error_type=type(e).__name__,
            )

    async def _publish_read(self, caller_id: str, other_user_id: str, flipped: int) -> None:
        log.info(
            "messages_marked_read",
            reader_id=caller_id,
            sender_id=other_user_id,
            flipped=flipped,
        )
        event = PushEvent.build(PushEventType.MESSAGES_READ, UserRefPayload(user_id=caller_id))
        await self._publish([other_user_id], event)

    async def _publish(self, user_ids: Iterable[str], event: PushEvent) -> None:
        if self._event_bus is None:
            return
        for user_id in dict.fromkeys(user_ids):
            await self._event_bus.publish(user_id, event)
