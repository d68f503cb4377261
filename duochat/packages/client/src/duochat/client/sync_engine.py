"""ClientSyncEngine -- 客户端先渲染、后对账

发送时立即以 "temp-<ULID>" 为键渲染一条 sending 状态的消息，
服务端返回（HTTP 响应或多设备回显的 ReceiveMessage，先到者为准）后
按 correlation id 改键为服务端 ID，保证每条消息最终只渲染一次。

一个引擎实例对应当前用户与一个对端之间的会话。
"""

import time
from collections.abc import Callable
from typing import Any, Protocol

import structlog
from duochat.core.config import DEFAULT_PAGE_SIZE
from duochat.core.models import AttachmentUpload, PushEventType, classify_content_type
from ulid import ULID

from .exceptions import ClientSyncError, PendingMessageError, TransportError
from .models import DeliveryStatus, RenderedMessage, canonical_fields

log = structlog.get_logger()

# 输入中提示的有效期（秒），过期后自动清除
TYPING_HINT_TTL_S = 3.5

TEMP_ID_PREFIX = "temp-"


def new_correlation_id() -> str:
    """生成客户端关联 ID，前缀保证不会与服务端整数 ID 相同"""
    return f"{TEMP_ID_PREFIX}{ULID()}"


class ChatTransport(Protocol):
    """同步引擎依赖的服务端调用接口（ChatApiClient 实现）"""

    async def send_message(
        self,
        receiver_id: str,
        text: str | None = None,
        attachment: AttachmentUpload | None = None,
        correlation_id: str | None = None,
    ) -> dict[str, Any]: ...

    async def edit_message(self, message_id: int, new_content: str) -> dict[str, Any]: ...

    async def delete_message(self, message_id: int) -> dict[str, Any]: ...

    async def get_messages(self, other_user_id: str, page: int = 1) -> list[dict[str, Any]]: ...

    async def mark_as_read(self, other_user_id: str) -> int: ...

    async def user_typing(self, other_user_id: str) -> None: ...


class ClientSyncEngine:
    """客户端消息同步引擎"""

    def __init__(
        self,
        user_id: str,
        peer_id: str,
        transport: ChatTransport,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            user_id: 当前登录用户
            peer_id: 当前会话的对端用户
            transport: 服务端调用实现
            clock: 单调时钟，用于输入中提示过期判断
        """
        self.user_id = user_id
        self.peer_id = peer_id
        self._transport = transport
        self._clock = clock
        # 渲染键 -> 消息：确认前为 correlation id（str），确认后为服务端 ID（int）
        self._messages: dict[int | str, RenderedMessage] = {}
        # 已确认的 correlation id -> 服务端 ID
        self._confirmed: dict[str, int] = {}
        self._seq = 0
        self._typing_until: float | None = None
        self._peer_online = False

    # ============================================================
    # 发送
    # ============================================================

    def begin_send(
        self,
        text: str | None = None,
        attachment: AttachmentUpload | None = None,
    ) -> RenderedMessage:
        """立即渲染一条待发送消息

        Raises:
            ClientSyncError: 既没有文本也没有附件
        """
        if text is not None and not text.strip():
            text = None
        if attachment is not None and not attachment.content:
            attachment = None
        if text is None and attachment is None:
            raise ClientSyncError("Message must contain text or an attachment")

        rendered = RenderedMessage(
            correlation_id=new_correlation_id(),
            sender_id=self.user_id,
            receiver_id=self.peer_id,
            text=text,
            attachment_type=(
                classify_content_type(attachment.content_type).value if attachment else None
            ),
            original_file_name=attachment.filename if attachment else None,
            status=DeliveryStatus.SENDING,
            local_seq=self._next_seq(),
            pending_attachment=attachment,
        )
        self._messages[rendered.correlation_id] = rendered
        return rendered

    async def send(
        self,
        text: str | None = None,
        attachment: AttachmentUpload | None = None,
    ) -> RenderedMessage:
        """渲染并发送；失败时消息保留为 failed，等待 retry 或 discard"""
        rendered = self.begin_send(text, attachment)
        return await self._dispatch(rendered)

    async def retry(self, correlation_id: str) -> RenderedMessage:
        """重发一条失败的消息，沿用原 correlation id"""
        rendered = self._messages.get(correlation_id)
        if rendered is None or rendered.status != DeliveryStatus.FAILED:
            raise ClientSyncError(f"No failed message with id {correlation_id}")
        rendered.status = DeliveryStatus.SENDING
        rendered.error = None
        return await self._dispatch(rendered)

    def discard(self, correlation_id: str) -> None:
        """移除一条失败的消息"""
        rendered = self._messages.get(correlation_id)
        if rendered is None or rendered.status != DeliveryStatus.FAILED:
            raise ClientSyncError(f"No failed message with id {correlation_id}")
        del self._messages[correlation_id]

    async def _dispatch(self, rendered: RenderedMessage) -> RenderedMessage:
        correlation_id = rendered.correlation_id
        try:
            data = await self._transport.send_message(
                self.peer_id,
                text=rendered.text,
                attachment=rendered.pending_attachment,
                correlation_id=correlation_id,
            )
        except TransportError as e:
            # 响应丢失但回显已到：消息其实已经落库
            if correlation_id in self._confirmed:
                return self._messages[self._confirmed[correlation_id]]
            rendered.status = DeliveryStatus.FAILED
            rendered.error = e.message
            log.warning(
                "send_failed",
                correlation_id=correlation_id,
                status_code=e.status_code,
                code=e.code,
            )
            return rendered
        return self.reconcile(data)

    # ============================================================
    # 对账
    # ============================================================

    def reconcile(self, data: dict[str, Any]) -> RenderedMessage:
        """用服务端权威记录更新本地渲染

        同一条消息无论先收到 HTTP 响应还是推送回显，结果都只有一条：
        - 已按服务端 ID 渲染：只刷新内容
        - 存在同 correlation id 的待确认消息：改键为服务端 ID
        - 否则作为新消息渲染（对方发来或自己另一台设备发出）
        """
        fields = canonical_fields(data)
        server_id = fields["server_id"]
        correlation_id = fields["correlation_id"]
        is_mine = fields["sender_id"] == self.user_id

        pending = None
        if correlation_id:
            pending = self._messages.pop(correlation_id, None)

        existing = self._messages.get(server_id)
        if existing is not None:
            self._refresh(existing, data)
            if correlation_id:
                self._confirmed[correlation_id] = server_id
            return existing

        if is_mine:
            status = DeliveryStatus.SEEN if data.get("isRead") else DeliveryStatus.SENT
        else:
            status = DeliveryStatus.RECEIVED

        rendered = RenderedMessage(
            **fields,
            status=status,
            local_seq=pending.local_seq if pending is not None else self._next_seq(),
        )
        self._messages[server_id] = rendered
        if correlation_id:
            self._confirmed[correlation_id] = server_id
        return rendered

    def apply_event(self, event_type: str, payload: dict[str, Any]) -> bool:
        """应用一条推送事件

        Returns:
            事件是否改变了本地状态
        """
        try:
            kind = PushEventType(event_type)
        except ValueError:
            log.debug("push_event_ignored", event_type=event_type)
            return False

        if kind == PushEventType.RECEIVE_MESSAGE:
            if {payload.get("senderId"), payload.get("receiverId")} != {
                self.user_id,
                self.peer_id,
            }:
                return False
            if payload["senderId"] == self.peer_id:
                self._typing_until = None
            self.reconcile(payload)
            return True

        if kind == PushEventType.MESSAGE_EDITED:
            rendered = self._messages.get(payload["messageId"])
            if rendered is None:
                return False
            rendered.text = payload["newContent"]
            rendered.edited_at = payload.get("editedAt")
            return True

        if kind == PushEventType.MESSAGE_DELETED:
            return self._remove(payload["messageId"])

        user_id = payload.get("userId")
        if user_id != self.peer_id:
            return False

        if kind == PushEventType.MESSAGES_READ:
            for rendered in self._messages.values():
                if rendered.status == DeliveryStatus.SENT:
                    rendered.status = DeliveryStatus.SEEN
            return True

        if kind == PushEventType.USER_TYPING:
            self._typing_until = self._clock() + TYPING_HINT_TTL_S
            return True

        if kind == PushEventType.USER_ONLINE:
            self._peer_online = True
            return True

        # UserOffline
        self._peer_online = False
        self._typing_until = None
        return True

    def handle_event(self, event: dict[str, Any]) -> bool:
        """应用 SSE 信封 {"type": ..., "payload": {...}}"""
        return self.apply_event(event["type"], event.get("payload") or {})

    async def resync(self) -> int:
        """断线重连后用第一页消息补齐本地状态

        按服务端 ID 合并，保留尚未确认的本地消息；
        第一页时间窗口内本地存在但服务端已不存在的消息视为离线期间被删除。
        第一页不满时它就是完整历史，窗口不设下界。

        Returns:
            被移除的本地消息数
        """
        page = await self._transport.get_messages(self.peer_id, 1)
        fetched_ids = {self.reconcile(data).server_id for data in page}

        oldest = None
        if len(page) >= DEFAULT_PAGE_SIZE:
            oldest = min(self._messages[server_id].sent_at for server_id in fetched_ids)
        stale = [
            rendered.server_id
            for rendered in self._messages.values()
            if not rendered.is_pending
            and rendered.server_id not in fetched_ids
            and (oldest is None or rendered.sent_at >= oldest)
        ]
        for server_id in stale:
            self._remove(server_id)

        log.info(
            "resync_completed",
            peer_id=self.peer_id,
            fetched=len(page),
            removed=len(stale),
        )
        return len(stale)

    # ============================================================
    # 编辑 / 删除 / 已读 / 输入中
    # ============================================================

    async def edit(self, message_id: int | str, new_text: str) -> RenderedMessage | None:
        """编辑自己的消息

        Raises:
            PendingMessageError: 消息尚未被服务端确认
            TransportError: 服务端拒绝
        """
        server_id = self._resolve_server_id(message_id)
        data = await self._transport.edit_message(server_id, new_text)
        rendered = self._messages.get(server_id)
        if rendered is not None:
            self._refresh(rendered, data)
        return rendered

    async def delete(self, message_id: int | str) -> None:
        """删除自己的消息

        Raises:
            PendingMessageError: 消息尚未被服务端确认
            TransportError: 服务端拒绝
        """
        server_id = self._resolve_server_id(message_id)
        await self._transport.delete_message(server_id)
        self._remove(server_id)

    async def mark_read(self) -> int:
        return await self._transport.mark_as_read(self.peer_id)

    async def notify_typing(self) -> None:
        await self._transport.user_typing(self.peer_id)

    # ============================================================
    # 查询
    # ============================================================

    def messages(self) -> list[RenderedMessage]:
        """按展示顺序返回：已确认的按 (sent_at, id)，未确认的按本地顺序排在最后"""

        def order(rendered: RenderedMessage) -> tuple:
            if rendered.is_pending:
                return (1, rendered.local_seq)
            return (0, rendered.sent_at, rendered.server_id)

        return sorted(self._messages.values(), key=order)

    def get(self, message_id: int | str) -> RenderedMessage | None:
        """按服务端 ID 或 correlation id 查找"""
        if isinstance(message_id, str) and message_id in self._confirmed:
            message_id = self._confirmed[message_id]
        return self._messages.get(message_id)

    def is_peer_typing(self) -> bool:
        return self._typing_until is not None and self._clock() < self._typing_until

    @property
    def peer_online(self) -> bool:
        return self._peer_online

    # ============================================================
    # 内部辅助
    # ============================================================

    def _next_seq(self) -> int:
        self._seq += 1
        return self._seq

    def _resolve_server_id(self, message_id: int | str) -> int:
        if isinstance(message_id, int):
            return message_id
        if message_id in self._confirmed:
            return self._confirmed[message_id]
        raise PendingMessageError(message_id)

    def _refresh(self, rendered: RenderedMessage, data: dict[str, Any]) -> None:
        fields = canonical_fields(data)
        rendered.text = fields["text"]
        rendered.edited_at = fields["edited_at"]
        rendered.attachment_url = fields["attachment_url"]
        if rendered.status == DeliveryStatus.SENT and data.get("isRead"):
            rendered.status = DeliveryStatus.SEEN

    def _remove(self, server_id: int) -> bool:
        rendered = self._messages.pop(server_id, None)
        if rendered is None:
            return False
        if rendered.correlation_id:
            self._confirmed.pop(rendered.correlation_id, None)
        return True
