"""ChatApiClient -- 网关 HTTP / SSE 调用封装

实现 ChatTransport：写路径（发送）、读路径（分页、聊天视图、会话列表）
与推送通道调用（已读、编辑、删除、输入中），以及 SSE 事件流解析。
"""

import json
from collections.abc import AsyncIterable, AsyncIterator
from typing import Any

import httpx
import structlog
from duochat.core.models import AttachmentUpload

from .exceptions import TransportError

log = structlog.get_logger()

DEFAULT_TIMEOUT_S = 10.0

USER_ID_HEADER = "X-User-Id"


async def parse_sse_lines(lines: AsyncIterable[str]) -> AsyncIterator[dict[str, Any]]:
    """把 SSE 文本行解析为事件信封

    以空行分隔事件；":" 开头的注释行（心跳）忽略；
    多个 data 行按换行拼接后作为 JSON 解析。
    """
    data_lines: list[str] = []
    async for raw in lines:
        line = raw.rstrip("\r")
        if not line:
            if data_lines:
                payload = "\n".join(data_lines)
                data_lines = []
                try:
                    yield json.loads(payload)
                except json.JSONDecodeError:
                    log.warning("sse_payload_invalid", payload=payload[:200])
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "data":
            data_lines.append(value)


class ChatApiClient:
    """网关客户端

    所有请求携带 X-User-Id 标识调用方。
    """

    def __init__(
        self,
        base_url: str,
        user_id: str,
        http_client: httpx.AsyncClient | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ) -> None:
        """
        Args:
            base_url: 网关地址，如 http://localhost:8000
            user_id: 当前用户 ID
            http_client: 外部传入的 httpx 客户端（测试时可注入 ASGITransport）
            timeout_s: 普通请求超时（秒），SSE 流不设读超时
        """
        self.user_id = user_id
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(base_url=base_url, timeout=timeout_s)
        self._headers = {USER_ID_HEADER: user_id}

    async def __aenter__(self) -> "ChatApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ============================================================
    # 写路径
    # ============================================================

    async def send_message(
        self,
        receiver_id: str,
        text: str | None = None,
        attachment: AttachmentUpload | None = None,
        correlation_id: str | None = None,
    ) -> dict[str, Any]:
        """POST /messages（表单提交，带附件时为 multipart）"""
        form: dict[str, str] = {"receiverId": receiver_id}
        if text is not None:
            form["messageContent"] = text
        if correlation_id is not None:
            form["correlationId"] = correlation_id

        files = None
        if attachment is not None:
            files = {
                "file": (
                    attachment.filename or "attachment",
                    attachment.content,
                    attachment.content_type or "application/octet-stream",
                )
            }

        return await self._request("POST", "/messages", data=form, files=files)

    # ============================================================
    # 读路径
    # ============================================================

    async def get_messages(self, other_user_id: str, page: int = 1) -> list[dict[str, Any]]:
        return await self._request(
            "GET", "/messages", params={"userId": other_user_id, "page": page}
        )

    async def get_chat(self, other_user_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/chats/{other_user_id}")

    async def unread_count(self) -> int:
        data = await self._request("GET", "/messages/unread-count")
        return data["unreadCount"]

    async def list_conversations(self) -> list[dict[str, Any]]:
        return await self._request("GET", "/conversations")

    async def is_online(self, user_id: str) -> bool:
        data = await self._request("GET", f"/hub/presence/{user_id}")
        return data["online"]

    # ============================================================
    # 推送通道调用
    # ============================================================

    async def mark_as_read(self, other_user_id: str) -> int:
        data = await self._request(
            "POST", "/hub/mark-as-read", json={"otherUserId": other_user_id}
        )
        return data["markedCount"]

    async def edit_message(self, message_id: int, new_content: str) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/hub/edit-message",
            json={"messageId": message_id, "newContent": new_content},
        )

    async def delete_message(self, message_id: int) -> dict[str, Any]:
        return await self._request(
            "POST", "/hub/delete-message", json={"messageId": message_id}
        )

    async def user_typing(self, other_user_id: str) -> None:
        await self._request("POST", "/hub/user-typing", json={"otherUserId": other_user_id})

    async def stream_events(self) -> AsyncIterator[dict[str, Any]]:
        """订阅 GET /stream，逐个产出事件信封

        Raises:
            TransportError: 连接失败或服务端拒绝
        """
        try:
            async with self._client.stream(
                "GET", "/stream", headers=self._headers, timeout=None
            ) as response:
                if response.is_error:
                    await response.aread()
                    raise self._error_from_response(response)
                async for event in parse_sse_lines(response.aiter_lines()):
                    yield event
        except httpx.HTTPError as e:
            raise TransportError(
                f"Event stream failed: {e}",
                original_error=e,
            ) from e

    # ============================================================
    # 内部辅助
    # ============================================================

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(
                method, path, headers=self._headers, **kwargs
            )
        except httpx.HTTPError as e:
            log.warning(
                "gateway_request_failed",
                method=method,
                path=path,
                error_type=type(e).__name__,
            )
            raise TransportError(
                f"Gateway unreachable: {e}",
                original_error=e,
            ) from e

        if response.is_error:
            raise self._error_from_response(response)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    @staticmethod
    def _error_from_response(response: httpx.Response) -> TransportError:
        code = None
        message = f"HTTP {response.status_code}"
        try:
            error = response.json().get("error", {})
            code = error.get("code")
            message = error.get("message", message)
        except (ValueError, AttributeError):
            pass
        return TransportError(message, status_code=response.status_code, code=code)
