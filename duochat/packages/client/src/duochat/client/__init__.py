"""DuoChat Client -- 客户端消息同步

packages/client 的公开接口导出。
"""

from .api_client import ChatApiClient, parse_sse_lines
from .exceptions import ClientSyncError, PendingMessageError, TransportError
from .models import DeliveryStatus, RenderedMessage
from .sync_engine import (
    TYPING_HINT_TTL_S,
    ChatTransport,
    ClientSyncEngine,
    new_correlation_id,
)

__all__ = [
    "ClientSyncEngine",
    "ChatTransport",
    "ChatApiClient",
    "parse_sse_lines",
    "new_correlation_id",
    "TYPING_HINT_TTL_S",
    "DeliveryStatus",
    "RenderedMessage",
    "ClientSyncError",
    "PendingMessageError",
    "TransportError",
]
