"""PushEvent Domain Model

推送事件不落盘，只经由事件总线投递给在线连接。
event_id 使用 ULID 格式，时间有序，作为 SSE 的 id 字段。
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field
from ulid import ULID

from .enums import PushEventType
from .views import CamelModel


class PushEvent(BaseModel):
    """推送事件"""

    event_id: str = Field(
        default_factory=lambda: str(ULID()),
        description="唯一标识，ULID 格式，时间有序",
    )
    type: PushEventType = Field(description="事件类型")
    ts: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="事件时间戳",
    )
    payload: dict[str, Any] = Field(default_factory=dict, description="camelCase payload")

    @classmethod
    def build(cls, event_type: PushEventType, payload: CamelModel) -> "PushEvent":
        """由结构化 payload 构建事件"""
        return cls(type=event_type, payload=payload.to_json_dict())
