"""Conversation Domain Model

每个无序用户对只有一条会话记录：(user_low, user_high) 按字典序归一化，
唯一索引保证 (A, B) 与 (B, A) 指向同一行。
"""

from datetime import datetime

from pydantic import BaseModel, Field


def normalize_pair(user_a: str, user_b: str) -> tuple[str, str]:
    """将无序用户对归一化为 (较小者, 较大者)"""
    return (user_a, user_b) if user_a <= user_b else (user_b, user_a)


class Conversation(BaseModel):
    """会话摘要记录，首条消息时懒创建，永不删除"""

    conversation_id: str = Field(description="唯一标识，ULID 格式")
    user_low: str = Field(description="归一化后字典序较小的用户 ID")
    user_high: str = Field(description="归一化后字典序较大的用户 ID")
    last_message: str = Field(default="", description="最近一条消息的预览")
    last_message_at: datetime = Field(description="最近一条消息时间")
    created_at: datetime = Field(description="创建时间")

    def peer_of(self, user_id: str) -> str:
        """返回会话中另一方的 ID"""
        return self.user_high if user_id == self.user_low else self.user_low
