"""packages/client 测试配置 -- 内存版 ChatTransport"""

from datetime import UTC, datetime, timedelta
from itertools import count

import pytest
from duochat.client.exceptions import TransportError


class FakeTransport:
    """按服务端语义在内存中模拟网关

    messages 保存权威记录（camelCase JSON），fail_next 让下一次发送失败。
    """

    def __init__(self, user_id: str = "alice") -> None:
        self.user_id = user_id
        self.messages: dict[int, dict] = {}
        self.sent: list[dict] = []
        self.read_calls: list[str] = []
        self.typing_calls: list[str] = []
        self.fail_next: TransportError | None = None
        self._ids = count(1)
        self._clock = datetime(2025, 1, 1, tzinfo=UTC)

    def record(self, sender_id: str, receiver_id: str, text: str, correlation_id=None) -> dict:
        """写入一条服务端消息并返回其 JSON"""
        self._clock += timedelta(seconds=1)
        message_id = next(self._ids)
        data = {
            "id": message_id,
            "senderId": sender_id,
            "senderName": sender_id.title(),
            "receiverId": receiver_id,
            "messageContent": text,
            "attachmentUrl": None,
            "attachmentType": None,
            "originalFileName": None,
            "sentAt": self._clock.isoformat(),
            "editedAt": None,
            "isRead": False,
            "isSentByCurrentUser": sender_id == self.user_id,
            "correlationId": correlation_id,
        }
        self.messages[message_id] = data
        return data

    async def send_message(self, receiver_id, text=None, attachment=None, correlation_id=None):
        if self.fail_next is not None:
            error, self.fail_next = self.fail_next, None
            raise error
        data = self.record(self.user_id, receiver_id, text, correlation_id)
        self.sent.append(data)
        return dict(data)

    async def edit_message(self, message_id, new_content):
        data = self.messages.get(message_id)
        if data is None:
            raise TransportError("missing", status_code=404, code="MESSAGE_NOT_FOUND")
        data["messageContent"] = new_content
        data["editedAt"] = (self._clock + timedelta(seconds=30)).isoformat()
        return dict(data)

    async def delete_message(self, message_id):
        data = self.messages.pop(message_id, None)
        if data is None:
            raise TransportError("missing", status_code=404, code="MESSAGE_NOT_FOUND")
        return {"messageId": message_id, "receiverId": data["receiverId"]}

    async def get_messages(self, other_user_id, page=1):
        ordered = sorted(self.messages.values(), key=lambda m: (m["sentAt"], m["id"]), reverse=True)
        start = (page - 1) * 50
        return [dict(m) for m in ordered[start : start + 50]]

    async def mark_as_read(self, other_user_id):
        self.read_calls.append(other_user_id)
        return 0

    async def user_typing(self, other_user_id):
        self.typing_calls.append(other_user_id)


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport("alice")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def engine(transport, clock):
    from duochat.client.sync_engine import ClientSyncEngine

    return ClientSyncEngine("alice", "bob", transport, clock=clock)
