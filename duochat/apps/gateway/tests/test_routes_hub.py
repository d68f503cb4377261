"""推送通道调用路由测试"""

import asyncio

from duochat.core.models import PushEventType
from httpx import AsyncClient

ALICE = {"X-User-Id": "alice"}
BOB = {"X-User-Id": "bob"}


async def _send(client: AsyncClient, text: str = "hello") -> int:
    resp = await client.post(
        "/messages",
        data={"receiverId": "bob", "messageContent": text},
        headers=ALICE,
    )
    assert resp.status_code == 201
    return resp.json()["id"]


def _drain(queue: asyncio.Queue) -> list:
    events = []
    while not queue.empty():
        events.append(queue.get_nowait())
    return events


class TestEditMessage:
    async def test_owner_edit(self, client: AsyncClient):
        message_id = await _send(client)

        resp = await client.post(
            "/hub/edit-message",
            json={"messageId": message_id, "newContent": "edited"},
            headers=ALICE,
        )

        assert resp.status_code == 200
        assert resp.json()["messageContent"] == "edited"
        assert resp.json()["editedAt"] is not None

    async def test_non_owner_edit_is_403(self, client: AsyncClient):
        message_id = await _send(client)

        resp = await client.post(
            "/hub/edit-message",
            json={"messageId": message_id, "newContent": "mine now"},
            headers=BOB,
        )

        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "UNAUTHORIZED"

    async def test_edit_missing_is_404(self, client: AsyncClient):
        resp = await client.post(
            "/hub/edit-message",
            json={"messageId": 999, "newContent": "x"},
            headers=ALICE,
        )

        assert resp.status_code == 404
        assert resp.json()["error"] == {
            "code": "MESSAGE_NOT_FOUND",
            "message": "Message with id 999 does not exist",
        }


class TestDeleteMessage:
    async def test_delete_returns_receiver_then_not_found(self, client: AsyncClient):
        message_id = await _send(client)

        resp = await client.post(
            "/hub/delete-message", json={"messageId": message_id}, headers=ALICE
        )
        assert resp.status_code == 200
        assert resp.json() == {"messageId": message_id, "receiverId": "bob"}

        resp = await client.post(
            "/hub/delete-message", json={"messageId": message_id}, headers=ALICE
        )
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "MESSAGE_NOT_FOUND"


class TestReadTypingPresence:
    async def test_mark_as_read_notifies_sender(self, client: AsyncClient, event_bus):
        await _send(client)
        alice = await event_bus.register("alice")

        resp = await client.post("/hub/mark-as-read", json={"otherUserId": "alice"}, headers=BOB)

        assert resp.status_code == 200
        assert resp.json() == {"markedCount": 1}
        events = _drain(alice)
        assert events[-1].type == PushEventType.MESSAGES_READ
        assert events[-1].payload == {"userId": "bob"}

    async def test_user_typing_is_204(self, client: AsyncClient, event_bus):
        bob = await event_bus.register("bob")

        resp = await client.post("/hub/user-typing", json={"otherUserId": "bob"}, headers=ALICE)

        assert resp.status_code == 204
        assert _drain(bob)[0].type == PushEventType.USER_TYPING

    async def test_presence_lookup(self, client: AsyncClient, event_bus):
        resp = await client.get("/hub/presence/bob", headers=ALICE)
        assert resp.json() == {"userId": "bob", "online": False}

        await event_bus.register("bob")
        resp = await client.get("/hub/presence/bob", headers=ALICE)
        assert resp.json() == {"userId": "bob", "online": True}

    async def test_hub_requires_caller(self, client: AsyncClient):
        resp = await client.post("/hub/user-typing", json={"otherUserId": "bob"})
        assert resp.status_code == 401
