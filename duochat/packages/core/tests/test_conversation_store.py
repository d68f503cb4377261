"""ConversationStore 单元测试

测试内容：
1. 无序用户对归一化，(A, B) 与 (B, A) 指向同一行
2. 唯一约束冲突时回查胜出者，而不是报错
3. 两个连接并发创建同一会话只产生一行
"""

import asyncio
from unittest.mock import patch

import aiosqlite
import pytest
from duochat.core.models import normalize_pair
from duochat.core.store import create_store_group
from duochat.core.store.conversation_store import is_pair_conflict
from duochat.core.store.transaction import add_message_and_touch_conversation


async def _conversation_count(conn: aiosqlite.Connection) -> int:
    cursor = await conn.execute("SELECT COUNT(*) FROM conversations")
    row = await cursor.fetchone()
    return row[0]


class TestNormalization:
    def test_normalize_pair_sorts(self):
        assert normalize_pair("bob", "alice") == ("alice", "bob")
        assert normalize_pair("alice", "bob") == ("alice", "bob")

    async def test_both_orderings_share_row(self, store_group):
        store = store_group.conversation_store
        first = await store.get_or_create_conversation("alice", "bob")
        second = await store.get_or_create_conversation("bob", "alice")
        await store_group.conn.commit()

        assert first.conversation_id == second.conversation_id
        assert first.user_low == "alice"
        assert first.user_high == "bob"
        assert first.last_message == ""
        assert await _conversation_count(store_group.conn) == 1

    async def test_peer_of(self, store_group):
        conv = await store_group.conversation_store.get_or_create_conversation("bob", "alice")
        assert conv.peer_of("alice") == "bob"
        assert conv.peer_of("bob") == "alice"


class TestConflictRecovery:
    async def test_conflict_refetches_winner(self, store_group):
        """查询落空后插入撞上唯一约束：返回已存在的行"""
        store = store_group.conversation_store
        winner = await store.get_or_create_conversation("alice", "bob")
        await store_group.conn.commit()

        real_get = store.get_conversation
        calls = 0

        async def stale_first_lookup(user_a, user_b):
            nonlocal calls
            calls += 1
            if calls == 1:
                return None
            return await real_get(user_a, user_b)

        with patch.object(store, "get_conversation", side_effect=stale_first_lookup):
            recovered = await store.get_or_create_conversation("bob", "alice")

        assert recovered.conversation_id == winner.conversation_id
        assert calls == 2
        assert await _conversation_count(store_group.conn) == 1

    async def test_unrelated_integrity_error_propagates(self, store_group):
        store = store_group.conversation_store
        conv = await store.get_or_create_conversation("alice", "bob")
        await store_group.conn.commit()

        with pytest.raises(aiosqlite.IntegrityError) as exc_info:
            await store_group.conn.execute(
                "INSERT INTO conversations (conversation_id, user_low, user_high, "
                "last_message, last_message_at, created_at) VALUES (?, 'x', 'y', '', '', '')",
                (conv.conversation_id,),
            )
        assert not is_pair_conflict(exc_info.value)

    async def test_concurrent_first_messages_across_connections(self, tmp_db_path, store_group, make_message):
        """两个连接同时发出两人之间的第一条消息，只产生一个会话"""
        other_group = await create_store_group(str(tmp_db_path))
        try:
            first, second = await asyncio.gather(
                add_message_and_touch_conversation(
                    store_group, make_message("alice", "bob", text="from alice")
                ),
                add_message_and_touch_conversation(
                    other_group, make_message("bob", "alice", text="from bob")
                ),
            )
        finally:
            await other_group.conn.close()

        assert first.conversation_id == second.conversation_id
        assert await _conversation_count(store_group.conn) == 1


class TestListing:
    async def test_list_conversations_most_recent_first(self, store_group, make_message):
        await add_message_and_touch_conversation(store_group, make_message("alice", "bob"))
        await add_message_and_touch_conversation(store_group, make_message("carol", "alice"))

        conversations = await store_group.conversation_store.list_conversations("alice")
        assert [c.peer_of("alice") for c in conversations] == ["carol", "bob"]

        assert len(await store_group.conversation_store.list_conversations("bob")) == 1
        assert len(await store_group.conversation_store.list_all_conversations()) == 2
