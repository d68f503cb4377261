"""SqliteUserDirectory 测试"""


class TestUserDirectory:
    async def test_get_user(self, store_group):
        user = await store_group.user_directory.get_user("alice")

        assert user is not None
        assert user.display_name == "Alice"
        assert user.created_at.tzinfo is not None

    async def test_get_missing_user(self, store_group):
        assert await store_group.user_directory.get_user("mallory") is None
        assert not await store_group.user_directory.exists("mallory")

    async def test_display_names_batched(self, store_group):
        names = await store_group.user_directory.get_display_names(
            ["bob", "alice", "bob", "mallory"]
        )

        assert names == {"alice": "Alice", "bob": "Bob"}

    async def test_display_name_missing_is_empty(self, store_group):
        assert await store_group.user_directory.get_display_name("mallory") == ""
        assert await store_group.user_directory.get_display_names([]) == {}

    async def test_upsert_renames_and_keeps_created_at(self, store_group):
        before = await store_group.user_directory.get_user("carol")

        async with store_group.transaction():
            await store_group.user_directory.upsert_user("carol", "Caroline")

        after = await store_group.user_directory.get_user("carol")
        assert after.display_name == "Caroline"
        assert after.created_at == before.created_at
