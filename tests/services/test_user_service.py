import pytest
from app.exception.store.store_exception import StoreOperationError
from app.models.store import FilterOp
from app.repositories.memory import InMemoryDocumentStore
from app.services.user_service import USERS_COLLECTION, UserService
from tests.factories import user


class FailingChunkStore(InMemoryDocumentStore):
    def __init__(self, failing_id):
        super().__init__()
        self.failing_id = failing_id

    async def query(self, path, filters=(), order_by=None, descending=False, limit=None):
        for flt in filters:
            if flt.op == FilterOp.IN and self.failing_id in flt.value:
                raise StoreOperationError()
        return await super().query(path, filters, order_by, descending, limit)


class TestTokens:

    @pytest.mark.asyncio
    async def test_register_creates_user(self, store):
        await UserService(store).register_token("u1", "tok-a")

        doc = await store.get(USERS_COLLECTION, "u1")
        assert doc["fcmTokens"] == ["tok-a"]

    @pytest.mark.asyncio
    async def test_register_is_union(self, store):
        service = UserService(store)
        await service.register_token("u1", "tok-a")
        await service.register_token("u1", "tok-b")
        await service.register_token("u1", "tok-a")

        assert (await service.get_profile("u1")).fcm_tokens == ["tok-a", "tok-b"]

    @pytest.mark.asyncio
    async def test_unregister(self, store):
        service = UserService(store)
        await service.register_token("u1", "tok-a")
        await service.register_token("u1", "tok-b")

        await service.unregister_token("u1", "tok-a")

        assert (await service.get_profile("u1")).fcm_tokens == ["tok-b"]


class TestProfiles:

    @pytest.mark.asyncio
    async def test_placeholder_for_unknown_user(self, store):
        profile = await UserService(store).profile_or_placeholder("ghost")
        assert profile.id == "ghost"
        assert profile.fcm_tokens == []

    @pytest.mark.asyncio
    async def test_fetch_profiles_deduplicates_and_chunks(self, store):
        service = UserService(store)
        ids = [f"u{i:02d}" for i in range(15)]
        for uid in ids:
            await service.save_profile(user(uid))

        profiles = await service.fetch_profiles(ids + ids[:3])

        assert sorted(p.id for p in profiles) == ids

    @pytest.mark.asyncio
    async def test_failed_chunk_is_skipped(self):
        store = FailingChunkStore(failing_id="u12")
        service = UserService(store)
        ids = [f"u{i:02d}" for i in range(15)]
        for uid in ids:
            await service.save_profile(user(uid))

        profiles = await service.fetch_profiles(ids)

        assert sorted(p.id for p in profiles) == ids[:10]

    @pytest.mark.asyncio
    async def test_empty_ids(self, store):
        assert await UserService(store).fetch_profiles([]) == []
