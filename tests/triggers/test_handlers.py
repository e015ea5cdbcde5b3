import pytest
from app.api.dependencies import get_trigger_handlers
from app.models.store import DocumentRow, DocumentWebhookPayload
from app.services.buddy_service import buddies_path
from app.services.counter_service import RATINGS_COLLECTION, review_likes_path
from app.services.recommendation_service import RECOMMENDATIONS_COLLECTION
from app.services.user_service import USERS_COLLECTION
from app.triggers.registry import trigger_registry
from tests.factories import at, rating, recommendation, user


@pytest.fixture
def wired_store(store, push_client):
    """저장소 쓰기 -> 트리거 레지스트리 -> 핸들러 경로가 연결된 상태"""
    get_trigger_handlers(store, push_client).register(trigger_registry)
    store.add_write_observer(trigger_registry.dispatch)
    return store


async def save_user(store, profile):
    await store.set(USERS_COLLECTION, profile.id, profile.to_document())


class TestTriggerWiring:

    @pytest.mark.asyncio
    async def test_like_created_and_deleted_updates_counter(self, wired_store):
        r = rating("author")
        await wired_store.set(RATINGS_COLLECTION, r.id, r.to_document())

        await wired_store.set(review_likes_path(r.id), "fan", {"id": "fan", "userId": "fan"})
        assert (await wired_store.get(RATINGS_COLLECTION, r.id))["likesCount"] == 1

        await wired_store.delete(review_likes_path(r.id), "fan")
        assert (await wired_store.get(RATINGS_COLLECTION, r.id))["likesCount"] == 0

    @pytest.mark.asyncio
    async def test_recommendation_created_notifies_receiver(self, wired_store, push_client):
        await save_user(wired_store, user("carol", tokens=["carol-tok"]))
        rec = recommendation("bob", "carol")

        await wired_store.set(RECOMMENDATIONS_COLLECTION, rec.id, rec.to_document())

        push_client.send.assert_awaited_once()
        token, payload = push_client.send.await_args.args
        assert token == "carol-tok"
        assert payload.data["recommendationId"] == rec.id

    @pytest.mark.asyncio
    async def test_recommendation_status_update_does_not_notify(self, wired_store, push_client):
        await save_user(wired_store, user("carol", tokens=["carol-tok"]))
        rec = recommendation("bob", "carol")
        await wired_store.set(RECOMMENDATIONS_COLLECTION, rec.id, rec.to_document())
        push_client.send.reset_mock()

        await wired_store.update(RECOMMENDATIONS_COLLECTION, rec.id, {"status": "ignored"})

        push_client.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_new_rating_notifies_buddies(self, wired_store, push_client):
        await save_user(wired_store, user("b1", tokens=["b1-tok"]))
        await wired_store.set(buddies_path("author"), "b1", {"id": "b1", "displayName": "B1", "buddySince": at(8)})

        r = rating("author")
        await wired_store.set(RATINGS_COLLECTION, r.id, r.to_document())

        push_client.send.assert_awaited_once()
        assert push_client.send.await_args.args[0] == "b1-tok"

    @pytest.mark.asyncio
    async def test_rating_deleted_does_not_notify(self, wired_store, push_client):
        await save_user(wired_store, user("b1", tokens=["b1-tok"]))
        await wired_store.set(buddies_path("author"), "b1", {"id": "b1", "displayName": "B1", "buddySince": at(8)})
        r = rating("author")
        await wired_store.set(RATINGS_COLLECTION, r.id, r.to_document())
        push_client.send.reset_mock()

        await wired_store.delete(RATINGS_COLLECTION, r.id)

        push_client.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_like_on_missing_rating_does_not_fail_write(self, wired_store):
        await wired_store.set(review_likes_path("ghost"), "fan", {"id": "fan"})

        assert await wired_store.get(review_likes_path("ghost"), "fan") == {"id": "fan"}


class TestWebhookPayload:

    def test_insert_becomes_created_event(self):
        payload = DocumentWebhookPayload(
            type="INSERT",
            table="documents",
            record=DocumentRow(collection="ratings/r1/likes", id="u2", data={"id": "u2"}),
        )
        event = payload.to_event()

        assert event.full_path == "ratings/r1/likes/u2"
        assert event.before is None
        assert event.kind == "created"

    def test_update_keeps_both_snapshots(self):
        payload = DocumentWebhookPayload(
            type="UPDATE",
            record=DocumentRow(collection="ratings", id="r1", data={"score": 90}),
            old_record=DocumentRow(collection="ratings", id="r1", data={"score": 80}),
        )
        event = payload.to_event()

        assert event.before == {"score": 80}
        assert event.after == {"score": 90}

    def test_delete_uses_old_record(self):
        payload = DocumentWebhookPayload(
            type="DELETE",
            old_record=DocumentRow(collection="recommendations", id="rec1", data={"id": "rec1"}),
        )
        event = payload.to_event()

        assert event.after is None
        assert event.kind == "deleted"

    def test_missing_rows_rejected(self):
        with pytest.raises(ValueError):
            DocumentWebhookPayload(type="INSERT").to_event()
