import pytest
from unittest.mock import AsyncMock
from app.exception.notification.notification_exception import DeliveryFailedError, InvalidDeliveryTokenError
from app.exception.store.store_exception import StoreOperationError
from app.models.catalog import ItemType
from app.models.notification import NotificationKind
from app.services.buddy_service import BuddyService, buddies_path
from app.services.notification_service import (
    NotificationService,
    article_for,
    build_rating_payload,
    build_recommendation_payload,
    rating_notification_kind,
    recommendation_body,
)
from app.services.user_service import USERS_COLLECTION, UserService
from tests.factories import album, artist, at, rating, recommendation, track, user


def make_service(store, push_client):
    return NotificationService(store, push_client, UserService(store), BuddyService(store))


async def save_user(store, profile):
    await store.set(USERS_COLLECTION, profile.id, profile.to_document())


async def make_buddies(store, owner_id, buddy_ids):
    for buddy_id in buddy_ids:
        await store.set(buddies_path(owner_id), buddy_id, {"id": buddy_id, "displayName": buddy_id, "buddySince": at(8)})


class TestCopy:

    @pytest.mark.parametrize("item_type,expected", [
        (ItemType.ARTIST, "an"),
        (ItemType.ALBUM, "an"),
        (ItemType.TRACK, "a"),
    ])
    def test_article_for_item_type(self, item_type, expected):
        assert article_for(item_type.label) == expected

    def test_track_is_called_song(self):
        assert ItemType.TRACK.label == "song"

    def test_recommendation_body_with_message(self):
        rec = recommendation("bob", "carol", album("y", "Kind of Blue"), message="trust me")
        assert recommendation_body(rec) == 'bob sent you an album "Kind of Blue" and said: trust me'

    def test_recommendation_body_without_sender_username(self):
        rec = recommendation("bob", "carol", artist("ar", "Alice Coltrane")).model_copy(update={"sender_username": None})
        assert recommendation_body(rec) == 'Someone sent you an artist "Alice Coltrane"'

    def test_recommendation_payload_data(self):
        rec = recommendation("bob", "carol", track("z"))
        payload = build_recommendation_payload(rec)

        assert payload.data == {
            "type": "recommendation",
            "recommendationId": rec.id,
            "itemId": "z",
            "itemType": "track",
        }

    def test_review_payload(self):
        r = rating("bob", track("z", "So What", "Miles Davis"), score=92, review_text="modal heaven")
        payload = build_rating_payload(r, NotificationKind.REVIEW)

        assert payload.title == "New Review"
        assert payload.body == "bob reviewed So What by Miles Davis (92%)"
        assert payload.data["type"] == "review"

    def test_rating_payload_without_artist(self):
        r = rating("bob", artist("ar", "Alice Coltrane"), score=70)
        payload = build_rating_payload(r, NotificationKind.RATING)

        assert payload.title == "New Rating"
        assert payload.body == "bob rated Alice Coltrane 70%"


class TestRatingNotificationKind:

    def test_new_rating_without_review(self):
        assert rating_notification_kind(None, rating("u", score=50)) == NotificationKind.RATING

    def test_new_rating_with_review(self):
        assert rating_notification_kind(None, rating("u", review_text="nice")) == NotificationKind.REVIEW

    def test_score_only_change_does_not_notify(self):
        before = rating("u", score=50)
        after = rating("u", score=90)
        assert rating_notification_kind(before, after) is None

    def test_score_change_with_same_review_does_not_notify(self):
        before = rating("u", score=50, review_text="same")
        after = rating("u", score=90, review_text="same")
        assert rating_notification_kind(before, after) is None

    def test_whitespace_review_counts_as_empty(self):
        before = rating("u", review_text="   ")
        after = rating("u", review_text="\n")
        assert rating_notification_kind(before, after) is None

    def test_review_added_to_existing_rating(self):
        before = rating("u", score=50)
        after = rating("u", score=50, review_text="finally wrote it")
        assert rating_notification_kind(before, after) == NotificationKind.REVIEW

    def test_delete_does_not_notify(self):
        assert rating_notification_kind(rating("u"), None) is None


class TestFanOut:

    @pytest.mark.asyncio
    async def test_invalid_token_pruned_others_delivered(self, store):
        """토큰 3개 중 2번만 무효 -> 2번만 제거, 1번/3번 발송은 영향 없음"""
        await save_user(store, user("carol", tokens=["tok-1", "tok-2", "tok-3"]))
        push_client = AsyncMock()

        async def send(token, payload):
            if token == "tok-2":
                raise InvalidDeliveryTokenError()
            return f"msg-{token}"

        push_client.send.side_effect = send
        rec = recommendation("bob", "carol", track("z"))

        report = await make_service(store, push_client).notify_recommendation(rec)

        assert report.recipients == 1
        assert report.sent == 2
        assert report.pruned == 1
        assert report.failed == 0
        stored = await store.get(USERS_COLLECTION, "carol")
        assert stored["fcmTokens"] == ["tok-1", "tok-3"]
        assert sorted(call.args[0] for call in push_client.send.call_args_list) == ["tok-1", "tok-2", "tok-3"]

    @pytest.mark.asyncio
    async def test_transient_failure_keeps_token(self, store):
        await save_user(store, user("carol", tokens=["tok-1", "tok-2"]))
        push_client = AsyncMock()
        push_client.send.side_effect = [DeliveryFailedError(), "ok"]

        report = await make_service(store, push_client).notify_recommendation(recommendation("bob", "carol"))

        assert report.sent == 1
        assert report.failed == 1
        assert (await store.get(USERS_COLLECTION, "carol"))["fcmTokens"] == ["tok-1", "tok-2"]

    @pytest.mark.asyncio
    async def test_missing_receiver_skips(self, store, push_client):
        report = await make_service(store, push_client).notify_recommendation(recommendation("bob", "ghost"))

        assert report.recipients == 0
        push_client.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_new_review_notifies_each_buddy_once(self, store, push_client):
        await make_buddies(store, "alice", ["b1", "b2", "b3"])
        await save_user(store, user("b1", tokens=["t-b1"]))
        await save_user(store, user("b2", tokens=["t-b2a", "t-b2b"]))
        await save_user(store, user("b3"))

        before = rating("alice", score=60)
        after = rating("alice", score=60, review_text="grew on me")
        report = await make_service(store, push_client).notify_rating(before, after)

        assert report.recipients == 2
        assert report.sent == 3
        payload = push_client.send.call_args_list[0].args[1]
        assert payload.title == "New Review"

    @pytest.mark.asyncio
    async def test_score_only_update_sends_nothing(self, store, push_client):
        await make_buddies(store, "alice", ["b1"])
        await save_user(store, user("b1", tokens=["t-b1"]))

        result = await make_service(store, push_client).notify_rating(rating("alice", score=10), rating("alice", score=99))

        assert result is None
        push_client.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_buddies(self, store, push_client):
        report = await make_service(store, push_client).notify_rating(None, rating("loner"))

        assert report.recipients == 0
        push_client.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_many_buddies_profiles_fetched_in_chunks(self, store, push_client):
        buddy_ids = [f"b{i:02d}" for i in range(23)]
        await make_buddies(store, "alice", buddy_ids)
        for buddy_id in buddy_ids:
            await save_user(store, user(buddy_id, tokens=[f"t-{buddy_id}"]))

        report = await make_service(store, push_client).notify_rating(None, rating("alice"))

        assert report.recipients == 23
        assert report.sent == 23

    @pytest.mark.asyncio
    async def test_prune_failure_is_logged_not_raised(self, push_client):
        store = AsyncMock()
        store.array_remove.side_effect = StoreOperationError()
        push_client.send.side_effect = InvalidDeliveryTokenError()
        service = NotificationService(store, push_client, AsyncMock(), AsyncMock())

        report = await service.dispatch([user("carol", tokens=["bad"])], build_recommendation_payload(recommendation("bob", "carol")))

        assert report.pruned == 1
        store.array_remove.assert_awaited_once_with(USERS_COLLECTION, "carol", "fcmTokens", "bad")

    @pytest.mark.asyncio
    async def test_duplicate_tokens_sent_once(self, push_client, store):
        service = make_service(store, push_client)

        report = await service.dispatch([user("carol", tokens=["same", "same"])], build_recommendation_payload(recommendation("bob", "carol")))

        assert report.sent == 1
        push_client.send.assert_awaited_once()
