import pytest
from app.exception.store.store_exception import StoreOperationError
from app.models.feed import RatingFeedItem, RecommendationFeedItem
from app.models.store import FilterOp
from app.repositories.memory import InMemoryDocumentStore
from app.services.buddy_service import BuddyService, buddies_path
from app.services.feed_service import FeedService, dedupe_by_id, in_scope, merge_feed
from tests.factories import album, at, rating, recommendation, track


class RecordingStore(InMemoryDocumentStore):
    """"in" 조회의 묶음 크기를 기록하고, 지정한 ID가 포함된 묶음은 실패시키는 저장소"""

    def __init__(self, failing_id=None):
        super().__init__()
        self.in_chunks = []
        self.failing_id = failing_id

    async def query(self, path, filters=(), order_by=None, descending=False, limit=None):
        for flt in filters:
            if flt.op == FilterOp.IN:
                self.in_chunks.append((path, flt.field, len(flt.value)))
                if self.failing_id in flt.value:
                    raise StoreOperationError("chunk timeout")
        return await super().query(path, filters, order_by, descending, limit)


async def make_buddies(store, owner_id, buddy_ids):
    for i, buddy_id in enumerate(buddy_ids):
        await store.set(buddies_path(owner_id), buddy_id, {
            "id": buddy_id, "displayName": buddy_id, "buddySince": at(8, i % 60),
        })


class TestMergeFeed:

    def test_sorted_by_sort_date_descending(self):
        ratings = [rating("b1", track("a"), rated_at=at(9)), rating("b2", track("b"), rated_at=at(12))]
        recs = [recommendation("b1", "x", track("c"), sent_at=at(10))]

        feed = merge_feed("viewer", ["b1", "b2"], ratings, recs)

        dates = [item.sort_date for item in feed]
        assert dates == sorted(dates, reverse=True)
        assert [item.kind for item in feed] == ["rating", "recommendation", "rating"]

    def test_scenario_recommendation_between_ratings(self):
        """B가 C에게 Z 추천(10시), C가 Z 평가(11시), B가 Y 평가(9시)"""
        z, y = track("z"), album("y")
        b_rating = rating("b", y, rated_at=at(9))
        c_rating = rating("c", z, rated_at=at(11))
        rec = recommendation("b", "c", z, sent_at=at(10))

        feed = merge_feed("v", ["b", "c"], [b_rating, c_rating], [rec])

        assert [item.id for item in feed] == [f"rating_{c_rating.id}", f"rec_{rec.id}", f"rating_{b_rating.id}"]
        rec_item = feed[1]
        assert isinstance(rec_item, RecommendationFeedItem)
        assert rec_item.receiver_rating == c_rating

    def test_receiver_rating_none_when_unrated(self):
        rec = recommendation("b", "c", track("z"))
        feed = merge_feed("v", ["b"], [], [rec])
        assert feed[0].receiver_rating is None

    def test_non_buddy_ratings_excluded(self):
        ratings = [rating("b", track("a")), rating("stranger", track("b")), rating("v", track("c"))]

        feed = merge_feed("v", ["b"], ratings, [])

        assert [item.rating.user_id for item in feed if isinstance(item, RatingFeedItem)] == ["b"]

    def test_every_input_appears_exactly_once(self):
        ratings = [rating(f"b{i}", track(f"t{i}"), rated_at=at(9, i)) for i in range(5)]
        recs = [recommendation("b0", "v", track(f"r{i}"), sent_at=at(10, i)) for i in range(3)]

        feed = merge_feed("v", [f"b{i}" for i in range(5)], ratings, recs + recs[:1])

        ids = [item.id for item in feed]
        assert len(ids) == len(set(ids)) == 8

    def test_out_of_scope_recommendation_dropped(self):
        recs = [recommendation("s1", "s2", track("a")), recommendation("b", "s3", track("b"))]

        feed = merge_feed("v", ["b"], [], recs)

        assert [item.recommendation.sender_id for item in feed] == ["b"]


class TestInScope:

    @pytest.mark.parametrize("sender,receiver,expected", [
        ("v", "x", True),
        ("x", "v", True),
        ("b", "x", True),
        ("x", "b", True),
        ("x", "y", False),
    ])
    def test_scope_rule(self, sender, receiver, expected):
        rec = recommendation(sender, receiver, track("a"))
        assert in_scope(rec, "v", ["b"]) is expected

    def test_dedupe_keeps_first(self):
        first = recommendation("a", "b", track("x"), message="first")
        duplicate = first.model_copy(update={"message": "second"})
        assert [r.message for r in dedupe_by_id([first, duplicate])] == ["first"]


class TestFeedService:

    @pytest.mark.asyncio
    async def test_23_buddies_query_in_three_chunks(self):
        store = RecordingStore()
        buddy_ids = [f"b{i:02d}" for i in range(23)]
        await make_buddies(store, "v", buddy_ids)
        for buddy_id in buddy_ids:
            r = rating(buddy_id, track(f"t-{buddy_id}"))
            await store.set("ratings", r.id, r.to_document())

        service = FeedService(store, BuddyService(store))
        ratings, complete = await service.fetch_ratings_by_users(buddy_ids)

        assert complete is True
        assert sorted(size for path, field, size in store.in_chunks if path == "ratings") == [3, 10, 10]
        assert {r.user_id for r in ratings} == set(buddy_ids)

    @pytest.mark.asyncio
    async def test_chunked_result_equals_unbounded_query(self):
        store = RecordingStore()
        buddy_ids = [f"b{i:02d}" for i in range(23)]
        await make_buddies(store, "v", buddy_ids)
        for i, buddy_id in enumerate(buddy_ids):
            rec = recommendation(buddy_id, "someone", track(f"t{i}"), sent_at=at(10, i))
            await store.set("recommendations", rec.id, rec.to_document())
        stray = recommendation("x", "y", track("other"))
        await store.set("recommendations", stray.id, stray.to_document())

        service = FeedService(store, BuddyService(store))
        recs, complete = await service.fetch_recommendations_in_scope("v", buddy_ids)

        everything = [doc["id"] for doc in await store.query("recommendations")]
        expected = {rec_id for rec_id in everything if rec_id != stray.id}
        assert complete is True
        assert {r.id for r in recs} == expected

    @pytest.mark.asyncio
    async def test_build_feed_end_to_end(self, store):
        await make_buddies(store, "v", ["b", "c"])
        z, y = track("z"), album("y")
        for doc_path, model in [
            ("ratings", rating("b", y, rated_at=at(9))),
            ("ratings", rating("c", z, rated_at=at(11))),
            ("recommendations", recommendation("b", "c", z, sent_at=at(10))),
        ]:
            await store.set(doc_path, model.id, model.to_document())

        feed = await FeedService(store, BuddyService(store)).build_feed("v")

        assert feed.complete is True
        assert [item.kind for item in feed.items] == ["rating", "recommendation", "rating"]
        assert feed.items[1].receiver_rating.user_id == "c"

    @pytest.mark.asyncio
    async def test_failed_chunk_degrades_feed(self):
        """한 묶음 조회 실패 시 나머지 결과로 피드를 만들고 complete=False"""
        store = RecordingStore(failing_id="b15")
        buddy_ids = [f"b{i:02d}" for i in range(23)]
        await make_buddies(store, "v", buddy_ids)
        for buddy_id in buddy_ids:
            r = rating(buddy_id, track(f"t-{buddy_id}"))
            await store.set("ratings", r.id, r.to_document())

        feed = await FeedService(store, BuddyService(store)).build_feed("v")

        assert feed.complete is False
        # b15가 포함된 10개 묶음만 빠짐
        assert len(feed.items) == 13

    @pytest.mark.asyncio
    async def test_viewer_own_recommendation_with_receiver_rating(self, store):
        """보는 사람이 보낸 추천은 버디가 아닌 받은 사람의 평점도 연결"""
        z = track("z")
        rec = recommendation("v", "stranger", z, sent_at=at(10))
        stranger_rating = rating("stranger", z, rated_at=at(11))
        await store.set("recommendations", rec.id, rec.to_document())
        await store.set("ratings", stranger_rating.id, stranger_rating.to_document())

        feed = await FeedService(store, BuddyService(store)).build_feed("v")

        assert len(feed.items) == 1
        assert feed.items[0].receiver_rating.id == stranger_rating.id
