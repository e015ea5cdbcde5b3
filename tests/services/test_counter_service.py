import asyncio
import logging
import pytest
import pytest_asyncio
from unittest.mock import AsyncMock
from app.exception.base_exception import BaseCustomException
from app.exception.domain.domain_exception import ContentTooLongError
from app.exception.store.store_exception import StoreOperationError
from app.models.reaction import CounterTarget
from app.services.counter_service import (
    COMMENTS_FIELD,
    LIKES_FIELD,
    RATINGS_COLLECTION,
    CounterService,
    ReactionService,
    comments_path,
    review_likes_path,
)
from app.triggers.handlers import TriggerHandlers
from app.triggers.registry import trigger_registry
from tests.factories import at, rating, user


@pytest.fixture
def likes_target():
    return CounterTarget(path=RATINGS_COLLECTION, doc_id="r1", field=LIKES_FIELD)


@pytest_asyncio.fixture
async def rating_doc(store):
    r = rating("author")
    await store.set(RATINGS_COLLECTION, r.id, r.to_document())
    return r


@pytest.fixture
def wired_store(store):
    """반응 문서 쓰기가 트리거를 거쳐 카운터로 이어지도록 연결된 저장소"""
    handlers = TriggerHandlers(CounterService(store), notification_service=AsyncMock())
    handlers.register(trigger_registry)
    store.add_write_observer(trigger_registry.dispatch)
    return store


class TestCounterService:

    @pytest.mark.asyncio
    async def test_increment_and_decrement(self, store):
        await store.set(RATINGS_COLLECTION, "r1", {"id": "r1", LIKES_FIELD: 0})
        service = CounterService(store)
        target = CounterTarget(path=RATINGS_COLLECTION, doc_id="r1", field=LIKES_FIELD)

        assert await service.on_reaction_written(target, 1) is True
        assert await service.on_reaction_written(target, 1) is True
        assert await service.on_reaction_written(target, -1) is True

        doc = await store.get(RATINGS_COLLECTION, "r1")
        assert doc[LIKES_FIELD] == 1

    @pytest.mark.asyncio
    async def test_missing_parent_is_logged_and_dropped(self, store, likes_target, caplog):
        """부모 문서가 없으면 예외 없이 False (로깅 후 폐기)"""
        service = CounterService(store)

        with caplog.at_level(logging.ERROR, logger="app"):
            assert await service.on_reaction_written(likes_target, 1) is False

        assert any(
            isinstance(record.msg, dict) and record.msg.get("event") == "counter_update_dropped"
            for record in caplog.records
        )

    @pytest.mark.asyncio
    async def test_store_failure_is_dropped(self, likes_target):
        failing_store = AsyncMock()
        failing_store.atomic_increment.side_effect = StoreOperationError("timeout")

        assert await CounterService(failing_store).on_reaction_written(likes_target, 1) is False

    @pytest.mark.asyncio
    async def test_recount_overwrites_with_live_count(self, store, likes_target):
        await store.set(RATINGS_COLLECTION, "r1", {"id": "r1", LIKES_FIELD: 42})
        for uid in ("a", "b"):
            await store.set(review_likes_path("r1"), f"r1_{uid}", {"id": f"r1_{uid}"})

        live = await CounterService(store).recount(likes_target, review_likes_path("r1"))

        assert live == 2
        assert (await store.get(RATINGS_COLLECTION, "r1"))[LIKES_FIELD] == 2


class TestReactionsThroughTriggers:

    @pytest.mark.asyncio
    async def test_concurrent_likes_match_live_count(self, wired_store, rating_doc):
        """여러 사용자의 좋아요/취소가 어떤 순서로 섞여도 카운터 == 실제 좋아요 수"""
        reactions = ReactionService(wired_store)
        users = [user(f"u{i}") for i in range(12)]

        await asyncio.gather(*[reactions.like_review(rating_doc.id, u) for u in users])
        await asyncio.gather(*[reactions.unlike_review(rating_doc.id, u.id) for u in users[::3]])

        doc = await wired_store.get(RATINGS_COLLECTION, rating_doc.id)
        live = await reactions.live_counts(rating_doc.id)
        assert doc[LIKES_FIELD] == live[LIKES_FIELD] == 8

    @pytest.mark.asyncio
    async def test_like_is_idempotent_per_user(self, wired_store, rating_doc):
        reactions = ReactionService(wired_store)
        fan = user("fan")

        await reactions.like_review(rating_doc.id, fan)
        await reactions.like_review(rating_doc.id, fan)

        doc = await wired_store.get(RATINGS_COLLECTION, rating_doc.id)
        assert doc[LIKES_FIELD] == 1
        assert await reactions.has_liked_review(rating_doc.id, "fan") is True

    @pytest.mark.asyncio
    async def test_comment_and_comment_like_counters(self, wired_store, rating_doc):
        reactions = ReactionService(wired_store)

        comment = await reactions.add_comment(rating_doc.id, user("c1"), "  great pick  ")
        await reactions.like_comment(rating_doc.id, comment.id, user("l1"))
        await reactions.like_comment(rating_doc.id, comment.id, user("l2"))
        await reactions.unlike_comment(rating_doc.id, comment.id, "l1")

        rating_after = await wired_store.get(RATINGS_COLLECTION, rating_doc.id)
        comment_after = await reactions.comment(rating_doc.id, comment.id)
        assert rating_after[COMMENTS_FIELD] == 1
        assert comment.content == "great pick"
        assert comment_after.likes_count == 1
        assert await reactions.has_liked_comment(rating_doc.id, comment.id, "l2") is True

        await reactions.delete_comment(rating_doc.id, comment.id)
        rating_after = await wired_store.get(RATINGS_COLLECTION, rating_doc.id)
        assert rating_after[COMMENTS_FIELD] == 0

    @pytest.mark.asyncio
    async def test_comments_oldest_first(self, store):
        ticks = iter(range(3))
        reactions = ReactionService(store, clock=lambda: at(9, next(ticks)))

        for text in ("first", "second", "third"):
            await reactions.add_comment("r1", user("c"), text)

        assert [c.content for c in await reactions.comments("r1")] == ["first", "second", "third"]


class TestCommentValidation:

    @pytest.mark.asyncio
    async def test_comment_too_long(self, store):
        with pytest.raises(ContentTooLongError):
            await ReactionService(store).add_comment("r1", user("c"), "x" * 101)

    @pytest.mark.asyncio
    async def test_comment_exactly_100_chars_allowed(self, store):
        comment = await ReactionService(store).add_comment("r1", user("c"), "x" * 100)
        assert len(comment.content) == 100
        assert await store.get(comments_path("r1"), comment.id) is not None

    @pytest.mark.asyncio
    async def test_blank_comment_rejected(self, store):
        with pytest.raises(BaseCustomException) as exc_info:
            await ReactionService(store).add_comment("r1", user("c"), "   ")
        assert exc_info.value.status_code == 400
