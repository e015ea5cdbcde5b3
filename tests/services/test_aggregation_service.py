import pytest
from datetime import timedelta
from app.models.catalog import ItemType
from app.services.aggregation_service import (
    AggregationService,
    TimePeriod,
    aggregate_ratings,
    average_for_item,
    buddy_ratings_for_item,
    most_active_users,
    rating_count_for_item,
    top_rated,
)
from tests.factories import BASE_TIME, album, artist, at, rating, track


class TestAggregateRatings:

    def test_three_ratings_average(self):
        """80, 60, 100 -> 평균 80.0, 3명"""
        x = track("x")
        ratings = [rating("u1", x, 80), rating("u2", x, 60), rating("u3", x, 100)]

        result = aggregate_ratings(ratings)

        assert len(result) == 1
        assert result[0].average_score == 80.0
        assert result[0].total_ratings == 3
        assert result[0].item_id == "x"

    def test_empty_input_returns_empty_list(self):
        assert aggregate_ratings([]) == []

    def test_average_matches_sum_over_count_per_group(self):
        a, b = track("a"), track("b")
        ratings = [rating("u1", a, 33), rating("u2", a, 34), rating("u3", b, 1), rating("u1", b, 2)]

        for group in aggregate_ratings(ratings):
            scores = [r.score for r in group.ratings]
            assert group.average_score == pytest.approx(sum(scores) / len(scores))
            assert group.total_ratings == len(scores)

    def test_average_is_float_not_truncated(self):
        a = track("a")
        result = aggregate_ratings([rating("u1", a, 1), rating("u2", a, 2)])
        assert result[0].average_score == 1.5

    def test_sorted_by_average_descending(self):
        low, high, mid = track("low"), track("high"), track("mid")
        ratings = [rating("u1", low, 10), rating("u1", high, 90), rating("u1", mid, 50)]

        result = aggregate_ratings(ratings)

        assert [g.item_id for g in result] == ["high", "mid", "low"]

    def test_ties_keep_first_appearance_order(self):
        """동점이면 그룹이 처음 등장한 순서 유지"""
        first, second = track("first"), track("second")
        ratings = [rating("u1", first, 70), rating("u1", second, 70), rating("u2", first, 70)]

        result = aggregate_ratings(ratings)

        assert [g.item_id for g in result] == ["first", "second"]

    def test_item_type_filter(self):
        ratings = [rating("u1", track("t"), 50), rating("u1", album("al"), 90), rating("u1", artist("ar"), 70)]

        result = aggregate_ratings(ratings, item_type=ItemType.ALBUM)

        assert [g.item_id for g in result] == ["al"]

    def test_current_user_rating_marked(self):
        x = track("x")
        mine = rating("me", x, 40)
        result = aggregate_ratings([rating("u1", x, 80), mine], viewer_user_id="me")

        assert result[0].current_user_rating == mine

    def test_time_window_is_half_open(self):
        x = track("x")
        ratings = [
            rating("u1", x, 10, rated_at=at(8)),
            rating("u2", x, 50, rated_at=at(9)),
            rating("u3", x, 90, rated_at=at(10)),
        ]

        result = aggregate_ratings(ratings, since=at(9), until=at(10))

        assert result[0].total_ratings == 1
        assert result[0].average_score == 50.0


class TestHelpers:

    def test_top_rated_aggregates_before_truncating(self):
        items = [track(f"t{i}") for i in range(5)]
        ratings = [rating("u1", item, score) for item, score in zip(items, [10, 90, 30, 70, 50])]

        result = top_rated(ratings, limit=2)

        assert [g.item_id for g in result] == ["t1", "t3"]

    def test_average_and_count_for_item(self):
        x = track("x")
        ratings = [rating("u1", x, 80), rating("u2", x, 60), rating("u3", track("y"), 0)]

        assert average_for_item(ratings, "x") == 70.0
        assert rating_count_for_item(ratings, "x") == 2
        assert average_for_item(ratings, "missing") is None
        assert rating_count_for_item(ratings, "missing") == 0

    def test_most_active_users(self):
        ratings = [
            rating("u1", track("a")),
            rating("u2", track("a")),
            rating("u2", track("b")),
            rating("u3", track("a")),
        ]

        result = most_active_users(ratings, limit=2)

        assert [(u.user_id, u.rating_count) for u in result] == [("u2", 2), ("u1", 1)]

    def test_buddy_ratings_for_item_newest_first(self):
        x = track("x")
        ratings = [
            rating("b1", x, rated_at=at(9)),
            rating("stranger", x, rated_at=at(12)),
            rating("b2", x, rated_at=at(11)),
        ]

        result = buddy_ratings_for_item(ratings, "x", ["b1", "b2"])

        assert [r.user_id for r in result] == ["b2", "b1"]

    def test_time_period_since(self):
        assert TimePeriod.ALL_TIME.since(BASE_TIME) is None
        assert TimePeriod.WEEK.since(BASE_TIME) == BASE_TIME - timedelta(days=7)
        assert TimePeriod.MONTH.since(BASE_TIME) == BASE_TIME - timedelta(days=30)
        assert TimePeriod.YEAR.since(BASE_TIME) == BASE_TIME - timedelta(days=365)


class TestAggregationService:

    @pytest.mark.asyncio
    async def test_charts_from_store(self, store):
        x, y = track("x"), album("y")
        for r in [rating("u1", x, 80), rating("u2", x, 60), rating("u3", x, 100), rating("u1", y, 20)]:
            await store.set("ratings", r.id, r.to_document())

        service = AggregationService(store)
        charts = await service.charts(item_type=ItemType.TRACK)

        assert len(charts) == 1
        assert charts[0].average_score == 80.0
        assert charts[0].total_ratings == 3

    @pytest.mark.asyncio
    async def test_charts_accepts_naive_since(self, store):
        """naive datetime 쿼리 파라미터는 UTC로 간주"""
        x = track("x")
        old = rating("u1", x, 10, rated_at=at(8))
        new = rating("u2", x, 90, rated_at=at(10))
        for r in (old, new):
            await store.set("ratings", r.id, r.to_document())

        service = AggregationService(store)
        charts = await service.charts(since=at(9).replace(tzinfo=None))

        assert charts[0].total_ratings == 1
        assert charts[0].average_score == 90.0

    @pytest.mark.asyncio
    async def test_charts_limit(self, store):
        for i in range(5):
            r = rating("u1", track(f"t{i}"), i * 10)
            await store.set("ratings", r.id, r.to_document())

        charts = await AggregationService(store).charts(limit=3)

        assert [c.item_id for c in charts] == ["t4", "t3", "t2"]
