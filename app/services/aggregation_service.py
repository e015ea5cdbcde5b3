"""
평점 집계 엔진

평점 목록을 아이템별로 묶어 평균 점수와 참여자 수를 계산합니다.
모듈 수준 함수는 I/O 없는 순수 계산이며, AggregationService는 저장소에서
평점을 읽어 와 순수 함수에 넘기는 얇은 래퍼입니다.

정렬 규칙:
- 평균 점수 내림차순
- 평균이 같으면 그룹이 처음 등장한 순서 유지 (stable sort, 보조 정렬 키 없음)
"""

from __future__ import annotations
import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence
from app.models.catalog import ItemType
from app.models.rating import ActiveUser, AggregatedRating, Rating
from app.models.store import where
from app.repositories.base import IDocumentStore
from app.utils.clock import ensure_utc

logger = logging.getLogger("app")

RATINGS_COLLECTION = "ratings"


class TimePeriod(str, Enum):
    """차트 조회 기간. 월은 30일로 근사합니다."""
    ALL_TIME = "all_time"
    YEAR = "year"
    MONTH = "month"
    WEEK = "week"

    def since(self, now: Optional[datetime] = None) -> Optional[datetime]:
        now = now or datetime.now(timezone.utc)
        if self is TimePeriod.YEAR:
            return now - timedelta(days=365)
        if self is TimePeriod.MONTH:
            return now - timedelta(days=30)
        if self is TimePeriod.WEEK:
            return now - timedelta(weeks=1)
        return None


def _in_window(rating: Rating, since: Optional[datetime], until: Optional[datetime]) -> bool:
    # [since, until) 반열린 구간
    if since is not None and rating.rated_at < since:
        return False
    if until is not None and rating.rated_at >= until:
        return False
    return True


def aggregate_ratings(
    ratings: Iterable[Rating],
    item_type: Optional[ItemType] = None,
    viewer_user_id: Optional[str] = None,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
) -> List[AggregatedRating]:
    """
    평점을 아이템 ID별로 집계

    Args:
        ratings: 집계 대상 평점 (호출부가 이미 조회해 둔 데이터)
        item_type: 지정 시 해당 종류의 아이템만 집계
        viewer_user_id: 지정 시 각 그룹에서 해당 사용자의 평점을 current_user_rating으로 표시
        since, until: 지정 시 rated_at이 [since, until) 구간인 평점만 집계

    Returns:
        List[AggregatedRating]: 평균 점수 내림차순. 입력이 비면 빈 리스트.
    """
    groups: Dict[str, List[Rating]] = {}
    for rating in ratings:
        if item_type is not None and rating.item_type != item_type:
            continue
        if not _in_window(rating, since, until):
            continue
        groups.setdefault(rating.item_id, []).append(rating)

    aggregated = []
    for members in groups.values():
        # 정수 점수를 float으로 승격하여 평균 계산
        average = float(sum(r.score for r in members)) / len(members)
        current = None
        if viewer_user_id is not None:
            current = next((r for r in members if r.user_id == viewer_user_id), None)

        aggregated.append(AggregatedRating(
            item=members[0].item,
            average_score=average,
            total_ratings=len(members),
            ratings=members,
            current_user_rating=current,
        ))

    # list.sort는 stable이므로 동점 그룹은 등장 순서를 유지
    aggregated.sort(key=lambda a: a.average_score, reverse=True)
    return aggregated


def top_rated(
    ratings: Iterable[Rating],
    item_type: Optional[ItemType] = None,
    limit: int = 10,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
) -> List[AggregatedRating]:
    """
    상위 N개 아이템

    Note:
        전체를 집계한 뒤 잘라냅니다. 입력을 먼저 자르면 평균이 왜곡됩니다.
    """
    return aggregate_ratings(ratings, item_type=item_type, since=since, until=until)[:limit]


def average_for_item(ratings: Iterable[Rating], item_id: str) -> Optional[float]:
    scores = [r.score for r in ratings if r.item_id == item_id]
    if not scores:
        return None
    return float(sum(scores)) / len(scores)


def rating_count_for_item(ratings: Iterable[Rating], item_id: str) -> int:
    return sum(1 for r in ratings if r.item_id == item_id)


def most_active_users(ratings: Iterable[Rating], limit: int = 10) -> List[ActiveUser]:
    """평점 수 내림차순 사용자 목록 (동률은 등장 순서 유지)"""
    counts: Dict[str, ActiveUser] = {}
    for rating in ratings:
        entry = counts.get(rating.user_id)
        if entry is None:
            counts[rating.user_id] = ActiveUser(
                user_id=rating.user_id,
                username=rating.username or rating.user_display_name,
                rating_count=1,
            )
        else:
            entry.rating_count += 1

    users = sorted(counts.values(), key=lambda u: u.rating_count, reverse=True)
    return users[:limit]


def buddy_ratings_for_item(ratings: Iterable[Rating], item_id: str, buddy_ids: Sequence[str]) -> List[Rating]:
    """특정 아이템에 대한 버디들의 평점 (최신순)"""
    buddy_set = set(buddy_ids)
    matched = [r for r in ratings if r.item_id == item_id and r.user_id in buddy_set]
    matched.sort(key=lambda r: r.rated_at, reverse=True)
    return matched


class AggregationService:
    """
    저장소 기반 차트 조회 서비스

    Note:
        저장소 조회는 아이템 종류와 기간 하한까지만 위임하고,
        그룹핑/평균/정렬은 모두 순수 함수(aggregate_ratings)에서 수행합니다.
    """

    def __init__(self, store: IDocumentStore):
        self.store = store

    async def load_ratings(
        self,
        item_type: Optional[ItemType] = None,
        since: Optional[datetime] = None,
    ) -> List[Rating]:
        filters = []
        if item_type is not None:
            filters.append(where("item.type", "==", item_type.value))
        if since is not None:
            filters.append(where("ratedAt", ">=", since))

        docs = await self.store.query(RATINGS_COLLECTION, filters)
        return [Rating.from_document(doc) for doc in docs]

    async def charts(
        self,
        item_type: Optional[ItemType] = None,
        viewer_user_id: Optional[str] = None,
        limit: Optional[int] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> List[AggregatedRating]:
        since, until = ensure_utc(since), ensure_utc(until)
        ratings = await self.load_ratings(item_type=item_type, since=since)
        aggregated = aggregate_ratings(
            ratings,
            item_type=item_type,
            viewer_user_id=viewer_user_id,
            since=since,
            until=until,
        )
        logger.info(f"Aggregated {len(ratings)} ratings into {len(aggregated)} items")
        if limit is not None:
            return aggregated[:limit]
        return aggregated

    async def most_active_users(self, limit: int = 10) -> List[ActiveUser]:
        ratings = await self.load_ratings()
        return most_active_users(ratings, limit=limit)
