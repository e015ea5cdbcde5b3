"""
버디 피드 병합 엔진

서로 다른 두 스트림(버디의 평점, 사용자 간 추천)을 하나의 시간순 피드로 합칩니다.

- 평점 항목: sort_date = rated_at
- 추천 항목: sort_date = sent_at, 받은 사람이 같은 아이템에 남긴 평점을 receiver_rating으로 연결
- 결과: sort_date 내림차순 stable sort

추천 노출 범위:
    보는 사람이 보낸/받은 추천, 또는 보낸 사람/받은 사람 중 한 명이라도 버디인 추천.
    버디끼리 주고받은 추천도 보여 주어 새로운 음악 발견을 돕습니다.

merge_feed()와 in_scope()는 I/O 없는 순수 함수이고,
FeedService는 저장소에서 묶음(10개) 단위로 데이터를 모아 순수 함수에 넘깁니다.
"""

from __future__ import annotations
import asyncio
import logging
from typing import Dict, Iterable, List, Sequence, Set, Tuple
from app.exception.store.store_exception import StoreOperationError
from app.models.feed import BuddyFeed, BuddyFeedItem, RatingFeedItem, RecommendationFeedItem
from app.models.rating import Rating
from app.models.recommendation import Recommendation
from app.models.store import where
from app.repositories.base import Document, IDocumentStore
from app.services.buddy_service import BuddyService
from app.utils.chunking import chunked

logger = logging.getLogger("app")

RATINGS_COLLECTION = "ratings"
RECOMMENDATIONS_COLLECTION = "recommendations"


def in_scope(recommendation: Recommendation, viewer_id: str, buddy_ids: Iterable[str]) -> bool:
    """viewer ∈ {sender, receiver} 또는 buddies ∩ {sender, receiver} ≠ ∅"""
    parties = {recommendation.sender_id, recommendation.receiver_id}
    if viewer_id in parties:
        return True
    return not parties.isdisjoint(buddy_ids)


def dedupe_by_id(recommendations: Iterable[Recommendation]) -> List[Recommendation]:
    """ID 기준 중복 제거 (처음 나온 것을 유지)"""
    seen: Dict[str, Recommendation] = {}
    for rec in recommendations:
        seen.setdefault(rec.id, rec)
    return list(seen.values())


def merge_feed(
    viewer_id: str,
    buddy_ids: Sequence[str],
    ratings: Iterable[Rating],
    recommendations: Iterable[Recommendation],
) -> List[BuddyFeedItem]:
    """
    평점과 추천을 하나의 피드로 병합

    Args:
        viewer_id: 피드를 보는 사용자
        buddy_ids: 보는 사용자의 버디 ID 목록
        ratings: 이미 조회된 평점. 버디의 평점만 피드 항목이 되며,
            나머지는 추천의 receiver_rating 매칭에만 사용됩니다.
        recommendations: 이미 조회된 추천 (범위 밖/중복은 여기서 걸러짐)

    Returns:
        List[BuddyFeedItem]: sort_date 내림차순
    """
    buddy_set: Set[str] = set(buddy_ids)
    ratings = list(ratings)

    # (userId, itemId) 해시 조회. 평점 ID가 복합 키이므로 사용자-아이템당 최대 1개
    by_user_item: Dict[Tuple[str, str], Rating] = {(r.user_id, r.item_id): r for r in ratings}

    items: List[BuddyFeedItem] = [
        RatingFeedItem(rating=rating) for rating in ratings if rating.user_id in buddy_set
    ]

    for rec in dedupe_by_id(recommendations):
        if not in_scope(rec, viewer_id, buddy_set):
            continue
        items.append(RecommendationFeedItem(
            recommendation=rec,
            receiver_rating=by_user_item.get((rec.receiver_id, rec.item_id)),
        ))

    # reverse=True도 동일 키의 원래 순서를 유지 (stable)
    return sorted(items, key=lambda item: item.sort_date, reverse=True)


class FeedService:
    """저장소 기반 버디 피드 조회"""

    def __init__(self, store: IDocumentStore, buddy_service: BuddyService):
        self.store = store
        self.buddy_service = buddy_service

    async def _query_chunks(self, path: str, field: str, ids: Sequence[str]) -> Tuple[List[Document], bool]:
        """
        "in" 조건을 10개 단위로 나눠 동시에 조회하고 결과를 합침

        Returns:
            (문서 목록, 모든 묶음 성공 여부)
        """
        async def run(chunk: List[str]) -> List[Document]:
            return await self.store.query(path, [where(field, "in", chunk)])

        chunks = list(chunked(list(dict.fromkeys(ids))))
        results = await asyncio.gather(*[run(chunk) for chunk in chunks], return_exceptions=True)

        docs: List[Document] = []
        complete = True
        for chunk, result in zip(chunks, results):
            if isinstance(result, StoreOperationError):
                # 한 묶음 실패는 피드 일부 누락으로만 처리
                complete = False
                logger.error({
                    "event": "feed_chunk_query_failed",
                    "errorCode": result.error_code.value,
                    "message": result.message,
                    "collection": path,
                    "field": field,
                    "chunkSize": len(chunk),
                })
                continue
            if isinstance(result, BaseException):
                raise result
            docs.extend(result)
        return docs, complete

    async def fetch_recommendations_in_scope(
        self, viewer_id: str, buddy_ids: Sequence[str]
    ) -> Tuple[List[Recommendation], bool]:
        """보는 사람 또는 버디가 보낸/받은 추천 (ID 기준 중복 제거)"""
        ids = [viewer_id, *buddy_ids]
        (sent, sent_ok), (received, received_ok) = await asyncio.gather(
            self._query_chunks(RECOMMENDATIONS_COLLECTION, "senderId", ids),
            self._query_chunks(RECOMMENDATIONS_COLLECTION, "receiverId", ids),
        )
        recommendations = dedupe_by_id(Recommendation.from_document(doc) for doc in sent + received)
        return recommendations, sent_ok and received_ok

    async def fetch_ratings_by_users(self, user_ids: Sequence[str]) -> Tuple[List[Rating], bool]:
        docs, complete = await self._query_chunks(RATINGS_COLLECTION, "userId", user_ids)
        return [Rating.from_document(doc) for doc in docs], complete

    async def build_feed(self, viewer_id: str) -> BuddyFeed:
        buddy_ids = await self.buddy_service.list_buddy_ids(viewer_id)
        recommendations, recs_ok = await self.fetch_recommendations_in_scope(viewer_id, buddy_ids)

        # 버디가 아닌 받은 사람(본인 포함)의 평점도 receiver_rating 매칭에 필요
        receiver_ids = [rec.receiver_id for rec in recommendations]
        ratings, ratings_ok = await self.fetch_ratings_by_users([*buddy_ids, *receiver_ids])

        items = merge_feed(viewer_id, buddy_ids, ratings, recommendations)
        complete = recs_ok and ratings_ok
        if not complete:
            logger.warning(f"Feed for {viewer_id} is incomplete (some chunk queries failed)")
        return BuddyFeed(items=items, complete=complete)
