"""
평점/리뷰 저장 서비스

- 문서 ID는 "{userId}_{itemId}": 같은 아이템을 다시 평가하면 덮어씁니다.
- 리뷰 텍스트가 있으면 review_created_at이 반드시 채워지고, 이후 저장에서도 유지됩니다.
- review_updated_at은 리뷰가 있는 상태에서 두 번째 이후 저장일 때만 기록됩니다.
- 좋아요/댓글 카운터는 생성 시에만 0으로 기록하고 덮어쓰기에서는 건드리지 않습니다 (트리거만 갱신).
"""

from __future__ import annotations
import logging
from datetime import datetime
from typing import Callable, List, Optional
from app.clients.catalog import CatalogClient
from app.exception.api.catalog_exception import CatalogLookupError
from app.exception.base_exception import BaseCustomException
from app.exception.domain.domain_exception import InvalidScoreError
from app.exception.store.store_exception import DocumentNotFoundError
from app.models.catalog import CatalogItem, ItemType
from app.models.rating import Rating, has_text
from app.models.store import where
from app.models.user import UserProfile
from app.repositories.base import IDocumentStore
from app.services.counter_service import COMMENTS_FIELD, LIKES_FIELD
from app.services.recommendation_service import RecommendationService
from app.utils.clock import utc_now

logger = logging.getLogger("app")

RATINGS_COLLECTION = "ratings"


class RatingService:

    def __init__(
        self,
        store: IDocumentStore,
        recommendation_service: RecommendationService,
        catalog_client: Optional[CatalogClient] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.recommendation_service = recommendation_service
        self.catalog_client = catalog_client
        self.clock = clock

    async def get(self, rating_id: str) -> Optional[Rating]:
        doc = await self.store.get(RATINGS_COLLECTION, rating_id)
        return Rating.from_document(doc) if doc is not None else None

    async def resolve_item(self, item_id: str, item_type: ItemType) -> CatalogItem:
        """
        카탈로그에서 스냅샷 메타데이터 조회

        Raises:
            CatalogLookupError: 카탈로그 클라이언트 미설정 또는 조회 실패
        """
        if self.catalog_client is None:
            raise CatalogLookupError("카탈로그 클라이언트가 설정되지 않았습니다.")
        return await self.catalog_client.get_item(item_id, item_type)

    async def save_rating(
        self,
        user: UserProfile,
        item: CatalogItem,
        score: int,
        review_text: Optional[str] = None,
    ) -> Rating:
        """
        평점 저장 (생성 또는 덮어쓰기)

        Raises:
            InvalidScoreError: 점수가 0~100 범위를 벗어난 경우
        """
        if not 0 <= score <= 100:
            raise InvalidScoreError()

        rating_id = Rating.make_id(user.id, item.id)
        existing = await self.get(rating_id)
        now = self.clock()

        review_created_at = None
        review_updated_at = None
        if has_text(review_text):
            if existing is not None and existing.has_review and existing.review_created_at is not None:
                review_created_at = existing.review_created_at
                review_updated_at = now
            else:
                review_created_at = now
        else:
            review_text = None

        rating = Rating(
            id=rating_id,
            user_id=user.id,
            item=item,
            score=score,
            rated_at=now,
            user_display_name=user.display_name or None,
            username=user.username,
            user_image_url=user.image_url,
            review_text=review_text,
            review_created_at=review_created_at,
            review_updated_at=review_updated_at,
        )
        rating = await self._write(rating, is_new=existing is None)

        # 평점 자체는 이미 저장되었으므로 추천 상태 갱신 실패는 로깅만 수행
        try:
            marked = await self.recommendation_service.mark_rated_for_item(user.id, item.id, rating_id)
            if marked:
                logger.info(f"Marked {marked} recommendation(s) as rated for {rating_id}")
        except BaseCustomException as e:
            logger.error({
                "event": "recommendation_mark_rated_failed",
                "errorCode": getattr(e.error_code, "value", e.error_code),
                "message": e.message,
                "rating": rating_id,
            })
        return rating

    async def _write(self, rating: Rating, is_new: bool) -> Rating:
        """
        평점 문서 기록

        Note:
            likesCount/commentsCount는 생성 시에만 0으로 기록하고, 덮어쓰기에서는
            필드를 제외한 update로 기록합니다. 카운터는 트리거의 atomic_increment만 변경합니다.
        """
        if not is_new:
            fields = rating.to_document()
            fields.pop(LIKES_FIELD, None)
            fields.pop(COMMENTS_FIELD, None)
            try:
                await self.store.update(RATINGS_COLLECTION, rating.id, fields)
            except DocumentNotFoundError:
                # 조회 이후 삭제된 경우 새 문서로 생성
                logger.warning(f"Rating {rating.id} disappeared before overwrite, recreating")
            else:
                stored = await self.get(rating.id)
                if stored is None:
                    return rating
                return rating.model_copy(update={
                    "likes_count": stored.likes_count,
                    "comments_count": stored.comments_count,
                })

        await self.store.set(RATINGS_COLLECTION, rating.id, rating.to_document())
        return rating

    async def delete_rating(self, rating_id: str) -> None:
        await self.store.delete(RATINGS_COLLECTION, rating_id)

    async def ratings_for_user(self, user_id: str) -> List[Rating]:
        """사용자의 평점 (최신순)"""
        docs = await self.store.query(
            RATINGS_COLLECTION,
            [where("userId", "==", user_id)],
            order_by="ratedAt",
            descending=True,
        )
        return [Rating.from_document(doc) for doc in docs]

    async def ratings_for_item(self, item_id: str) -> List[Rating]:
        """아이템의 모든 평점 (최신순)"""
        docs = await self.store.query(
            RATINGS_COLLECTION,
            [where("item.id", "==", item_id)],
            order_by="ratedAt",
            descending=True,
        )
        return [Rating.from_document(doc) for doc in docs]

    async def reviews_for_item(self, item_id: str) -> List[Rating]:
        """리뷰 텍스트가 있는 평점만 (최신순)"""
        return [rating for rating in await self.ratings_for_item(item_id) if rating.has_review]
