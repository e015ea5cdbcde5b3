"""
문서 쓰기 트리거 핸들러

| 경로 패턴                                               | 이벤트          | 동작                          |
|---------------------------------------------------------|-----------------|-------------------------------|
| ratings/{ratingId}/likes/{likeId}                       | created/deleted | 평점 likesCount ±1            |
| ratings/{ratingId}/comments/{commentId}                 | created/deleted | 평점 commentsCount ±1         |
| ratings/{ratingId}/comments/{commentId}/likes/{likeId}  | created/deleted | 댓글 likesCount ±1            |
| recommendations/{recommendationId}                      | created         | 받은 사람에게 알림            |
| ratings/{ratingId}                                      | written         | 새 평점/새 리뷰면 버디에게 알림 |
"""

from __future__ import annotations
import logging
from typing import Dict, Optional
from app.models.notification import FanOutReport
from app.models.rating import Rating
from app.models.reaction import CounterTarget
from app.models.recommendation import Recommendation
from app.models.store import DocumentWriteEvent, WriteKind
from app.services.counter_service import COMMENTS_FIELD, LIKES_FIELD, RATINGS_COLLECTION, CounterService
from app.services.notification_service import NotificationService
from app.triggers.registry import TriggerEvent, TriggerRegistry

logger = logging.getLogger("app")

REVIEW_LIKE_PATTERN = "ratings/{ratingId}/likes/{likeId}"
COMMENT_PATTERN = "ratings/{ratingId}/comments/{commentId}"
COMMENT_LIKE_PATTERN = "ratings/{ratingId}/comments/{commentId}/likes/{likeId}"
RECOMMENDATION_PATTERN = "recommendations/{recommendationId}"
RATING_PATTERN = "ratings/{ratingId}"


def _delta_for(event: DocumentWriteEvent) -> int:
    return 1 if event.kind == WriteKind.CREATED else -1


class TriggerHandlers:
    """트리거 표면: on_reaction_written, on_recommendation_created, on_rating_written"""

    def __init__(self, counter_service: CounterService, notification_service: NotificationService):
        self.counter_service = counter_service
        self.notification_service = notification_service

    async def on_reaction_written(self, parent_ref: CounterTarget, delta: int) -> bool:
        return await self.counter_service.on_reaction_written(parent_ref, delta)

    async def on_recommendation_created(self, record: Recommendation) -> FanOutReport:
        return await self.notification_service.notify_recommendation(record)

    async def on_rating_written(self, before: Optional[Rating], after: Optional[Rating]) -> Optional[FanOutReport]:
        if after is None:
            logger.info("No rating data found (rating was deleted)")
            return None
        return await self.notification_service.notify_rating(before, after)

    # ------------------------------------------------------------------
    # DocumentWriteEvent 어댑터
    # ------------------------------------------------------------------

    async def _review_like(self, event: DocumentWriteEvent, params: Dict[str, str]) -> None:
        target = CounterTarget(path=RATINGS_COLLECTION, doc_id=params["ratingId"], field=LIKES_FIELD)
        await self.on_reaction_written(target, _delta_for(event))

    async def _comment(self, event: DocumentWriteEvent, params: Dict[str, str]) -> None:
        target = CounterTarget(path=RATINGS_COLLECTION, doc_id=params["ratingId"], field=COMMENTS_FIELD)
        await self.on_reaction_written(target, _delta_for(event))

    async def _comment_like(self, event: DocumentWriteEvent, params: Dict[str, str]) -> None:
        target = CounterTarget(
            path=f"{RATINGS_COLLECTION}/{params['ratingId']}/comments",
            doc_id=params["commentId"],
            field=LIKES_FIELD,
        )
        await self.on_reaction_written(target, _delta_for(event))

    async def _recommendation(self, event: DocumentWriteEvent, params: Dict[str, str]) -> None:
        if not event.after:
            logger.info("No recommendation data found")
            return
        await self.on_recommendation_created(Recommendation.from_document(event.after))

    async def _rating(self, event: DocumentWriteEvent, params: Dict[str, str]) -> None:
        before = Rating.from_document(event.before) if event.before else None
        after = Rating.from_document(event.after) if event.after else None
        await self.on_rating_written(before, after)

    def register(self, registry: TriggerRegistry) -> None:
        for event in (TriggerEvent.CREATED, TriggerEvent.DELETED):
            registry.register(REVIEW_LIKE_PATTERN, event, self._review_like)
            registry.register(COMMENT_PATTERN, event, self._comment)
            registry.register(COMMENT_LIKE_PATTERN, event, self._comment_like)
        registry.register(RECOMMENDATION_PATTERN, TriggerEvent.CREATED, self._recommendation)
        registry.register(RATING_PATTERN, TriggerEvent.WRITTEN, self._rating)
